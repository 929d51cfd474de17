"""Relative time windows accepted by the reporting endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta

# A window of None means no lower bound.
ANALYTICS_PERIODS: dict[str, int | None] = {"1d": 1, "7d": 7, "30d": 30, "90d": 90, "all": None}
EXPORT_PERIODS: dict[str, int | None] = {
    "7d": 7,
    "14d": 14,
    "30d": 30,
    "90d": 90,
    "180d": 180,
    "all": None,
}
SUMMARY_TIMEFRAMES: dict[str, int] = {"day": 1, "week": 7, "month": 30, "year": 365}

DEFAULT_PERIOD = "7d"


def window_start(days: int | None, now: datetime) -> datetime | None:
    """Return the earliest timestamp inside a window of ``days`` ending at ``now``."""

    if days is None:
        return None
    return now - timedelta(days=days)
