"""Generation and expiry helpers for API tokens."""

from __future__ import annotations

import hashlib
import logging
import secrets
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], int]

TOKEN_PREFIX = "sk_"
TOKEN_BYTES = 32

_DAY = 24 * 60 * 60
EXPIRATION_DURATIONS: dict[str, int] = {
    "1d": _DAY,
    "7d": 7 * _DAY,
    "30d": 30 * _DAY,
    "90d": 90 * _DAY,
    "365d": 365 * _DAY,
}
EXPIRATION_CHOICES = [*EXPIRATION_DURATIONS, "never"]


def unix_now() -> int:
    """Return the current unix time in whole seconds."""

    return int(time.time())


def generate_token() -> str:
    """Generate a secure random token string."""

    return TOKEN_PREFIX + secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """Return a deterministic hash for storing and comparing tokens."""

    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def compute_expiration(duration: str | None, *, clock: Clock = unix_now) -> int | None:
    """Translate a symbolic duration into an absolute unix timestamp.

    ``never`` (or an empty value) yields ``None``. A value outside the
    vocabulary that parses as an integer is taken as a literal timestamp.
    """

    if not duration or duration == "never":
        return None

    seconds = EXPIRATION_DURATIONS.get(duration)
    if seconds is not None:
        return clock() + seconds

    try:
        literal = int(duration)
    except (TypeError, ValueError):
        return None

    logger.warning("Using literal expiration timestamp %s outside the duration vocabulary", literal)
    return literal


def is_expired(expires_at: int | None, *, clock: Clock = unix_now) -> bool:
    """Return whether the given expiration timestamp has passed."""

    if expires_at is None:
        return False
    return clock() > expires_at
