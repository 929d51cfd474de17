"""Reporting endpoints over stored privilege elevation events."""

from __future__ import annotations

import math
import operator
import re
from collections.abc import Callable
from http import HTTPStatus
from typing import Any

from flask import Blueprint, Response, jsonify, request
from sqlalchemy import Select, func, select

from ..extensions import db
from ..models.webhook import Webhook
from ..utils.auth import require_permission
from ..utils.periods import (
    ANALYTICS_PERIODS,
    DEFAULT_PERIOD,
    SUMMARY_TIMEFRAMES,
    window_start,
)
from ..utils.principal import Permission, Principal
from .exports import attachment, rows_to_csv
from .webhooks import parse_bool_flag, parse_iso_datetime, serialize_webhook, utcnow

bp = Blueprint("analytics", __name__)

TOP_LIMIT = 5
DEFAULT_PAGE_SIZE = 100

FIELD_METADATA: dict[str, tuple[str, str]] = {
    "id": ("string", "Webhook unique identifier"),
    "user": ("string", "User identifier"),
    "machine": ("string", "Machine identifier"),
    "event": ("string", "Event type"),
    "reason": ("string", "Reason for privilege change"),
    "admin": ("boolean", "Whether admin privileges were granted"),
    "timestamp": ("string", "Event timestamp"),
    "delayed": ("boolean", "Whether event was delayed"),
    "expires": ("string", "Expiration timestamp"),
    "received_at": ("string", "When webhook was received"),
    "custom_data": ("object", "Custom data including machine name, OS version, and serial"),
    "client_version": ("number", "Client version"),
    "platform": ("string", "Platform (e.g., macOS)"),
    "cf_network_version": ("string", "CF Network version"),
    "os_version": ("string", "OS version"),
    "created_at": ("string", "Creation timestamp"),
}
ALL_FIELDS = list(FIELD_METADATA)
DEFAULT_FIELDS = ["id", "user", "machine", "event", "reason", "admin", "timestamp", "delayed", "custom_data"]
_DATETIME_FIELDS = {"timestamp", "expires", "received_at", "created_at"}

_FILTER_PATTERN = re.compile(r'(\w+)\s+(eq|ne|gt|lt|ge|le)\s+"([^"]+)"', re.IGNORECASE)
_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "lt": operator.lt,
    "ge": operator.ge,
    "le": operator.le,
}


def _select_fields(raw: str | None) -> list[str]:
    if not raw:
        return list(ALL_FIELDS)
    fields = [name.strip() for name in raw.split(",") if name.strip() in FIELD_METADATA]
    return fields or list(DEFAULT_FIELDS)


def _coerce_filter_value(field: str, value: str) -> tuple[Any, str | None]:
    if field in _DATETIME_FIELDS:
        parsed = parse_iso_datetime(value)
        if parsed is None:
            return None, f"{field} filter value must be an ISO-8601 datetime"
        return parsed, None

    field_type = FIELD_METADATA[field][0]
    if field_type == "boolean":
        flag = parse_bool_flag(value.lower())
        if flag is None:
            return None, f"{field} filter value must be 'true' or 'false'"
        return flag, None
    if field_type == "number":
        try:
            return int(value), None
        except ValueError:
            return None, f"{field} filter value must be an integer"
    return value, None


def parse_filter(expression: str) -> tuple[Any | None, str | None]:
    """Turn ``field op "value"`` into a SQL criterion on the webhook table."""

    if not expression:
        return None, None

    match = _FILTER_PATTERN.fullmatch(expression.strip())
    if match is None:
        return None, 'filter must look like: field eq "value"'

    field, op, raw_value = match.groups()
    if field not in FIELD_METADATA:
        return None, f"filter field {field} is not supported"

    value, error = _coerce_filter_value(field, raw_value)
    if error:
        return None, error
    return _OPERATORS[op.lower()](getattr(Webhook, field), value), None


def _since_clause(stmt: Select, days: int | None) -> Select:
    since = window_start(days, utcnow())
    if since is None:
        return stmt
    return stmt.where(Webhook.timestamp >= since)


def _grouped_counts(column, days: int, *, limit: int | None = None) -> list[tuple[Any, int]]:
    count = func.count(Webhook.id).label("count")
    stmt = _since_clause(select(column, count), days).group_by(column)
    if limit is not None:
        stmt = stmt.order_by(count.desc(), column).limit(limit)
    else:
        stmt = stmt.order_by(column)
    return [(value, total) for value, total in db.session.execute(stmt).all()]


@bp.get("/analytics/summary")
@require_permission(Permission.READ)
def analytics_summary(principal: Principal) -> tuple[object, int]:
    """Counts by event type plus the most active users and most common reasons."""

    timeframe = request.args.get("timeframe") or "week"
    days = SUMMARY_TIMEFRAMES.get(timeframe)
    if days is None:
        return jsonify({"error": "timeframe is not supported"}), HTTPStatus.BAD_REQUEST

    total = db.session.execute(
        _since_clause(select(func.count(Webhook.id)), days)
    ).scalar_one()

    return (
        jsonify(
            {
                "timeframe": timeframe,
                "total": total,
                "events": [
                    {"event": event, "count": count}
                    for event, count in _grouped_counts(Webhook.event, days)
                ],
                "topUsers": [
                    {"user": user, "count": count}
                    for user, count in _grouped_counts(Webhook.user, days, limit=TOP_LIMIT)
                ],
                "topReasons": [
                    {"reason": reason, "count": count}
                    for reason, count in _grouped_counts(Webhook.reason, days, limit=TOP_LIMIT)
                ],
            }
        ),
        HTTPStatus.OK,
    )


def _page_args() -> tuple[int, int, list[str]]:
    errors: list[str] = []
    values = {}
    for name, default in (("page", 1), ("pageSize", DEFAULT_PAGE_SIZE)):
        raw = request.args.get(name)
        try:
            values[name] = int(raw) if raw else default
        except ValueError:
            errors.append(f"{name} must be an integer")
            values[name] = default
            continue
        if values[name] < 1:
            errors.append(f"{name} must be at least 1")
    return values["page"], values["pageSize"], errors


@bp.get("/analytics/events")
@require_permission(Permission.READ)
def analytics_events(principal: Principal) -> Response | tuple[object, int]:
    """Paginated event rows with field selection, for BI tools."""

    period = request.args.get("period") or DEFAULT_PERIOD
    output_format = request.args.get("format") or "json"
    delayed_arg = request.args.get("delayed")
    fields = _select_fields(request.args.get("fields"))
    page, page_size, errors = _page_args()

    if period not in ANALYTICS_PERIODS:
        errors.append("period is not supported")
    if output_format not in {"json", "csv"}:
        errors.append("format must be 'json' or 'csv'")
    delayed = parse_bool_flag(delayed_arg)
    if delayed_arg and delayed is None:
        errors.append("delayed must be 'true' or 'false'")
    criterion, filter_error = parse_filter(request.args.get("filter") or "")
    if filter_error:
        errors.append(filter_error)
    if errors:
        return jsonify({"errors": errors}), HTTPStatus.BAD_REQUEST

    stmt = _since_clause(select(Webhook), ANALYTICS_PERIODS[period])
    if criterion is not None:
        stmt = stmt.where(criterion)
    if delayed is not None:
        stmt = stmt.where(Webhook.delayed.is_(delayed))

    total = db.session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    webhooks = db.session.execute(
        stmt.order_by(Webhook.timestamp.desc()).limit(page_size).offset((page - 1) * page_size)
    ).scalars()

    data = []
    for webhook in webhooks:
        row = serialize_webhook(webhook)
        data.append({field: row[field] for field in fields})

    if output_format == "csv":
        return attachment(rows_to_csv(data, fields), "text/csv", "analytics_export.csv")

    schema = [
        {"name": field, "type": FIELD_METADATA[field][0], "description": FIELD_METADATA[field][1]}
        for field in fields
    ]
    return (
        jsonify(
            {
                "metadata": {
                    "totalRecords": total,
                    "pageCount": math.ceil(total / page_size),
                    "currentPage": page,
                    "pageSize": page_size,
                    "schema": schema,
                },
                "data": data,
            }
        ),
        HTTPStatus.OK,
    )
