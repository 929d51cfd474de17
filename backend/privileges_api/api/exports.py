"""API endpoints for exporting privilege elevation events."""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterable, Sequence
from http import HTTPStatus
from typing import Any

from flask import Blueprint, Response, jsonify, request
from sqlalchemy import select

from ..extensions import db
from ..models.webhook import ALLOWED_EVENTS, Webhook
from ..utils.auth import require_permission
from ..utils.periods import DEFAULT_PERIOD, EXPORT_PERIODS, window_start
from ..utils.principal import Permission, Principal
from .webhooks import serialize_webhook, utcnow

bp = Blueprint("exports", __name__)

EXPORT_FIELDS = [
    "id",
    "user",
    "machine",
    "event",
    "reason",
    "admin",
    "timestamp",
    "expires",
    "received_at",
    "client_version",
    "platform",
    "cf_network_version",
    "os_version",
    "delayed",
    "created_at",
    "custom_data",
]


def _csv_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def rows_to_csv(rows: Iterable[dict[str, Any]], fields: Sequence[str]) -> str:
    """Render serialized rows as CSV text with a header of ``fields``."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(fields)
    for row in rows:
        writer.writerow([_csv_value(row.get(field)) for field in fields])
    return buffer.getvalue()


def attachment(body: str, mimetype: str, filename: str) -> Response:
    response = Response(body, mimetype=mimetype)
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


def _query_export_rows() -> tuple[list[dict[str, Any]] | None, str | None]:
    period = request.args.get("period") or DEFAULT_PERIOD
    if period not in EXPORT_PERIODS:
        return None, "period is not supported"

    event = request.args.get("event")
    if event and event not in ALLOWED_EVENTS:
        return None, "event is not supported"

    stmt = select(Webhook)
    since = window_start(EXPORT_PERIODS[period], utcnow())
    if since is not None:
        stmt = stmt.where(Webhook.timestamp >= since)
    if event:
        stmt = stmt.where(Webhook.event == event)

    webhooks = db.session.execute(stmt.order_by(Webhook.timestamp.desc())).scalars()
    return [serialize_webhook(webhook) for webhook in webhooks], None


@bp.get("/exports/csv")
@require_permission(Permission.READ)
def export_csv(principal: Principal) -> Response | tuple[object, int]:
    """Download matching events as a CSV file."""

    rows, error = _query_export_rows()
    if error:
        return jsonify({"error": error}), HTTPStatus.BAD_REQUEST
    return attachment(rows_to_csv(rows, EXPORT_FIELDS), "text/csv", "webhooks-export.csv")


@bp.get("/exports/json")
@require_permission(Permission.READ)
def export_json(principal: Principal) -> Response | tuple[object, int]:
    """Download matching events as a JSON array."""

    rows, error = _query_export_rows()
    if error:
        return jsonify({"error": error}), HTTPStatus.BAD_REQUEST
    return attachment(json.dumps(rows), "application/json", "webhooks-export.json")
