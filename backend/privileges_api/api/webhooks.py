"""REST endpoints for receiving and browsing privilege elevation events."""

from __future__ import annotations

import json
import math
import uuid
from datetime import UTC, datetime
from http import HTTPStatus
from typing import Any

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models.webhook import ALLOWED_EVENTS, Webhook
from ..utils.auth import require_permission
from ..utils.principal import Permission, Principal
from ..utils.user_agent import apply_user_agent_defaults

bp = Blueprint("webhooks", __name__)

DEFAULT_LIST_LIMIT = 50


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime, as stored in the database."""

    return datetime.now(UTC).replace(tzinfo=None)


def parse_iso_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 datetime into a naive UTC datetime, or return None.

    A bare date carries no time of day and is rejected.
    """

    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if len(text) <= 10 or text[10] not in "Tt ":
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat() + "Z"


def load_custom_data(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def serialize_webhook(webhook: Webhook) -> dict[str, Any]:
    """Serialize a webhook model to a JSON compatible dictionary."""

    return {
        "id": webhook.id,
        "user": webhook.user,
        "machine": webhook.machine,
        "event": webhook.event,
        "reason": webhook.reason,
        "admin": bool(webhook.admin),
        "timestamp": format_datetime(webhook.timestamp),
        "expires": format_datetime(webhook.expires),
        "received_at": format_datetime(webhook.received_at),
        "custom_data": load_custom_data(webhook.custom_data),
        "client_version": webhook.client_version,
        "platform": webhook.platform,
        "cf_network_version": webhook.cf_network_version,
        "os_version": webhook.os_version,
        "delayed": bool(webhook.delayed),
        "created_at": format_datetime(webhook.created_at),
    }


def parse_bool_flag(value: str | None) -> bool | None:
    """Interpret a ``true``/``false`` query parameter; anything else means unset."""

    if value == "true":
        return True
    if value == "false":
        return False
    return None


def _required_text(payload: dict[str, Any], name: str, errors: list[str]) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value.strip():
        errors.append(f"{name} is required")
        return ""
    return value


def _optional_text(
    payload: dict[str, Any], name: str, errors: list[str], *, allow_empty: bool = True
) -> str | None:
    value = payload.get(name)
    if value is None:
        return None
    if not isinstance(value, str) or (not allow_empty and not value.strip()):
        qualifier = "" if allow_empty else "non-empty "
        errors.append(f"{name} must be a {qualifier}string")
        return None
    return value


def _validate_webhook_payload(payload: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Validate and normalize an incoming webhook payload."""

    errors: list[str] = []

    user = _required_text(payload, "user", errors)
    machine = _required_text(payload, "machine", errors)
    reason = _required_text(payload, "reason", errors)

    event = payload.get("event")
    if not event:
        errors.append("event is required")
    elif event not in ALLOWED_EVENTS:
        errors.append("event is not supported")

    admin = payload.get("admin")
    if not isinstance(admin, bool):
        errors.append("admin must be a boolean")

    timestamp = parse_iso_datetime(payload.get("timestamp"))
    if timestamp is None:
        errors.append("timestamp must be an ISO-8601 datetime")

    expires = None
    raw_expires = payload.get("expires")
    if raw_expires is not None:
        expires = parse_iso_datetime(raw_expires)
        if expires is None:
            errors.append("expires must be an ISO-8601 datetime")

    custom_data = payload.get("custom_data")
    if custom_data is None:
        custom_data = {}
    elif not isinstance(custom_data, dict):
        errors.append("custom_data must be an object")

    client_version = payload.get("client_version")
    if client_version is not None and (
        isinstance(client_version, bool) or not isinstance(client_version, int)
    ):
        errors.append("client_version must be an integer")

    platform = _optional_text(payload, "platform", errors, allow_empty=False)
    cf_network_version = _optional_text(payload, "cf_network_version", errors)
    os_version = _optional_text(payload, "os_version", errors)

    delayed = payload.get("delayed", False)
    if delayed is None:
        delayed = False
    elif not isinstance(delayed, bool):
        errors.append("delayed must be a boolean")

    data = {
        "user": user,
        "machine": machine,
        "event": event,
        "reason": reason,
        "admin": admin,
        "timestamp": timestamp,
        "expires": expires,
        "custom_data": custom_data,
        "client_version": client_version,
        "platform": platform,
        "cf_network_version": cf_network_version,
        "os_version": os_version,
        "delayed": delayed,
    }
    return data, errors


@bp.post("/webhooks")
def receive_webhook() -> tuple[object, int]:
    """Store a privilege elevation event sent by an endpoint agent."""

    logger = current_app.logger
    request_id = uuid.uuid4().hex[:8]
    raw_body = request.get_data(as_text=True)
    user_agent = request.headers.get("User-Agent", "")

    logger.info(
        "[%s] Incoming webhook user_agent=%r content_type=%r body_length=%d",
        request_id,
        user_agent,
        request.headers.get("Content-Type"),
        len(raw_body),
    )

    try:
        payload = json.loads(raw_body)
    except ValueError as exc:
        logger.warning("[%s] JSON parse error: %s", request_id, exc)
        return (
            jsonify({"error": "Invalid JSON payload", "details": str(exc), "requestId": request_id}),
            HTTPStatus.BAD_REQUEST,
        )

    if not isinstance(payload, dict):
        return (
            jsonify(
                {
                    "error": "Invalid JSON payload",
                    "details": "payload must be an object",
                    "requestId": request_id,
                }
            ),
            HTTPStatus.BAD_REQUEST,
        )

    if payload.get("expires") == "":
        payload["expires"] = None

    data, errors = _validate_webhook_payload(payload)
    if errors:
        logger.warning("[%s] Validation failed: %s", request_id, "; ".join(errors))
        return (
            jsonify({"error": "Validation failed", "details": errors, "requestId": request_id}),
            HTTPStatus.BAD_REQUEST,
        )

    data = apply_user_agent_defaults(data, user_agent)
    received_at = utcnow()
    webhook = Webhook(
        id=str(uuid.uuid4()),
        user=data["user"],
        machine=data["machine"],
        event=data["event"],
        reason=data["reason"],
        admin=data["admin"],
        timestamp=data["timestamp"],
        expires=data["expires"],
        received_at=received_at,
        custom_data=json.dumps(data["custom_data"]),
        client_version=data["client_version"],
        platform=data["platform"],
        cf_network_version=data["cf_network_version"],
        os_version=data["os_version"],
        delayed=data["delayed"],
        created_at=received_at,
    )

    try:
        db.session.add(webhook)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("[%s] Database insert failed", request_id)
        return (
            jsonify(
                {"error": "Database operation failed", "requestId": request_id, "details": str(exc)}
            ),
            HTTPStatus.INTERNAL_SERVER_ERROR,
        )

    logger.info("[%s] Stored %s event for %s", request_id, webhook.event, webhook.user)
    return jsonify({"id": webhook.id, "received_at": format_datetime(received_at)}), HTTPStatus.OK


def _positive_int(name: str, default: int) -> tuple[int, str | None]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default, None
    try:
        value = int(raw)
    except ValueError:
        return default, f"{name} must be an integer"
    if value < 1:
        return default, f"{name} must be at least 1"
    return value, None


@bp.get("/webhooks")
@require_permission(Permission.READ)
def list_webhooks(principal: Principal) -> tuple[object, int]:
    limit, limit_error = _positive_int("limit", DEFAULT_LIST_LIMIT)
    page, page_error = _positive_int("page", 1)
    errors = [error for error in (limit_error, page_error) if error]

    event = request.args.get("event")
    if event and event not in ALLOWED_EVENTS:
        errors.append("event is not supported")

    delayed_arg = request.args.get("delayed")
    delayed = parse_bool_flag(delayed_arg)
    if delayed_arg and delayed is None:
        errors.append("delayed must be 'true' or 'false'")

    if errors:
        return jsonify({"errors": errors}), HTTPStatus.BAD_REQUEST

    stmt = select(Webhook)
    if event:
        stmt = stmt.where(Webhook.event == event)
    if delayed is not None:
        stmt = stmt.where(Webhook.delayed.is_(delayed))

    total = db.session.execute(
        select(func.count()).select_from(stmt.subquery())
    ).scalar_one()
    webhooks = db.session.execute(
        stmt.order_by(Webhook.timestamp.desc()).limit(limit).offset((page - 1) * limit)
    ).scalars()

    return (
        jsonify(
            {
                "data": [serialize_webhook(webhook) for webhook in webhooks],
                "pagination": {
                    "total": total,
                    "page": page,
                    "limit": limit,
                    "pages": math.ceil(total / limit),
                },
            }
        ),
        HTTPStatus.OK,
    )


@bp.get("/webhooks/<webhook_id>")
@require_permission(Permission.READ)
def get_webhook(webhook_id: str, principal: Principal) -> tuple[object, int]:
    webhook = db.session.get(Webhook, webhook_id)
    if webhook is None:
        return jsonify({"error": "Webhook not found"}), HTTPStatus.NOT_FOUND
    return jsonify(serialize_webhook(webhook)), HTTPStatus.OK


@bp.delete("/webhooks/<webhook_id>")
@require_permission(Permission.DELETE)
def delete_webhook(webhook_id: str, principal: Principal) -> tuple[object, int]:
    if not current_app.config.get("ENABLE_DELETE_ENDPOINT"):
        return (
            jsonify({"error": "The DELETE endpoint is currently disabled"}),
            HTTPStatus.NOT_FOUND,
        )

    webhook = db.session.get(Webhook, webhook_id)
    if webhook is None:
        return jsonify({"error": "Webhook not found"}), HTTPStatus.NOT_FOUND

    db.session.delete(webhook)
    db.session.commit()
    current_app.logger.info("Webhook %s deleted by %s", webhook_id, principal.id)
    return jsonify({"message": "Webhook deleted successfully"}), HTTPStatus.OK
