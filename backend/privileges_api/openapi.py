"""OpenAPI description of the Privileges API."""

from __future__ import annotations

from typing import Any

from .models.webhook import ALLOWED_EVENTS
from .utils.periods import ANALYTICS_PERIODS, EXPORT_PERIODS, SUMMARY_TIMEFRAMES
from .utils.tokens import EXPIRATION_CHOICES

WEBHOOKS = "Webhooks"
ANALYTICS = "Analytics"
EXPORTS = "Exports"
TOKENS = "Tokens"

_SECURED = [{"bearerAuth": []}]
_ERROR = {"type": "object", "properties": {"error": {"type": "string"}}}

PERMISSIONS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "description": "Token permissions",
    "properties": {
        "read": {"type": "boolean", "default": True},
        "write": {"type": "boolean", "default": False},
        "delete": {"type": "boolean", "default": False},
        "token_management": {"type": "boolean", "default": False},
    },
}

WEBHOOK_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["user", "machine", "event", "reason", "admin", "timestamp"],
    "properties": {
        "id": {"type": "string", "format": "uuid", "readOnly": True},
        "user": {"type": "string", "minLength": 1, "example": "jappleseed"},
        "machine": {"type": "string", "minLength": 1, "example": "A7B45C3D-8F12-4E56-9D23-F1A8B7C6D5E4"},
        "event": {"type": "string", "enum": ALLOWED_EVENTS},
        "reason": {"type": "string", "minLength": 1, "example": "Installing software"},
        "admin": {"type": "boolean"},
        "timestamp": {"type": "string", "format": "date-time"},
        "expires": {"type": "string", "format": "date-time"},
        "received_at": {"type": "string", "format": "date-time", "readOnly": True},
        "custom_data": {"type": "object", "additionalProperties": True},
        "client_version": {"type": "integer", "example": 479},
        "platform": {"type": "string", "example": "macOS"},
        "cf_network_version": {"type": "string", "example": "3826.500.111.1.1"},
        "os_version": {"type": "string", "example": "24.4.0"},
        "delayed": {"type": "boolean", "default": False},
        "created_at": {"type": "string", "format": "date-time", "readOnly": True},
    },
}

TOKEN_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "format": "uuid"},
        "name": {"type": "string"},
        "description": {"type": ["string", "null"]},
        "created_at": {"type": "integer"},
        "last_used_at": {"type": ["integer", "null"]},
        "expires_at": {"type": ["integer", "null"]},
        "is_active": {"type": "boolean"},
        "is_service_token": {"type": "boolean"},
        "permissions": {"$ref": "#/components/schemas/TokenPermissions"},
    },
}


def _json(schema: dict[str, Any], description: str) -> dict[str, Any]:
    return {"description": description, "content": {"application/json": {"schema": schema}}}


def _query(name: str, description: str, enum: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "string"}
    if enum is not None:
        schema["enum"] = enum
    return {"name": name, "in": "query", "required": False, "description": description, "schema": schema}


def _path_id(description: str) -> dict[str, Any]:
    return {"name": "id", "in": "path", "required": True, "description": description, "schema": {"type": "string"}}


def _operation(tag: str, summary: str, responses: dict[str, Any], **extra: Any) -> dict[str, Any]:
    operation = {"tags": [tag], "summary": summary, "security": _SECURED, "responses": responses}
    operation.update(extra)
    return operation


def build_openapi_document() -> dict[str, Any]:
    """Return the OpenAPI 3.1 document served at ``/api/v1/openapi``."""

    webhook_ref = {"$ref": "#/components/schemas/Webhook"}
    token_ref = {"$ref": "#/components/schemas/Token"}
    error_ref = {"$ref": "#/components/schemas/Error"}
    export_params = [
        _query("period", "Select time period (all = no filtering)", list(EXPORT_PERIODS)),
        _query("event", "Filter by event type", ALLOWED_EVENTS),
    ]

    paths: dict[str, Any] = {
        "/api/v1/webhooks": {
            "post": {
                "tags": [WEBHOOKS],
                "summary": "Receive webhook event",
                "security": [],
                "requestBody": {"content": {"application/json": {"schema": webhook_ref}}},
                "responses": {
                    "200": _json(
                        {"type": "object", "properties": {"id": {"type": "string"}, "received_at": {"type": "string"}}},
                        "Webhook received successfully",
                    ),
                    "400": _json(error_ref, "Invalid webhook payload"),
                },
            },
            "get": _operation(
                WEBHOOKS,
                "List webhook events",
                {"200": _json({"type": "object"}, "List of webhook events")},
                parameters=[
                    _query("limit", "Number of items per page (no maximum limit)"),
                    _query("page", "Page number"),
                    _query("event", "Filter by event type", ALLOWED_EVENTS),
                    _query("delayed", "Filter by delayed status", ["true", "false"]),
                ],
            ),
        },
        "/api/v1/webhooks/{id}": {
            "get": _operation(
                WEBHOOKS,
                "Get webhook event",
                {"200": _json(webhook_ref, "Webhook event details"), "404": _json(error_ref, "Webhook not found")},
                parameters=[_path_id("Webhook event ID")],
            ),
            "delete": _operation(
                WEBHOOKS,
                "Delete webhook event",
                {"200": _json({"type": "object"}, "Webhook deleted successfully"), "404": _json(error_ref, "Webhook not found")},
                parameters=[_path_id("Webhook event ID")],
            ),
        },
        "/api/v1/analytics/summary": {
            "get": _operation(
                ANALYTICS,
                "Retrieve webhook events summary analytics",
                {"200": _json({"type": "object"}, "Successfully retrieved analytics data")},
                parameters=[_query("timeframe", "Time period for data retrieval", list(SUMMARY_TIMEFRAMES))],
            )
        },
        "/api/v1/analytics/events": {
            "get": _operation(
                ANALYTICS,
                "Retrieve webhook events for analytics",
                {
                    "200": {
                        "description": "Successfully retrieved analytics data",
                        "content": {"application/json": {"schema": {"type": "object"}}, "text/csv": {"schema": {"type": "string"}}},
                    }
                },
                parameters=[
                    _query("period", "Time period for data retrieval", list(ANALYTICS_PERIODS)),
                    _query("fields", "Comma-separated list of fields to include"),
                    _query("filter", 'Filter expression, e.g. event eq "corp.sap.privileges.granted"'),
                    _query("page", "Page number"),
                    _query("pageSize", "Number of records per page"),
                    _query("format", "Response format", ["json", "csv"]),
                    _query("delayed", "Filter by delayed status", ["true", "false"]),
                ],
            )
        },
        "/api/v1/exports/csv": {
            "get": _operation(
                EXPORTS,
                "Export webhooks data as CSV",
                {"200": {"description": "CSV file containing webhook events", "content": {"text/csv": {"schema": {"type": "string"}}}}},
                parameters=export_params,
            )
        },
        "/api/v1/exports/json": {
            "get": _operation(
                EXPORTS,
                "Export webhooks data as JSON",
                {"200": _json({"type": "array", "items": webhook_ref}, "JSON file containing webhook events")},
                parameters=export_params,
            )
        },
        "/api/v1/tokens": {
            "get": _operation(
                TOKENS,
                "List API tokens",
                {"200": _json({"type": "object", "properties": {"tokens": {"type": "array", "items": token_ref}}}, "Token list")},
            ),
            "post": _operation(
                TOKENS,
                "Create API token",
                {"201": _json({"type": "object"}, "Token created; the key is only shown once"), "400": _json(error_ref, "Invalid token data")},
                requestBody={
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "required": ["name", "expires_in"],
                                "properties": {
                                    "name": {"type": "string", "minLength": 1},
                                    "description": {"type": "string"},
                                    "expires_in": {"type": "string", "enum": EXPIRATION_CHOICES},
                                    "permissions": {"$ref": "#/components/schemas/TokenPermissions"},
                                    "is_service_token": {"type": "boolean", "default": False},
                                },
                            }
                        }
                    }
                },
            ),
        },
        "/api/v1/tokens/{id}": {
            "get": _operation(
                TOKENS,
                "Get API token",
                {"200": _json(token_ref, "Token details"), "404": _json(error_ref, "Token not found")},
                parameters=[_path_id("Token ID")],
            ),
            "delete": _operation(
                TOKENS,
                "Revoke or delete API token",
                {
                    "200": _json({"type": "object"}, "Token revoked or deleted"),
                    "400": _json(error_ref, "Cannot modify your own token"),
                    "404": _json(error_ref, "Token not found"),
                },
                parameters=[_path_id("Token ID"), _query("action", "Action to perform", ["revoke", "delete"])],
            ),
        },
    }

    return {
        "openapi": "3.1.0",
        "info": {
            "title": "Privileges API",
            "version": "1.0.0",
            "description": "API for privilege elevation events",
        },
        "servers": [{"url": "", "description": "API v1"}],
        "security": _SECURED,
        "tags": [
            {"name": WEBHOOKS, "description": "Webhook management endpoints"},
            {"name": ANALYTICS, "description": "Analytics and reporting endpoints"},
            {"name": EXPORTS, "description": "Data export endpoints"},
            {"name": TOKENS, "description": "API token management endpoints"},
        ],
        "paths": paths,
        "components": {
            "securitySchemes": {
                "bearerAuth": {
                    "type": "http",
                    "scheme": "bearer",
                    "bearerFormat": "API Token",
                    "description": "All endpoints except the webhook POST endpoint require authentication.",
                }
            },
            "schemas": {
                "Webhook": WEBHOOK_SCHEMA,
                "Token": TOKEN_SCHEMA,
                "TokenPermissions": PERMISSIONS_SCHEMA,
                "Error": _ERROR,
            },
        },
    }
