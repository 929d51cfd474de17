"""REST endpoints for API token management."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, current_app, jsonify, request

from ..models.token import ApiToken
from ..store import CredentialStore
from ..utils.auth import get_clock, require_permission
from ..utils.principal import Permission, Principal, TokenPermissions
from ..utils.tokens import EXPIRATION_CHOICES, compute_expiration, generate_token, hash_token

bp = Blueprint("tokens", __name__)

TOKEN_ACTIONS = {"revoke", "delete"}


def _serialize(token: ApiToken) -> dict[str, Any]:
    return {
        "id": token.id,
        "name": token.name,
        "description": token.description,
        "created_at": token.created_at,
        "last_used_at": token.last_used_at,
        "expires_at": token.expires_at,
        "is_active": bool(token.is_active),
        "is_service_token": bool(token.is_service_token),
        "permissions": token.permissions.to_dict(),
    }


def _validate_token_payload(payload: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Validate and normalize a token creation payload."""

    errors: list[str] = []

    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append("name is required")
        name = ""

    description = payload.get("description")
    if description is not None and not isinstance(description, str):
        errors.append("description must be a string")

    expires_in = payload.get("expires_in")
    if expires_in not in EXPIRATION_CHOICES:
        errors.append(f"expires_in must be one of {', '.join(EXPIRATION_CHOICES)}")

    permissions, permission_errors = TokenPermissions.from_payload(payload.get("permissions"))
    errors.extend(permission_errors)

    is_service_token = payload.get("is_service_token", False)
    if not isinstance(is_service_token, bool):
        errors.append("is_service_token must be a boolean")

    data = {
        "name": name.strip(),
        "description": description or None,
        "expires_in": expires_in,
        "permissions": permissions,
        "is_service_token": is_service_token,
    }
    return data, errors


@bp.get("/tokens")
@require_permission(Permission.TOKEN_MANAGEMENT)
def list_tokens(principal: Principal) -> tuple[object, int]:
    tokens = CredentialStore().list_tokens()
    return jsonify({"tokens": [_serialize(token) for token in tokens]}), HTTPStatus.OK


@bp.get("/tokens/<token_id>")
@require_permission(Permission.TOKEN_MANAGEMENT)
def get_token(token_id: str, principal: Principal) -> tuple[object, int]:
    token = CredentialStore().get(token_id)
    if token is None:
        return jsonify({"error": "Token not found"}), HTTPStatus.NOT_FOUND
    return jsonify(_serialize(token)), HTTPStatus.OK


@bp.post("/tokens")
@require_permission(Permission.TOKEN_MANAGEMENT)
def create_token(principal: Principal) -> tuple[object, int]:
    payload = request.get_json(force=True, silent=True)
    if not isinstance(payload, dict):
        return (
            jsonify({"error": "Invalid token data", "details": ["payload must be an object"]}),
            HTTPStatus.BAD_REQUEST,
        )

    data, errors = _validate_token_payload(payload)
    if errors:
        return jsonify({"error": "Invalid token data", "details": errors}), HTTPStatus.BAD_REQUEST

    clock = get_clock()
    now = clock()
    expires_at = compute_expiration(data["expires_in"], clock=clock)

    plaintext = generate_token()
    token = ApiToken(
        name=data["name"],
        key_hash=hash_token(plaintext),
        description=data["description"],
        created_at=now,
        expires_at=expires_at,
        is_active=True,
        is_service_token=data["is_service_token"],
    )
    token.permissions = data["permissions"]
    CredentialStore().add(token)

    current_app.logger.info("Token %s (%s) issued by %s", token.id, token.name, principal.id)
    return (
        jsonify(
            {
                "token": plaintext,
                "id": token.id,
                "name": token.name,
                "description": token.description,
                "created_at": token.created_at,
                "expires_at": token.expires_at,
                "expires_in": data["expires_in"],
                "is_service_token": bool(token.is_service_token),
                "permissions": token.permissions.to_dict(),
            }
        ),
        HTTPStatus.CREATED,
    )


@bp.delete("/tokens/<token_id>")
@require_permission(Permission.TOKEN_MANAGEMENT)
def revoke_token(token_id: str, principal: Principal) -> tuple[object, int]:
    """Revoke (deactivate) or permanently delete a token."""

    action = request.args.get("action") or "revoke"
    if action not in TOKEN_ACTIONS:
        return jsonify({"error": "action must be 'revoke' or 'delete'"}), HTTPStatus.BAD_REQUEST

    store = CredentialStore()
    if store.get(token_id) is None:
        return jsonify({"error": "Token not found"}), HTTPStatus.NOT_FOUND

    if token_id == principal.id:
        return jsonify({"error": "Cannot modify your own token"}), HTTPStatus.BAD_REQUEST

    current_app.logger.info("Performing %s on token %s for %s", action, token_id, principal.id)
    if action == "delete":
        store.delete(token_id)
        return jsonify({"success": True, "message": "Token permanently deleted"}), HTTPStatus.OK

    store.deactivate(token_id)
    return jsonify({"success": True, "message": "Token revoked successfully"}), HTTPStatus.OK
