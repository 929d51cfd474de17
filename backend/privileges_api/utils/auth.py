"""Bearer token authentication gate and permission checks."""

from __future__ import annotations

import functools
import hmac
from collections.abc import Callable
from http import HTTPStatus
from typing import Any, TypeVar, cast

from flask import current_app, g, jsonify, request
from flask.typing import ResponseReturnValue

from ..store import CredentialStore, StoreError
from .principal import Permission, Principal
from .tokens import Clock, is_expired, unix_now

TCallable = TypeVar("TCallable", bound=Callable[..., Any])

TOKEN_MANAGEMENT_PREFIX = "/api/v1/tokens"
WEBHOOK_INTAKE_PATH = "/api/v1/webhooks"

PUBLIC_PATHS = frozenset(
    {
        "/",
        "/ui",
        "/api/v1/ui",
        "/api/docs",
        "/api/v1/docs",
        "/api/v1/openapi",
        "/api/v1/health",
    }
)
_PUBLIC_PREFIXES = ("/swagger-ui", "/static/")
_PUBLIC_SUFFIXES = (".js", ".css", ".png", ".ico")


def get_clock() -> Clock:
    """Return the clock configured for the current application."""

    return current_app.config.get("CLOCK") or unix_now


def is_public_request(method: str, path: str) -> bool:
    """Return whether a request may proceed without credentials."""

    if method == "OPTIONS":
        return True
    if path == WEBHOOK_INTAKE_PATH and method == "POST":
        return True
    return (
        path in PUBLIC_PATHS
        or path.startswith(_PUBLIC_PREFIXES)
        or path.endswith(_PUBLIC_SUFFIXES)
    )


def _extract_bearer_token() -> str | None:
    authorization = request.headers.get("Authorization")
    if not authorization:
        return None
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def _matches_environment_secret(token_value: str) -> bool:
    secret = current_app.config.get("API_TOKEN")
    if not secret:
        return False
    return hmac.compare_digest(token_value.encode("utf-8"), str(secret).encode("utf-8"))


def _unauthorized(message: str):
    response = jsonify({"error": message})
    response.status_code = HTTPStatus.UNAUTHORIZED
    response.headers["WWW-Authenticate"] = "Bearer"
    return response


def _forbidden(message: str):
    return jsonify({"error": message}), HTTPStatus.FORBIDDEN


def _record_usage(store: CredentialStore, principal: Principal, timestamp: int) -> None:
    try:
        store.update_last_used(principal.id, timestamp)
    except StoreError:
        current_app.logger.warning(
            "Could not record last_used_at for token %s", principal.id, exc_info=True
        )


def authenticate_request() -> ResponseReturnValue | None:
    """Resolve the caller of the current request or reject it.

    Registered as a ``before_request`` hook. Admitted requests carry their
    :class:`Principal` on ``g.principal``; public requests carry none.
    """

    g.principal = None
    if is_public_request(request.method, request.path):
        return None

    token_value = _extract_bearer_token()
    if not token_value:
        return _unauthorized("Unauthorized - Bearer token required")

    if _matches_environment_secret(token_value):
        g.principal = Principal.environment()
        return None

    store = CredentialStore()
    clock = get_clock()
    try:
        api_token = store.find_by_key(token_value)
    except StoreError:
        current_app.logger.exception("Error validating token")
        return jsonify({"error": "Server error during authentication"}), HTTPStatus.INTERNAL_SERVER_ERROR

    if api_token is None:
        return _unauthorized("Unauthorized - Invalid token")

    if not api_token.is_active:
        return _unauthorized("Unauthorized - Token is inactive")

    if is_expired(api_token.expires_at, clock=clock):
        return _unauthorized("Unauthorized - Token is expired")

    if api_token.is_service_token and request.path.startswith(TOKEN_MANAGEMENT_PREFIX):
        return _forbidden("Forbidden - Service tokens cannot access token management endpoints")

    principal = Principal.from_token(api_token)
    _record_usage(store, principal, clock())
    g.principal = principal
    return None


def require_permission(permission: Permission) -> Callable[[TCallable], TCallable]:
    """Decorator passing the admitted principal to a handler that needs ``permission``."""

    def decorator(func: TCallable) -> TCallable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            principal: Principal | None = g.get("principal")
            if principal is None:
                return _unauthorized("Unauthorized - Bearer token required")
            if not principal.permissions.allows(permission):
                return _forbidden("Insufficient permissions")
            return func(*args, principal=principal, **kwargs)

        return cast(TCallable, wrapper)

    return decorator
