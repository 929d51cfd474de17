"""Tests for the principal and permission value types."""

from __future__ import annotations

from types import SimpleNamespace

from backend.privileges_api.utils.principal import (
    ENVIRONMENT_PRINCIPAL_ID,
    Permission,
    Principal,
    TokenPermissions,
)


def test_environment_principal_has_full_access():
    principal = Principal.environment()
    assert principal.id == ENVIRONMENT_PRINCIPAL_ID
    assert principal.is_service_token is False
    assert all(principal.permissions.allows(permission) for permission in Permission)


def test_default_permissions_are_read_only():
    permissions = TokenPermissions.read_only()
    assert permissions.to_dict() == {
        "read": True,
        "write": False,
        "delete": False,
        "token_management": False,
    }


def test_permissions_from_payload():
    permissions, errors = TokenPermissions.from_payload({"delete": True, "read": False})
    assert errors == []
    assert permissions == TokenPermissions(read=False, write=False, delete=True, token_management=False)


def test_permissions_from_missing_payload():
    permissions, errors = TokenPermissions.from_payload(None)
    assert errors == []
    assert permissions == TokenPermissions.read_only()


def test_permissions_payload_errors():
    _, errors = TokenPermissions.from_payload({"admin": True, "write": "yes"})
    assert "permissions.admin is not supported" in errors
    assert "permissions.write must be a boolean" in errors

    _, errors = TokenPermissions.from_payload(["read"])
    assert errors == ["permissions must be an object"]


def test_principal_from_token_copies_permissions():
    token = SimpleNamespace(
        id="abc",
        name="Service",
        permissions=TokenPermissions(read=True, write=True),
        is_service_token=True,
    )
    principal = Principal.from_token(token)
    assert principal.id == "abc"
    assert principal.is_service_token is True
    assert principal.permissions.allows(Permission.WRITE)
    assert not principal.permissions.allows(Permission.TOKEN_MANAGEMENT)
