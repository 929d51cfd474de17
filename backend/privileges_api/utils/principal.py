"""Caller identity and permission value types."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..models.token import ApiToken

ENVIRONMENT_PRINCIPAL_ID = "env-default"


class Permission(str, Enum):
    """Actions a route handler may require from the caller."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    TOKEN_MANAGEMENT = "token_management"


@dataclass(frozen=True)
class TokenPermissions:
    """The fixed set of flags carried by every API token."""

    read: bool = True
    write: bool = False
    delete: bool = False
    token_management: bool = False

    @classmethod
    def full(cls) -> TokenPermissions:
        return cls(read=True, write=True, delete=True, token_management=True)

    @classmethod
    def read_only(cls) -> TokenPermissions:
        return cls()

    @classmethod
    def from_payload(cls, payload: Any) -> tuple[TokenPermissions, list[str]]:
        """Build permissions from a request payload, returning validation errors."""

        if payload is None:
            return cls.read_only(), []
        if not isinstance(payload, dict):
            return cls.read_only(), ["permissions must be an object"]

        names = {field.name for field in fields(cls)}
        errors = [f"permissions.{key} is not supported" for key in payload if key not in names]
        values: dict[str, bool] = {}
        for name in names:
            if name not in payload:
                continue
            value = payload[name]
            if not isinstance(value, bool):
                errors.append(f"permissions.{name} must be a boolean")
                continue
            values[name] = value

        if errors:
            return cls.read_only(), errors
        return cls(**values), []

    def allows(self, permission: Permission) -> bool:
        return bool(getattr(self, permission.value))

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)


@dataclass(frozen=True)
class Principal:
    """The resolved caller of a single request."""

    id: str
    name: str
    permissions: TokenPermissions
    is_service_token: bool = False

    @classmethod
    def environment(cls) -> Principal:
        """Identity granted to callers presenting the static environment secret."""

        return cls(
            id=ENVIRONMENT_PRINCIPAL_ID,
            name="Environment Token",
            permissions=TokenPermissions.full(),
        )

    @classmethod
    def from_token(cls, token: ApiToken) -> Principal:
        return cls(
            id=token.id,
            name=token.name,
            permissions=token.permissions,
            is_service_token=bool(token.is_service_token),
        )
