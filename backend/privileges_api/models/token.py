"""API token database model."""

from __future__ import annotations

import uuid

from ..extensions import db
from ..utils.principal import TokenPermissions


class ApiToken(db.Model):
    """Bearer credential issued through the token management endpoints."""

    __tablename__ = "api_keys"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(120), nullable=False)
    key_hash = db.Column(db.String(64), unique=True, index=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.Integer, nullable=False)
    last_used_at = db.Column(db.Integer, nullable=True)
    expires_at = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_service_token = db.Column(db.Boolean, nullable=False, default=False)
    can_read = db.Column(db.Boolean, nullable=False, default=True)
    can_write = db.Column(db.Boolean, nullable=False, default=False)
    can_delete = db.Column(db.Boolean, nullable=False, default=False)
    can_manage_tokens = db.Column(db.Boolean, nullable=False, default=False)

    @property
    def permissions(self) -> TokenPermissions:
        return TokenPermissions(
            read=bool(self.can_read),
            write=bool(self.can_write),
            delete=bool(self.can_delete),
            token_management=bool(self.can_manage_tokens),
        )

    @permissions.setter
    def permissions(self, value: TokenPermissions) -> None:
        self.can_read = value.read
        self.can_write = value.write
        self.can_delete = value.delete
        self.can_manage_tokens = value.token_management

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<ApiToken {self.id} {self.name!r}>"
