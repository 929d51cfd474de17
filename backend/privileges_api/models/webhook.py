"""Privilege elevation event model definition."""

from __future__ import annotations

import uuid

from ..extensions import db

ALLOWED_EVENTS = [
    "corp.sap.privileges.granted",
    "corp.sap.privileges.revoked",
]


class Webhook(db.Model):
    """A privilege change reported by an endpoint agent."""

    __tablename__ = "webhooks"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user = db.Column(db.String(255), nullable=False, index=True)
    machine = db.Column(db.String(255), nullable=False)
    event = db.Column(db.String(64), nullable=False, index=True)
    reason = db.Column(db.Text, nullable=False)
    admin = db.Column(db.Boolean, nullable=False, default=False)
    timestamp = db.Column(db.DateTime, nullable=False, index=True)
    expires = db.Column(db.DateTime, nullable=True)
    received_at = db.Column(db.DateTime, nullable=False)
    custom_data = db.Column(db.Text, nullable=False, default="{}")
    client_version = db.Column(db.Integer, nullable=True)
    platform = db.Column(db.String(255), nullable=True)
    cf_network_version = db.Column(db.String(64), nullable=True)
    os_version = db.Column(db.String(64), nullable=True)
    delayed = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<Webhook {self.id} {self.event}>"
