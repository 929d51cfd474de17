"""Seed the database with a bootstrap management token and example events."""
from __future__ import annotations

import json
import pathlib
import sys
from datetime import timedelta

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.privileges_api import create_app
from backend.privileges_api.api.webhooks import utcnow
from backend.privileges_api.extensions import db
from backend.privileges_api.models.token import ApiToken
from backend.privileges_api.models.webhook import Webhook
from backend.privileges_api.utils.principal import TokenPermissions
from backend.privileges_api.utils.tokens import generate_token, hash_token, unix_now

BOOTSTRAP_TOKEN_NAME = "Bootstrap Admin"
EXAMPLE_MACHINE = "A7B45C3D-8F12-4E56-9D23-F1A8B7C6D5E4"
EXAMPLE_EVENTS = [
    ("jappleseed", "corp.sap.privileges.granted", "Installing software", True),
    ("jappleseed", "corp.sap.privileges.revoked", "Installing software", False),
    ("mmustermann", "corp.sap.privileges.granted", "Updating drivers", True),
]


def _ensure_bootstrap_token() -> str | None:
    """Create the bootstrap token once, returning its key when newly issued."""

    existing = ApiToken.query.filter_by(name=BOOTSTRAP_TOKEN_NAME).first()
    if existing is not None:
        return None

    key = generate_token()
    token = ApiToken(
        name=BOOTSTRAP_TOKEN_NAME,
        key_hash=hash_token(key),
        created_at=unix_now(),
        is_active=True,
    )
    token.permissions = TokenPermissions.full()
    db.session.add(token)
    return key


def _ensure_example_events() -> int:
    if Webhook.query.filter_by(machine=EXAMPLE_MACHINE).first() is not None:
        return 0

    now = utcnow()
    for offset, (user, event, reason, admin) in enumerate(EXAMPLE_EVENTS):
        timestamp = now - timedelta(hours=offset + 1)
        db.session.add(
            Webhook(
                user=user,
                machine=EXAMPLE_MACHINE,
                event=event,
                reason=reason,
                admin=admin,
                timestamp=timestamp,
                expires=timestamp + timedelta(minutes=5) if admin else None,
                received_at=timestamp,
                created_at=timestamp,
                custom_data=json.dumps({"department": "Developer", "name": "My awesome Mac"}),
                client_version=479,
                platform="macOS",
                cf_network_version="3826.500.111.1.1",
                os_version="24.4.0",
                delayed=False,
            )
        )
    return len(EXAMPLE_EVENTS)


def main() -> None:
    app = create_app()
    with app.app_context():
        key = _ensure_bootstrap_token()
        created_events = _ensure_example_events()
        db.session.commit()

        print("Seed completed", f"events created={created_events}")
        if key is not None:
            print(f"Bootstrap token (shown once): {key}")


if __name__ == "__main__":
    main()
