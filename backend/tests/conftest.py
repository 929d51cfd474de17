from __future__ import annotations

import json
import pathlib
import sys
from collections.abc import Callable
from datetime import datetime, timedelta

import pytest
from sqlalchemy.pool import StaticPool

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_dependencies():
    from privileges import Config, create_app
    from backend.privileges_api.extensions import db

    return Config, create_app, db


ConfigBase, create_app, db = _load_dependencies()

ENV_SECRET = "env-secret-for-tests"
FIXED_NOW = 1_750_000_000


class TestConfig(ConfigBase):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite+pysqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "poolclass": StaticPool,
        "connect_args": {"check_same_thread": False},
    }
    CORS_ALLOWED_ORIGINS = "*"
    API_TOKEN = ENV_SECRET
    ENABLE_DELETE_ENDPOINT = True
    CLOCK = None


@pytest.fixture(scope="module")
def app():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    yield app
    db.session.remove()
    ctx.pop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def fixed_clock(app):
    app.config["CLOCK"] = lambda: FIXED_NOW
    yield FIXED_NOW
    app.config["CLOCK"] = None


@pytest.fixture(autouse=True)
def cleanup_database(app):
    from backend.privileges_api.models.token import ApiToken
    from backend.privileges_api.models.webhook import Webhook

    yield

    db.session.rollback()
    db.session.query(ApiToken).delete()
    db.session.query(Webhook).delete()
    db.session.commit()
    app.config["ENABLE_DELETE_ENDPOINT"] = True


@pytest.fixture()
def env_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ENV_SECRET}"}


@pytest.fixture()
def token_factory(app):
    from backend.privileges_api.models.token import ApiToken
    from backend.privileges_api.utils.principal import TokenPermissions
    from backend.privileges_api.utils.tokens import generate_token, hash_token, unix_now

    def factory(
        *,
        name: str = "Test Token",
        permissions: TokenPermissions | None = None,
        is_active: bool = True,
        expires_at: int | None = None,
        is_service_token: bool = False,
    ) -> tuple[ApiToken, dict[str, str]]:
        key = generate_token()
        token = ApiToken(
            name=name,
            key_hash=hash_token(key),
            created_at=unix_now(),
            is_active=is_active,
            expires_at=expires_at,
            is_service_token=is_service_token,
        )
        token.permissions = permissions or TokenPermissions.read_only()
        db.session.add(token)
        db.session.commit()
        return token, {"Authorization": f"Bearer {key}"}

    return factory


@pytest.fixture()
def manager_token(token_factory: Callable[..., tuple]):
    from backend.privileges_api.utils.principal import TokenPermissions

    return token_factory(name="Manager", permissions=TokenPermissions.full())


@pytest.fixture()
def reader_headers(token_factory: Callable[..., tuple]) -> dict[str, str]:
    _, headers = token_factory(name="Reader")
    return headers


@pytest.fixture()
def webhook_factory(app):
    from backend.privileges_api.api.webhooks import utcnow
    from backend.privileges_api.models.webhook import Webhook

    def factory(
        *,
        user: str = "jappleseed",
        event: str = "corp.sap.privileges.granted",
        reason: str = "Installing software",
        admin: bool = True,
        delayed: bool = False,
        age: timedelta = timedelta(hours=1),
        custom_data: dict | None = None,
    ) -> Webhook:
        timestamp: datetime = utcnow() - age
        webhook = Webhook(
            user=user,
            machine="A7B45C3D-8F12-4E56-9D23-F1A8B7C6D5E4",
            event=event,
            reason=reason,
            admin=admin,
            timestamp=timestamp,
            received_at=timestamp,
            created_at=timestamp,
            custom_data=json.dumps(custom_data or {}),
            client_version=479,
            platform="macOS",
            delayed=delayed,
        )
        db.session.add(webhook)
        db.session.commit()
        return webhook

    return factory
