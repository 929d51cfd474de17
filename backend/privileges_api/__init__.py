"""Application factory for the Privileges API backend."""
from __future__ import annotations

import time
from http import HTTPStatus

from flask import Flask, jsonify
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import cors, db
from .store import StoreError, StoreErrorKind


def create_app(config_class: type[Config] = Config) -> Flask:
    """Create and configure the Flask application instance."""
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)

    configured_origins = (app.config.get("CORS_ALLOWED_ORIGINS") or "*").strip()
    allowed_origins: str | list[str] = "*"
    if configured_origins != "*":
        allowed_origins = [
            origin.strip() for origin in configured_origins.split(",") if origin.strip()
        ]
    cors.init_app(
        app,
        resources={r"/*": {"origins": allowed_origins}},
        allow_headers=["Content-Type", "Authorization"],
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    )

    from .api.analytics import bp as analytics_bp
    from .api.docs import bp as docs_bp
    from .api.exports import bp as exports_bp
    from .api.health import bp as health_bp
    from .api.tokens import bp as tokens_bp
    from .api.webhooks import bp as webhooks_bp
    from .utils.auth import authenticate_request

    app.before_request(authenticate_request)

    app.register_blueprint(docs_bp)
    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(webhooks_bp, url_prefix="/api/v1")
    app.register_blueprint(analytics_bp, url_prefix="/api/v1")
    app.register_blueprint(exports_bp, url_prefix="/api/v1")
    app.register_blueprint(tokens_bp, url_prefix="/api/v1")

    _register_error_handlers(app)

    with app.app_context():
        # Import models to ensure they are registered with SQLAlchemy before creating tables.
        from .models import token, webhook  # noqa: F401

        _initialize_database(app)

    return app


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(StoreError)
    def handle_store_error(exc: StoreError):
        app.logger.error("Credential store failure (%s): %s", exc.kind.value, exc)
        if exc.kind is StoreErrorKind.CONFLICT:
            return jsonify({"error": "Conflicting token record"}), HTTPStatus.CONFLICT
        return jsonify({"error": "Database error"}), HTTPStatus.INTERNAL_SERVER_ERROR

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("Database error")
        return jsonify({"error": "Database error"}), HTTPStatus.INTERNAL_SERVER_ERROR

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        app.logger.exception("Application error")
        return jsonify({"error": "Internal server error"}), HTTPStatus.INTERNAL_SERVER_ERROR


def _initialize_database(app: Flask) -> None:
    """Initialize the database with retry logic to handle delayed availability."""

    max_retries = int(app.config.get("DB_INIT_MAX_RETRIES", 30))
    retry_delay = float(app.config.get("DB_INIT_RETRY_DELAY", 2))

    for attempt in range(1, max_retries + 1):
        try:
            db.create_all()
            return
        except OperationalError as exc:
            if attempt >= max_retries:
                app.logger.exception("Database initialization failed after %s attempts.", attempt)
                raise

            app.logger.warning(
                "Database initialization attempt %s/%s failed: %s", attempt, max_retries, exc
            )
            time.sleep(retry_delay)


__all__ = ["Config", "create_app"]
