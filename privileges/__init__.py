"""Compatibility package that exposes the backend Flask application factory."""

from backend.privileges_api import Config, create_app

__all__ = ["Config", "create_app"]
