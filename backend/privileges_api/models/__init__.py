"""Database models for the Privileges API backend."""

from .token import ApiToken
from .webhook import Webhook

__all__ = ["ApiToken", "Webhook"]
