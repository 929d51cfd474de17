"""Persistence helpers for API token records."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum

import hmac

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .extensions import db
from .models.token import ApiToken
from .utils.tokens import hash_token


class StoreErrorKind(str, Enum):
    """Classification of failures raised by the credential store."""

    UNAVAILABLE = "unavailable"
    CONFLICT = "conflict"


class StoreError(Exception):
    """Raised when the credential store cannot complete an operation."""

    def __init__(self, kind: StoreErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class CredentialStore:
    """Single-row operations on the ``api_keys`` table."""

    def __init__(self, session: Session | None = None) -> None:
        self._session = session if session is not None else db.session

    @contextmanager
    def _translate_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            self._session.rollback()
            raise StoreError(StoreErrorKind.CONFLICT, f"{action}: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StoreError(StoreErrorKind.UNAVAILABLE, f"{action}: {exc}") from exc

    def find_by_key(self, key: str) -> ApiToken | None:
        """Look up a token by its issued secret; only the hash is stored."""

        key_hash = hash_token(key)
        with self._translate_errors("token lookup failed"):
            stmt = select(ApiToken).where(ApiToken.key_hash == key_hash)
            token = self._session.execute(stmt).scalar_one_or_none()
        if token is None or not hmac.compare_digest(key_hash, token.key_hash):
            return None
        return token

    def get(self, token_id: str) -> ApiToken | None:
        with self._translate_errors("token lookup failed"):
            return self._session.get(ApiToken, token_id)

    def list_tokens(self) -> list[ApiToken]:
        with self._translate_errors("token listing failed"):
            stmt = select(ApiToken).order_by(ApiToken.created_at.desc())
            return list(self._session.execute(stmt).scalars().all())

    def add(self, token: ApiToken) -> ApiToken:
        with self._translate_errors("token insert failed"):
            self._session.add(token)
            self._session.commit()
        return token

    def update_last_used(self, token_id: str, timestamp: int) -> None:
        with self._translate_errors("last_used_at update failed"):
            self._session.execute(
                update(ApiToken).where(ApiToken.id == token_id).values(last_used_at=timestamp)
            )
            self._session.commit()

    def deactivate(self, token_id: str) -> None:
        with self._translate_errors("token revoke failed"):
            self._session.execute(
                update(ApiToken).where(ApiToken.id == token_id).values(is_active=False)
            )
            self._session.commit()

    def delete(self, token_id: str) -> None:
        with self._translate_errors("token delete failed"):
            self._session.execute(delete(ApiToken).where(ApiToken.id == token_id))
            self._session.commit()
