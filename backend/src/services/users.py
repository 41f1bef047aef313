"""User registration gated by the email allow-list."""

from __future__ import annotations

import logging
import secrets
from typing import Optional
import uuid

from sqlalchemy import select

from haku.core.errors import AuthorizationError, NotFoundError

from ..models.auth import User
from . import schema
from .allow_list import EmailAllowListService, normalize_email
from .database import DatabaseService, get_database_service

logger = logging.getLogger(__name__)


class UserService:
    """Find or create users."""

    def __init__(
        self,
        db_service: Optional[DatabaseService] = None,
        allow_list: Optional[EmailAllowListService] = None,
    ):
        self._db = db_service or get_database_service()
        self._allow_list = allow_list or EmailAllowListService(self._db)

    def register(self, email: str) -> User:
        """Return the user of an allow-listed email, creating it on first sign in."""
        email = normalize_email(email)
        if not self._allow_list.is_allowed(email):
            logger.warning("Refused sign in of a non allow-listed email")
            raise AuthorizationError("This email is not allowed to sign in.", {"email": email})

        with self._db.session() as session:
            row = session.scalar(select(schema.User).where(schema.User.email == email))
            if row is None:
                row = schema.User(
                    id=str(uuid.uuid4()),
                    email=email,
                    inbox_token=secrets.token_urlsafe(24),
                )
                session.add(row)
                session.flush()
                logger.info("Registered user %s", row.id)
            return User.model_validate(row)

    def get(self, user_id: str) -> User:
        with self._db.session() as session:
            row = session.get(schema.User, user_id)
            if row is None:
                raise NotFoundError("The user specified does not exist.", {"user_id": user_id})
            return User.model_validate(row)

    def get_by_inbox_token(self, token: str) -> Optional[User]:
        with self._db.session() as session:
            row = session.scalar(select(schema.User).where(schema.User.inbox_token == token))
            return User.model_validate(row) if row is not None else None


__all__ = ["UserService"]
