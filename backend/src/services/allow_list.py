"""Email allow-list gating registration."""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select

from haku.core.errors import NotFoundError, ValidationError

from ..models.inbox import AllowedEmail
from . import schema
from .database import DatabaseService, get_database_service

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class EmailAllowListService:
    """List, add and remove allowed emails."""

    def __init__(self, db_service: Optional[DatabaseService] = None):
        self._db = db_service or get_database_service()

    def list(self) -> List[AllowedEmail]:
        with self._db.session() as session:
            rows = session.scalars(select(schema.AllowedEmail).order_by(schema.AllowedEmail.id))
            return [AllowedEmail.model_validate(row) for row in rows]

    def add(self, email: str) -> AllowedEmail:
        email = normalize_email(email)
        with self._db.session() as session:
            existing = session.scalar(
                select(schema.AllowedEmail).where(schema.AllowedEmail.email == email)
            )
            if existing is not None:
                raise ValidationError("This email already exists.", {"email": email})
            row = schema.AllowedEmail(email=email)
            session.add(row)
            session.flush()
            logger.info("Allowed email %s", email)
            return AllowedEmail.model_validate(row)

    def remove(self, email_id: int) -> None:
        with self._db.session() as session:
            row = session.get(schema.AllowedEmail, email_id)
            if row is None:
                raise NotFoundError("This email does not exist.", {"id": email_id})
            session.delete(row)
            logger.info("Removed allowed email %s", row.email)

    def is_allowed(self, email: str) -> bool:
        email = normalize_email(email)
        with self._db.session() as session:
            return (
                session.scalar(
                    select(schema.AllowedEmail.id).where(schema.AllowedEmail.email == email)
                )
                is not None
            )


__all__ = ["EmailAllowListService", "normalize_email"]
