"""Inbox service: quick-capture entries, newest first."""

from __future__ import annotations

import logging
from typing import List, Optional
import uuid

from sqlalchemy import select

from haku.core.errors import NotFoundError

from ..models.inbox import InboxEntry
from . import schema
from .database import DatabaseService, get_database_service

logger = logging.getLogger(__name__)

INBOX_ENTRY_DOES_NOT_EXIST = "The inbox entry specified does not exist."


class InboxService:
    def __init__(self, db_service: Optional[DatabaseService] = None):
        self._db = db_service or get_database_service()

    def list(self, user_id: str) -> List[InboxEntry]:
        with self._db.session() as session:
            rows = session.scalars(
                select(schema.InboxEntry)
                .where(schema.InboxEntry.user_id == user_id)
                .order_by(schema.InboxEntry.created_at.desc(), schema.InboxEntry.id)
            )
            return [InboxEntry.model_validate(row) for row in rows]

    def add(self, user_id: str, text: str) -> InboxEntry:
        with self._db.session() as session:
            entry = schema.InboxEntry(id=str(uuid.uuid4()), user_id=user_id, text=text)
            session.add(entry)
            session.flush()
            return InboxEntry.model_validate(entry)

    def remove(self, user_id: str, entry_id: str) -> None:
        with self._db.session() as session:
            entry = session.get(schema.InboxEntry, entry_id)
            if entry is None or entry.user_id != user_id:
                raise NotFoundError(INBOX_ENTRY_DOES_NOT_EXIST, {"id": entry_id})
            session.delete(entry)


__all__ = ["InboxService"]
