"""Note service."""

from __future__ import annotations

import logging
from typing import Optional, Type, Union
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from haku.core.content import ContentType, slugify
from haku.core.errors import ConflictError, NotFoundError

from ..models.note import Note, NoteCreate, NoteUpdate
from . import schema
from .database import DatabaseService, get_database_service
from .folders import validate_folder

logger = logging.getLogger(__name__)

NOTE_DOES_NOT_EXIST = "The note specified does not exist."
NOTE_ALREADY_EXISTS = "A note with the same name already exists."

ContentRow = Union[schema.Note, schema.Todo]


def ensure_unique_content_name(
    session: Session,
    model: Type[ContentRow],
    user_id: str,
    folder_id: Optional[str],
    name: str,
    message: str,
    exclude_id: Optional[str] = None,
) -> None:
    """Raise :class:`ConflictError` when a sibling note/todo already uses ``name``."""
    query = select(model.id).where(
        model.user_id == user_id,
        model.name == name,
        model.folder_id.is_(None) if folder_id is None else model.folder_id == folder_id,
    )
    if exclude_id is not None:
        query = query.where(model.id != exclude_id)
    if session.scalar(query) is not None:
        raise ConflictError(message, {"name": name, "folder_id": folder_id})


class NoteService:
    """Get, add, update and remove notes."""

    def __init__(self, db_service: Optional[DatabaseService] = None):
        self._db = db_service or get_database_service()

    def _get_owned(self, session: Session, user_id: str, note_id: str) -> schema.Note:
        note = session.get(schema.Note, note_id)
        if note is None or note.user_id != user_id:
            raise NotFoundError(NOTE_DOES_NOT_EXIST, {"note_id": note_id})
        return note

    def get(self, user_id: str, note_id: str) -> Note:
        with self._db.session() as session:
            return Note.model_validate(self._get_owned(session, user_id, note_id))

    def add(self, user_id: str, data: NoteCreate) -> Note:
        folder_id = data.folder_id or None
        with self._db.session() as session:
            validate_folder(session, user_id, folder_id, ContentType.NOTE)
            ensure_unique_content_name(
                session, schema.Note, user_id, folder_id, data.name, NOTE_ALREADY_EXISTS
            )
            note = schema.Note(
                id=str(uuid.uuid4()),
                user_id=user_id,
                name=data.name,
                slug=slugify(data.name),
                folder_id=folder_id,
                html=data.html,
                text=data.text,
            )
            session.add(note)
            session.flush()
            logger.info("Created note %s for user %s", note.id, user_id)
            return Note.model_validate(note)

    def update(self, user_id: str, note_id: str, data: NoteUpdate) -> Note:
        with self._db.session() as session:
            note = self._get_owned(session, user_id, note_id)

            folder_id = note.folder_id
            if "folder_id" in data.model_fields_set:
                folder_id = data.folder_id or None
                validate_folder(session, user_id, folder_id, ContentType.NOTE)

            name = data.name if data.name is not None else note.name
            if name != note.name or folder_id != note.folder_id:
                ensure_unique_content_name(
                    session,
                    schema.Note,
                    user_id,
                    folder_id,
                    name,
                    NOTE_ALREADY_EXISTS,
                    exclude_id=note.id,
                )

            if name != note.name:
                note.name = name
                note.slug = slugify(name)
            note.folder_id = folder_id
            if data.html is not None and data.text is not None:
                note.html = data.html
                note.text = data.text
            note.modified_at = schema.utcnow()
            session.flush()
            return Note.model_validate(note)

    def remove(self, user_id: str, note_id: str) -> None:
        with self._db.session() as session:
            session.delete(self._get_owned(session, user_id, note_id))
            logger.info("Removed note %s", note_id)


__all__ = ["NoteService", "ensure_unique_content_name"]
