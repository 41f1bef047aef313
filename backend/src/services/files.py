"""Read models over notes and todos: flat file list, folder trees and history."""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select

from haku.core.content import ContentRecord, ContentType, FolderRecord
from haku.core.tree import ForestNode, build_tree

from ..models.note import FileEntry, History, HistoryEntry
from . import schema
from .database import DatabaseService, get_database_service

logger = logging.getLogger(__name__)

HISTORY_RESULT_LIMIT_PER_TYPE = 10

_MODELS = {ContentType.NOTE: schema.Note, ContentType.TODO: schema.Todo}


def content_model(content_type: ContentType):
    """Return the table of a content type."""
    try:
        return _MODELS[ContentType(content_type)]
    except KeyError as exc:
        raise ValueError(f"Unsupported content type: {content_type!r}") from exc


class FileService:
    """Every note and todo of a user, by name."""

    def __init__(self, db_service: Optional[DatabaseService] = None):
        self._db = db_service or get_database_service()

    def get_files(self, user_id: str) -> List[FileEntry]:
        files: List[FileEntry] = []
        with self._db.session() as session:
            for content_type, model in _MODELS.items():
                rows = session.execute(
                    select(model.id, model.name, model.slug).where(model.user_id == user_id)
                )
                files.extend(
                    FileEntry(id=row.id, name=row.name, slug=row.slug, type=content_type)
                    for row in rows
                )
        files.sort(key=lambda entry: (entry.name, entry.type.value, entry.id))
        return files


class TreeService:
    """Assemble the folder forest of a content type."""

    def __init__(self, db_service: Optional[DatabaseService] = None):
        self._db = db_service or get_database_service()

    def get_tree(self, user_id: str, content_type: ContentType) -> List[ForestNode]:
        model = content_model(content_type)
        with self._db.session() as session:
            folders = [
                FolderRecord(
                    id=row.id,
                    user_id=row.user_id,
                    name=row.name,
                    type=row.type,
                    parent_id=row.parent_id,
                )
                for row in session.scalars(
                    select(schema.Folder).where(
                        schema.Folder.user_id == user_id, schema.Folder.type == content_type
                    )
                )
            ]
            items = [
                ContentRecord(
                    id=row.id,
                    user_id=row.user_id,
                    name=row.name,
                    type=content_type,
                    slug=row.slug,
                    folder_id=row.folder_id,
                )
                for row in session.scalars(select(model).where(model.user_id == user_id))
            ]
        return build_tree(folders, items)

    def get_note_tree(self, user_id: str) -> List[ForestNode]:
        return self.get_tree(user_id, ContentType.NOTE)

    def get_todo_tree(self, user_id: str) -> List[ForestNode]:
        return self.get_tree(user_id, ContentType.TODO)


class HistoryService:
    """Most recently modified notes and todos."""

    def __init__(
        self,
        db_service: Optional[DatabaseService] = None,
        limit: int = HISTORY_RESULT_LIMIT_PER_TYPE,
    ):
        self._db = db_service or get_database_service()
        self.limit = limit

    def get_history(self, user_id: str) -> History:
        with self._db.session() as session:
            entries = {}
            for content_type, model in _MODELS.items():
                rows = session.execute(
                    select(model.id, model.name, model.slug, model.modified_at)
                    .where(model.user_id == user_id)
                    .order_by(model.modified_at.desc(), model.id)
                    .limit(self.limit)
                )
                entries[content_type] = [
                    HistoryEntry(id=row.id, name=row.name, slug=row.slug, modified_at=row.modified_at)
                    for row in rows
                ]
        return History(notes=entries[ContentType.NOTE], todos=entries[ContentType.TODO])


__all__ = [
    "FileService",
    "TreeService",
    "HistoryService",
    "HISTORY_RESULT_LIMIT_PER_TYPE",
    "content_model",
]
