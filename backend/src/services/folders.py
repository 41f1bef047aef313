"""Folder service: typed, per-user containment of notes and todos."""

from __future__ import annotations

import logging
from typing import List, Optional, Set
import uuid

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from haku.core.content import ContentType
from haku.core.errors import ConflictError, CycleError, NotFoundError

from ..models.note import Folder, FolderCreate, FolderUpdate
from . import schema
from .database import DatabaseService, get_database_service

logger = logging.getLogger(__name__)

FOLDER_DOES_NOT_EXIST = "The folder specified does not exist."
FOLDER_INVALID_TYPE = "The folder type is invalid."
PARENT_DOES_NOT_EXIST = "The parent folder specified does not exist."
PARENT_INVALID_TYPE = "The parent folder type is invalid."
FOLDER_ALREADY_EXISTS = "A folder with the same name already exists."


def get_owned_folder(session: Session, user_id: str, folder_id: str) -> Optional[schema.Folder]:
    folder = session.get(schema.Folder, folder_id)
    if folder is None or folder.user_id != user_id:
        return None
    return folder


def validate_folder(
    session: Session,
    user_id: str,
    folder_id: Optional[str],
    content_type: ContentType,
    *,
    missing: str = FOLDER_DOES_NOT_EXIST,
    invalid: str = FOLDER_INVALID_TYPE,
) -> None:
    """Check that an optional folder exists, is owned by the user and holds ``content_type``."""
    if not folder_id:
        return
    folder = get_owned_folder(session, user_id, folder_id)
    if folder is None:
        raise NotFoundError(missing, {"folder_id": folder_id})
    if folder.type != content_type:
        raise ConflictError(invalid, {"folder_id": folder_id, "type": folder.type.value})


def nested_folder_ids(session: Session, user_id: str, content_type: ContentType, folder_id: str) -> List[str]:
    """Return the ids of every folder below ``folder_id`` (not included)."""
    rows = session.execute(
        select(schema.Folder.id, schema.Folder.parent_id).where(
            schema.Folder.user_id == user_id, schema.Folder.type == content_type
        )
    ).all()
    children: dict[str, List[str]] = {}
    for row_id, parent_id in rows:
        if parent_id is not None:
            children.setdefault(parent_id, []).append(row_id)

    nested: List[str] = []
    pending = list(children.get(folder_id, []))
    seen: Set[str] = {folder_id}
    while pending:
        current = pending.pop()
        if current in seen:
            continue
        seen.add(current)
        nested.append(current)
        pending.extend(children.get(current, []))
    return nested


class FolderService:
    """Add, update and remove folders."""

    def __init__(self, db_service: Optional[DatabaseService] = None):
        self._db = db_service or get_database_service()

    def add(self, user_id: str, data: FolderCreate) -> Folder:
        with self._db.session() as session:
            validate_folder(
                session,
                user_id,
                data.parent_id,
                data.type,
                missing=PARENT_DOES_NOT_EXIST,
                invalid=PARENT_INVALID_TYPE,
            )
            self._ensure_unique_name(session, user_id, data.type, data.parent_id, data.name)
            folder = schema.Folder(
                id=str(uuid.uuid4()),
                user_id=user_id,
                name=data.name,
                type=data.type,
                parent_id=data.parent_id or None,
            )
            session.add(folder)
            session.flush()
            logger.info("Created %s folder %s for user %s", data.type.value, folder.id, user_id)
            return Folder.model_validate(folder)

    def update(self, user_id: str, folder_id: str, data: FolderUpdate) -> Folder:
        """Rename a folder and/or move it. An explicit ``parent_id: null`` moves it to the top level."""
        with self._db.session() as session:
            folder = get_owned_folder(session, user_id, folder_id)
            if folder is None:
                raise NotFoundError(FOLDER_DOES_NOT_EXIST, {"folder_id": folder_id})

            parent_id = folder.parent_id
            if "parent_id" in data.model_fields_set:
                parent_id = data.parent_id or None
                validate_folder(
                    session,
                    user_id,
                    parent_id,
                    folder.type,
                    missing=PARENT_DOES_NOT_EXIST,
                    invalid=PARENT_INVALID_TYPE,
                )
                if parent_id is not None and (
                    parent_id == folder.id
                    or parent_id in nested_folder_ids(session, user_id, folder.type, folder.id)
                ):
                    raise CycleError(
                        "A folder cannot be moved inside itself.",
                        {"folder_id": folder_id, "parent_id": parent_id},
                    )

            name = data.name if data.name is not None else folder.name
            if name != folder.name or parent_id != folder.parent_id:
                self._ensure_unique_name(
                    session, user_id, folder.type, parent_id, name, exclude_id=folder.id
                )
            folder.name = name
            folder.parent_id = parent_id
            session.flush()
            return Folder.model_validate(folder)

    def remove(self, user_id: str, folder_id: str) -> None:
        """Delete a folder with its nested folders and everything they contain."""
        with self._db.session() as session:
            folder = get_owned_folder(session, user_id, folder_id)
            if folder is None:
                raise NotFoundError(FOLDER_DOES_NOT_EXIST, {"folder_id": folder_id})

            folder_ids = [folder.id, *nested_folder_ids(session, user_id, folder.type, folder.id)]
            if folder.type == ContentType.TODO:
                todo_ids = select(schema.Todo.id).where(schema.Todo.folder_id.in_(folder_ids))
                session.execute(delete(schema.TodoNode).where(schema.TodoNode.todo_id.in_(todo_ids)))
                session.execute(delete(schema.Todo).where(schema.Todo.folder_id.in_(folder_ids)))
            else:
                session.execute(delete(schema.Note).where(schema.Note.folder_id.in_(folder_ids)))
            # Children first so the parent foreign key never dangles.
            for nested_id in reversed(folder_ids):
                session.execute(delete(schema.Folder).where(schema.Folder.id == nested_id))
            session.expunge_all()
            logger.info("Removed folder %s and %d nested folders", folder_id, len(folder_ids) - 1)

    @staticmethod
    def _ensure_unique_name(
        session: Session,
        user_id: str,
        content_type: ContentType,
        parent_id: Optional[str],
        name: str,
        exclude_id: Optional[str] = None,
    ) -> None:
        query = select(schema.Folder.id).where(
            schema.Folder.user_id == user_id,
            schema.Folder.type == content_type,
            schema.Folder.name == name,
            schema.Folder.parent_id.is_(None)
            if parent_id is None
            else schema.Folder.parent_id == parent_id,
        )
        if exclude_id is not None:
            query = query.where(schema.Folder.id != exclude_id)
        if session.scalar(query) is not None:
            raise ConflictError(FOLDER_ALREADY_EXISTS, {"name": name, "parent_id": parent_id})


__all__ = [
    "FolderService",
    "get_owned_folder",
    "validate_folder",
    "nested_folder_ids",
]
