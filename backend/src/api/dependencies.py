"""Service providers injected into the route handlers."""

from __future__ import annotations

from fastapi import Depends

from ..services.allow_list import EmailAllowListService
from ..services.database import DatabaseService, get_database_service
from ..services.files import FileService, HistoryService, TreeService
from ..services.folders import FolderService
from ..services.inbox import InboxService
from ..services.notes import NoteService
from ..services.search import SearchService
from ..services.todos import TodoNodeService, TodoService
from ..services.users import UserService


def get_db() -> DatabaseService:
    return get_database_service()


def get_allow_list_service(db: DatabaseService = Depends(get_db)) -> EmailAllowListService:
    return EmailAllowListService(db)


def get_user_service(db: DatabaseService = Depends(get_db)) -> UserService:
    return UserService(db)


def get_file_service(db: DatabaseService = Depends(get_db)) -> FileService:
    return FileService(db)


def get_tree_service(db: DatabaseService = Depends(get_db)) -> TreeService:
    return TreeService(db)


def get_history_service(db: DatabaseService = Depends(get_db)) -> HistoryService:
    return HistoryService(db)


def get_folder_service(db: DatabaseService = Depends(get_db)) -> FolderService:
    return FolderService(db)


def get_note_service(db: DatabaseService = Depends(get_db)) -> NoteService:
    return NoteService(db)


def get_todo_service(db: DatabaseService = Depends(get_db)) -> TodoService:
    return TodoService(db)


def get_todo_node_service(db: DatabaseService = Depends(get_db)) -> TodoNodeService:
    return TodoNodeService(db)


def get_inbox_service(db: DatabaseService = Depends(get_db)) -> InboxService:
    return InboxService(db)


def get_search_service(db: DatabaseService = Depends(get_db)) -> SearchService:
    return SearchService(db)


__all__ = [
    "get_db",
    "get_allow_list_service",
    "get_user_service",
    "get_file_service",
    "get_tree_service",
    "get_history_service",
    "get_folder_service",
    "get_note_service",
    "get_todo_service",
    "get_todo_node_service",
    "get_inbox_service",
    "get_search_service",
]
