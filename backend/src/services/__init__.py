"""Service layer for business logic and persistence."""

from .allow_list import EmailAllowListService
from .auth import AuthError, AuthService
from .config import AppConfig, get_config, reload_config
from .database import DatabaseService, get_database_service, init_database
from .files import FileService, HistoryService, TreeService
from .folders import FolderService
from .inbox import InboxService
from .notes import NoteService
from .search import SearchService
from .todos import TodoNodeService, TodoService
from .users import UserService

__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "DatabaseService",
    "get_database_service",
    "init_database",
    "AuthService",
    "AuthError",
    "EmailAllowListService",
    "UserService",
    "FolderService",
    "NoteService",
    "TodoService",
    "TodoNodeService",
    "FileService",
    "TreeService",
    "HistoryService",
    "InboxService",
    "SearchService",
]
