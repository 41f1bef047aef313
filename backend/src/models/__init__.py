"""Pydantic models for data validation and serialization."""

from .auth import JWTPayload, TokenRequest, TokenResponse, User
from .inbox import AllowedEmail, AllowedEmailCreate, InboxEntry, InboxEntryCreate
from .note import (
    FileEntry,
    Folder,
    FolderCreate,
    FolderUpdate,
    History,
    HistoryEntry,
    Note,
    NoteCreate,
    NoteUpdate,
    SearchResults,
    Todo,
    TodoCreate,
    TodoUpdate,
)
from .todo import TodoNodeData, TodoNodeMutations, TodoNodes, TodoNodesUpdate

__all__ = [
    "User",
    "TokenRequest",
    "TokenResponse",
    "JWTPayload",
    "InboxEntry",
    "InboxEntryCreate",
    "AllowedEmail",
    "AllowedEmailCreate",
    "Folder",
    "FolderCreate",
    "FolderUpdate",
    "Note",
    "NoteCreate",
    "NoteUpdate",
    "Todo",
    "TodoCreate",
    "TodoUpdate",
    "FileEntry",
    "History",
    "HistoryEntry",
    "SearchResults",
    "TodoNodeData",
    "TodoNodes",
    "TodoNodeMutations",
    "TodoNodesUpdate",
]
