"""Note, todo and folder Pydantic models."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from haku.core.content import ContentType


def _clean_name(value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        raise ValueError("Name must not be blank")
    return cleaned


Name = Annotated[str, Field(min_length=1, max_length=256), AfterValidator(_clean_name)]


class FolderCreate(BaseModel):
    """Request payload to create a folder."""

    name: Name
    type: ContentType
    parent_id: Optional[str] = None


class FolderUpdate(BaseModel):
    """Request payload to rename or move a folder."""

    name: Optional[Name] = None
    parent_id: Optional[str] = None


class Folder(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: ContentType
    parent_id: Optional[str] = None


class NoteCreate(BaseModel):
    """Request payload to create a note."""

    name: Name
    folder_id: Optional[str] = None
    html: str = Field("", max_length=1_048_576)
    text: str = Field("", max_length=1_048_576)


class NoteUpdate(BaseModel):
    """Request payload to update a note. Unset fields are left untouched."""

    name: Optional[Name] = None
    folder_id: Optional[str] = None
    html: Optional[str] = Field(None, max_length=1_048_576)
    text: Optional[str] = Field(None, max_length=1_048_576)

    @model_validator(mode="after")
    def _body_comes_whole(self) -> "NoteUpdate":
        if (self.html is None) != (self.text is None):
            raise ValueError("The note html or text content is missing.")
        return self


class Note(BaseModel):
    """Complete note with its content."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    folder_id: Optional[str] = None
    html: str = ""
    text: str = ""
    created_at: datetime
    modified_at: datetime


class TodoCreate(BaseModel):
    name: Name
    folder_id: Optional[str] = None


class TodoUpdate(BaseModel):
    name: Optional[Name] = None
    folder_id: Optional[str] = None


class Todo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    folder_id: Optional[str] = None
    created_at: datetime
    modified_at: datetime


class FileEntry(BaseModel):
    """A note or a todo as listed by the files endpoint."""

    id: str
    name: str
    slug: str
    type: ContentType


class HistoryEntry(BaseModel):
    id: str
    name: str
    slug: str
    modified_at: datetime


class History(BaseModel):
    """Most recently modified notes and todos."""

    notes: List[HistoryEntry] = Field(default_factory=list)
    todos: List[HistoryEntry] = Field(default_factory=list)


class SearchResults(BaseModel):
    results: List[FileEntry] = Field(default_factory=list)
    next_page: Optional[int] = None


__all__ = [
    "FolderCreate",
    "FolderUpdate",
    "Folder",
    "NoteCreate",
    "NoteUpdate",
    "Note",
    "TodoCreate",
    "TodoUpdate",
    "Todo",
    "FileEntry",
    "HistoryEntry",
    "History",
    "SearchResults",
]
