"""Content type tags and the flat records the tree assembler consumes."""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ContentType(str, Enum):
    """Kind of content a folder holds and an item is."""

    NOTE = "NOTE"
    TODO = "TODO"

    @property
    def route(self) -> str:
        if self is ContentType.NOTE:
            return "notes"
        if self is ContentType.TODO:
            return "todos"
        raise ValueError(f"Unsupported content type: {self!r}")


class TodoNodeStatus(str, Enum):
    """Status of a single todo node."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class FolderRecord(BaseModel):
    """A folder row as read from the content store."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    name: str
    type: ContentType
    parent_id: Optional[str] = None


class ContentRecord(BaseModel):
    """A note or todo row as read from the content store."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    name: str
    type: ContentType
    slug: str = ""
    folder_id: Optional[str] = None


class TreeFolder(BaseModel):
    """A folder with its nested folders and contained items."""

    id: str
    name: str
    type: ContentType
    parent_id: Optional[str] = None
    level: int = 0
    children: list["TreeFolder"] = Field(default_factory=list)
    items: list[ContentRecord] = Field(default_factory=list)


def slugify(text: str | None) -> str:
    """Turn a display name into a URL slug."""
    if not text:
        return ""
    slug = text.lower()
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


__all__ = [
    "ContentType",
    "TodoNodeStatus",
    "FolderRecord",
    "ContentRecord",
    "TreeFolder",
    "slugify",
]
