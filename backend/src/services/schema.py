"""ORM tables of the content store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy import Enum as SQLAEnum
from sqlalchemy.orm import Mapped, mapped_column

from haku.core.content import ContentType, TodoNodeStatus

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)  # UUID
    email: Mapped[str] = mapped_column(String, unique=True)
    inbox_token: Mapped[str] = mapped_column(String, unique=True)  # share-target secret
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class AllowedEmail(Base):
    __tablename__ = "allowed_emails"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String, unique=True)


class Folder(Base):
    __tablename__ = "folders"

    id: Mapped[str] = mapped_column(String, primary_key=True)  # UUID
    user_id: Mapped[str] = mapped_column(String, index=True)
    name: Mapped[str] = mapped_column(String)
    type: Mapped[ContentType] = mapped_column(SQLAEnum(ContentType, native_enum=False))
    parent_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("folders.id", ondelete="CASCADE"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Note(Base):
    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(String, primary_key=True)  # UUID
    user_id: Mapped[str] = mapped_column(String, index=True)
    name: Mapped[str] = mapped_column(String)
    slug: Mapped[str] = mapped_column(String)
    folder_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("folders.id", ondelete="CASCADE"), nullable=True, index=True
    )
    html: Mapped[str] = mapped_column(Text, default="")
    text: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    modified_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)


class Todo(Base):
    __tablename__ = "todos"

    id: Mapped[str] = mapped_column(String, primary_key=True)  # UUID
    user_id: Mapped[str] = mapped_column(String, index=True)
    name: Mapped[str] = mapped_column(String)
    slug: Mapped[str] = mapped_column(String)
    folder_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("folders.id", ondelete="CASCADE"), nullable=True, index=True
    )
    root: Mapped[List[str]] = mapped_column(JSON, default=list)  # top-level node ids, in order
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    modified_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)


class TodoNode(Base):
    __tablename__ = "todo_nodes"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    todo_id: Mapped[str] = mapped_column(ForeignKey("todos.id", ondelete="CASCADE"), index=True)
    content: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[TodoNodeStatus] = mapped_column(
        SQLAEnum(TodoNodeStatus, native_enum=False), default=TodoNodeStatus.ACTIVE
    )
    collapsed: Mapped[bool] = mapped_column(Boolean, default=False)
    note_html: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    note_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    children: Mapped[List[str]] = mapped_column(JSON, default=list)  # child ids, in order


class InboxEntry(Base):
    __tablename__ = "inbox_entries"

    id: Mapped[str] = mapped_column(String, primary_key=True)  # UUID
    user_id: Mapped[str] = mapped_column(String, index=True)
    text: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)


__all__ = ["User", "AllowedEmail", "Folder", "Note", "Todo", "TodoNode", "InboxEntry", "utcnow"]
