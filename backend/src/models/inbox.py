"""Inbox and email allow-list models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class InboxEntryCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=10_000)


class InboxEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    text: str
    created_at: datetime


class AllowedEmailCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")


class AllowedEmail(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str


__all__ = ["InboxEntryCreate", "InboxEntry", "AllowedEmailCreate", "AllowedEmail"]
