"""Inbox routes."""

from __future__ import annotations

import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from pydantic import BaseModel, Field

from ...models.inbox import InboxEntry, InboxEntryCreate
from ...services.auth import AuthError, AuthService
from ...services.inbox import InboxService
from ...services.users import UserService
from ..dependencies import get_inbox_service, get_user_service
from ..middleware import AuthContext, get_auth_context, get_auth_service, resolve_auth_context

logger = logging.getLogger(__name__)

router = APIRouter()


class InboxShare(BaseModel):
    """Entry shared from another app, authenticated by the user's inbox token."""

    text: str = Field(..., min_length=1, max_length=10_000)
    token: Optional[str] = None


@router.get("/api/inbox", response_model=List[InboxEntry])
async def list_inbox(
    auth: AuthContext = Depends(get_auth_context),
    inbox: InboxService = Depends(get_inbox_service),
):
    return inbox.list(auth.user_id)


@router.post("/api/inbox", response_model=InboxEntry)
async def add_inbox_entry(
    entry: InboxEntryCreate,
    auth: AuthContext = Depends(get_auth_context),
    inbox: InboxService = Depends(get_inbox_service),
):
    return inbox.add(auth.user_id, entry.text)


@router.post("/api/inbox/share", response_model=InboxEntry)
async def share_inbox_entry(
    share: InboxShare,
    authorization: Annotated[Optional[str], Header(alias="Authorization")] = None,
    inbox: InboxService = Depends(get_inbox_service),
    users: UserService = Depends(get_user_service),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Capture an entry with either a session or the user's inbox token."""
    user_id: Optional[str] = None
    if share.token:
        user = users.get_by_inbox_token(share.token)
        user_id = user.id if user else None
    elif authorization:
        try:
            user_id = resolve_auth_context(authorization, auth_service).user_id
        except AuthError:
            user_id = None
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "message": "A session or a valid inbox token is required"},
        )
    return inbox.add(user_id, share.text)


@router.delete("/api/inbox/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_inbox_entry(
    entry_id: str,
    auth: AuthContext = Depends(get_auth_context),
    inbox: InboxService = Depends(get_inbox_service),
):
    inbox.remove(auth.user_id, entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
