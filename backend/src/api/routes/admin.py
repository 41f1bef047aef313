"""Admin routes guarded by the static ``Api-Key`` header."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Response, status

from ...models.inbox import AllowedEmail, AllowedEmailCreate
from ...services.allow_list import EmailAllowListService
from ..dependencies import get_allow_list_service
from ..middleware import require_admin

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/api/admin/email", response_model=List[AllowedEmail])
async def list_allowed_emails(allow_list: EmailAllowListService = Depends(get_allow_list_service)):
    return allow_list.list()


@router.post("/api/admin/email", response_model=AllowedEmail, status_code=201)
async def add_allowed_email(
    create: AllowedEmailCreate,
    allow_list: EmailAllowListService = Depends(get_allow_list_service),
):
    return allow_list.add(create.email)


@router.delete("/api/admin/email/{email_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_allowed_email(
    email_id: int,
    allow_list: EmailAllowListService = Depends(get_allow_list_service),
):
    allow_list.remove(email_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
