"""Session issuance for allow-listed emails."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ...models.auth import TokenRequest, TokenResponse
from ...services.auth import AuthService
from ...services.users import UserService
from ..dependencies import get_user_service
from ..middleware import get_auth_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/auth/token", response_model=TokenResponse)
async def issue_token(
    request: TokenRequest,
    users: UserService = Depends(get_user_service),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Sign in an allow-listed email, registering it on first use."""
    user = users.register(request.email)
    token, expires_at = auth_service.issue_session(user.id)
    logger.info("Issued session token for user %s", user.id)
    return TokenResponse(token=token, expires_at=expires_at, user=user)


__all__ = ["router"]
