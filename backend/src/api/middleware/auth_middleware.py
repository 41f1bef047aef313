"""Authentication dependency helpers."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import hmac
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status

from ...models.auth import JWTPayload
from ...services.auth import AuthError, AuthService
from ...services.config import get_config


@lru_cache(maxsize=1)
def get_auth_service() -> AuthService:
    return AuthService()


@dataclass
class AuthContext:
    """Context extracted from a bearer token."""

    user_id: str
    token: str
    payload: JWTPayload


def resolve_auth_context(authorization: Optional[str], auth_service: AuthService) -> AuthContext:
    """Validate an ``Authorization`` header value.

    Raises:
        AuthError: when the header is missing, malformed or carries a bad token.
    """
    if not authorization:
        raise AuthError("unauthorized", "Authorization header required")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthError("unauthorized", "Authorization header must be in format: Bearer <token>")

    payload = auth_service.authenticate(token)
    return AuthContext(user_id=payload.sub, token=token, payload=payload)


def get_auth_context(
    authorization: Annotated[Optional[str], Header(alias="Authorization")] = None,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthContext:
    """
    Extract and validate the user_id from a Bearer token.

    Raises HTTPException if the header is missing/invalid.
    """
    try:
        return resolve_auth_context(authorization, auth_service)
    except AuthError as exc:
        raise HTTPException(
            status_code=exc.status_code,
            detail={"error": exc.error, "message": exc.message, "detail": exc.detail or None},
        ) from exc


def check_admin_key(api_key: Optional[str]) -> None:
    """Compare an ``Api-Key`` header value with the configured admin key.

    Raises:
        AuthError: when admin access is disabled or the key does not match.
    """
    expected = get_config().admin_api_key
    if not expected:
        raise AuthError("forbidden", "Admin access is disabled", status_code=status.HTTP_403_FORBIDDEN)
    if not api_key or not hmac.compare_digest(api_key.encode(), expected.encode()):
        raise AuthError("unauthorized", "Invalid admin API key")


def require_admin(
    api_key: Annotated[Optional[str], Header(alias="Api-Key")] = None,
) -> None:
    """Guard admin endpoints behind the static ``Api-Key`` header."""
    try:
        check_admin_key(api_key)
    except AuthError as exc:
        raise HTTPException(
            status_code=exc.status_code,
            detail={"error": exc.error, "message": exc.message},
        ) from exc


__all__ = [
    "AuthContext",
    "get_auth_context",
    "get_auth_service",
    "resolve_auth_context",
    "check_admin_key",
    "require_admin",
]
