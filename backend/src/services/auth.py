"""Session tokens for Haku users.

Bearer tokens are checked against a chain of strategies: the static local-dev
token (only in local mode) and then session JWTs signed with ``JWT_SECRET_KEY``.
A strategy returns ``None`` for a token it does not recognize so the next one
can try it, and raises ``AuthError`` for a token it recognizes but rejects.
"""

from __future__ import annotations

import abc
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import jwt
from fastapi import status

from haku.core.errors import AuthorizationError

from ..models.auth import JWTPayload
from .config import AppConfig, get_config

LOCAL_DEV_USER_ID = "local-dev"
LOCAL_DEV_TOKEN_LIFETIME = timedelta(days=365)
SESSION_LIFETIME = timedelta(days=30)


class AuthError(AuthorizationError):
    """Authentication failure carrying its own error code and HTTP status."""

    def __init__(
        self,
        error: str,
        message: str,
        *,
        status_code: int = status.HTTP_401_UNAUTHORIZED,
        detail: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, detail)
        self.error = error
        self.status_code = status_code
        self.detail = self.details


def session_payload(user_id: str, lifetime: timedelta) -> JWTPayload:
    issued = datetime.now(timezone.utc)
    return JWTPayload(
        sub=user_id,
        iat=int(issued.timestamp()),
        exp=int((issued + lifetime).timestamp()),
    )


class TokenStrategy(abc.ABC):
    @abc.abstractmethod
    def authenticate(self, token: str) -> Optional[JWTPayload]:
        """Return the session payload, or None to let the next strategy try."""


class LocalDevTokenStrategy(TokenStrategy):
    """Accept one configured token as the local development user."""

    def __init__(self, token: Optional[str], user_id: str = LOCAL_DEV_USER_ID):
        self.token = token
        self.user_id = user_id

    def authenticate(self, token: str) -> Optional[JWTPayload]:
        if not self.token or token != self.token:
            return None
        return session_payload(self.user_id, LOCAL_DEV_TOKEN_LIFETIME)


class SessionJWTStrategy(TokenStrategy):
    """Decode session JWTs issued by ``AuthService.issue_session``."""

    def __init__(self, config: AppConfig, algorithm: str = "HS256"):
        self.config = config
        self.algorithm = algorithm

    def authenticate(self, token: str) -> Optional[JWTPayload]:
        secret = self.config.jwt_secret_key
        if not secret:
            return None
        try:
            claims = jwt.decode(token, secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("token_expired", "Token expired") from exc
        except jwt.DecodeError:
            # Not shaped like a JWT, leave it to the next strategy.
            return None
        except jwt.InvalidTokenError as exc:
            raise AuthError("invalid_token", f"Invalid token: {exc}") from exc
        return JWTPayload(**claims)


class AuthService:
    """Authenticate bearer tokens and issue session JWTs."""

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        algorithm: str = "HS256",
        session_lifetime: timedelta = SESSION_LIFETIME,
    ) -> None:
        self.config = config or get_config()
        self.algorithm = algorithm
        self.session_lifetime = session_lifetime

        self.strategies: List[TokenStrategy] = []
        if self.config.enable_local_mode:
            self.strategies.append(LocalDevTokenStrategy(self.config.local_dev_token))
        self.strategies.append(SessionJWTStrategy(self.config, algorithm))

    def authenticate(self, token: str) -> JWTPayload:
        """Return the payload of the first strategy accepting ``token``."""
        for strategy in self.strategies:
            payload = strategy.authenticate(token)
            if payload is not None:
                return payload
        raise AuthError("invalid_token", "Invalid authentication credentials")

    def issue_session(
        self, user_id: str, *, expires_in: Optional[timedelta] = None
    ) -> Tuple[str, datetime]:
        """Sign a session JWT for ``user_id``; returns the token and its expiry."""
        secret = self.config.jwt_secret_key
        if not secret:
            raise AuthError(
                "missing_jwt_secret",
                "JWT secret not configured",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        payload = session_payload(user_id, expires_in or self.session_lifetime)
        token = jwt.encode(payload.model_dump(), secret, algorithm=self.algorithm)
        return token, datetime.fromtimestamp(payload.exp, tz=timezone.utc)


__all__ = [
    "AuthService",
    "AuthError",
    "TokenStrategy",
    "LocalDevTokenStrategy",
    "SessionJWTStrategy",
    "LOCAL_DEV_USER_ID",
]
