"""FastAPI middleware for authentication and error handling."""

from .auth_middleware import (
    AuthContext,
    check_admin_key,
    get_auth_context,
    get_auth_service,
    require_admin,
    resolve_auth_context,
)
from .error_handlers import (
    GENERIC_ERROR_MESSAGE,
    haku_exception_handler,
    http_exception_handler,
    internal_exception_handler,
    register_error_handlers,
    validation_exception_handler,
)

__all__ = [
    "AuthContext",
    "check_admin_key",
    "get_auth_context",
    "get_auth_service",
    "require_admin",
    "resolve_auth_context",
    "GENERIC_ERROR_MESSAGE",
    "register_error_handlers",
    "validation_exception_handler",
    "http_exception_handler",
    "haku_exception_handler",
    "internal_exception_handler",
]
