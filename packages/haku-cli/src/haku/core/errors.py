"""Domain error taxonomy shared by the server and the client."""

from __future__ import annotations

from typing import Any, Dict, Optional


class HakuError(Exception):
    """Base class for every Haku domain error.

    ``error`` is a stable machine-readable code and ``status_code`` the HTTP
    status the server answers with when the error crosses the API boundary.
    """

    error = "haku_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(HakuError):
    """A referenced entity does not exist (or is not owned by the caller)."""

    error = "not_found"
    status_code = 404


class AuthorizationError(HakuError):
    """Missing or invalid session, or missing admin key."""

    error = "unauthorized"
    status_code = 401


class IntegrityError(HakuError):
    """A tree invariant is violated (dangling reference, cycle, cross-user link)."""

    error = "integrity_error"
    status_code = 409


class CycleError(IntegrityError):
    """A node would become its own ancestor."""

    error = "cycle_error"


class ConflictError(HakuError):
    """An entity with the same name already exists at that location."""

    error = "conflict"
    status_code = 409


class ValidationError(HakuError):
    """Malformed input. Never retried."""

    error = "validation_error"
    status_code = 400


class NetworkError(HakuError):
    """Transport failure or timeout between client and server."""

    error = "network_error"
    status_code = 503
    retryable = True


ERRORS_BY_CODE: Dict[str, type[HakuError]] = {
    cls.error: cls
    for cls in (
        NotFoundError,
        AuthorizationError,
        IntegrityError,
        CycleError,
        ConflictError,
        ValidationError,
        NetworkError,
    )
}


__all__ = [
    "HakuError",
    "NotFoundError",
    "AuthorizationError",
    "IntegrityError",
    "CycleError",
    "ConflictError",
    "ValidationError",
    "NetworkError",
    "ERRORS_BY_CODE",
]
