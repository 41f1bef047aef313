"""Render every failure as ``{"error", "message", "detail"}``."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from haku.core.errors import HakuError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong!"

# Error code used when an HTTPException only carries a status.
ERROR_CODES: Dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "validation_error",
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_409_CONFLICT: "conflict",
}


def error_response(
    status_code: int, error: str, message: str, detail: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "detail": detail or None},
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Only location, message and type: pydantic's "input" echoes the request body.
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return error_response(
        status.HTTP_400_BAD_REQUEST, "validation_error", "Invalid request payload", {"errors": errors}
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code >= 500:
        return error_response(exc.status_code, "internal_error", GENERIC_ERROR_MESSAGE)
    code = ERROR_CODES.get(exc.status_code, "http_error")
    if isinstance(exc.detail, dict):
        return error_response(
            exc.status_code,
            exc.detail.get("error", code),
            exc.detail.get("message", code),
            exc.detail.get("detail"),
        )
    return error_response(exc.status_code, code, str(exc.detail or code))


async def haku_exception_handler(request: Request, exc: HakuError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.error, request.method, request.url.path, exc.message)
        return error_response(exc.status_code, exc.error, GENERIC_ERROR_MESSAGE)
    return error_response(exc.status_code, exc.error, exc.message, exc.details)


async def internal_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", GENERIC_ERROR_MESSAGE
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(HakuError, haku_exception_handler)
    app.add_exception_handler(Exception, internal_exception_handler)


__all__ = [
    "GENERIC_ERROR_MESSAGE",
    "error_response",
    "register_error_handlers",
    "validation_exception_handler",
    "http_exception_handler",
    "haku_exception_handler",
    "internal_exception_handler",
]
