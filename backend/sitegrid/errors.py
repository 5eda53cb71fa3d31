"""JSON error envelope shared by every endpoint.

Two kinds of errors reach clients: ``validation_error`` (the request itself
is wrong and can be corrected in place) and ``operation_error`` (the request
was well formed but could not be carried out).
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = structlog.get_logger()

VALIDATION_ERROR = "validation_error"
OPERATION_ERROR = "operation_error"

UNPROCESSABLE = 422

_VALIDATION_STATUSES = {status.HTTP_400_BAD_REQUEST, UNPROCESSABLE}


def error_kind(status_code: int) -> str:
    return VALIDATION_ERROR if status_code in _VALIDATION_STATUSES else OPERATION_ERROR


def error_body(status_code: int, message: str, detail: Any = None) -> dict:
    return {
        "error": error_kind(status_code),
        "title": "Error",
        "message": message,
        "detail": detail if detail is not None else message,
    }


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail: Any = exc.detail
    if isinstance(detail, dict):
        message = str(detail.get("message") or detail)
    else:
        message = str(detail)
    if exc.status_code >= 500:
        logger.error("operation_failed", path=request.url.path, status=exc.status_code, message=message)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(error_body(exc.status_code, message, detail)),
        headers=dict(exc.headers or {}),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = jsonable_encoder(exc.errors())
    first: Optional[dict] = errors[0] if errors else None
    if first:
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(
        status_code=UNPROCESSABLE,
        content=error_body(UNPROCESSABLE, message, errors),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
