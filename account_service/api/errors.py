"""Response envelope and exception handlers shared by every route."""

from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..domain.errors import AccountServiceError, BackendFaultError, RateLimitedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope wrapping every payload returned by the API."""

    success: bool = True
    message: str
    data: T


class ErrorDetail(BaseModel):
    code: str
    detail: Any = None


class ErrorResponse(BaseModel):
    """Failure envelope; never carries stack traces or driver messages."""

    success: bool = False
    message: str
    error: ErrorDetail


def error_response(
    status_code: int,
    message: str,
    code: str,
    detail: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(message=message, error=ErrorDetail(code=code, detail=detail))
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


async def _service_error_handler(request: Request, exc: AccountServiceError) -> JSONResponse:
    if isinstance(exc, BackendFaultError):
        # Internal detail stays in the log.
        return error_response(exc.status_code, BackendFaultError.message, exc.code)
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after)}
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.code)
    return error_response(exc.status_code, exc.message, exc.code, exc.detail, headers)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY, "Invalid request", "invalid_request", errors
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(
        exc.status_code, str(exc.detail), "http_error", headers=getattr(exc, "headers", None)
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, BackendFaultError.message, BackendFaultError.code
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error raised by the routes into the failure envelope."""
    app.add_exception_handler(AccountServiceError, _service_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
