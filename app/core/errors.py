# app/core/errors.py
"""
Centralised error types + FastAPI exception handlers.

Every error leaves the API in the same envelope:

    {"error": {"code": ..., "message": ..., "details": ...}, "request_id": ...}
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, DuplicateKeyError, ExecutionTimeout, WTimeoutError
from starlette import status

logger = logging.getLogger(__name__)


class AppError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = int(status_code)
        self.code = str(code)
        self.message = str(message)
        self.details = details
        self.headers = headers


class NotFoundError(AppError):
    def __init__(self, *, code: str = "not_found", message: str = "Not found", details: dict[str, Any] | None = None):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, code=code, message=message, details=details)


class ConflictError(AppError):
    def __init__(self, *, code: str = "conflict", message: str = "Conflict", details: dict[str, Any] | None = None):
        super().__init__(status_code=status.HTTP_409_CONFLICT, code=code, message=message, details=details)


class ForbiddenError(AppError):
    def __init__(self, *, code: str = "forbidden", message: str = "Forbidden", details: dict[str, Any] | None = None):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, code=code, message=message, details=details)


class ValidationFailedError(AppError):
    """
    Field-level validation failure raised by services.

    `errors` is a list of {"field", "reason", "value"} dicts so the caller can
    correct every bad field in one round trip.
    """

    def __init__(
        self,
        *,
        errors: list[dict[str, Any]],
        code: str = "validation_error",
        message: str = "Validation failed",
    ):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code=code,
            message=message,
            details={"errors": errors},
        )
        self.errors = errors


class StorageUnavailableError(AppError):
    def __init__(
        self,
        *,
        code: str = "storage_unavailable",
        message: str = "Storage is temporarily unavailable",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, code=code, message=message, details=details)


def _request_id(request: Request) -> str | None:
    rid = getattr(request.state, "request_id", None)
    if isinstance(rid, str) and rid.strip():
        return rid.strip()

    hdr = request.headers.get("x-request-id")
    if hdr and hdr.strip():
        return hdr.strip()

    return None


def _error_payload(*, code: str, message: str, details: dict[str, Any] | None, request_id: str | None) -> dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
        },
        "request_id": request_id,
    }


def _json_error(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    rid = _request_id(request)

    out_headers = dict(headers or {})
    if rid:
        out_headers.setdefault("X-Request-ID", rid)

    return JSONResponse(
        status_code=int(status_code),
        content=_error_payload(code=code, message=message, details=details, request_id=rid),
        headers=out_headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        return _json_error(
            request,
            status_code=exc.status_code,
            code=exc.code,
            message=exc.message,
            details=exc.details,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _json_error(
            request,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Request validation failed",
            details={"errors": exc.errors()},
        )

    @app.exception_handler(HTTPException)
    async def _handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        details: dict[str, Any] | None = None
        message = "Request failed"

        if isinstance(exc.detail, str):
            message = exc.detail
        elif isinstance(exc.detail, dict):
            message = str(exc.detail.get("message") or message)
            details = exc.detail

        return _json_error(
            request,
            status_code=exc.status_code,
            code="http_exception",
            message=message,
            details=details,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(DuplicateKeyError)
    async def _handle_duplicate_key(request: Request, _exc: DuplicateKeyError) -> JSONResponse:
        logger.info("DuplicateKeyError")
        return _json_error(
            request,
            status_code=status.HTTP_409_CONFLICT,
            code="duplicate_key",
            message="A record with the same unique key already exists",
        )

    # Connection loss, server selection timeouts, socket timeouts and
    # operation timeouts all mean "the store did not answer in time".
    async def _handle_storage_down(request: Request, exc: Exception) -> JSONResponse:
        logger.error("storage_unavailable: %s: %s", type(exc).__name__, exc)
        return _json_error(
            request,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="storage_unavailable",
            message="Storage is temporarily unavailable",
        )

    for exc_type in (ConnectionFailure, ExecutionTimeout, WTimeoutError):
        app.add_exception_handler(exc_type, _handle_storage_down)

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception", exc_info=exc)
        return _json_error(
            request,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code="internal_error",
            message="Internal server error",
        )
