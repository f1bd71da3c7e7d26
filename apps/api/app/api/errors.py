from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.responses import VALIDATION_MESSAGE, error_response
from app.core.config import settings
from app.services.error_codes import ErrorCode
from app.services.exceptions import (
    ConflictError,
    NotFoundError,
    ServiceError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

_LOCATION_ROOTS = {"body", "query", "path", "header", "cookie"}


def status_for(err: ServiceError) -> int:
    if isinstance(err, NotFoundError):
        return 404
    if isinstance(err, ConflictError):
        return 409
    if isinstance(err, ValidationError):
        return 422
    return 500


def _field_name(loc: tuple[Any, ...]) -> str:
    parts = [str(part) for part in loc if part not in _LOCATION_ROOTS]
    return ".".join(parts) or "body"


def validation_errors(errors: list[dict[str, Any]]) -> dict[str, list[str]]:
    """Group pydantic errors by field, one message list per field."""
    grouped: dict[str, list[str]] = {}
    for error in errors:
        field = _field_name(tuple(error.get("loc", ())))
        if error.get("type") == "missing":
            message = f"The {field} field is required."
        else:
            message = error.get("msg", "Invalid value.")
        grouped.setdefault(field, []).append(message)
    return grouped


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        status_code = status_for(exc)
        logger.info(
            "service_error",
            code=exc.code,
            status_code=status_code,
            path=request.url.path,
        )
        return error_response(exc.message, status_code, errors=exc.errors)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = validation_errors(list(exc.errors()))
        logger.info(
            "request_invalid",
            code=ErrorCode.VALIDATION_FAILED.value,
            path=request.url.path,
            fields=sorted(errors),
        )
        return error_response(VALIDATION_MESSAGE, 422, errors=errors)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return error_response(message, exc.status_code, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled_error", code=ErrorCode.INTERNAL_ERROR.value, path=request.url.path
        )
        errors = {"detail": [str(exc)]} if settings.debug else None
        return error_response("An unexpected error occurred", 500, errors=errors)
