"""Uniform JSON envelope: ``{success, message, data?, errors?}``."""

from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.services.pagination import Page

VALIDATION_MESSAGE = "The given data was invalid."


def envelope(
    success: bool,
    message: str,
    *,
    data: Any = None,
    errors: Any = None,
    include_data: bool = True,
) -> dict[str, Any]:
    body: dict[str, Any] = {"success": success, "message": message}
    if include_data:
        body["data"] = jsonable_encoder(data)
    if errors:
        body["errors"] = jsonable_encoder(errors)
    return body


def success_response(data: Any, message: str, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=envelope(True, message, data=data))


def created_response(data: Any, message: str) -> JSONResponse:
    return success_response(data, message, status_code=201)


def error_response(
    message: str,
    status_code: int,
    errors: Any = None,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    body = envelope(False, message, errors=errors, include_data=False)
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def paginated(page: Page, items: list[Any], **extra: Any) -> dict[str, Any]:
    return {"data": items, "pagination": page.meta(), **extra}
