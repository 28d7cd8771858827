"""Error taxonomy and the JSON error envelope.

Route handlers raise ``AppError`` subclasses (or plain ``HTTPException`` from
FastAPI dependencies). Everything is converted to ``{"error", "code"?,
"details"?}`` by the handlers registered in ``register_exception_handlers``.
Failures coming back from the database or a third-party API are turned into
messages in exactly one place: ``describe_upstream_error``.
"""

import json
import logging
from typing import Any, Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.code:
            body["code"] = self.code
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "validation_error"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "unauthorized"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "forbidden"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"


class UpstreamError(AppError):
    """A database, storage or third-party call failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "upstream_error"


def _message_from_mapping(data: dict[str, Any]) -> Optional[str]:
    for key in ("message", "error", "detail", "details", "error_description"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, dict):
            nested = _message_from_mapping(value)
            if nested:
                return nested
    return None


def describe_upstream_error(exc: Any) -> str:
    """Extract a human-readable message from an upstream failure of any shape."""
    if exc is None:
        return "Unknown error"
    if isinstance(exc, str):
        return exc or "Unknown error"
    if isinstance(exc, dict):
        return _message_from_mapping(exc) or json.dumps(exc, default=str)

    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            message = _message_from_mapping(payload)
            if message:
                return message
        return response.text or f"HTTP {response.status_code}"

    # SQLAlchemy wraps the driver error; asyncpg chains its own error as the cause
    orig = getattr(exc, "orig", None)
    if orig is not None:
        cause = getattr(orig, "__cause__", None)
        return describe_upstream_error(cause if cause is not None else orig)

    for attr in ("message", "details", "detail", "hint"):
        value = getattr(exc, attr, None)
        if isinstance(value, str) and value:
            return value

    text = str(exc)
    if text:
        return text
    try:
        return json.dumps(vars(exc), default=str)
    except TypeError:
        return exc.__class__.__name__


def normalize_upstream_error(exc: Any) -> UpstreamError:
    """Wrap an upstream failure as an ``UpstreamError`` carrying any hint/detail fields."""
    if isinstance(exc, UpstreamError):
        return exc
    details = {}
    source = getattr(exc, "orig", None)
    source = getattr(source, "__cause__", None) or source or exc
    for attr in ("detail", "hint", "code"):
        value = getattr(source, attr, None)
        if isinstance(value, str) and value:
            details[attr] = value
    return UpstreamError(describe_upstream_error(exc), details=details or None)


def _error_response(status_code: int, body: dict[str, Any], headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body, headers=headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, UpstreamError):
        logger.error(f"[API] {request.method} {request.url.path} upstream failure: {exc.message}")
    return _error_response(exc.status_code, exc.to_dict())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        body: dict[str, Any] = {"error": "Resource not found", "code": "not_found"}
    elif isinstance(exc.detail, dict):
        body = dict(exc.detail)
        body.setdefault("error", "Request failed")
    else:
        body = {"error": str(exc.detail)}
    return _error_response(exc.status_code, body, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(part) for part in err["loc"] if part != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        {"error": "Invalid request", "code": "validation_error", "details": details},
    )


async def upstream_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    error = normalize_upstream_error(exc)
    logger.error(f"[API] {request.method} {request.url.path} upstream failure: {error.message}")
    return _error_response(error.status_code, error.to_dict())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"[API] Unhandled error on {request.method} {request.url.path}")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {"error": "Internal server error", "code": "internal_error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, upstream_exception_handler)
    app.add_exception_handler(httpx.HTTPError, upstream_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
