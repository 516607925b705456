"""Uniform response envelope and the exception handlers that produce it.

Every JSON response has one of two shapes::

    {"success": true,  "statusCode": 200, "message": "...", "data": {...}}
    {"success": false, "statusCode": 401, "message": "...",
     "error": {"code": "token_expired", "details": {}}}

Routes return ``ok(data)`` on success.  A core ``Failure`` leaves a route
as ``ApiError`` (usually via ``unwrap``); framework errors (unknown route,
405, 429 from the rate limiter, pydantic validation) and unhandled
exceptions are converted by the handlers registered in
``install_exception_handlers``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Generic, TypeVar, cast

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import ErrorKind, Failure, internal_error

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class CamelModel(BaseModel):
    """Base for API schemas: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Envelope(CamelModel, Generic[T]):
    success: bool = True
    status_code: int = 200
    message: str = "OK"
    data: T | None = None


class ErrorBody(CamelModel):
    code: str
    details: dict[str, Any] = {}


class ErrorEnvelope(CamelModel):
    success: bool = False
    status_code: int
    message: str
    error: ErrorBody


def ok(data: T | None = None, message: str = "OK", status_code: int = 200) -> Envelope[T]:
    return Envelope(status_code=status_code, message=message, data=data)


class ApiError(Exception):
    """Carries a core Failure out of a route handler."""

    def __init__(self, failure: Failure, headers: Mapping[str, str] | None = None) -> None:
        super().__init__(failure.message)
        self.failure = failure
        self.headers = dict(headers or {})


def unwrap(result: R | Failure) -> R:
    if isinstance(result, Failure):
        raise ApiError(result)
    return result


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    body = ErrorEnvelope(
        status_code=status_code,
        message=message,
        error=ErrorBody(code=code, details=dict(details or {})),
    )
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body, by_alias=True),
        headers=dict(headers) if headers else None,
    )


def failure_response(failure: Failure, headers: Mapping[str, str] | None = None) -> JSONResponse:
    return error_response(
        failure.status_code, failure.code, failure.message, failure.details, headers
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

_HTTP_CODES = {
    400: "bad_request",
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    429: "rate_limited",
}


async def _api_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    error = cast(ApiError, exc)
    failure = error.failure
    headers = dict(error.headers)
    if failure.kind in (ErrorKind.UNAUTHENTICATED, ErrorKind.INVALID_TOKEN):
        headers.setdefault("WWW-Authenticate", "Bearer")
    return failure_response(failure, headers)


async def _http_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    http_exc = cast(StarletteHTTPException, exc)
    code = _HTTP_CODES.get(http_exc.status_code, "http_error")
    message = http_exc.detail if isinstance(http_exc.detail, str) else code.replace("_", " ")
    return error_response(http_exc.status_code, code, message, headers=http_exc.headers)


async def _validation_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    return error_response(
        ErrorKind.VALIDATION_ERROR.status_code,
        "validation_error",
        "Request validation failed",
        {"errors": jsonable_encoder(cast(RequestValidationError, exc).errors())},
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return failure_response(internal_error())


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
