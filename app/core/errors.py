"""Typed failure outcomes shared by every core operation.

Core services return ``T | Failure`` instead of raising for expected
outcomes (bad password, expired token, missing identity).  Only the HTTP
boundary turns a Failure into a response, using ``ErrorKind.status_code``
and the stable ``code`` string.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeGuard


class ErrorKind(StrEnum):
    UNAUTHENTICATED = "Unauthenticated"
    FORBIDDEN = "Forbidden"
    INVALID_TOKEN = "InvalidToken"
    NOT_FOUND = "NotFound"
    VALIDATION_ERROR = "ValidationError"
    CONFLICT = "Conflict"
    INTERNAL_ERROR = "InternalError"

    @property
    def status_code(self) -> int:
        match self:
            case ErrorKind.UNAUTHENTICATED | ErrorKind.INVALID_TOKEN:
                return 401
            case ErrorKind.FORBIDDEN:
                return 403
            case ErrorKind.NOT_FOUND:
                return 404
            case ErrorKind.VALIDATION_ERROR:
                return 400
            case ErrorKind.CONFLICT:
                return 409
            case ErrorKind.INTERNAL_ERROR:
                return 500


@dataclass(frozen=True, slots=True)
class Failure:
    kind: ErrorKind
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        return self.kind.status_code


def failed(result: object) -> TypeGuard[Failure]:
    return isinstance(result, Failure)


# Convenience constructors, one per taxonomy entry.


def unauthenticated(message: str, code: str = "unauthenticated") -> Failure:
    return Failure(ErrorKind.UNAUTHENTICATED, code, message)


def forbidden(message: str, code: str = "forbidden") -> Failure:
    return Failure(ErrorKind.FORBIDDEN, code, message)


def invalid_token(message: str, code: str = "invalid_token") -> Failure:
    return Failure(ErrorKind.INVALID_TOKEN, code, message)


def not_found(message: str, code: str = "not_found") -> Failure:
    return Failure(ErrorKind.NOT_FOUND, code, message)


def conflict(message: str, code: str = "conflict") -> Failure:
    return Failure(ErrorKind.CONFLICT, code, message)


def internal_error(message: str = "Internal server error") -> Failure:
    return Failure(ErrorKind.INTERNAL_ERROR, "internal_error", message)
