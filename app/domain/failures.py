"""Failure taxonomy and the normalized error shape.

A raw exception is first classified into exactly one ``Failure`` variant; the
variant alone decides the HTTP status, the safe message and whether the cause
is operational.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.errors import status_for

GENERIC_MESSAGE = "Something went very wrong! Please try again later."
INVALID_TOKEN_MESSAGE = "Invalid token. Please log in again."
EXPIRED_TOKEN_MESSAGE = "Your token has expired! Please log in again."
AUTHENTICATION_FAILED_MESSAGE = "Authentication failed."
RESOURCE_NOT_FOUND_MESSAGE = "Resource not found."
UNKNOWN_FIELDS = "one or more fields"


class TokenProblem(str, Enum):
    INVALID = "invalid"
    EXPIRED = "expired"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class ValidationFailure:
    message: str
    status_code: int = 400


@dataclass(frozen=True, slots=True)
class AuthenticationFailure:
    reason: TokenProblem
    # Overrides the reason's default wording, e.g. for application-raised errors
    message: str | None = None
    status_code: int = 401


@dataclass(frozen=True, slots=True)
class ConflictFailure:
    fields: tuple[str, ...] | None = None
    status_code: int = 400


@dataclass(frozen=True, slots=True)
class NotFoundFailure:
    message: str = RESOURCE_NOT_FOUND_MESSAGE
    status_code: int = 404


@dataclass(frozen=True, slots=True)
class UnknownFailure:
    """Result of the generic pass for failures no specific pass recognised."""

    status_code: int = 500
    message: str = GENERIC_MESSAGE
    is_operational: bool = False


Failure = ValidationFailure | AuthenticationFailure | ConflictFailure | NotFoundFailure | UnknownFailure


@dataclass(frozen=True, slots=True)
class NormalizedError:
    status_code: int
    message: str
    is_operational: bool

    @property
    def status(self) -> str:
        return status_for(self.status_code)


def duplicate_fields_message(fields: tuple[str, ...] | None) -> str:
    joined = ", ".join(fields) if fields else UNKNOWN_FIELDS
    return f"Duplicate field value: {joined}. Please use another value."


def to_normalized(failure: Failure) -> NormalizedError:
    """Map a classified failure to its HTTP status, safe message and operational flag."""
    match failure:
        case ValidationFailure(message=message, status_code=status_code):
            return NormalizedError(status_code, message, True)
        case AuthenticationFailure(reason=reason, message=message, status_code=status_code):
            if message is None:
                message = {
                    TokenProblem.INVALID: INVALID_TOKEN_MESSAGE,
                    TokenProblem.EXPIRED: EXPIRED_TOKEN_MESSAGE,
                }.get(reason, AUTHENTICATION_FAILED_MESSAGE)
            return NormalizedError(status_code, message, True)
        case ConflictFailure(fields=fields, status_code=status_code):
            return NormalizedError(status_code, duplicate_fields_message(fields), True)
        case NotFoundFailure(message=message, status_code=status_code):
            return NormalizedError(status_code, message, True)
        case UnknownFailure(status_code=status_code, message=message, is_operational=is_operational):
            return NormalizedError(status_code, message, is_operational)
    raise TypeError(f"Unsupported failure variant: {type(failure).__name__}")
