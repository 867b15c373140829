"""Classify raw failures and decide how much of them an API client may see.

``normalize`` turns any exception raised while handling a request into a
``NormalizedError``; ``render_error`` applies the disclosure policy for the
running environment. Neither function raises.
"""

import logging
import re
import traceback
from typing import Any

import jwt
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import DataError, IntegrityError, NoResultFound
from sqlalchemy.orm.exc import ObjectDeletedError, StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import Environment
from app.domain.failures import (
    GENERIC_MESSAGE,
    AuthenticationFailure,
    ConflictFailure,
    Failure,
    NormalizedError,
    NotFoundFailure,
    TokenProblem,
    UnknownFailure,
    ValidationFailure,
    to_normalized,
)
from app.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from app.schemas.error import ErrorResponse

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"

_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?P<columns>.+)")
_POSTGRES_UNIQUE_KEY = re.compile(r"Key \((?P<columns>[^)]+)\)=")

_DATA_ACCESS_NOT_FOUND = (NoResultFound, StaleDataError, ObjectDeletedError)


def _is_http_status(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 100 <= value <= 599


# ============================================================================
# TOKEN ERRORS
# ============================================================================


def _classify_token_error(exc: jwt.PyJWTError) -> AuthenticationFailure:
    # ExpiredSignatureError and ImmatureSignatureError are both InvalidTokenError
    if isinstance(exc, jwt.ExpiredSignatureError):
        return AuthenticationFailure(TokenProblem.EXPIRED)
    if isinstance(exc, jwt.ImmatureSignatureError):
        return AuthenticationFailure(TokenProblem.OTHER)
    if isinstance(exc, jwt.InvalidTokenError):
        return AuthenticationFailure(TokenProblem.INVALID)
    return AuthenticationFailure(TokenProblem.OTHER)


# ============================================================================
# DATA-ACCESS ERRORS
# ============================================================================


def _driver_text(exc: Exception) -> str:
    """Diagnostic text of the DB-API error, without SQLAlchemy's SQL echo."""
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc)


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    text = _driver_text(exc)
    return (
        sqlstate == UNIQUE_VIOLATION_SQLSTATE
        or "UNIQUE constraint failed" in text
        or "duplicate key value" in text
    )


def _conflicting_fields(exc: IntegrityError) -> tuple[str, ...] | None:
    """
    Extract the offending columns from the driver message.

    SQLite reports ``UNIQUE constraint failed: leads.email``; PostgreSQL reports
    ``Key (email)=(a@b.c) already exists.`` on its DETAIL line.
    """
    text = _driver_text(exc)
    found = _SQLITE_UNIQUE.search(text)
    if found:
        columns = [c.strip().rsplit(".", 1)[-1] for c in found["columns"].split(",")]
    else:
        found = _POSTGRES_UNIQUE_KEY.search(text)
        if not found:
            return None
        columns = [c.strip() for c in found["columns"].split(",")]
    return tuple(c for c in columns if c) or None


def _last_line(text: str) -> str:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return lines[-1] if lines else ""


# ============================================================================
# CLASSIFICATION
# ============================================================================


def _validation_message(exc: RequestValidationError) -> str:
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        details.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "Invalid input data. " + "; ".join(details)


def _generic(exc: BaseException, response_status: int | None) -> UnknownFailure:
    status_code = getattr(exc, "status_code", None)
    if not _is_http_status(status_code):
        if _is_http_status(response_status) and response_status != 200:
            status_code = response_status
        else:
            status_code = 500
    message = getattr(exc, "message", None)
    if not isinstance(message, str) or not message:
        message = str(exc) or type(exc).__name__
    return UnknownFailure(
        status_code=status_code,
        message=message,
        is_operational=getattr(exc, "is_operational", False) is True,
    )


def classify(exc: BaseException, response_status: int | None = None) -> Failure:
    """Classify a raw failure into exactly one failure variant."""
    if isinstance(exc, jwt.PyJWTError):
        return _classify_token_error(exc)
    if isinstance(exc, AuthenticationError):
        return AuthenticationFailure(TokenProblem.OTHER, exc.message, exc.status_code)
    if isinstance(exc, ConflictError):
        return ConflictFailure(exc.fields, exc.status_code)
    if isinstance(exc, NotFoundError):
        return NotFoundFailure(exc.message, exc.status_code)
    if isinstance(exc, ValidationError):
        return ValidationFailure(exc.message, exc.status_code)
    if isinstance(exc, RequestValidationError):
        return ValidationFailure(_validation_message(exc))
    if isinstance(exc, _DATA_ACCESS_NOT_FOUND):
        return NotFoundFailure()
    if isinstance(exc, IntegrityError) and _is_unique_violation(exc):
        return ConflictFailure(_conflicting_fields(exc))
    if isinstance(exc, (IntegrityError, DataError)):
        return ValidationFailure(f"Invalid data provided. Details: {_last_line(_driver_text(exc))}")
    if isinstance(exc, StarletteHTTPException):
        # Raised on purpose by the framework or a route: unknown path, missing credentials.
        # Only client errors are safe to repeat; a deliberate 5xx detail stays hidden.
        return UnknownFailure(
            exc.status_code, str(exc.detail), is_operational=400 <= exc.status_code < 500
        )
    return _generic(exc, response_status)


def normalize(exc: BaseException, response_status: int | None = None) -> NormalizedError:
    """
    Map any raw failure to a ``NormalizedError``.

    Args:
        exc: The exception raised while handling the request
        response_status: Status code a collaborator settled on before failing, if any

    Returns:
        The normalized error. Classification problems degrade to a
        non-operational 500 instead of raising.
    """
    try:
        return to_normalized(classify(exc, response_status))
    except Exception:
        logger.exception("Could not classify %s, falling back to 500", type(exc).__name__)
        return to_normalized(UnknownFailure())


# ============================================================================
# DISCLOSURE
# ============================================================================


def _json_safe(value: Any) -> bool:
    if value is None or isinstance(value, (str, int, float, bool)):
        return True
    if isinstance(value, (list, tuple)):
        return all(item is None or isinstance(item, (str, int, float, bool)) for item in value)
    return False


def describe_failure(exc: BaseException) -> dict[str, Any]:
    """JSON-safe description of a raw failure for development responses."""
    description: dict[str, Any] = {"name": type(exc).__name__, "message": str(exc)}
    for key, value in getattr(exc, "__dict__", {}).items():
        if key.startswith("_") or key in description or not _json_safe(value):
            continue
        description[key] = list(value) if isinstance(value, tuple) else value
    return description


def format_stack(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def render_error(
    exc: BaseException, normalized: NormalizedError, environment: Environment
) -> tuple[int, ErrorResponse]:
    """
    Apply the disclosure policy.

    - development: status, message, the raw failure and its traceback
    - production, operational: status and message only
    - production, anything else: a fixed 500 that never repeats the cause
    """
    try:
        if environment == Environment.DEVELOPMENT:
            return normalized.status_code, ErrorResponse(
                status=normalized.status,
                message=normalized.message,
                error=describe_failure(exc),
                stack=format_stack(exc),
            )
    except Exception:
        logger.exception("Could not describe %s for a development response", type(exc).__name__)

    if normalized.is_operational:
        return normalized.status_code, ErrorResponse(
            status=normalized.status, message=normalized.message
        )
    return 500, ErrorResponse(status="error", message=GENERIC_MESSAGE)
