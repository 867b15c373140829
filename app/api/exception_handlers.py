"""Global exception handling: every failure ends here as a JSON error response."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from jwt import PyJWTError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import Environment, settings
from app.errors import AppError
from app.services.error_normalizer import normalize, render_error

logger = logging.getLogger(__name__)

HANDLED_EXCEPTIONS = (
    AppError,
    PyJWTError,
    SQLAlchemyError,
    StarletteHTTPException,
    RequestValidationError,
    PydanticValidationError,
)


def _environment(request: Request) -> Environment:
    return getattr(request.app.state, "environment", settings.environment)


def handle_failure(request: Request, exc: BaseException) -> JSONResponse:
    """Normalize, log and render a failure raised while handling ``request``."""
    # Set by collaborators that settled on a status before failing
    response_status = getattr(request.state, "response_status", None)
    normalized = normalize(exc, response_status)

    if normalized.is_operational:
        logger.warning(
            "%s %s failed with %d: %s",
            request.method,
            request.url.path,
            normalized.status_code,
            normalized.message,
        )
    else:
        logger.error(
            "ERROR UNHANDLED on %s %s: %r",
            request.method,
            request.url.path,
            exc,
            exc_info=(type(exc), exc, exc.__traceback__),
        )

    status_code, body = render_error(exc, normalized, _environment(request))
    # WWW-Authenticate on 401, Allow on 405
    headers = exc.headers if isinstance(exc, StarletteHTTPException) else None
    return JSONResponse(
        status_code=status_code, content=body.model_dump(exclude_none=True), headers=headers
    )


def normalized_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return handle_failure(request, exc)


async def normalize_unhandled_errors(request: Request, call_next):
    """Catch whatever no registered handler claimed, so nothing is re-raised to the server."""
    try:
        return await call_next(request)
    except Exception as exc:
        return handle_failure(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Register the normalizing handlers and the catch-all middleware on the app."""
    for exc_class in HANDLED_EXCEPTIONS:
        app.add_exception_handler(exc_class, normalized_error_handler)
    app.middleware("http")(normalize_unhandled_errors)
