import sqlite3
from datetime import timedelta

import jwt
import pytest
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import DataError, IntegrityError, NoResultFound, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import Environment, settings
from app.core.security import create_access_token, decode_access_token
from app.domain.failures import (
    AuthenticationFailure,
    ConflictFailure,
    NotFoundFailure,
    TokenProblem,
    UnknownFailure,
    ValidationFailure,
)
from app.errors import AppError, AuthenticationError, ConflictError, NotFoundError, ValidationError
from app.services.error_normalizer import classify, normalize, render_error

GENERIC = "Something went very wrong! Please try again later."


def _raised(exc: BaseException) -> BaseException:
    """Raise and catch ``exc`` so it carries a traceback."""
    try:
        raise exc
    except BaseException as caught:
        return caught


class PgUniqueViolation(Exception):
    sqlstate = "23505"


class TeapotError(Exception):
    status_code = 418


class BrokenMetadataError(Exception):
    @property
    def status_code(self):
        raise RuntimeError("metadata lookup exploded")


# ============================================================================
# GENERIC PASS
# ============================================================================


def test_explicit_status_code_is_trusted():
    normalized = normalize(TeapotError("short and stout"))
    assert normalized.status_code == 418
    assert normalized.status == "fail"
    assert normalized.message == "short and stout"
    assert normalized.is_operational is False


def test_app_error_keeps_its_status_and_is_operational():
    normalized = normalize(AppError("Not enough permissions", 403))
    assert (normalized.status_code, normalized.status) == (403, "fail")
    assert normalized.message == "Not enough permissions"
    assert normalized.is_operational is True


def test_response_status_used_when_failure_has_none():
    normalized = normalize(RuntimeError("late failure"), response_status=401)
    assert normalized.status_code == 401
    assert normalized.status == "fail"
    assert normalized.is_operational is False


def test_default_response_status_is_ignored():
    normalized = normalize(RuntimeError("boom"), response_status=200)
    assert normalized.status_code == 500
    assert normalized.status == "error"


def test_unclassified_failure_defaults_to_500():
    failure = classify(KeyError("lead_id"))
    assert isinstance(failure, UnknownFailure)
    assert failure.status_code == 500
    assert failure.is_operational is False


def test_is_operational_must_be_exactly_true():
    exc = RuntimeError("flagged")
    exc.is_operational = "yes"
    assert normalize(exc).is_operational is False


def test_malformed_metadata_falls_back_to_generic_500():
    normalized = normalize(BrokenMetadataError("bad"))
    assert normalized.status_code == 500
    assert normalized.message == GENERIC
    assert normalized.is_operational is False


# ============================================================================
# TOKEN ERRORS
# ============================================================================


def test_expired_token():
    token = create_access_token({"sub": "1"}, expires_delta=timedelta(minutes=-1))
    with pytest.raises(jwt.ExpiredSignatureError) as exc_info:
        decode_access_token(token)

    normalized = normalize(exc_info.value)
    assert (normalized.status_code, normalized.message, normalized.is_operational) == (
        401,
        "Your token has expired! Please log in again.",
        True,
    )


def test_token_signed_with_another_key_is_invalid():
    token = jwt.encode({"sub": "1"}, "another-secret-key-of-sufficient-length", algorithm="HS256")
    with pytest.raises(jwt.InvalidSignatureError) as exc_info:
        jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])

    normalized = normalize(exc_info.value)
    assert normalized.status_code == 401
    assert normalized.message == "Invalid token. Please log in again."
    assert normalized.is_operational is True


def test_malformed_token_is_invalid():
    with pytest.raises(jwt.DecodeError) as exc_info:
        decode_access_token("not-a-token")
    assert classify(exc_info.value) == AuthenticationFailure(TokenProblem.INVALID)


@pytest.mark.parametrize(
    "exc",
    [jwt.ImmatureSignatureError("The token is not yet valid (nbf)"), jwt.PyJWTError("jwks down")],
)
def test_other_token_failures_are_generic_authentication_failures(exc):
    normalized = normalize(exc)
    assert normalized.status_code == 401
    assert normalized.message == "Authentication failed."
    assert normalized.is_operational is True


def test_authentication_error_keeps_its_message():
    normalized = normalize(AuthenticationError("Token type not accepted"))
    assert normalized.status_code == 401
    assert normalized.message == "Token type not accepted"


# ============================================================================
# DATA-ACCESS ERRORS
# ============================================================================


def test_sqlite_unique_violation_names_the_field():
    exc = IntegrityError(
        "INSERT INTO leads ...", {}, sqlite3.IntegrityError("UNIQUE constraint failed: leads.email")
    )
    assert classify(exc) == ConflictFailure(("email",))

    normalized = normalize(exc)
    assert normalized.status_code == 400
    assert normalized.message == "Duplicate field value: email. Please use another value."
    assert normalized.is_operational is True


def test_sqlite_composite_unique_violation_joins_fields():
    exc = IntegrityError(
        "INSERT", {}, sqlite3.IntegrityError("UNIQUE constraint failed: leads.name, leads.company")
    )
    assert normalize(exc).message == "Duplicate field value: name, company. Please use another value."


def test_postgres_unique_violation_reads_key_detail():
    orig = PgUniqueViolation(
        'duplicate key value violates unique constraint "leads_email_key"\n'
        "DETAIL:  Key (email)=(ada@example.com) already exists."
    )
    exc = IntegrityError("INSERT", {}, orig)
    assert normalize(exc).message == "Duplicate field value: email. Please use another value."


def test_unique_violation_without_field_list_uses_fallback():
    exc = IntegrityError("INSERT", {}, PgUniqueViolation("unique violation"))
    assert normalize(exc).message == (
        "Duplicate field value: one or more fields. Please use another value."
    )


def test_conflict_error_uses_duplicate_message():
    assert normalize(ConflictError("taken", fields=["email"])).message == (
        "Duplicate field value: email. Please use another value."
    )
    assert "one or more fields" in normalize(ConflictError("taken")).message


def test_data_access_not_found():
    normalized = normalize(NoResultFound("No row was found when one was required"))
    assert (normalized.status_code, normalized.message, normalized.is_operational) == (
        404,
        "Resource not found.",
        True,
    )


def test_not_found_error_keeps_its_message():
    assert classify(NotFoundError("Lead not found")) == NotFoundFailure("Lead not found")


def test_other_integrity_error_reports_last_diagnostic_line():
    exc = IntegrityError(
        "INSERT", {}, sqlite3.IntegrityError("NOT NULL constraint failed: leads.name")
    )
    normalized = normalize(exc)
    assert normalized.status_code == 400
    assert normalized.message == (
        "Invalid data provided. Details: NOT NULL constraint failed: leads.name"
    )
    assert normalized.is_operational is True


def test_data_error_hides_all_but_last_line():
    orig = Exception(
        "value too long for type character varying(32)\n"
        "internal: relation leads, column status\n"
        "value exceeds column width"
    )
    normalized = normalize(DataError("UPDATE leads SET status=?", {}, orig))
    assert normalized.message == "Invalid data provided. Details: value exceeds column width"
    assert "relation leads" not in normalized.message


def test_operational_database_outage_is_not_operational():
    exc = OperationalError("SELECT 1", {}, sqlite3.OperationalError("database is locked"))
    normalized = normalize(exc)
    assert normalized.status_code == 500
    assert normalized.is_operational is False


# ============================================================================
# VALIDATION AND HTTP ERRORS
# ============================================================================


def test_validation_error():
    assert classify(ValidationError("Invalid lead status")) == ValidationFailure("Invalid lead status")
    assert normalize(ValidationError("Invalid lead status")).status_code == 400


def test_request_validation_error_lists_locations():
    exc = RequestValidationError(
        [{"loc": ("body", "email"), "msg": "Field required", "type": "missing"}]
    )
    normalized = normalize(exc)
    assert normalized.status_code == 400
    assert normalized.message == "Invalid input data. body.email: Field required"
    assert normalized.is_operational is True


def test_framework_http_exception_is_operational():
    normalized = normalize(StarletteHTTPException(status_code=404, detail="Not Found"))
    assert (normalized.status_code, normalized.message, normalized.is_operational) == (
        404,
        "Not Found",
        True,
    )


# ============================================================================
# DISCLOSURE POLICY
# ============================================================================


def test_production_hides_non_operational_failures():
    exc = _raised(RuntimeError("password=hunter2 in connection string"))
    status_code, body = render_error(exc, normalize(exc), Environment.PRODUCTION)
    assert status_code == 500
    assert body.model_dump(exclude_none=True) == {"status": "error", "message": GENERIC}


def test_production_hides_non_operational_failures_with_explicit_status():
    exc = _raised(TeapotError("internal detail"))
    status_code, body = render_error(exc, normalize(exc), Environment.PRODUCTION)
    assert status_code == 500
    assert body.message == GENERIC


def test_production_shows_operational_message_only():
    exc = _raised(NotFoundError("Lead not found"))
    status_code, body = render_error(exc, normalize(exc), Environment.PRODUCTION)
    assert status_code == 404
    assert body.model_dump(exclude_none=True) == {"status": "fail", "message": "Lead not found"}


def test_development_includes_original_error_and_stack():
    exc = _raised(RuntimeError("password=hunter2 in connection string"))
    status_code, body = render_error(exc, normalize(exc), Environment.DEVELOPMENT)
    assert status_code == 500
    assert body.status == "error"
    assert body.message == "password=hunter2 in connection string"
    assert body.error["name"] == "RuntimeError"
    assert body.error["message"] == "password=hunter2 in connection string"
    assert "_raised" in body.stack
    assert "RuntimeError: password=hunter2" in body.stack


def test_development_describes_error_attributes():
    exc = _raised(ConflictError("taken", fields=["email"]))
    status_code, body = render_error(exc, normalize(exc), Environment.DEVELOPMENT)
    assert status_code == 400
    assert body.error["fields"] == ["email"]
    assert body.error["is_operational"] is True


# ============================================================================
# EXPLICIT STATUS ON APPLICATION ERRORS
# ============================================================================


@pytest.mark.parametrize(
    "exc, expected_status",
    [
        (ValidationError("Unprocessable lead import", 422), 422),
        (NotFoundError("Lead was archived", 410), 410),
        (AuthenticationError("Account locked", 403), 403),
        (ConflictError("Lead changed meanwhile", fields=["email"], status_code=409), 409),
    ],
)
def test_app_error_subclasses_keep_explicit_status(exc, expected_status):
    normalized = normalize(exc)
    assert normalized.status_code == expected_status
    assert normalized.status == "fail"
    assert normalized.is_operational is True


def test_app_error_subclasses_default_status():
    assert normalize(ValidationError("bad")).status_code == 400
    assert normalize(NotFoundError("gone")).status_code == 404
    assert normalize(AuthenticationError("who")).status_code == 401
    assert normalize(ConflictError("taken")).status_code == 400


# ============================================================================
# SERVER-SIDE DEFECTS THAT LOOK LIKE CLIENT ERRORS
# ============================================================================


def test_pydantic_error_raised_by_server_code_is_a_defect():
    from app.schemas.lead import Lead

    with pytest.raises(PydanticValidationError) as exc_info:
        Lead.model_validate({"id": "not-a-number"})

    normalized = normalize(exc_info.value)
    assert normalized.status_code == 500
    assert normalized.is_operational is False

    status_code, body = render_error(exc_info.value, normalized, Environment.PRODUCTION)
    assert status_code == 500
    assert body.message == GENERIC


def test_http_exception_with_server_status_is_not_operational():
    exc = _raised(StarletteHTTPException(status_code=503, detail="replica db-2 lagging 40s"))
    normalized = normalize(exc)
    assert normalized.status_code == 503
    assert normalized.is_operational is False

    status_code, body = render_error(exc, normalized, Environment.PRODUCTION)
    assert status_code == 500
    assert body.message == GENERIC
