"""Application exceptions for expected (operational) failures.

Everything raised from here is safe to describe verbatim to API clients.
Anything else that reaches the exception handlers is treated as a defect
unless a specific classification pass recognises it.
"""


def status_for(status_code: int) -> str:
    """Return "fail" for client errors (4xx) and "error" for everything else."""
    return "fail" if 400 <= status_code < 500 else "error"


class AppError(Exception):
    """Base exception for known, expected failures with an HTTP status."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.status = status_for(self.status_code)
        self.is_operational = True


class ValidationError(AppError):
    """Raised when input or business rules are violated."""

    status_code = 400


class AuthenticationError(AppError):
    """Raised when the caller's credentials are missing, invalid or expired."""

    status_code = 401


class ConflictError(AppError):
    """Raised when a write would violate a uniqueness constraint."""

    status_code = 400

    def __init__(
        self,
        message: str,
        fields: list[str] | tuple[str, ...] | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, status_code)
        self.fields = tuple(fields) if fields else None


class NotFoundError(AppError):
    """Raised when a requested resource does not exist."""

    status_code = 404
