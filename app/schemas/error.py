"""Standardized error response schema."""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    status: str = Field(..., description='"fail" for 4xx, "error" otherwise')
    message: str = Field(..., description="Human-readable, client-safe error message")
    error: dict[str, Any] | None = Field(
        default=None, description="Raw failure description (development only)"
    )
    stack: str | None = Field(default=None, description="Traceback text (development only)")
