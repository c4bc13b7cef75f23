"""
ContactBook Backend — Shared Schemas
======================================

What:  Base model, success envelope, and error/health response shapes.
Why:   Every success response has the same outer shape
       ({status, message, data}) and every error the same
       ({error, message, details, request_id}), whichever route produced it.
"""

from datetime import datetime
from typing import Annotated, Generic, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models import as_utc

T = TypeVar("T")

# SQLite hands back naive datetimes; always emit an explicit UTC offset
UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]


class APIModel(BaseModel):
    """
    Base for API-facing models.

    Python attributes stay snake_case; JSON uses camelCase
    (`access_token` ↔ `accessToken`). populate_by_name lets services build
    models with snake_case keyword arguments.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(BaseModel, Generic[T]):
    """
    Success response wrapper.

    Example:
        {"status": 200, "message": "Successfully logged in a user!",
         "data": {"accessToken": "...", "user": {...}}}
    """

    status: int = Field(description="HTTP status code, repeated in the body")
    message: str = Field(description="Human-readable outcome")
    data: T = Field(description="Operation payload")


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "authentication_error",
            "message": "Invalid email or password",
            "request_id": "a1b2c3d4"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /health for monitoring and load balancer probes."""

    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    media_backend: str = Field(description="Configured media storage backend")
    uptime_seconds: float = Field(description="Seconds since service started")


class MessageResponse(BaseModel):
    """Success response for operations that return no data (e.g. password reset)."""

    status: int
    message: str
