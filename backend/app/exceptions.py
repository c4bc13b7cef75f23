"""
ContactBook Backend — Custom Exception Hierarchy
==================================================

What:  Application-specific exceptions for every failure the API can report.
Why:   Services raise at the point of detection; one set of global handlers
       (registered in main.py) maps each type to a status code and a single
       JSON error shape. Routes never build error responses themselves.
How:   Each exception carries a client-safe message and an optional context
       dict. Context is logged server-side and only echoed to the client for
       validation errors.

Exception Hierarchy:
    ContactBookError (base)
    ├── ValidationError          → 400 Bad Request
    ├── AuthenticationError      → 401 Unauthorized
    │   ├── TokenExpiredError    → 401 (signature fine, exp elapsed)
    │   └── InvalidTokenError    → 401 (bad signature, malformed, wrong secret)
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── UpstreamError            → 502 Bad Gateway (mail / media host)
    ├── DatabaseError            → 500 Internal Server Error
    └── ConfigurationError       → fatal at startup
"""

from typing import Any, Dict, Optional


class ContactBookError(Exception):
    """
    Base exception for all ContactBook application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, not returned except for 400s)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ConfigurationError(ContactBookError):
    """
    Raised when the process is started without a required setting.

    Not an HTTP error: the lifespan lets it propagate so uvicorn aborts
    startup instead of serving requests that can never succeed.
    """

    def __init__(
        self,
        message: str = "Application is misconfigured",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ValidationError(ContactBookError):
    """
    Raised when client input fails validation.

    HTTP: 400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "New password must differ from the current one",
            "details": {"field": "password"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(ContactBookError):
    """
    Raised when the caller cannot be identified.

    When: bad credentials, missing/invalid/expired/rotated token, session
          missing from the session store.
    HTTP: 401 Unauthorized

    Messages stay deliberately vague ("Invalid email or password") so the
    response never tells an attacker which half of a credential was wrong.
    `reason` goes to the logs only.
    """

    def __init__(
        self,
        message: str = "Not authorized",
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if reason:
            ctx["reason"] = reason
        super().__init__(message=message, context=ctx)
        self.reason = reason


class TokenExpiredError(AuthenticationError):
    """The token's signature verifies but its `exp` claim has passed."""

    def __init__(self, message: str = "Token expired", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, reason="expired", context=context)


class InvalidTokenError(AuthenticationError):
    """The token is malformed, tampered with, or signed with another secret."""

    def __init__(self, message: str = "Invalid token", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, reason="invalid", context=context)


class NotFoundError(ContactBookError):
    """
    Raised when a requested resource does not exist.

    HTTP: 404 Not Found

    Also used for contacts owned by someone else: a foreign contact is
    indistinguishable from a missing one.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(ContactBookError):
    """
    Raised when a write would violate a uniqueness rule.

    When: registering an email that already exists.
    HTTP: 409 Conflict
    """

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UpstreamError(ContactBookError):
    """
    Raised when an external collaborator fails after retries.

    When: SMTP delivery or the media host rejects/times out.
    HTTP: 502 Bad Gateway

    The password-reset flow catches this for mail and degrades; contact
    creation lets it propagate since the contact cannot exist without its
    photo URL.
    """

    def __init__(
        self,
        service: str = "upstream",
        message: str = "An external service is temporarily unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["service"] = service
        super().__init__(message=message, context=ctx)
        self.service = service


class DatabaseError(ContactBookError):
    """
    Raised when database operations fail unexpectedly.

    HTTP: 500 Internal Server Error

    The message returned to the client is always generic; SQL details stay
    in the server log.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(ContactBookError):
    """
    Built when a client exceeds the per-IP limit on credential endpoints.

    HTTP: 429 Too Many Requests (with Retry-After header). The limiter runs
    as middleware, outside the exception handlers, so it renders the
    response from this object itself.
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = "Too many requests, please try again later"
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
