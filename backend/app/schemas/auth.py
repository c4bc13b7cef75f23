"""
ContactBook Backend — Auth Schemas
====================================

What:  Request bodies for the /auth endpoints and the user/token payloads
       they return.
Why:   One explicit validator per endpoint. A failed field check surfaces as
       RequestValidationError, which main.py maps to the shared 400 shape.

Field rules:
    name:      trimmed, 3–30 characters
    email:     valid address, stored lower-cased
    password:  at least 6 characters, at most 72 UTF-8 bytes (bcrypt's input
               limit); not trimmed, spaces are legal
"""

import uuid
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, EmailStr, Field, field_validator

from app.schemas.common import APIModel, UTCDateTime


BCRYPT_MAX_BYTES = 72


def _normalize_email(value: str) -> str:
    return value.strip().lower()


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")
    return value


Password = Annotated[str, AfterValidator(_check_password_bytes)]


class RegisterRequest(BaseModel):
    name: str = Field(min_length=3, max_length=30)
    email: EmailStr
    password: Password = Field(min_length=6)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="after")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: Password = Field(min_length=1)

    @field_validator("email", mode="after")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class ResetEmailRequest(BaseModel):
    email: EmailStr

    @field_validator("email", mode="after")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: Password = Field(min_length=6)


class UserResponse(APIModel):
    """A user as the API shows it. There is deliberately no password field."""

    id: uuid.UUID
    name: str
    email: str
    created_at: Optional[UTCDateTime] = None


class RegisterData(APIModel):
    user: UserResponse
    access_token: str


class LoginData(APIModel):
    access_token: str
    user: UserResponse


class RefreshData(APIModel):
    access_token: str
