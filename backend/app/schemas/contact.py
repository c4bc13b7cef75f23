"""
ContactBook Backend — Contact Schemas
=======================================

What:  Validation for contact create/update and the contact response shape.
How:   Routes receive multipart form fields (so a photo can ride along) and
       build these models themselves; pydantic errors are converted into the
       shared ValidationError by `validate_contact_payload`.
"""

import uuid
from typing import Any, Dict, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from app.exceptions import ValidationError
from app.schemas.common import APIModel, UTCDateTime

ContactType = Literal["work", "home", "personal"]

M = TypeVar("M", bound=BaseModel)


def _strip(v):
    return v.strip() if isinstance(v, str) else v


class ContactCreate(BaseModel):
    name: str = Field(min_length=3, max_length=20)
    phone_number: str = Field(min_length=3, max_length=20)
    email: Optional[EmailStr] = None
    is_favourite: bool = False
    contact_type: ContactType = "personal"

    strip_fields = field_validator("name", "phone_number", mode="before")(_strip)


class ContactUpdate(BaseModel):
    """PATCH body: every field optional, only supplied ones are applied."""

    name: Optional[str] = Field(default=None, min_length=3, max_length=20)
    phone_number: Optional[str] = Field(default=None, min_length=3, max_length=20)
    email: Optional[EmailStr] = None
    is_favourite: Optional[bool] = None
    contact_type: Optional[ContactType] = None

    strip_fields = field_validator("name", "phone_number", mode="before")(_strip)


class ContactResponse(APIModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    phone_number: str
    email: Optional[str] = None
    is_favourite: bool
    contact_type: str
    photo: Optional[str] = None
    created_at: UTCDateTime
    updated_at: UTCDateTime


def validate_contact_payload(model: Type[M], values: Dict[str, Any]) -> M:
    """
    Build `model` from already-parsed form values.

    Raises:
        ValidationError: with one {field, message} entry per failed field
    """
    try:
        return model.model_validate(values)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise ValidationError(message="Validation failed", context={"errors": errors}) from None
