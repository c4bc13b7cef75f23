"""
ContactBook Backend — Contact SQLAlchemy Model
================================================

What:  ORM model for the `contacts` table.
Who:   Used by ContactService; every query filters on user_id.

Index on (user_id, created_at): serves the only list query, "my contacts,
newest first".
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models import utcnow

CONTACT_TYPES = ("work", "home", "personal")


class Contact(Base):
    """A phone-book entry owned by exactly one user."""

    __tablename__ = "contacts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    name: Mapped[str] = mapped_column(String(20), nullable=False)

    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    is_favourite: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    # One of CONTACT_TYPES; enforced by the request schemas
    contact_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="personal", server_default=text("'personal'")
    )

    # Durable URL returned by the media storage backend
    photo: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_contacts_user_created", "user_id", "created_at"),
        CheckConstraint(
            "contact_type IN ('work', 'home', 'personal')", name="ck_contacts_contact_type"
        ),
    )

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, user_id={self.user_id}, name='{self.name}')>"
