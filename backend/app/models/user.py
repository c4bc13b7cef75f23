"""
ContactBook Backend — User SQLAlchemy Model
=============================================

What:  ORM model for the `users` table (the credential store).
Why:   Owns identity: name, normalized email, bcrypt password hash.
Who:   Written by AuthService on registration and password reset.

Table Design Rationale:
    - UUID primary key: Non-sequential, safe to embed in JWT `sub` claims
    - email: Stored lower-cased and trimmed; unique index enforces one
      account per address even if two registrations race past the pre-check
    - password_hash: bcrypt output (salt embedded). Never serialized;
      response schemas simply have no field for it
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models import utcnow


class User(Base):
    """
    A registered account.

    Lifecycle:
        1. Created on registration (password hashed before insert)
        2. password_hash replaced on password reset
        3. Never deleted implicitly
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        # No password_hash here: reprs end up in logs
        return f"<User(id={self.id}, email='{self.email}')>"
