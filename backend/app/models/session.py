"""
ContactBook Backend — Session SQLAlchemy Model
================================================

What:  ORM model for the `sessions` table (the session store).
Why:   The session row, not the JWT's own `exp`, decides whether a token is
       still honored. Logout, refresh and password reset delete rows; a token
       whose row is gone is rejected even while its signature verifies.
How:   One row per active login, holding both tokens and their expiries.

Query Patterns:
    - Authenticate:  WHERE user_id = :uid AND access_token = :tok
                     AND access_token_valid_until > now()
    - Refresh/logout: WHERE refresh_token = :tok  (unique index)
    - Reset/re-login: DELETE WHERE user_id = :uid (index on user_id)

Expired rows are never reaped; lookups simply stop matching them and they
are removed the next time the user logs in or resets their password.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models import utcnow


class UserSession(Base):
    """A server-side record binding one access/refresh pair to a user."""

    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Weak reference: lookup and filtering only, no FK cascade
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    access_token: Mapped[str] = mapped_column(Text, nullable=False)

    refresh_token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    access_token_valid_until: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    refresh_token_valid_until: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_sessions_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<UserSession(id={self.id}, user_id={self.user_id})>"
