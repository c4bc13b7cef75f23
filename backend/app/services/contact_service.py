"""
ContactBook Backend — Contact Service
=======================================

What:  CRUD over a user's contacts.
Why:   Ownership is enforced in exactly one place: every query here filters
       on user_id, so a contact owned by someone else behaves like a missing
       one (404) and its existence never leaks.
How:   Stateless; each call receives the request's AsyncSession. A photo, if
       attached, is stored through MediaStorage BEFORE the row is written, so
       a media-host failure (UpstreamError → 502) leaves no contact behind.

Query plan (list):
    SELECT * FROM contacts WHERE user_id = :uid ORDER BY created_at DESC
    → idx_contacts_user_created
"""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import DatabaseError, NotFoundError, ValidationError
from app.models import utcnow
from app.models.contact import Contact
from app.schemas.contact import ContactCreate, ContactUpdate
from app.services.media_service import MediaStorage

# (filename, bytes) of an uploaded photo
Photo = Tuple[str, bytes]


def parse_contact_id(raw: str) -> uuid.UUID:
    """Path parameter → UUID, or a 400 for anything malformed."""
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise ValidationError(message="Invalid ID format", field="id", context={"id": raw}) from None


class ContactService:
    """Business logic for contact CRUD, always scoped to one owner."""

    def __init__(self, media: MediaStorage, logger: Optional[logging.Logger] = None):
        self.media = media
        self.logger = logger or logging.getLogger(__name__)

    async def _owned(self, db: AsyncSession, user_id: uuid.UUID, contact_id: uuid.UUID) -> Contact:
        result = await db.execute(
            select(Contact).where(Contact.id == contact_id, Contact.user_id == user_id)
        )
        contact = result.scalar_one_or_none()
        if contact is None:
            raise NotFoundError(resource="contact", message="Contact not found")
        return contact

    async def list_contacts(self, db: AsyncSession, user_id: uuid.UUID) -> List[Contact]:
        """All contacts of `user_id`, newest first."""
        result = await db.execute(
            select(Contact)
            .where(Contact.user_id == user_id)
            .order_by(Contact.created_at.desc(), Contact.id.desc())
        )
        return list(result.scalars().all())

    async def get_contact(self, db: AsyncSession, user_id: uuid.UUID, contact_id: uuid.UUID) -> Contact:
        return await self._owned(db, user_id, contact_id)

    async def create_contact(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        data: ContactCreate,
        photo: Optional[Photo] = None,
    ) -> Contact:
        """
        Insert a contact for `user_id`.

        Raises:
            ValidationError: photo rejected by MediaStorage.validate()
            UpstreamError: media backend failed; nothing is written
            DatabaseError: the insert failed after the photo was stored
        """
        photo_url = await self.media.store(*photo) if photo else None

        contact = Contact(
            user_id=user_id,
            name=data.name,
            phone_number=data.phone_number,
            email=data.email,
            is_favourite=data.is_favourite,
            contact_type=data.contact_type,
            photo=photo_url,
        )
        db.add(contact)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            self.logger.error(
                "Failed to insert contact for user %s (stored photo %s): %s", user_id, photo_url, e
            )
            raise DatabaseError(
                message="An error occurred while saving the contact. Please try again.",
                context={"error_type": type(e).__name__, "photo": photo_url},
            ) from e
        self.logger.info("Contact %s created for user %s", contact.id, user_id)
        return contact

    async def update_contact(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        contact_id: uuid.UUID,
        changes: ContactUpdate,
        photo: Optional[Photo] = None,
    ) -> Contact:
        """
        PATCH semantics: only fields the client actually sent are applied.

        Ownership is checked before the photo is uploaded, so a foreign id
        never costs a media-host round trip.
        """
        contact = await self._owned(db, user_id, contact_id)

        # email is the only nullable field a client may clear
        updates = {
            k: v
            for k, v in changes.model_dump(exclude_unset=True).items()
            if v is not None or k == "email"
        }
        if photo:
            updates["photo"] = await self.media.store(*photo)

        for field, value in updates.items():
            setattr(contact, field, value)
        if updates:
            contact.updated_at = utcnow()
            await db.flush()
        self.logger.info(
            "Contact %s updated for user %s: %s", contact.id, user_id, sorted(updates)
        )
        return contact

    async def delete_contact(self, db: AsyncSession, user_id: uuid.UUID, contact_id: uuid.UUID) -> None:
        result = await db.execute(
            delete(Contact).where(Contact.id == contact_id, Contact.user_id == user_id)
        )
        if not result.rowcount:
            raise NotFoundError(resource="contact", message="Contact not found")
        self.logger.info("Contact %s deleted for user %s", contact_id, user_id)
