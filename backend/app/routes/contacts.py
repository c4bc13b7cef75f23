"""
ContactBook Backend — Contacts Route Handlers
===============================================

What:  CRUD endpoints for the authenticated user's contacts.
How:   Every handler depends on get_current_auth, so an anonymous request
       never reaches ContactService. Create and update take multipart form
       fields plus an optional `photo` file; the form values are validated
       with the contact schemas after parsing.

    GET    /contacts          list (newest first)
    GET    /contacts/{id}     one contact
    POST   /contacts          create (201)
    PATCH  /contacts/{id}     partial update
    DELETE /contacts/{id}     delete (204)
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db_session
from app.deps import get_app_settings, get_contact_service, get_current_auth
from app.schemas.common import Envelope, ErrorResponse
from app.schemas.contact import (
    ContactCreate,
    ContactResponse,
    ContactUpdate,
    validate_contact_payload,
)
from app.services.auth_service import AuthContext
from app.services.contact_service import ContactService, Photo, parse_contact_id

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/contacts",
    tags=["Contacts"],
    responses={401: {"description": "Not authenticated", "model": ErrorResponse}},
)


async def _read_photo(photo: Optional[UploadFile], settings: Settings) -> Optional[Photo]:
    """
    Pull the upload into memory, at most one byte past the size limit.

    Browsers send an empty part with no filename when no file was picked;
    that counts as "no photo".
    """
    if photo is None or not photo.filename:
        return None
    try:
        content = await photo.read(settings.max_upload_size + 1)
    finally:
        await photo.close()
    logger.info("Received photo upload: filename=%s, size=%d bytes", photo.filename, len(content))
    return photo.filename, content


def _form_values(**fields: Optional[str]) -> Dict[str, Any]:
    """Keep only the form fields the client actually sent."""
    return {k: v for k, v in fields.items() if v is not None}


@router.get("", response_model=Envelope[List[ContactResponse]], summary="List my contacts")
async def list_contacts(
    ctx: AuthContext = Depends(get_current_auth),
    db: AsyncSession = Depends(get_db_session),
    contacts: ContactService = Depends(get_contact_service),
) -> Envelope[List[ContactResponse]]:
    items = await contacts.list_contacts(db, ctx.user_id)
    return Envelope[List[ContactResponse]](
        status=status.HTTP_200_OK,
        message="Successfully found contacts!",
        data=[ContactResponse.model_validate(c) for c in items],
    )


@router.get(
    "/{contact_id}",
    response_model=Envelope[ContactResponse],
    responses={
        400: {"description": "Malformed id", "model": ErrorResponse},
        404: {"description": "Contact not found", "model": ErrorResponse},
    },
    summary="Get one contact",
)
async def get_contact(
    contact_id: str,
    ctx: AuthContext = Depends(get_current_auth),
    db: AsyncSession = Depends(get_db_session),
    contacts: ContactService = Depends(get_contact_service),
) -> Envelope[ContactResponse]:
    contact = await contacts.get_contact(db, ctx.user_id, parse_contact_id(contact_id))
    return Envelope[ContactResponse](
        status=status.HTTP_200_OK,
        message=f"Successfully found contact with id {contact_id}!",
        data=ContactResponse.model_validate(contact),
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=Envelope[ContactResponse],
    responses={
        400: {"description": "Invalid fields or photo", "model": ErrorResponse},
        502: {"description": "Media host failed", "model": ErrorResponse},
    },
    summary="Create a contact",
)
async def create_contact(
    name: Optional[str] = Form(None),
    phone_number: Optional[str] = Form(None, alias="phoneNumber"),
    email: Optional[str] = Form(None),
    is_favourite: Optional[str] = Form(None, alias="isFavourite"),
    contact_type: Optional[str] = Form(None, alias="contactType"),
    photo: Optional[UploadFile] = File(None, description="PNG, JPEG, GIF or WebP, max 10MB"),
    ctx: AuthContext = Depends(get_current_auth),
    db: AsyncSession = Depends(get_db_session),
    contacts: ContactService = Depends(get_contact_service),
    settings: Settings = Depends(get_app_settings),
) -> Envelope[ContactResponse]:
    data = validate_contact_payload(
        ContactCreate,
        _form_values(
            name=name,
            phone_number=phone_number,
            email=email or None,
            is_favourite=is_favourite,
            contact_type=contact_type,
        ),
    )
    contact = await contacts.create_contact(
        db, ctx.user_id, data, photo=await _read_photo(photo, settings)
    )
    return Envelope[ContactResponse](
        status=status.HTTP_201_CREATED,
        message="Successfully created a contact!",
        data=ContactResponse.model_validate(contact),
    )


@router.patch(
    "/{contact_id}",
    response_model=Envelope[ContactResponse],
    responses={
        400: {"description": "Invalid fields, photo or id", "model": ErrorResponse},
        404: {"description": "Contact not found", "model": ErrorResponse},
        502: {"description": "Media host failed", "model": ErrorResponse},
    },
    summary="Update some fields of a contact",
)
async def update_contact(
    contact_id: str,
    request: Request,
    name: Optional[str] = Form(None),
    phone_number: Optional[str] = Form(None, alias="phoneNumber"),
    email: Optional[str] = Form(None),
    is_favourite: Optional[str] = Form(None, alias="isFavourite"),
    contact_type: Optional[str] = Form(None, alias="contactType"),
    photo: Optional[UploadFile] = File(None, description="PNG, JPEG, GIF or WebP, max 10MB"),
    ctx: AuthContext = Depends(get_current_auth),
    db: AsyncSession = Depends(get_db_session),
    contacts: ContactService = Depends(get_contact_service),
    settings: Settings = Depends(get_app_settings),
) -> Envelope[ContactResponse]:
    cid = parse_contact_id(contact_id)
    values = _form_values(
        name=name,
        phone_number=phone_number,
        email=email,
        is_favourite=is_favourite,
        contact_type=contact_type,
    )
    # Form parsing turns an empty field into None; an explicitly empty email
    # clears the stored address
    if email is None and (await request.form()).get("email") == "":
        values["email"] = None
    changes = validate_contact_payload(ContactUpdate, values)
    contact = await contacts.update_contact(
        db, ctx.user_id, cid, changes, photo=await _read_photo(photo, settings)
    )
    return Envelope[ContactResponse](
        status=status.HTTP_200_OK,
        message="Successfully patched a contact!",
        data=ContactResponse.model_validate(contact),
    )


@router.delete(
    "/{contact_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={
        400: {"description": "Malformed id", "model": ErrorResponse},
        404: {"description": "Contact not found", "model": ErrorResponse},
    },
    summary="Delete a contact",
)
async def delete_contact(
    contact_id: str,
    ctx: AuthContext = Depends(get_current_auth),
    db: AsyncSession = Depends(get_db_session),
    contacts: ContactService = Depends(get_contact_service),
) -> Response:
    await contacts.delete_contact(db, ctx.user_id, parse_contact_id(contact_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
