"""
ContactBook Backend — FastAPI Dependencies
============================================

What:  Accessors for the app-scoped objects built in create_app(), plus the
       authenticator used by every protected route.
How:   Everything lives on `request.app.state`, so each app instance (one per
       test, one in production) carries its own settings, engine and services.

Authenticator flow (get_current_auth):
    Authorization: Bearer <access>  ──missing──▶ 401 "Not authorized"
              │
              ▼
    TokenService.decode_access       ──bad/expired──▶ 401
              │
              ▼
    session row {user, token, not expired, [sessionId cookie]}
                                     ──none──▶ 401
              │
              ▼
    AuthContext(user_id, session_id) → route handler
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db_session
from app.exceptions import AuthenticationError
from app.services.auth_service import AuthContext, AuthService
from app.services.contact_service import ContactService
from app.services.media_service import MediaStorage

REFRESH_COOKIE = "refreshToken"
SESSION_COOKIE = "sessionId"


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_contact_service(request: Request) -> ContactService:
    return request.app.state.contact_service


def get_media_storage(request: Request) -> MediaStorage:
    return request.app.state.media_storage


def extract_bearer(request: Request) -> Optional[str]:
    """Token from `Authorization: Bearer <token>`; None if absent or malformed."""
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_auth(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
) -> AuthContext:
    """Resolve the caller of a protected route or fail with 401."""
    token = extract_bearer(request)
    if token is None:
        raise AuthenticationError(reason="missing bearer token")
    return await auth.authenticate(db, token, request.cookies.get(SESSION_COOKIE))
