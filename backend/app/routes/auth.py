"""
ContactBook Backend — Auth Route Handlers
===========================================

What:  /auth endpoints: register, login, refresh, logout, current user,
       password-reset email and password reset.
How:   Thin handlers. Bodies are validated by the schemas, AuthService does
       the work, and the handler only decides status codes, cookies and the
       response envelope.

Token transport:
    access token   → response body (`accessToken`), sent back as Bearer
    refresh token  → `refreshToken` cookie, httpOnly, never in the body
    session id     → `sessionId` cookie, httpOnly

Both cookies: SameSite=Strict, path=/, max-age = refresh lifetime, Secure
in production. Register, login and refresh all (re)set them; logout
clears them.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db_session
from app.deps import (
    REFRESH_COOKIE,
    SESSION_COOKIE,
    get_app_settings,
    get_auth_service,
    get_current_auth,
)
from app.schemas.auth import (
    LoginData,
    LoginRequest,
    RefreshData,
    RegisterData,
    RegisterRequest,
    ResetEmailRequest,
    ResetPasswordRequest,
    UserResponse,
)
from app.schemas.common import Envelope, ErrorResponse, MessageResponse
from app.services.auth_service import AuthContext, AuthService, SessionGrant

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _set_session_cookies(response: Response, grant: SessionGrant, settings: Settings) -> None:
    max_age = settings.refresh_token_days * 86400
    for name, value in (
        (REFRESH_COOKIE, grant.tokens.refresh_token),
        (SESSION_COOKIE, str(grant.session_id)),
    ):
        response.set_cookie(
            name,
            value,
            httponly=True,
            samesite="strict",
            secure=settings.cookie_secure,
            max_age=max_age,
            path="/",
        )


def _clear_session_cookies(response: Response, settings: Settings) -> None:
    for name in (REFRESH_COOKIE, SESSION_COOKIE):
        response.delete_cookie(
            name, path="/", httponly=True, samesite="strict", secure=settings.cookie_secure
        )


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=Envelope[RegisterData],
    responses={
        400: {"description": "Invalid name, email or password", "model": ErrorResponse},
        409: {"description": "Email already in use", "model": ErrorResponse},
        429: {"description": "Too many attempts from this IP", "model": ErrorResponse},
    },
    summary="Create an account and start a session",
)
async def register(
    body: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
) -> Envelope[RegisterData]:
    grant = await auth.register(db, body.name, body.email, body.password)
    _set_session_cookies(response, grant, settings)
    return Envelope[RegisterData](
        status=status.HTTP_201_CREATED,
        message="Successfully registered a user!",
        data=RegisterData(
            user=UserResponse.model_validate(grant.user),
            access_token=grant.tokens.access_token,
        ),
    )


@router.post(
    "/login",
    response_model=Envelope[LoginData],
    responses={
        401: {"description": "Invalid email or password", "model": ErrorResponse},
        429: {"description": "Too many attempts from this IP", "model": ErrorResponse},
    },
    summary="Log in with email and password",
)
async def login(
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
) -> Envelope[LoginData]:
    grant = await auth.login(db, body.email, body.password)
    _set_session_cookies(response, grant, settings)
    return Envelope[LoginData](
        status=status.HTTP_200_OK,
        message="Successfully logged in a user!",
        data=LoginData(
            access_token=grant.tokens.access_token,
            user=UserResponse.model_validate(grant.user),
        ),
    )


@router.post(
    "/refresh",
    response_model=Envelope[RefreshData],
    responses={401: {"description": "Refresh token missing, invalid or used", "model": ErrorResponse}},
    summary="Rotate the session and get a new access token",
)
async def refresh(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
) -> Envelope[RefreshData]:
    grant = await auth.refresh(db, request.cookies.get(REFRESH_COOKIE))
    _set_session_cookies(response, grant, settings)
    return Envelope[RefreshData](
        status=status.HTTP_200_OK,
        message="Successfully refreshed a session!",
        data=RefreshData(access_token=grant.tokens.access_token),
    )


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={404: {"description": "No session for this refresh token", "model": ErrorResponse}},
    summary="End the current session",
)
async def logout(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    await auth.logout(db, request.cookies.get(REFRESH_COOKIE))
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    _clear_session_cookies(response, settings)
    return response


@router.get(
    "/current",
    response_model=Envelope[UserResponse],
    responses={
        401: {"description": "Not authenticated", "model": ErrorResponse},
        404: {"description": "User no longer exists", "model": ErrorResponse},
    },
    summary="Get the authenticated user",
)
async def current_user(
    ctx: AuthContext = Depends(get_current_auth),
    db: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
) -> Envelope[UserResponse]:
    user = await auth.get_current_user(db, ctx.user_id)
    return Envelope[UserResponse](
        status=status.HTTP_200_OK,
        message="Current user",
        data=UserResponse.model_validate(user),
    )


@router.post(
    "/send-reset-email",
    response_model=MessageResponse,
    summary="Email a password-reset link",
    description=(
        "Always answers 200, whether or not the address is registered and "
        "whether or not the mail server accepted the message."
    ),
)
async def send_reset_email(
    body: ResetEmailRequest,
    db: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.request_password_reset(db, body.email)
    return MessageResponse(
        status=status.HTTP_200_OK,
        message="Reset password email has been successfully sent.",
    )


@router.post(
    "/reset-pwd",
    response_model=MessageResponse,
    responses={
        400: {"description": "New password equals the current one", "model": ErrorResponse},
        401: {"description": "Reset token invalid or expired", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Set a new password using a reset token",
)
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.reset_password(db, body.token, body.password)
    return MessageResponse(
        status=status.HTTP_200_OK,
        message="Password has been successfully reset.",
    )
