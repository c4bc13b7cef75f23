"""
ContactBook Backend — Auth Service (Session Lifecycle)
========================================================

What:  Register, login, refresh, logout, current user, password reset, and
       the per-request authentication check.
Why:   The session table is the single authority on whether a token is
       honored. JWT signatures only prove a token was minted here; a token
       whose session row is gone is dead even before its `exp`.
How:   Stateless service; each call receives the request's AsyncSession.
       Writes are flushed here and committed by get_db_session, so a failing
       call leaves nothing behind.

Session lifecycle:
    ┌───────────┐  register / login   ┌──────────────────┐
    │ Anonymous │ ──────────────────▶ │ Authenticated(s) │
    └───────────┘                     └──────────────────┘
          ▲        logout: delete s            │   refresh: delete s,
          │        reset:  delete all          │   insert s' (single-use)
          └────────────────────────────────────┘

Failure messages are intentionally coarse ("Invalid email or password");
the exact reason goes to the log via AuthenticationError.reason.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from app.models import as_utc, utcnow
from app.models.session import UserSession
from app.models.user import User
from app.services.mailer import Mailer
from app.services.password import hash_password_async, verify_password_async
from app.services.token_service import TokenPair, TokenService


@dataclass(frozen=True)
class AuthContext:
    """Identity of an authenticated request, handed to route handlers."""

    user_id: uuid.UUID
    session_id: uuid.UUID


@dataclass(frozen=True)
class SessionGrant:
    """Result of register/login/refresh: who, which session, which tokens."""

    user: Optional[User]
    session_id: uuid.UUID
    tokens: TokenPair


class AuthService:
    """
    Session lifecycle controller.

    Responsibilities:
        - register() / login(): verify credentials, open a session
        - refresh(): rotate a session (old refresh token becomes useless)
        - logout(): close one session
        - request_password_reset() / reset_password(): email-token reset that
          closes every session of the user
        - authenticate(): gate for protected routes
    """

    def __init__(
        self,
        settings: Settings,
        tokens: TokenService,
        mailer: Mailer,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings
        self.tokens = tokens
        self.mailer = mailer
        self.logger = logger or logging.getLogger(__name__)

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _find_user_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def _open_session(self, db: AsyncSession, user_id: uuid.UUID) -> SessionGrant:
        """Mint a token pair and persist the session row that backs it."""
        pair = self.tokens.issue_tokens(user_id)
        session = UserSession(
            user_id=user_id,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            access_token_valid_until=pair.access_expires_at,
            refresh_token_valid_until=pair.refresh_expires_at,
        )
        db.add(session)
        await db.flush()
        return SessionGrant(user=None, session_id=session.id, tokens=pair)

    async def _delete_user_sessions(self, db: AsyncSession, user_id: uuid.UUID) -> int:
        result = await db.execute(delete(UserSession).where(UserSession.user_id == user_id))
        return result.rowcount or 0

    # ── Register / Login ──────────────────────────────────────────────────

    async def register(self, db: AsyncSession, name: str, email: str, password: str) -> SessionGrant:
        """
        Create a user and open their first session.

        Raises:
            ConflictError: email already registered
        """
        if await self._find_user_by_email(db, email) is not None:
            raise ConflictError(message="Email already in use", context={"email": email})

        user = User(
            name=name,
            email=email,
            password_hash=await hash_password_async(password, self.settings.bcrypt_rounds),
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            raise ConflictError(message="Email already in use", context={"email": email}) from None

        grant = await self._open_session(db, user.id)
        self.logger.info("User registered: %s", user.id)
        return SessionGrant(user=user, session_id=grant.session_id, tokens=grant.tokens)

    async def login(self, db: AsyncSession, email: str, password: str) -> SessionGrant:
        """
        Verify credentials and open a new session.

        With single_session_per_user on, every earlier session of the user is
        closed first, so tokens issued to other devices stop working.

        Raises:
            AuthenticationError: "Invalid email or password" for unknown email
                and wrong password alike
        """
        user = await self._find_user_by_email(db, email)
        if user is None:
            raise AuthenticationError(message="Invalid email or password", reason="unknown email")
        if not await verify_password_async(password, user.password_hash):
            raise AuthenticationError(message="Invalid email or password", reason="wrong password")

        if self.settings.single_session_per_user:
            closed = await self._delete_user_sessions(db, user.id)
            if closed:
                self.logger.info("Closed %d previous session(s) for user %s", closed, user.id)

        grant = await self._open_session(db, user.id)
        self.logger.info("User logged in: %s (session %s)", user.id, grant.session_id)
        return SessionGrant(user=user, session_id=grant.session_id, tokens=grant.tokens)

    # ── Refresh / Logout ──────────────────────────────────────────────────

    async def refresh(self, db: AsyncSession, refresh_token: Optional[str]) -> SessionGrant:
        """
        Exchange a refresh token for a new pair, consuming the old session.

        Flow:
            1. Verify signature and exp with the refresh secret
            2. Find the session holding this exact refresh token
            3. Check the session's own refresh expiry
            4. DELETE it; exactly one row must go (otherwise a concurrent
               refresh consumed it first)
            5. Open a replacement session for the same user

        Raises:
            AuthenticationError: missing, invalid, expired, unknown or
                already-consumed refresh token
        """
        if not refresh_token:
            raise AuthenticationError(message="Refresh token is required", reason="missing cookie")

        user_id = self.tokens.decode_refresh(refresh_token)

        result = await db.execute(
            select(UserSession).where(UserSession.refresh_token == refresh_token)
        )
        session = result.scalar_one_or_none()
        if session is None or session.user_id != user_id:
            raise AuthenticationError(message="Invalid refresh token", reason="session not found")

        if as_utc(session.refresh_token_valid_until) <= utcnow():
            raise AuthenticationError(message="Refresh token expired", reason="session expired")

        deleted = await db.execute(delete(UserSession).where(UserSession.id == session.id))
        if deleted.rowcount != 1:
            raise AuthenticationError(
                message="Invalid refresh token",
                reason="concurrent refresh",
                context={"session_id": str(session.id)},
            )

        grant = await self._open_session(db, user_id)
        self.logger.info(
            "Session rotated for user %s: %s -> %s", user_id, session.id, grant.session_id
        )
        return grant

    async def logout(self, db: AsyncSession, refresh_token: Optional[str]) -> None:
        """
        Close the session that owns `refresh_token`.

        Raises:
            NotFoundError: no cookie, or no session holds this token
                (already logged out or rotated away)
        """
        if not refresh_token:
            raise NotFoundError(resource="session", message="Session not found")

        result = await db.execute(
            delete(UserSession).where(UserSession.refresh_token == refresh_token)
        )
        if not result.rowcount:
            raise NotFoundError(resource="session", message="Session not found")
        self.logger.info("Session closed by logout")

    # ── Current user ──────────────────────────────────────────────────────

    async def get_current_user(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError(resource="user", message="User not found")
        return user

    # ── Password reset ────────────────────────────────────────────────────

    def build_reset_link(self, token: str) -> str:
        return f"{self.settings.app_domain.rstrip('/')}/reset-password?token={token}"

    async def request_password_reset(self, db: AsyncSession, email: str) -> None:
        """
        Email a reset link to `email` if it belongs to a user.

        Unknown addresses succeed silently, so the endpoint cannot be used to
        probe which emails are registered. SMTP failure is logged and
        swallowed here for the same reason.
        """
        user = await self._find_user_by_email(db, email)
        if user is None:
            self.logger.info("Password reset requested for unknown email")
            return

        link = self.build_reset_link(self.tokens.issue_reset_token(user.email))
        try:
            await self.mailer.send_password_reset(user.email, link)
        except UpstreamError as e:
            self.logger.warning(
                "Password reset email for user %s not delivered: %s", user.id, e.message
            )

    async def reset_password(self, db: AsyncSession, token: str, new_password: str) -> None:
        """
        Set a new password from a reset token and close every session.

        Raises:
            AuthenticationError: reset token invalid or expired
            NotFoundError: the email in the token no longer has a user
            ValidationError: new password equals the current one (nothing changes)
        """
        email = self.tokens.decode_reset(token)

        user = await self._find_user_by_email(db, email)
        if user is None:
            raise NotFoundError(resource="user", message="User not found")

        if await verify_password_async(new_password, user.password_hash):
            raise ValidationError(
                message="New password must differ from the current one",
                field="password",
            )

        user.password_hash = await hash_password_async(new_password, self.settings.bcrypt_rounds)
        user.updated_at = utcnow()
        closed = await self._delete_user_sessions(db, user.id)
        await db.flush()
        self.logger.info("Password reset for user %s; closed %d session(s)", user.id, closed)

    # ── Request gate ──────────────────────────────────────────────────────

    async def authenticate(
        self,
        db: AsyncSession,
        access_token: str,
        session_id: Optional[str] = None,
    ) -> AuthContext:
        """
        Accept an access token only while a live session backs it.

        A session matches on user id, exact token string and an unexpired
        access_token_valid_until. A sessionId cookie, when sent, must name
        that same session.

        Raises:
            AuthenticationError (incl. TokenExpiredError / InvalidTokenError)
        """
        user_id = self.tokens.decode_access(access_token)

        stmt = select(UserSession.id).where(
            UserSession.user_id == user_id,
            UserSession.access_token == access_token,
            UserSession.access_token_valid_until > utcnow(),
        )
        if session_id:
            try:
                stmt = stmt.where(UserSession.id == uuid.UUID(session_id))
            except ValueError:
                raise AuthenticationError(reason="malformed sessionId cookie") from None

        matched = (await db.execute(stmt)).scalar_one_or_none()
        if matched is None:
            raise AuthenticationError(reason="no live session for token")
        return AuthContext(user_id=user_id, session_id=matched)
