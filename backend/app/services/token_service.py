"""
ContactBook Backend — Token Service
=====================================

What:  Mints and verifies the three kinds of JWT the API hands out.
Why:   Keeps every secret, lifetime and PyJWT call in one place; the rest of
       the code only sees TokenPair values and AuthenticationError subtypes.
How:   HS256 via PyJWT, one secret per token kind:

    ┌──────────┬───────────────────┬──────────┬─────────────────┐
    │ Kind     │ Secret            │ Lifetime │ Claims          │
    ├──────────┼───────────────────┼──────────┼─────────────────┤
    │ access   │ JWT_ACCESS_SECRET │ 15 min   │ sub, iat, exp,  │
    │ refresh  │ JWT_REFRESH_SECRET│ 30 days  │ jti             │
    │ reset    │ JWT_RESET_SECRET  │ 15 min   │ + email         │
    └──────────┴───────────────────┴──────────┴─────────────────┘

    `jti` is random so two pairs minted for the same user inside the same
    second are still different strings (the session store keys on them).

A verified signature is necessary but not sufficient: AuthService and the
authenticator still require a live session row for access/refresh tokens.
"""

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from app.config import Settings
from app.exceptions import ConfigurationError, InvalidTokenError, TokenExpiredError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    """Access + refresh token with the absolute expiries stored on the session row."""

    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime


class TokenService:
    """Signs and verifies access, refresh and password-reset tokens."""

    def __init__(self, settings: Settings):
        missing = [
            name
            for name, value in (
                ("JWT_ACCESS_SECRET", settings.jwt_access_secret),
                ("JWT_REFRESH_SECRET", settings.jwt_refresh_secret),
                ("JWT_RESET_SECRET", settings.jwt_reset_secret),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Token signing secrets are not configured: {', '.join(missing)}",
                context={"missing": missing},
            )

        self._access_secret = settings.jwt_access_secret
        self._refresh_secret = settings.jwt_refresh_secret
        self._reset_secret = settings.jwt_reset_secret
        self._algorithm = settings.jwt_algorithm
        self.access_ttl = timedelta(minutes=settings.access_token_minutes)
        self.refresh_ttl = timedelta(days=settings.refresh_token_days)
        self.reset_ttl = timedelta(minutes=settings.reset_token_minutes)

    # ── Encoding ──────────────────────────────────────────────────────────

    def _encode(
        self,
        secret: str,
        subject: str,
        now: datetime,
        ttl: timedelta,
        extra: Optional[Dict[str, Any]] = None,
    ) -> str:
        payload: Dict[str, Any] = {
            "sub": subject,
            "iat": now,
            "exp": now + ttl,
            "jti": secrets.token_urlsafe(16),
        }
        if extra:
            payload.update(extra)
        return jwt.encode(payload, secret, algorithm=self._algorithm)

    def issue_tokens(self, user_id: uuid.UUID) -> TokenPair:
        """
        Mint a fresh access/refresh pair for `user_id`.

        Both expiries are computed from the same `now`, so the values written
        to the session row agree with the `exp` claims.
        """
        now = datetime.now(timezone.utc).replace(microsecond=0)
        subject = str(user_id)
        return TokenPair(
            access_token=self._encode(self._access_secret, subject, now, self.access_ttl),
            refresh_token=self._encode(self._refresh_secret, subject, now, self.refresh_ttl),
            access_expires_at=now + self.access_ttl,
            refresh_expires_at=now + self.refresh_ttl,
        )

    def issue_reset_token(self, email: str) -> str:
        """Single-purpose token for the password-reset link; the subject is the email."""
        now = datetime.now(timezone.utc).replace(microsecond=0)
        return self._encode(self._reset_secret, email, now, self.reset_ttl, extra={"email": email})

    # ── Decoding ──────────────────────────────────────────────────────────

    def _decode(self, token: str, secret: str, kind: str) -> Dict[str, Any]:
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=[self._algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired %s token", kind)
            raise TokenExpiredError(message=f"{kind.capitalize()} token expired") from None
        except jwt.InvalidTokenError as e:
            logger.info("Rejected invalid %s token: %s", kind, e)
            raise InvalidTokenError(message=f"Invalid {kind} token") from None

    @staticmethod
    def _subject(claims: Dict[str, Any], kind: str) -> uuid.UUID:
        try:
            return uuid.UUID(str(claims["sub"]))
        except ValueError:
            raise InvalidTokenError(message=f"Invalid {kind} token") from None

    def decode_access(self, token: str) -> uuid.UUID:
        """
        Verify an access token.

        Returns:
            The user id from the `sub` claim.
        Raises:
            TokenExpiredError: "Access token expired"
            InvalidTokenError: "Invalid access token"
        """
        return self._subject(self._decode(token, self._access_secret, "access"), "access")

    def decode_refresh(self, token: str) -> uuid.UUID:
        """Verify a refresh token and return its user id."""
        return self._subject(self._decode(token, self._refresh_secret, "refresh"), "refresh")

    def decode_reset(self, token: str) -> str:
        """
        Verify a reset token.

        Returns:
            The email address the reset link was sent to.
        """
        claims = self._decode(token, self._reset_secret, "reset")
        email = claims.get("email")
        if not isinstance(email, str) or not email:
            raise InvalidTokenError(message="Invalid reset token")
        return email
