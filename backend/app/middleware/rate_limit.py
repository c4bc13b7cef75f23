"""
ContactBook Backend — Credential Endpoint Rate Limiting
=========================================================

What:  Per-IP sliding window limit on POST /auth/register and /auth/login.
Why:   Slows password guessing and mass sign-ups. Every other route is
       left alone; authenticated traffic is already gated by tokens.
How:   Each IP keeps a list of request timestamps; entries older than the
       window are dropped on every hit, and a full list means 429.

    Defaults: 20 requests / 900 s per IP (AUTH_RATE_LIMIT_REQUESTS,
    AUTH_RATE_LIMIT_WINDOW).

State is in-process memory: with several workers each one counts on its own.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, FrozenSet, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.exceptions import RateLimitExceededError
from app.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

LIMITED_PATHS: FrozenSet[str] = frozenset({"/auth/register", "/auth/login"})


class AuthRateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory sliding window limiter for the credential endpoints."""

    def __init__(self, app, max_requests: int = 20, window_seconds: int = 900):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: Dict[str, List[float]] = defaultdict(list)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method != "POST" or request.url.path not in LIMITED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        window_start = now - self.window_seconds

        hits = [ts for ts in self._hits[client_ip] if ts > window_start]
        if len(hits) >= self.max_requests:
            exc = RateLimitExceededError(retry_after=int(hits[0] + self.window_seconds - now) + 1)
            self._hits[client_ip] = hits
            logger.warning(
                "Auth rate limit exceeded for IP %s on %s: %d requests in %ds",
                client_ip,
                request.url.path,
                len(hits),
                self.window_seconds,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": exc.context,
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(exc.retry_after)},
            )

        hits.append(now)
        self._hits[client_ip] = hits
        self._forget_idle(window_start)
        return await call_next(request)

    def _forget_idle(self, window_start: float) -> None:
        """Drop IPs whose newest hit has left the window."""
        idle = [ip for ip, ts in self._hits.items() if not ts or ts[-1] <= window_start]
        for ip in idle:
            del self._hits[ip]
