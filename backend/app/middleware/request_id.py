"""
ContactBook Backend — Request ID Middleware
=============================================

What:  Tags every request with a short correlation id.
How:   Reuses the client's X-Request-ID header when sent, otherwise makes
       one up. The id goes into a ContextVar (read by the access log and
       the exception handlers) and back out in the response header.

ContextVar rather than threading.local: concurrent requests share one
thread but each runs in its own asyncio task context.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = rid
        return response
