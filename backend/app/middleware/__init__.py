# Middleware package init
"""
ContactBook Backend — Middleware Package
==========================================

Middleware Chain (outermost first):
    Request → [Auth Rate Limit] → [Request ID] → [Access Log] → [GZip] → [CORS] → Route

    - rate_limit.py:  per-IP sliding window on /auth/register and /auth/login
    - request_id.py:  X-Request-ID header + ContextVar used by error handlers
    - logging.py:     one access-log line per request (contactbook.access)
"""
