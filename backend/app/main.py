"""
ContactBook Backend — FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app(settings) wires middleware, exception handlers and routers.
       init_state(app) builds the per-app runtime objects (engine, session
       factory, services) and stores them on app.state; the lifespan calls it
       on startup, tests call it directly.
Who:   uvicorn (`uvicorn app.main:app`) and the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────────┐ ┌──────────┐ ┌──────────┐ ┌─────────┐  │
    │  │ Auth Limit   │→│ Req ID   │→│ Access   │→│GZip/CORS│  │
    │  └──────────────┘ └──────────┘ └──────────┘ └─────────┘  │
    │                                                          │
    │  Routes:                                                 │
    │  ┌──────────┐ ┌────────────┐ ┌───────────┐ ┌─────────┐   │
    │  │ /auth/*  │ │ /contacts  │ │ /files/*  │ │ /health │   │
    │  └──────────┘ └────────────┘ └───────────┘ └─────────┘   │
    │                                                          │
    │  app.state: settings, engine, session_factory,           │
    │             token_service, mailer, media_storage,        │
    │             auth_service, contact_service                │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Validate required settings (ConfigurationError aborts startup)
    3. Build engine and services
    Shutdown:
    1. Dispose database engine (close all connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app import __version__
from app.config import Settings, get_settings
from app.database import create_engine_from_settings, create_session_factory, dispose_engine
from app.exceptions import (
    AuthenticationError,
    ConflictError,
    ContactBookError,
    DatabaseError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.rate_limit import AuthRateLimitMiddleware
from app.middleware.request_id import RequestIDMiddleware, request_id_var
from app.routes import auth, contacts, files, health
from app.services.auth_service import AuthService
from app.services.contact_service import ContactService
from app.services.mailer import Mailer
from app.services.media_service import build_media_storage
from app.services.token_service import TokenService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once for the whole process.

    Format: 2024-01-15T12:00:00 [INFO] app.services.auth_service: User logged in: ...
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Runtime State
# ══════════════════════════════════════════════════════════════════════════

def init_state(app: FastAPI) -> None:
    """
    Build the engine and services for `app` from app.state.settings.

    Raises:
        ConfigurationError: a required setting is missing
    """
    settings: Settings = app.state.settings
    settings.validate_required()

    engine = create_engine_from_settings(settings)
    tokens = TokenService(settings)
    mailer = Mailer(settings)
    media = build_media_storage(settings)

    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.token_service = tokens
    app.state.mailer = mailer
    app.state.media_storage = media
    app.state.auth_service = AuthService(settings, tokens, mailer)
    app.state.contact_service = ContactService(media)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings.log_level)
    logger.info("=" * 60)
    logger.info("ContactBook Backend %s starting up (%s)...", __version__, settings.environment)

    if getattr(app.state, "engine", None) is None:
        # ConfigurationError propagates: uvicorn aborts startup
        init_state(app)

    logger.info("Media backend: %s", settings.media_backend)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("ContactBook Backend shutting down...")
    await dispose_engine(app.state.engine)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error(status_code: int, error: str, message: str, details: Optional[dict] = None, headers=None):
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to HTTP responses.

    Handler hierarchy:
        ValidationError / RequestValidationError → 400
        AuthenticationError (+ subtypes)         → 401
        NotFoundError                            → 404
        ConflictError                            → 409
        UpstreamError                            → 502
        DatabaseError / SQLAlchemyError          → 500 (generic message)
        ContactBookError (base)                  → 500
        Exception (fallback)                     → 500

    Only validation errors echo their context back; everything else keeps
    details in the server log.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), errors)
        return _error(400, "validation_error", "Validation failed", {"errors": errors})

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        logger.info(
            "[%s] Authentication failed on %s: %s",
            request_id_var.get(""),
            request.url.path,
            exc.reason or exc.message,
        )
        return _error(401, "authentication_error", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error(404, "not_found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error(409, "conflict", exc.message)

    @app.exception_handler(UpstreamError)
    async def handle_upstream_error(request: Request, exc: UpstreamError):
        logger.error(
            "[%s] Upstream %s failed: %s | Context: %s",
            request_id_var.get(""),
            exc.service,
            exc.message,
            exc.context,
        )
        return _error(502, "upstream_error", exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context
        )
        return _error(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(SQLAlchemyError)
    async def handle_sqlalchemy_error(request: Request, exc: SQLAlchemyError):
        logger.error("[%s] Unhandled database error: %s", request_id_var.get(""), exc, exc_info=True)
        return _error(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(ContactBookError)
    async def handle_app_error(request: Request, exc: ContactBookError):
        logger.error("[%s] %s: %s", request_id_var.get(""), type(exc).__name__, exc.message)
        return _error(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s", request_id_var.get(""), exc, exc_info=True
        )
        return _error(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Assemble the application.

    Args:
        settings: Explicit settings (tests); defaults to the environment.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="ContactBook API",
        description=(
            "Contacts REST API with JWT authentication. Access tokens travel as "
            "Bearer headers; refresh tokens live in an httpOnly cookie and are "
            "single-use."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ── Middleware ────────────────────────────────────────────────────────
    # Last added runs first: AuthRateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,  # refreshToken / sessionId cookies
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        AuthRateLimitMiddleware,
        max_requests=settings.auth_rate_limit_requests,
        window_seconds=settings.auth_rate_limit_window,
    )

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(contacts.router)
    app.include_router(files.router)
    app.include_router(health.router)

    return app


# uvicorn app.main:app
app = create_app()
