"""
ContactBook Backend — Application Package Initializer
======================================================

What: Marks the `app` directory as a Python package.
Why:  Enables module imports like `from app.config import Settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    This backend follows a layered architecture:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only (cookies, status codes)
    ├─────────────────────────────────────┤
    │    Dependencies (Authenticator)     │  ← Bearer token + session-store gate
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Session lifecycle, contacts, media, mail
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes never touch tokens or password hashes directly; they hand request
    data to services and translate service results into responses.
"""

__version__ = "1.0.0"
