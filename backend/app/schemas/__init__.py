"""
ContactBook Backend — Pydantic Request/Response Schemas
=========================================================

    - common.py:   APIModel base (camelCase wire names), Envelope, ErrorResponse, HealthResponse
    - auth.py:     register/login/reset payloads, UserResponse, token payloads
    - contact.py:  ContactCreate, ContactUpdate, ContactResponse

Schemas are separate from ORM models: the API decides exactly which columns
leave the server (no password hashes, no tokens except where intended).
"""
