"""
ContactBook Backend — ORM Models
==================================

    - user.py:     User        (credential store)
    - session.py:  UserSession (session store, one row per active login)
    - contact.py:  Contact     (per-user CRUD resource)

Sessions and contacts reference users by id only; nothing cascades
implicitly. Deleting sessions is always an explicit service decision.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware current UTC time (column defaults and expiry checks)."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Normalize a datetime read back from the database to aware UTC.

    SQLite drops tzinfo on the way in; PostgreSQL TIMESTAMPTZ keeps it.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
