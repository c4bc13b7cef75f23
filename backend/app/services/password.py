"""
ContactBook Backend — Password Hashing
========================================

bcrypt with a configurable cost factor. Hashing and checking are CPU-bound
(~250ms at 12 rounds), so the async wrappers push them onto a worker thread
instead of stalling the event loop.

bcrypt only looks at the first 72 bytes of input; request schemas cap
passwords at 72 UTF-8 bytes.
"""

import asyncio

import bcrypt


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password using bcrypt with a fresh salt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


async def hash_password_async(password: str, rounds: int = 12) -> str:
    return await asyncio.to_thread(hash_password, password, rounds)


async def verify_password_async(password: str, password_hash: str) -> bool:
    return await asyncio.to_thread(verify_password, password, password_hash)
