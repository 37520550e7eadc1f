"""
Password hashing — bcrypt with a per-hash salt.
"""

import bcrypt

from app.config import settings


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Constant-time check of ``password`` against a stored bcrypt hash.

    Malformed hashes verify as False rather than raising.
    """
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False
