"""
Crypto utilities — bcrypt password hashing and refresh-token digests.

Refresh tokens are never stored; sessions keep only the SHA-256 hex digest.
"""

import hashlib

import bcrypt


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt (12 rounds)."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain-text password against its bcrypt hash."""
    if not password_hash or not plain_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        # Malformed hash
        return False


def token_digest(token: str) -> str:
    """SHA-256 hex digest used to look up refresh sessions."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
