"""
Access and refresh tokens for the portal API (PyJWT, HS256).

Access tokens are short-lived and carry the user's role names so the
middleware can authorise without a database hit. Refresh tokens are signed
with their own key; only their SHA-256 digest is stored in user_sessions.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from qaportal.utils.crypto import token_digest

ALGORITHM = "HS256"

# Lifetimes in seconds, used when the config omits them
TOKEN_LIFETIMES = {"access": 15 * 60, "refresh": 7 * 24 * 3600}


def _signing_key(kind: str) -> str:
    cfg = current_app.config
    key = cfg.get("JWT_SECRET_KEY") or cfg["SECRET_KEY"]
    if kind == "refresh":
        key = cfg.get("JWT_REFRESH_SECRET_KEY") or key
    return key


def _issue(kind: str, user_id: int, **claims) -> tuple[str, datetime]:
    issued = datetime.now(timezone.utc)
    lifetime = current_app.config.get(f"JWT_{kind.upper()}_EXPIRES", TOKEN_LIFETIMES[kind])
    expires_at = issued + timedelta(seconds=lifetime)
    claims.update(
        sub=str(user_id),  # PyJWT insists on a string subject
        type=kind,
        iat=issued,
        exp=expires_at,
        jti=uuid.uuid4().hex,
    )
    return jwt.encode(claims, _signing_key(kind), algorithm=ALGORITHM), expires_at


def generate_access_token(user_id: int, roles: list[str]) -> str:
    token, _ = _issue("access", user_id, roles=list(roles))
    return token


def generate_refresh_token(user_id: int) -> tuple[str, str, datetime]:
    """Return ``(token, sha256 digest, expires_at)`` for a new refresh token."""
    token, expires_at = _issue("refresh", user_id)
    return token, token_digest(token), expires_at


def decode_token(token: str, expected_type: str = "access") -> dict:
    """Verify signature, expiry and token type.

    PyJWT errors propagate unchanged; a token of the wrong kind raises
    ``jwt.InvalidTokenError``.
    """
    claims = jwt.decode(token, _signing_key(expected_type), algorithms=[ALGORITHM])
    if claims.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"{claims.get('type')!r} token used where {expected_type!r} was required")
    return claims


def decode_access_token(token: str) -> dict:
    return decode_token(token, "access")


def decode_refresh_token(token: str) -> dict:
    return decode_token(token, "refresh")
