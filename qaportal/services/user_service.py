"""
User Service — authentication, refresh sessions, user CRUD and roles.
"""

import logging
from datetime import datetime, timezone

import jwt
from email_validator import EmailNotValidError, validate_email

from qaportal.core.exceptions import ConflictError, ValidationError
from qaportal.models import db
from qaportal.models.auth import SYSTEM_ROLES, Role, User, UserRole, UserSession
from qaportal.services.jwt_service import (
    decode_refresh_token,
    generate_access_token,
    generate_refresh_token,
)
from qaportal.utils.crypto import hash_password, token_digest, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class UserServiceError(Exception):
    """Authentication / session error carrying its HTTP status."""
    def __init__(self, message, status_code=400, code="INVALID_LOGIN"):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)


# ═══════════════════════════════════════════════════════════════
# Authentication & sessions
# ═══════════════════════════════════════════════════════════════
def authenticate_user(email: str, password: str) -> User:
    """Return the active user matching the credentials or raise UserServiceError."""
    email = (email or "").strip().lower()
    if not email or not password:
        raise UserServiceError("Email and password are required", code="VALIDATION_ERROR")

    user = User.query.filter(db.func.lower(User.email) == email).first()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", email)
        raise UserServiceError("Invalid credentials")
    return user


def create_session(user: User, ip_address: str | None = None, user_agent: str | None = None) -> dict:
    """Issue an access + refresh token pair and persist the refresh session."""
    roles = user.role_names
    access_token = generate_access_token(user.id, roles)
    refresh_token, token_hash, expires_at = generate_refresh_token(user.id)

    db.session.add(UserSession(
        user_id=user.id,
        refresh_token_hash=token_hash,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
        expires_at=expires_at,
    ))
    db.session.commit()

    return {
        "accessToken": access_token,
        "refreshToken": refresh_token,
        "user": {"id": user.id, "email": user.email, "roles": roles},
    }


def _active_session(refresh_token: str) -> UserSession | None:
    return UserSession.query.filter(
        UserSession.refresh_token_hash == token_digest(refresh_token),
        UserSession.revoked_at.is_(None),
    ).first()


def refresh_access_token(refresh_token: str) -> str:
    """Exchange a live refresh token for a new access token."""
    if not refresh_token:
        raise UserServiceError("refreshToken is required", code="VALIDATION_ERROR")
    try:
        payload = decode_refresh_token(refresh_token)
    except jwt.InvalidTokenError:
        raise UserServiceError("Invalid refresh token", 401, "UNAUTHORIZED") from None

    session = _active_session(refresh_token)
    if session is None or session.is_expired:
        raise UserServiceError("Session expired or revoked", 401, "UNAUTHORIZED")

    user = db.session.get(User, int(payload["sub"]))
    if user is None or not user.is_active:
        raise UserServiceError("User is inactive", 401, "UNAUTHORIZED")
    return generate_access_token(user.id, user.role_names)


def revoke_session(refresh_token: str) -> bool:
    """Mark the matching session revoked. Unknown tokens are ignored."""
    if not refresh_token:
        return False
    session = _active_session(refresh_token)
    if session is None:
        return False
    session.revoked_at = datetime.now(timezone.utc)
    db.session.commit()
    return True


# ═══════════════════════════════════════════════════════════════
# Roles
# ═══════════════════════════════════════════════════════════════
def ensure_roles(names=SYSTEM_ROLES) -> dict[str, Role]:
    """Create any missing roles; returns name → Role. Flushes, does not commit."""
    existing = {r.name: r for r in Role.query.filter(Role.name.in_(names)).all()}
    for name in names:
        if name not in existing:
            role = Role(name=name)
            db.session.add(role)
            existing[name] = role
    db.session.flush()
    return existing


# ═══════════════════════════════════════════════════════════════
# User CRUD
# ═══════════════════════════════════════════════════════════════
def list_users() -> list[User]:
    return User.query.order_by(User.created_at.desc(), User.id.desc()).all()


def create_user(
    email: str,
    password: str,
    first_name: str = "",
    last_name: str = "",
    role_names: list[str] | None = None,
) -> User:
    """Create a user with the given roles. Flushes; caller commits."""
    try:
        email = validate_email(email or "", check_deliverability=False).normalized.lower()
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": str(e)}) from None

    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too short"},
        )

    role_names = list(dict.fromkeys(role_names or []))
    unknown = [r for r in role_names if r not in SYSTEM_ROLES]
    if unknown:
        raise ValidationError(
            f"Unknown roles: {', '.join(unknown)}. Allowed: {', '.join(SYSTEM_ROLES)}",
            details={"roles": unknown},
        )

    if User.query.filter(db.func.lower(User.email) == email).first():
        raise ConflictError("User", "email", email)

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=(first_name or "").strip(),
        last_name=(last_name or "").strip(),
    )
    db.session.add(user)
    db.session.flush()

    roles = ensure_roles(role_names) if role_names else {}
    for name in role_names:
        db.session.add(UserRole(user_id=user.id, role_id=roles[name].id))
    db.session.flush()
    db.session.refresh(user)
    logger.info("User created: %s roles=%s", email, role_names)
    return user
