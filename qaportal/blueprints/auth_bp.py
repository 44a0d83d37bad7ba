"""
Auth Blueprint — JWT authentication endpoints.

  POST /api/v1/auth/login    — email + password → access + refresh tokens
  POST /api/v1/auth/refresh  — refresh token → new access token
  POST /api/v1/auth/logout   — revoke refresh session
  GET  /api/v1/auth/me       — current user profile
"""

from flask import Blueprint, g, request

from qaportal.middleware.permission_required import require_auth
from qaportal.models import db
from qaportal.models.auth import User
from qaportal.services.user_service import (
    UserServiceError,
    authenticate_user,
    create_session,
    refresh_access_token,
    revoke_session,
)
from qaportal.utils.errors import E, api_error, api_ok

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


@auth_bp.errorhandler(UserServiceError)
def _handle_auth_error(error: UserServiceError):
    return api_error(error.code, error.message, status=error.status_code)


@auth_bp.route("/login", methods=["POST"])
def login():
    """Body: { "email": "...", "password": "..." }"""
    data = request.get_json(silent=True) or {}
    user = authenticate_user(data.get("email", ""), data.get("password", ""))
    tokens = create_session(
        user,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return api_ok(tokens)


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """Body: { "refreshToken": "..." }"""
    data = request.get_json(silent=True) or {}
    return api_ok({"accessToken": refresh_access_token(data.get("refreshToken", ""))})


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """Body: { "refreshToken": "..." } — always succeeds."""
    data = request.get_json(silent=True) or {}
    revoke_session(data.get("refreshToken", ""))
    return api_ok({"loggedOut": True})


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    user_id = getattr(g, "jwt_user_id", None)
    user = db.session.get(User, user_id) if user_id else None
    if not user:
        return api_error(E.UNAUTHORIZED, "Authentication required")
    return api_ok(user.to_dict(include_roles=True))
