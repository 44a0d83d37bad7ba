"""
Permission decorators — JWT-aware route protection.

Usage:
    @bp.route("/projects", methods=["POST"])
    @require_auth
    def create_project():
        ...

    @bp.route("/users", methods=["GET"])
    @require_roles("Admin")
    def list_users():
        ...

When API_AUTH_ENABLED is "false" (development / tests) requests without a
JWT user pass through; a JWT user present is still role-checked.
"""

import functools
import logging

from flask import current_app, g

from qaportal.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def auth_enabled() -> bool:
    value = str(current_app.config.get("API_AUTH_ENABLED", "true"))
    return value.lower() not in ("false", "0", "no", "off")


def require_auth(f):
    """Decorator: require an authenticated JWT user (401 otherwise)."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "jwt_user_id", None) is None and auth_enabled():
            return api_error(E.UNAUTHORIZED, "Authentication required")
        return f(*args, **kwargs)
    return decorated


def require_roles(*roles: str):
    """Decorator: require the JWT user to hold at least ONE of ``roles``."""

    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user_id = getattr(g, "jwt_user_id", None)
            if user_id is None:
                if auth_enabled():
                    return api_error(E.UNAUTHORIZED, "Authentication required")
                return f(*args, **kwargs)

            if not set(roles) & set(getattr(g, "jwt_roles", []) or []):
                logger.warning(
                    "User %d denied: missing any of %s on %s",
                    user_id, roles, f.__name__,
                )
                return api_error(E.FORBIDDEN, "Insufficient role")
            return f(*args, **kwargs)
        return decorated
    return decorator
