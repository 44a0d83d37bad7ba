"""
Bearer token parsing.

Every /api/v1 request gets ``g.jwt_user_id`` (int or None) and
``g.jwt_roles``. Nothing is rejected here: ``require_auth`` and
``require_roles`` make that call per endpoint.
"""

import logging

import jwt
from flask import g, request

from qaportal.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Credentials arrive in the body on these routes, and health checks stay anonymous
UNAUTHENTICATED_PATHS = (
    "/api/v1/auth/login",
    "/api/v1/auth/refresh",
    "/api/v1/health",
)


def _bearer_token():
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def init_jwt_middleware(app):
    """Populate ``g.jwt_*`` from the Authorization header before each request."""

    @app.before_request
    def _load_token_identity():
        g.jwt_user_id = None
        g.jwt_roles = []

        if not request.path.startswith("/api/v1/") or request.path.startswith(UNAUTHENTICATED_PATHS):
            return
        token = _bearer_token()
        if token is None:
            return

        try:
            claims = decode_access_token(token)
            user_id = int(claims["sub"])
        except jwt.ExpiredSignatureError:
            logger.debug("Expired access token on %s", request.path)
            return
        except (jwt.InvalidTokenError, KeyError, TypeError, ValueError) as exc:
            logger.debug("Rejected access token on %s: %s", request.path, exc)
            return

        g.jwt_user_id = user_id
        g.jwt_roles = list(claims.get("roles") or [])
