"""
Per-blueprint request limits (Flask-Limiter).

The Limiter is created in ``qaportal/__init__.py`` without default limits;
``init_rate_limits`` attaches a tier to each blueprint once they are all
registered. Disabled when TESTING is set.
"""

import logging

from flask import g, request

logger = logging.getLogger(__name__)

# blueprint name -> limit; None means exempt
BLUEPRINT_LIMITS = {
    "auth": "20/minute",
    "testing": "60/minute",
    "defects": "60/minute",
    "projects": "60/minute",
    "files": "60/minute",
    "users": "60/minute",
    "audit": "60/minute",
    "dashboard": "200/minute",
    "lookups": "200/minute",
    "health": None,
    "uploads": None,
}


def caller_key():
    """Authenticated callers share a bucket across addresses; others are keyed by IP."""
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is not None:
        return f"user:{user_id}"
    return request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    applied = 0
    for name, limit in BLUEPRINT_LIMITS.items():
        bp = app.blueprints.get(name)
        if bp is None:
            continue
        if limit is None:
            limiter.exempt(bp)
        else:
            limiter.limit(limit, key_func=caller_key)(bp)
            applied += 1
    logger.info("Rate limits applied to %d blueprints", applied)
