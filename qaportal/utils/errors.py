"""Standardised API envelopes.

Usage
-----
    from qaportal.utils.errors import api_error, api_ok, E

    return api_ok(project.to_dict(), status=201)
    return api_error(E.NOT_FOUND, "Project not found")
    return api_error(E.VALIDATION_INVALID, "Invalid body", details=errors)
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "VALIDATION_REQUIRED"
    VALIDATION_INVALID = "VALIDATION_ERROR"
    INVALID_LOGIN = "INVALID_LOGIN"
    FILE_REQUIRED = "FILE_REQUIRED"
    FILE_TYPE = "FILE_TYPE_NOT_ALLOWED"

    # Auth – HTTP 401 / 403
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "CONFLICT"

    # Size / rate – HTTP 413 / 429
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    RATE_LIMITED = "RATE_LIMITED"

    # Server – HTTP 500 / 503
    DATABASE = "DATABASE_ERROR"
    INTERNAL = "SERVER_ERROR"
    IMPORT_ABORTED = "IMPORT_ABORTED"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.INVALID_LOGIN: 400,
    E.FILE_REQUIRED: 400,
    E.FILE_TYPE: 400,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.FILE_TOO_LARGE: 413,
    E.RATE_LIMITED: 429,
    E.DATABASE: 500,
    E.INTERNAL: 500,
    E.IMPORT_ABORTED: 503,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details=None,
):
    """Return ``{"success": false, "error": {...}}`` and the HTTP status.

    ``status`` overrides the default mapped from ``code`` (fallback 400).
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)

    error: dict = {"code": code, "message": message}
    if details:
        error["details"] = details

    return jsonify({"success": False, "error": error}), http_status


def api_ok(data=None, *, status: int = 200):
    """Return ``{"success": true, "data": ...}`` and the HTTP status."""
    return jsonify({"success": True, "data": data}), status
