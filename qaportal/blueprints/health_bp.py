"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        — liveness with database round-trip
    GET /api/v1/health/ready  — simple 200 for load balancers
"""

import logging
import time

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from qaportal.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Readiness check, always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("", methods=["GET"])
def live():
    """Liveness check including a database round-trip."""
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        database = {"status": "ok", "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}
        status = 200
    except SQLAlchemyError as exc:
        logger.error("Health check — database failed: %s", exc)
        database = {"status": "error", "detail": str(exc)}
        status = 503
    overall = "ok" if status == 200 else "degraded"
    return jsonify({"status": overall, "checks": {"database": database}}), status
