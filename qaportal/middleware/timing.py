"""
Per-request id and duration.

Each response carries X-Request-ID (echoed from the caller or generated) and
X-Request-Duration-Ms. API calls are logged at a level chosen by outcome.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

# Spreadsheet imports of a few thousand rows stay under this
SLOW_REQUEST_MS = 1000

# Health check and static file traffic is not worth a log line
QUIET_PREFIXES = ("/api/v1/health", "/uploads/")


def _log_level(status: int, elapsed_ms: float) -> int:
    if status >= 500:
        return logging.ERROR
    if elapsed_ms > SLOW_REQUEST_MS:
        return logging.WARNING
    return logging.DEBUG


def init_request_timing(app: Flask):
    """Register the before/after hooks."""

    @app.before_request
    def _begin_request():
        g.request_started = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _finish_request(response):
        started = g.get("request_started")
        if started is None:
            return response

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{elapsed_ms:.1f}"

        if not request.path.startswith(QUIET_PREFIXES):
            logger.log(
                _log_level(response.status_code, elapsed_ms),
                "%s %s -> %d in %.0fms",
                request.method, request.path, response.status_code, elapsed_ms,
                extra={
                    "method": request.method,
                    "path": request.path,
                    "status": response.status_code,
                    "duration_ms": elapsed_ms,
                    "remote_addr": request.remote_addr,
                },
            )
        return response
