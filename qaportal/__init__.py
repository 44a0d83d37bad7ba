"""
QA Portal
Flask Application Factory.

Usage:
    from qaportal import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from qaportal.config import config
from qaportal.core.exceptions import (
    ConflictError,
    ImportAbortedError,
    NotFoundError,
    ValidationError,
)
from qaportal.middleware.jwt_auth import init_jwt_middleware
from qaportal.middleware.logging_config import configure_logging
from qaportal.middleware.rate_limiter import init_rate_limits
from qaportal.middleware.security_headers import init_security_headers
from qaportal.middleware.timing import init_request_timing
from qaportal.models import db
from qaportal.utils.errors import E, api_error

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
)


def _register_error_handlers(app):
    @app.errorhandler(NotFoundError)
    def _not_found_error(e: NotFoundError):
        db.session.rollback()
        return api_error(E.NOT_FOUND, str(e))

    @app.errorhandler(ValidationError)
    def _validation_error(e: ValidationError):
        db.session.rollback()
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details)

    @app.errorhandler(ConflictError)
    def _conflict_error(e: ConflictError):
        db.session.rollback()
        return api_error(E.CONFLICT_DUPLICATE, str(e))

    @app.errorhandler(ImportAbortedError)
    def _import_aborted(e: ImportAbortedError):
        db.session.rollback()
        return api_error(E.IMPORT_ABORTED, str(e))

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(413)
    def too_large(e):
        limit = app.config.get("MAX_FILE_SIZE_MB")
        return api_error(E.FILE_TOO_LARGE, f"Upload exceeds {limit} MB")

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", details={"retryAfter": e.description})

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: "development", "testing" or "production"
                     (defaults to the APP_ENV environment variable).

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    cfg = config[config_name]
    # ProductionConfig validates its environment on instantiation
    app.config.from_object(cfg() if config_name == "production" else cfg)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins == "*":
        CORS(app)
    elif cors_origins:
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])

    # ── Middleware ───────────────────────────────────────────────────────
    init_security_headers(app)
    init_request_timing(app)
    init_jwt_middleware(app)
    # After the JWT hook so per-user limit keys see g.jwt_user_id
    limiter.init_app(app)

    # ── Database tables ──────────────────────────────────────────────────
    import qaportal.models.audit  # noqa: F401
    import qaportal.models.auth  # noqa: F401
    import qaportal.models.lookup  # noqa: F401
    import qaportal.models.project  # noqa: F401
    import qaportal.models.testing  # noqa: F401

    with app.app_context():
        if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") and not app.config["TESTING"]:
            os.makedirs(app.instance_path, exist_ok=True)
        db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from qaportal.blueprints.audit_bp import audit_bp
    from qaportal.blueprints.auth_bp import auth_bp
    from qaportal.blueprints.dashboard_bp import dashboard_bp
    from qaportal.blueprints.defect_bp import defect_bp
    from qaportal.blueprints.file_bp import file_bp
    from qaportal.blueprints.health_bp import health_bp
    from qaportal.blueprints.lookup_bp import lookup_bp
    from qaportal.blueprints.project_bp import project_bp
    from qaportal.blueprints.testing_bp import testing_bp
    from qaportal.blueprints.uploads_bp import uploads_bp
    from qaportal.blueprints.user_bp import user_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(file_bp)
    app.register_blueprint(testing_bp)
    app.register_blueprint(defect_bp)
    app.register_blueprint(lookup_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(uploads_bp)

    _register_error_handlers(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed")
    def seed_cmd():
        """Seed roles, the admin user, a sample project and lookup values."""
        from qaportal.services.seed_service import seed_all
        result = seed_all()
        logger.info("Seed complete: %s", result)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
