"""
Thesis Portal
Flask Application Factory.

Usage:
    from thesis_portal import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import SQLAlchemyError

from thesis_portal.config import config
from thesis_portal.models import db
from thesis_portal.middleware.logging_config import configure_logging
from thesis_portal.middleware.timing import init_request_timing
from thesis_portal.middleware.security_headers import init_security_headers
from thesis_portal.middleware.rate_limiter import init_rate_limits
from thesis_portal.middleware.jwt_auth import init_jwt_middleware

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
    default_limits=[],                     # no global limit, applied per blueprint
    storage_uri=os.getenv("REDIS_URL") or "memory://",
)

# multipart boundaries and form fields on top of the file payload
_MULTIPART_OVERHEAD = 1024 * 1024


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    cfg = config[config_name]
    # ProductionConfig validates required env vars on instantiation
    app.config.from_object(cfg() if config_name == "production" else cfg)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Security headers, request timing, bearer resolution ─────────────
    init_security_headers(app)
    init_request_timing(app)
    init_jwt_middleware(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    if not app.config.get("MAX_CONTENT_LENGTH"):
        app.config["MAX_CONTENT_LENGTH"] = (
            app.config["MAX_FILE_SIZE"] * app.config["MAX_FILES_PER_REQUEST"] + _MULTIPART_OVERHEAD
        )

    @app.before_request
    def _guard_request():
        from flask import request as _req, abort
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and _req.content_length and _req.content_length > max_len:
            abort(413, description="Request body too large")
        # Content-Type validation for mutating methods
        if _req.method in ("POST", "PUT", "PATCH") and _req.path.startswith("/api/"):
            ct = _req.content_type or ""
            if _req.content_length and "json" not in ct and "multipart/form-data" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from thesis_portal.models import user as _user_models               # noqa: F401
    from thesis_portal.models import topic as _topic_models             # noqa: F401
    from thesis_portal.models import thesis as _thesis_models           # noqa: F401
    from thesis_portal.models import attachment as _attachment_models   # noqa: F401
    from thesis_portal.models import presentation as _presentation_models  # noqa: F401
    from thesis_portal.models import grade as _grade_models             # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except SQLAlchemyError as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── File storage ─────────────────────────────────────────────────────
    from thesis_portal.services.blob_store import init_blob_store
    init_blob_store(app)

    # ── Blueprints ───────────────────────────────────────────────────────
    from thesis_portal.blueprints.auth_bp import auth_bp
    from thesis_portal.blueprints.topic_bp import topics_bp
    from thesis_portal.blueprints.thesis_bp import theses_bp
    from thesis_portal.blueprints.invitation_bp import invitations_bp
    from thesis_portal.blueprints.attachment_bp import attachments_bp
    from thesis_portal.blueprints.presentation_bp import presentations_bp
    from thesis_portal.blueprints.grade_bp import grades_bp
    from thesis_portal.blueprints.secretary_bp import secretary_bp
    from thesis_portal.blueprints.health_bp import health_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(topics_bp)
    app.register_blueprint(theses_bp)
    app.register_blueprint(invitations_bp)
    app.register_blueprint(attachments_bp)
    app.register_blueprint(presentations_bp)
    app.register_blueprint(grades_bp)
    app.register_blueprint(secretary_bp)
    app.register_blueprint(health_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    from thesis_portal.utils.errors import register_error_handlers
    register_error_handlers(app)

    # ── Rate limiting ────────────────────────────────────────────────────
    init_rate_limits(app, limiter)

    return app
