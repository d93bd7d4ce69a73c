"""
Access Engine
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from app.config import config
from app.models import db
from app.middleware.jwt_auth import EXTENSION_KEY, init_jwt_middleware
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.timing import init_request_timing
from app.services.identity_service import detect_user_schema
from app.services.jwt_service import settings_from_config
from app.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit, applied per route
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


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
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Import all models so create_all sees every table ─────────────────
    from app.models import auth as _auth_models             # noqa: F401
    from app.models import workspace as _workspace_models   # noqa: F401
    from app.models import work_item as _work_item_models   # noqa: F401

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") and ":memory:" not in app.config["SQLALCHEMY_DATABASE_URI"]:
        os.makedirs(app.instance_path, exist_ok=True)

    # ── Auto-create tables, then probe the users table once ──────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

        user_schema = detect_user_schema(db.engine)

    app.extensions[EXTENSION_KEY] = {
        "token_settings": settings_from_config(app.config),
        "user_schema": user_schema,
    }

    # ── Request middleware (timing first so request_id is set) ───────────
    init_request_timing(app)
    init_jwt_middleware(app)

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.auth_bp import auth_bp
    from app.blueprints.health_bp import health_bp
    from app.blueprints.task_links_bp import task_links_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(health_bp)
    app.register_blueprint(task_links_bp)

    init_rate_limits(app, limiter)

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-roles")
    def seed_roles_cmd():
        """Seed default roles and the permission catalogue."""
        from app.services.role_seed_service import seed_all
        result = seed_all()
        logger.info("Seed result: %s", result)

    return app
