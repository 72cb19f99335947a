"""
DocFlow
Flask Application Factory.

Usage:
    from docflow import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from docflow.config import config
from docflow.models import db
from docflow.middleware.logging_config import configure_logging
from docflow.middleware.timing import init_request_timing
from docflow.middleware.jwt_auth import init_jwt_middleware
from docflow.middleware.rate_limiter import init_rate_limits
from docflow.utils.errors import register_error_handlers

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


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit — apply per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


def _seed_admin(app):
    from docflow.services.user_service import seed_admin

    user = seed_admin(app.config["ADMIN_EMAIL"], app.config["ADMIN_PASSWORD"])
    if user is not None:
        app.logger.info("Admin account created: %s", user.email)
    return user


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
    # instantiated so ProductionConfig can refuse to start without its env vars
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request id + timing (before auth so 401s carry a request_id) ─────
    init_request_timing(app)

    # ── JWT auth middleware ──────────────────────────────────────────────
    init_jwt_middleware(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    @app.before_request
    def _guard_request():
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and request.content_length and request.content_length > max_len:
            abort(413, description="Request body too large")
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.content_length and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so create_all / Alembic see them ───────────────
    from docflow.models import auth as _auth_models          # noqa: F401
    from docflow.models import document as _document_models  # noqa: F401
    from docflow.models import flow as _flow_models          # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        db.create_all()
        app.logger.info("db.create_all() completed")
        if app.config.get("SEED_ADMIN_ON_STARTUP"):
            _seed_admin(app)

    # ── Blueprints ───────────────────────────────────────────────────────
    from docflow.blueprints.health_bp import health_bp
    from docflow.blueprints.auth_bp import auth_bp
    from docflow.blueprints.admin_bp import admin_bp
    from docflow.blueprints.flow_bp import flow_bp
    from docflow.blueprints.document_bp import document_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(flow_bp)
    app.register_blueprint(document_bp)

    # ── Error handlers (envelope for every failure) ──────────────────────
    register_error_handlers(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-admin")
    @click.option("--email", default=None, help="Defaults to ADMIN_EMAIL.")
    @click.option("--password", default=None, help="Defaults to ADMIN_PASSWORD.")
    def seed_admin_cmd(email, password):
        """Create the initial ADMIN account if it does not exist."""
        from docflow.services.user_service import seed_admin

        user = seed_admin(email or app.config["ADMIN_EMAIL"], password or app.config["ADMIN_PASSWORD"])
        if user is None:
            click.echo("Admin account already exists.")
        else:
            click.echo(f"Created admin {user.email}.")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
