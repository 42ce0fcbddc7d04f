"""
Core REST API
Flask Application Factory.

Usage:
    from coreapi import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException

from coreapi.config import config
from coreapi.core.exceptions import CoreError
from coreapi.core.status_policy import StatusPolicy
from coreapi.middleware.jwt_auth import init_jwt_middleware
from coreapi.middleware.logging_config import configure_logging
from coreapi.models import db
from coreapi.services.mirror import init_mirror
from coreapi.utils.errors import api_error, http_error

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine  # noqa: E402


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()


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
    app.config["ENV_NAME"] = config_name

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Record lifecycle policy (validated once, read-only afterwards) ───
    app.extensions["status_policy"] = StatusPolicy.from_config(app.config)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)
    init_mirror(app)

    # ── JWT auth middleware (sets g.actor) ───────────────────────────────
    init_jwt_middleware(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from coreapi.models import example as _example_models  # noqa: F401

    # ── Blueprints ───────────────────────────────────────────────────────
    from coreapi.blueprints.site_bp import site_bp
    from coreapi.blueprints.example_bp import example_bp

    app.register_blueprint(site_bp)
    app.register_blueprint(example_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(CoreError)
    def core_error(e):
        return api_error(e)

    @app.errorhandler(404)
    def not_found(e):
        if request.path.startswith("/api/"):
            return http_error(404, "dataNotFound")
        return e

    @app.errorhandler(405)
    def method_not_allowed(e):
        return http_error(405, "methodNotAllowed")

    @app.errorhandler(500)
    def server_error(e):
        original = getattr(e, "original_exception", None) or e
        logger.error("500 error: %s", original, exc_info=original)
        return http_error(500, "serverError", exc=original)

    @app.errorhandler(Exception)
    def unhandled(e):
        if isinstance(e, HTTPException):
            return http_error(e.code or 500, "badRequest" if (e.code or 500) < 500 else "serverError")
        logger.exception("Unhandled exception on %s %s", request.method, request.path)
        return http_error(500, "serverError", exc=e)

    logger.info("App created: env=%s mirror=%s", config_name, app.extensions["mirror"] is not None)
    return app
