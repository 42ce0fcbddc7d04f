"""
Site blueprint.

Endpoints:
    GET /api/v1/          — service index (title, version, language)
    GET /api/v1/health    — liveness probe with database check
"""

import logging

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from coreapi.core.envelope import success
from coreapi.core.messages import current_language
from coreapi.models import db

logger = logging.getLogger(__name__)

site_bp = Blueprint("site_bp", __name__, url_prefix="/api/v1")


def service_index() -> dict:
    info = {
        "title": current_app.config.get("SERVICE_TITLE"),
        "version": current_app.config.get("SERVICE_VERSION"),
        "language": current_language(),
    }
    if current_app.debug:
        info["environment"] = current_app.config.get("ENV_NAME")
    return success(info)


@site_bp.route("/", methods=["GET"])
def index():
    return jsonify(service_index())


@site_bp.route("/health", methods=["GET"])
def health():
    """Liveness check; 503 when the database is unreachable."""
    try:
        db.session.execute(db.text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Health check — database failed: %s", exc)
        return jsonify({"status": "error", "database": "error"}), 503
    return jsonify({"status": "ok", "database": "ok"}), 200
