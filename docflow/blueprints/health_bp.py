"""
Health check blueprint.

Endpoints:
    GET /api/v1/health  — liveness plus database round-trip
"""

import logging
import time

from flask import Blueprint
from sqlalchemy.exc import SQLAlchemyError

from docflow.models import db
from docflow.utils.errors import api_ok

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
def health():
    """Always 200 while the app runs; ``database`` reports the DB check."""
    checks = {"status": "ok"}
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        checks["database"] = {"status": "ok", "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}
    except SQLAlchemyError as exc:
        db.session.rollback()
        checks["database"] = {"status": "error", "detail": str(exc)}
        logger.error("Health check — database failed: %s", exc)
    return api_ok(checks)
