"""
Health probes.

    GET /api/v1/health/ready   process is up (load balancer check)
    GET /api/v1/health/live    database round-trip plus catalogue status

The catalogue check never fails the probe: an empty catalogue is a
deployment that still needs ``flask seed-catalog``, not a dead process.
"""

import logging
import time

from flask import Blueprint, jsonify
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from wfconfig.models import db
from wfconfig.models.catalog import WorkflowApplication, WorkflowSubstage

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


def _database_check() -> dict:
    t0 = time.perf_counter()
    db.session.execute(db.text("SELECT 1"))
    return {"status": "ok", "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}


def _catalog_check() -> dict:
    applications = db.session.execute(select(func.count(WorkflowApplication.id))).scalar() or 0
    substages = db.session.execute(select(func.count(WorkflowSubstage.id))).scalar() or 0
    return {
        "status": "ok" if applications else "empty",
        "applications": applications,
        "substages": substages,
    }


@health_bp.route("/live", methods=["GET"])
def live():
    """Database and catalogue status; 503 when the database is unreachable."""
    checks = {}
    try:
        checks["database"] = _database_check()
        checks["catalog"] = _catalog_check()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Health check: database failed: %s", exc)
        checks["database"] = {"status": "error", "detail": str(exc)}
        return jsonify({"status": "degraded", "checks": checks}), 503

    return jsonify({"status": "ok", "checks": checks}), 200
