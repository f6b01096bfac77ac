# backend/sitestock/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import InventoryLocation, InventorySession, Permission
from sitestock.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and that permissions were initialized.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        location_count = db.session.query(InventoryLocation).count()
        draft_count = db.session.query(InventorySession).filter(
            InventorySession.approved.is_(False),
            InventorySession.deleted_at.is_(None),
        ).count()
        permission_count = db.session.query(Permission).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy" if permission_count else "degraded",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "locations": location_count,
                "draft_sessions": draft_count,
                "permissions_initialized": permission_count > 0,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded (permissions not initialized yet)
    - 503: database unreachable
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200

    response = {
        "status": database_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database_health,
        }
    }

    return response, http_status
