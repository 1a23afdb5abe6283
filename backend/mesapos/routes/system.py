# Overview: Flask API route for system health; reports database and drawer state.

"""
System health endpoint.

Reports database connectivity and the state of the drawer so a terminal
can tell at start-up whether a cash session must be opened first.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..services import cash_session_service

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a trivial round trip.

    Returns dict with status and latency.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    if database["status"] != "healthy":
        return {"status": "unhealthy", "database": database}, 503

    open_session = cash_session_service.find_open_session()
    return {
        "status": "ok",
        "database": database,
        "cash_session_open": open_session is not None,
        "cash_session_id": open_session.id if open_session else None,
    }
