# backend/privatelabel/routes/system.py
"""
System health and media endpoints.

/health reports database and outbox status; /media serves label artwork
stored by the local media store.
"""

import time

from flask import Blueprint, abort, current_app, send_file

from ..extensions import db
from ..models import ClientOrder, OutboxTask, PrivateLabelClient
from ..services import media_service
from ..time_utils import utcnow
from ..validation import ValidationError

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Check database connectivity with a couple of cheap counts."""
    start_time = time.time()
    try:
        client_count = db.session.query(PrivateLabelClient).count()
        order_count = db.session.query(ClientOrder).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "clients": client_count,
                "orders": order_count,
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


def check_outbox_health() -> dict:
    """
    Degraded when side effects have exhausted their retries; those need
    manual attention (`flask outbox list --status failed`).
    """
    start_time = time.time()
    try:
        max_attempts = current_app.config.get("OUTBOX_MAX_ATTEMPTS", 5)
        pending = db.session.query(OutboxTask).filter(OutboxTask.status == "pending").count()
        dead = db.session.query(OutboxTask).filter(
            OutboxTask.status == "failed",
            OutboxTask.attempts >= max_attempts,
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000
        result = {
            "status": "degraded" if dead else "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "pending": pending,
                "exhausted": dead,
                "dispatch_mode": current_app.config.get("OUTBOX_DISPATCH_MODE"),
            }
        }
        if dead:
            result["warning"] = f"{dead} outbox task(s) exhausted their retries"
        return result
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Outbox health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Outbox error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    outbox_health = check_outbox_health()

    all_checks = [database_health, outbox_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "outbox": outbox_health,
        }
    }

    return response, http_status


@system_bp.get("/media/<path:public_id>")
def serve_media(public_id: str):
    store = media_service.get_media_store()
    try:
        path = store.path_for(public_id)
    except ValidationError:
        abort(404)
    if not path.is_file():
        abort(404)
    return send_file(path)
