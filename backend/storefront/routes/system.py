# backend/storefront/routes/system.py
"""
System health endpoint.

Reports database connectivity and whether the external integrations are
configured, for deployment debugging.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..services import abandoned_cart_service, clover_sync_service
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


@system_bp.get("/api/health")
def health():
    config = current_app.config
    database = check_database_health()
    body = {
        "status": "ok" if database["status"] == "healthy" else "degraded",
        "timestamp": to_utc_z(utcnow()),
        "database": database,
        "integrations": {
            "clover_inventory": bool(config.get("CLOVER_API_TOKEN") and config.get("CLOVER_MERCHANT_ID")),
            "clover_payments": bool(config.get("CLOVER_ECOMM_PRIVATE_TOKEN")),
            "geocoding": bool(config.get("GOOGLE_GEOCODING_API_KEY")),
            "email": not config.get("MAIL_SUPPRESS_SEND"),
        },
        "jobs": {
            "enabled": bool(config.get("BACKGROUND_JOBS_ENABLED")),
            "clover": clover_sync_service.sync_status(),
            "abandoned_carts_running": abandoned_cart_service.is_running(),
        },
    }
    return body, 200 if database["status"] == "healthy" else 503
