# backend/almacen/routes/system.py
"""
System health endpoint.

Checks database connectivity and reports whether the caja module is on and
has an open session.
"""

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Product, CashRegister, REGISTER_OPEN
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        open_registers = db.session.query(CashRegister).filter_by(status=REGISTER_OPEN).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "open_registers": open_registers,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database check failed
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200

    return {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "cash_register_enabled": bool(current_app.config.get("CASH_REGISTER_ENABLED", True)),
        "checks": {"database": database_health},
    }, http_status
