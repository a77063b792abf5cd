# backend/tillbook/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app

from ..extensions import get_scheduler, get_store
from ..models import Product, Sale, StockMove

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        session = get_store().session
        product_count = session.query(Product).count()
        sale_count = session.query(Sale).count()
        move_count = session.query(StockMove).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "sales": sale_count,
                "stock_moves": move_count,
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


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    scheduler = get_scheduler()
    status = database["status"]
    return {
        "status": status,
        "database": database,
        "scheduler": {
            "enabled": scheduler is not None,
            "state": scheduler.state if scheduler else None,
        },
    }, (200 if status == "healthy" else 503)
