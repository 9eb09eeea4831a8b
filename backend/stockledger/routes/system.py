# backend/stockledger/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app, jsonify
from ..extensions import db
from ..models import Outlet, Product, StockOpname
from ..models.opname import OPNAME_STATUS_IN_PROGRESS
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and report basic counts.

    Open opnames are reported because sessions never expire on their own.
    """
    start_time = time.time()
    try:
        outlet_count = db.session.query(Outlet).count()
        product_count = db.session.query(Product).count()
        open_opnames = db.session.query(StockOpname).filter_by(status=OPNAME_STATUS_IN_PROGRESS).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "outlets": outlet_count,
                "products": product_count,
                "open_opnames": open_opnames,
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
    status_code = 200 if database["status"] == "healthy" else 503
    return jsonify({
        "status": database["status"],
        "timestamp": to_utc_z(utcnow()),
        "database": database,
    }), status_code
