# backend/shopledger/routes/system.py
"""
System health and version endpoints.

Health touches every ledger table family so a broken schema or an
unreachable database shows up before the first checkout does.
"""

import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Product, Batch, SaleInvoice, PurchaseInvoice, InTransitInvoice
from ..services.edit_state import current_edit, EDIT_KIND_SALE, EDIT_KIND_PURCHASE
from ..services.settings_service import get_currency_settings
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)

API_VERSION = "0.1.0"


def _timed(check, label: str) -> dict:
    """Run `check()` -> (status, extra) and stamp it with its latency in ms."""
    started = time.perf_counter()
    try:
        status, extra = check()
    except Exception:
        current_app.logger.exception("%s health check failed", label)
        status, extra = "unhealthy", {"error": f"{label} error"}
    return {"status": status, "latency_ms": round((time.perf_counter() - started) * 1000, 2), **extra}


def _database_check():
    counts = {
        model.__tablename__: db.session.query(model).count()
        for model in (Product, Batch, SaleInvoice, PurchaseInvoice, InTransitInvoice)
    }
    return "healthy", {"details": counts}


def _ledger_check():
    """
    The currency table must hold the base currency. Open edit pointers are
    degraded: they block editing any other invoice of that kind.
    """
    settings = get_currency_settings()
    if settings.base_currency not in settings.configs:
        return "unhealthy", {"error": f"Base currency {settings.base_currency} missing from currency table"}

    open_edits = {}
    for kind in (EDIT_KIND_SALE, EDIT_KIND_PURCHASE):
        pointer = current_edit(kind)
        if pointer is not None:
            open_edits[kind] = pointer.invoice_id
    details = {"base_currency": settings.base_currency, "open_edits": open_edits}
    if open_edits:
        return "degraded", {"warning": "Invoices open for edit", "details": details}
    return "healthy", {"details": details}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    started = time.perf_counter()
    checks = {
        "database": _timed(_database_check, "Database"),
        "ledger": _timed(_ledger_check, "Ledger"),
    }
    statuses = {check["status"] for check in checks.values()}
    if "unhealthy" in statuses:
        overall, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall, http_status = "degraded", 200
    else:
        overall, http_status = "healthy", 200

    return {
        "status": overall,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment info."""
    return {
        "api_version": API_VERSION,
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
