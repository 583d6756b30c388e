"""
Health endpoints for the shop admin service.

Lightweight probes for operational monitoring without exposing secrets.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from shopledger.core.database import get_engine

logger = logging.getLogger("shopledger")

root_router = APIRouter(tags=["health"])

REQUIRED_TABLES = [
    "shops",
    "app_users",
    "pricing_plans",
    "subscriptions",
    "admin_actions",
    "backups",
]


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz():
    """Readiness check: DB connectivity + required tables."""
    try:
        engine = get_engine()
        # Connection probe
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")

        # Table existence probe (non-fatal per-table)
        inspector = inspect(engine)
        missing = [t for t in REQUIRED_TABLES if not inspector.has_table(t)]
        if missing:
            detail = f"missing tables: {', '.join(missing)}"
            logger.warning(f"[readyz] {detail}")
            return JSONResponse(status_code=503, content={"status": "error", "detail": detail})

        return {"status": "ok"}
    except Exception as e:
        logger.error(f"[readyz] readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})
