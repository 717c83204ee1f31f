"""
Health endpoints: liveness and readiness.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from galley.core.database import check_connection, get_engine

logger = logging.getLogger("galley")

router = APIRouter(tags=["health"])

REQUIRED_TABLES = (
    "subscribers",
    "user_usage",
    "idempotency_keys",
    "orders",
    "automation_rules",
    "automation_logs",
    "parsed_documents",
    "dynamic_forms",
    "courses",
    "lessons",
)


@router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Readiness check: DB connectivity + required tables."""
    if not check_connection():
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    try:
        inspector = inspect(get_engine())
        missing = [t for t in REQUIRED_TABLES if not inspector.has_table(t)]
    except SQLAlchemyError as e:
        logger.error(f"[readyz] table inspection failed: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning(f"[readyz] {detail}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": detail})
    return {"status": "ok"}
