"""
Health endpoints for PawMatch.

Lightweight liveness and readiness checks without exposing secrets.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from pawmatch.core.database import check_connection, get_engine

logger = logging.getLogger("pawmatch")

router = APIRouter(tags=["health"])

REQUIRED_TABLES = [
    "swipes",
    "daily_like_usage",
    "cross_lane_connections",
    "user_entitlements",
    "user_consumables",
    "boost_sessions",
]


@router.get("/healthz")
def healthz():
    """Liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Readiness check: DB connectivity + required tables."""
    if not check_connection():
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    inspector = inspect(get_engine())
    missing = [t for t in REQUIRED_TABLES if not inspector.has_table(t)]
    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning(f"[readyz] {detail}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": detail})

    return {"status": "ok"}
