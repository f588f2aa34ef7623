"""
ScribeJournal Backend — Health Check Route
============================================

What:  GET /health for container probes and load balancers.
How:   SELECT 1 against the engine and a lightweight capability probe.

Status levels:
    healthy    database and capability reachable           (200)
    degraded   capability unreachable; entries still load  (200)
    unhealthy  database unreachable                        (503)
"""

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from scribejournal import __version__
from scribejournal.schemas.journal import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request):
    state = request.app.state
    db_status = "connected"
    capability_status = "available"
    overall = "healthy"

    # ── Database ──────────────────────────────────────────────────────────
    engine = getattr(state, "engine", None)
    if engine is None:
        db_status = "disconnected"
        overall = "unhealthy"
    else:
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            db_status = "disconnected"
            overall = "unhealthy"
            logger.warning("Health check: database unreachable: %s", str(e))

    # ── Capability ────────────────────────────────────────────────────────
    if not await state.capability.health_check():
        capability_status = "unavailable"
        if overall == "healthy":
            overall = "degraded"

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        capability=capability_status,
        active_sessions=len(state.sessions),
        uptime_seconds=round(time.time() - state.started_at, 2),
    )
    if overall == "unhealthy":
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
