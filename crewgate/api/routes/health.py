"""Health & Readiness Probes — liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if database is unreachable (readiness)
    - Readiness also reports how many deferred assessments are in flight

Design Decisions:
    - Separate liveness/readiness: liveness restarts, readiness removes from load balancer
    - Module attributes read at call time: the singletons are set by the lifespan
"""

import logging
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

import crewgate.infrastructure.background_tasks as tasks_module
import crewgate.infrastructure.database as db_module

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "crewgate-api",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check():
    """Readiness probe — includes database connectivity."""
    manager = db_module.db_manager
    db_ok = await manager.health_check() if manager else False
    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "database_unavailable",
            },
        )
    registry = tasks_module.task_registry
    return {
        "status": "ready",
        "checks": {"database": "healthy"},
        "pending_assessments": registry.pending if registry else 0,
    }
