# Health check endpoints for orchestrators

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from core.config import settings
from core.database import DatabaseManager
from core.dependencies import get_db_manager

router = APIRouter(prefix="/health", tags=["health"])


class HealthStatus:
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@router.get("/live")
async def liveness_check():
    """
    Basic liveness check - returns 200 if the service is running
    """
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.SERVICE_NAME,
    }


@router.get("/ready")
async def readiness_check(manager: DatabaseManager = Depends(get_db_manager)):
    """Readiness check - the database must answer a trivial query"""
    database = await manager.health_check()
    healthy = database.get("status") == HealthStatus.HEALTHY
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": {"database": database},
        },
    )
