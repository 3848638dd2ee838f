"""
Health Routes
=============

FastAPI routes for health check endpoints.
"""

from fastapi import APIRouter

from batchqr.api.dependencies import SessionStoreDep, TaskManagerDep
from batchqr.config.logging import get_logger
from batchqr.config.settings import get_settings
from batchqr.models.schemas import HealthStatus

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthStatus)
async def health_check(sessions: SessionStoreDep, task_manager: TaskManagerDep) -> HealthStatus:
    """Report service status with open session and running export counts."""
    settings = get_settings()
    health_status = HealthStatus(
        status="healthy",
        version=settings.app_version,
        active_sessions=len(sessions),
        active_exports=task_manager.active_jobs,
    )
    logger.debug(
        "Health check completed",
        active_sessions=health_status.active_sessions,
        active_exports=health_status.active_exports,
    )
    return health_status
