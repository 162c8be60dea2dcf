"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from stream_assets.api.deps import ExecutorDep
from stream_assets.config import settings
from stream_assets.logging import get_logger

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    components: dict[str, str] | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    database: bool
    redis: bool
    remote_exec: bool


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Basic health check endpoint that verifies the API is running.",
)
async def health_check() -> HealthResponse:
    """Basic health check - is the API up?

    Reports which remote execution provider is configured.
    """
    from stream_assets import __version__

    return HealthResponse(
        status="healthy",
        version=__version__,
        components={"remote_exec": settings.remote_exec_provider},
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Readiness check that verifies the database, Redis and the media host.",
)
async def readiness_check(executor: ExecutorDep) -> ReadinessResponse:
    """Comprehensive readiness check including dependencies."""
    # Check database
    database_ok = False
    try:
        from sqlalchemy import text

        from stream_assets.db.session import engine

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            database_ok = True
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))

    # Check Redis
    redis_ok = False
    try:
        import redis

        r = redis.from_url(settings.redis_url)
        r.ping()
        redis_ok = True
    except Exception as e:
        logger.error("redis_health_check_failed", error=str(e))

    # Check media host
    remote_ok = False
    try:
        remote_ok = await executor.health_check()
    except Exception as e:
        logger.error("remote_exec_health_check_failed", error=str(e))

    return ReadinessResponse(
        ready=database_ok and redis_ok and remote_ok,
        database=database_ok,
        redis=redis_ok,
        remote_exec=remote_ok,
    )


@router.get(
    "/health/live",
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Simple liveness probe for Kubernetes.",
)
async def liveness_check() -> dict[str, str]:
    """Kubernetes liveness probe - is the process alive?"""
    return {"status": "alive"}
