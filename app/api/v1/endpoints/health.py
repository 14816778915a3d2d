"""Health check endpoints."""

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from app.config import settings
from app.core.redis_client import check_redis_connection
from app.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Liveness response."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Readiness response with dependency status."""

    database: str
    cache: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness check",
)
async def health_check() -> HealthResponse:
    """Report that the process is up without touching any dependency."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    summary="Readiness check",
)
async def detailed_health_check(response: Response) -> DetailedHealthResponse:
    """
    Check the database and the doctor profile cache.

    The database is required: without it the service answers 503. Redis only
    backs a read-through cache, so losing it degrades the service but keeps
    it ready.
    """
    db_healthy = await check_database_connection()
    cache_healthy = await check_redis_connection()

    if not db_healthy:
        overall = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif not cache_healthy:
        overall = "degraded"
    else:
        overall = "healthy"

    return DetailedHealthResponse(
        status=overall,
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if db_healthy else "unhealthy",
        cache="healthy" if cache_healthy else "unavailable",
    )


@router.get("/ping", summary="Simple ping")
async def ping() -> dict[str, str]:
    return {"message": "pong"}
