"""Health check endpoint with database and revocation cache connectivity checks."""

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from tokengate.core import check_db_connection, settings
from tokengate.core.redis import check_redis_connection

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    revocation_cache: str


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        status.HTTP_200_OK: {"description": "Service is healthy"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Service is unhealthy"},
    },
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Health check endpoint.

    Returns 503 if the database or the revocation cache is unreachable. Without
    a revocation cache no token can be safely honored.
    """
    db_healthy = await check_db_connection()

    redis_client = getattr(request.app.state, "redis", None)
    if redis_client is None:
        cache_status = "in-memory"
        cache_healthy = True
    else:
        cache_healthy = await check_redis_connection(redis_client)
        cache_status = "connected" if cache_healthy else "disconnected"

    healthy = db_healthy and cache_healthy
    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        version=settings.app_version,
        database="connected" if db_healthy else "disconnected",
        revocation_cache=cache_status,
    )
