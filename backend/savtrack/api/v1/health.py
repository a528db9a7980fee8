"""GET /health: unauthenticated liveness check with DB status."""
from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from savtrack.core.config import get_settings
from savtrack.core.db import check_db_connection

router = APIRouter()
settings = get_settings()


class HealthResponse(BaseModel):
    status: str
    db: str
    environment: str


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(response: Response) -> HealthResponse:
    db_ok = await check_db_connection()
    if not db_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return HealthResponse(
        status="ok" if db_ok else "degraded",
        db="ok" if db_ok else "error",
        environment=settings.environment,
    )
