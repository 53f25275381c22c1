"""Health check endpoint."""

from fastapi import APIRouter, Depends

from kupon.config import Settings
from kupon.dependencies import get_gateway, get_settings
from kupon.schemas import HealthCheckResponse
from kupon.services.persistence import SQLAlchemyPersistenceGateway

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    gateway: SQLAlchemyPersistenceGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    """Return service health status.

    Returns 200 with status "degraded" when the database is unreachable.
    """
    db_ok = await gateway.check_health()
    return HealthCheckResponse(
        status="ok" if db_ok else "degraded",
        database="ok" if db_ok else "error",
        version=settings.VERSION,
        details={"environment": settings.ENVIRONMENT},
    )
