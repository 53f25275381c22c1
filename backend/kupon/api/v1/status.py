"""Pipeline status endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends

from kupon.config import Settings
from kupon.dependencies import get_gateway, get_orchestrator, get_scheduler, get_settings
from kupon.schemas import ApiResponse
from kupon.scrapers.orchestrator import ScrapeOrchestrator
from kupon.scrapers.scheduler import ScrapeScheduler
from kupon.services.persistence import SQLAlchemyPersistenceGateway

router = APIRouter()


@router.get("", response_model=ApiResponse)
async def get_status(
    gateway: SQLAlchemyPersistenceGateway = Depends(get_gateway),
    orchestrator: ScrapeOrchestrator = Depends(get_orchestrator),
    scheduler: Optional[ScrapeScheduler] = Depends(get_scheduler),
    settings: Settings = Depends(get_settings),
):
    """Orchestrator state, scheduled jobs and 24h scrape metrics."""
    return ApiResponse(
        data={
            "orchestrator": orchestrator.get_status(),
            "scheduler": {
                "running": scheduler.is_running() if scheduler else False,
                "jobs": scheduler.get_jobs_status() if scheduler else {},
            },
            "metrics": await gateway.get_metrics(),
            "platforms": await gateway.get_platform_stats(),
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
        }
    )
