"""Manual scrape trigger endpoint."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends

from kupon.core.exceptions import NotFoundError
from kupon.dependencies import get_orchestrator, verify_api_key
from kupon.schemas import ApiResponse, TriggerRequest, TriggerResult
from kupon.scrapers.orchestrator import ScrapeOrchestrator

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/trigger", response_model=ApiResponse, dependencies=[Depends(verify_api_key)])
async def trigger_scrape(
    body: Optional[TriggerRequest] = None,
    orchestrator: ScrapeOrchestrator = Depends(get_orchestrator),
):
    """Start one scrape cycle in the background.

    A trigger while a cycle is running is acknowledged but not queued
    (``data.accepted`` is false).
    """
    platform = body.platform if body else None
    if platform is not None:
        platform = platform.strip().lower()
        if not orchestrator.factory.has_adapter(platform):
            raise NotFoundError("Platform", platform)
        platforms = [platform]
    else:
        platforms = [c.slug for c in orchestrator.enabled_configs()]

    accepted = orchestrator.trigger_in_background([platform] if platform else None)
    logger.info("scrape_triggered", platforms=platforms, accepted=accepted)

    if accepted:
        message = f"Scrape started for {', '.join(platforms) or 'no platforms'}"
    else:
        message = "A scrape cycle is already running; trigger ignored"

    return ApiResponse(
        message=message,
        data=TriggerResult(accepted=accepted, platforms=platforms),
    )
