"""FastAPI dependency injection providers.

Long-lived services are created once by the application factory (or its
lifespan) and stored on ``app.state``; these providers hand them to
route handlers.
"""

import secrets
from typing import Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from kupon.config import Settings
from kupon.scrapers.factory import AdapterFactory
from kupon.scrapers.orchestrator import ScrapeOrchestrator
from kupon.scrapers.scheduler import ScrapeScheduler
from kupon.services.persistence import SQLAlchemyPersistenceGateway

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gateway(request: Request) -> SQLAlchemyPersistenceGateway:
    gateway = request.app.state.gateway
    if gateway is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database not initialized")
    return gateway


def get_orchestrator(request: Request) -> ScrapeOrchestrator:
    orchestrator = request.app.state.orchestrator
    if orchestrator is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Orchestrator not initialized")
    return orchestrator


def get_scheduler(request: Request) -> Optional[ScrapeScheduler]:
    """The scheduler is absent in the test environment."""
    return request.app.state.scheduler


def get_factory(orchestrator: ScrapeOrchestrator = Depends(get_orchestrator)) -> AdapterFactory:
    return orchestrator.factory


async def verify_api_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> None:
    """Check the bearer token against SCRAPER_API_KEY.

    Authentication is disabled when no key is configured.

    Raises:
        HTTPException: 401 when a key is configured and the token is
            missing or does not match
    """
    configured_key = settings.SCRAPER_API_KEY
    if not configured_key:
        return

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not secrets.compare_digest(credentials.credentials.encode(), configured_key.encode()):
        logger.warning("scrape_api_key_rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )
