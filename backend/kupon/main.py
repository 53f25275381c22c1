"""Kupon Backend -- FastAPI Application Entry Point."""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kupon.api.v1.router import api_v1_router
from kupon.config import Settings, settings as default_settings
from kupon.core.exceptions import KuponException, NotFoundError
from kupon.core.logging import configure_logging
from kupon.db.seed import seed_platforms
from kupon.db.session import async_session_factory, create_tables, engine
from kupon.schemas import ErrorResponse
from kupon.scrapers.orchestrator import ScrapeOrchestrator
from kupon.scrapers.register_adapters import register_all_adapters
from kupon.scrapers.scheduler import ScrapeScheduler
from kupon.services.persistence import SQLAlchemyPersistenceGateway

logger = structlog.get_logger(__name__)

_ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    422: "validation_error",
    503: "service_unavailable",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events.

    Services already placed on ``app.state`` by create_app() are kept;
    only the missing ones are built here.
    """
    settings: Settings = app.state.settings
    configure_logging(settings.LOG_LEVEL, json=settings.LOG_JSON)
    logger.info("api_starting", environment=settings.ENVIRONMENT, debug=settings.DEBUG)

    factory = register_all_adapters()

    if app.state.gateway is None:
        await create_tables(engine)
        await seed_platforms(async_session_factory, factory.get_configs())
        app.state.gateway = SQLAlchemyPersistenceGateway(async_session_factory)
        logger.info("database_ready")

    if app.state.orchestrator is None:
        app.state.orchestrator = ScrapeOrchestrator(app.state.gateway, factory, settings=settings)

    owned_scheduler: Optional[ScrapeScheduler] = None
    if app.state.scheduler is None and settings.ENVIRONMENT != "test":
        owned_scheduler = ScrapeScheduler(app.state.orchestrator, settings=settings)
        owned_scheduler.start()
        app.state.scheduler = owned_scheduler
    elif app.state.scheduler is None:
        logger.info("scheduler_disabled", reason="test environment")

    yield

    logger.info("api_shutting_down")
    if owned_scheduler is not None:
        owned_scheduler.stop()
    await app.state.orchestrator.shutdown()


def _error_response(status_code: int, error: str, message: Optional[str]) -> JSONResponse:
    body = ErrorResponse(error=error, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def kupon_exception_handler(request: Request, exc: KuponException) -> JSONResponse:
    if isinstance(exc, NotFoundError):
        return _error_response(status.HTTP_404_NOT_FOUND, "not_found", exc.message)
    logger.error("request_failed", path=request.url.path, error=exc.message)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, type(exc).__name__, exc.message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _error_response(exc.status_code, _ERROR_CODES.get(exc.status_code, "http_error"), str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, "validation_error", problems)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=exc)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "Internal server error")


def create_app(
    gateway: Optional[SQLAlchemyPersistenceGateway] = None,
    orchestrator: Optional[ScrapeOrchestrator] = None,
    scheduler: Optional[ScrapeScheduler] = None,
    settings: Settings = default_settings,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        gateway: Pre-built persistence gateway (tests); built at startup if omitted
        orchestrator: Pre-built orchestrator (tests); built at startup if omitted
        scheduler: Pre-built scheduler; started at startup outside the test environment
        settings: Settings instance

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Kupon API",
        description="Coupon and promo aggregator for Indonesian e-commerce platforms",
        version=settings.VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.gateway = gateway
    app.state.orchestrator = orchestrator
    app.state.scheduler = scheduler

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.add_exception_handler(KuponException, kupon_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Register API v1 router
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "Kupon API",
            "version": settings.VERSION,
            "docs": "/docs" if settings.DEBUG else None,
            "health": "/api/v1/health",
        }

    return app


app = create_app()
