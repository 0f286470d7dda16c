"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from sermon_ai.api.dependencies import AIServices
from sermon_ai.api.middleware import setup_middleware
from sermon_ai.api.routes import chat, metrics, providers
from sermon_ai.core.cache import RedisCache
from sermon_ai.core.config import Settings, settings
from sermon_ai.core.database import AsyncSessionLocal, close_db, init_db
from sermon_ai.core.logger import get_logger
from sermon_ai.providers.errors import (
    AggregateFailure,
    IncompleteComparison,
    UnknownProvider,
)
from sermon_ai.providers.registry import ProviderRegistry
from sermon_ai.services.comparison import ComparisonEngine
from sermon_ai.services.metrics import MetricsAggregator, MetricsRecorder
from sermon_ai.services.orchestrator import Orchestrator

logger = get_logger(__name__)


def build_services(
    app_settings: Settings,
    cache: Optional[RedisCache] = None,
    session_factory=AsyncSessionLocal,
    registry: Optional[ProviderRegistry] = None
) -> AIServices:
    """
    Wire the orchestration services for one process.

    Args:
        app_settings: Settings holding credentials and defaults
        cache: Key-value store for the current provider selection
        session_factory: Session factory for the durable store
        registry: Provider registry (default: built from settings)
    """
    registry = registry or ProviderRegistry.from_settings(app_settings)
    orchestrator = Orchestrator(
        registry=registry,
        recorder=MetricsRecorder(session_factory),
        cache=cache,
        default_provider=app_settings.default_provider,
    )
    return AIServices(
        orchestrator=orchestrator,
        aggregator=MetricsAggregator(
            session_factory,
            comparison_providers=app_settings.comparison_providers,
            window_days=app_settings.metrics_window_days
        ),
        comparisons=ComparisonEngine(
            registry,
            providers=app_settings.comparison_providers,
            session_factory=session_factory
        ),
    )


# ============================================================================
# Application Lifespan
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    Creates tables and the service container on startup, then flushes
    metric writes and closes connections on shutdown.
    """
    logger.info("Starting Sermon AI orchestration API", environment=settings.environment)

    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}", exc_info=True)
        raise

    cache = RedisCache()
    await cache.connect()

    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(settings, cache=cache)

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down Sermon AI orchestration API")
    await app.state.services.orchestrator.close()
    await cache.disconnect()
    await close_db()


# ============================================================================
# Error Handlers
# ============================================================================

def _error(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": details}}
    )


async def aggregate_failure_handler(request: Request, exc: AggregateFailure):
    return _error(
        status.HTTP_502_BAD_GATEWAY,
        "aggregate_failure",
        exc.error,
        exc.to_dict()
    )


async def unknown_provider_handler(request: Request, exc: UnknownProvider):
    return _error(
        status.HTTP_404_NOT_FOUND,
        "unknown_provider",
        str(exc),
        {"provider": exc.provider}
    )


async def incomplete_comparison_handler(request: Request, exc: IncompleteComparison):
    return _error(
        422,
        "incomplete_comparison",
        str(exc)
    )


# ============================================================================
# Application Factory
# ============================================================================

def create_app(services: Optional[AIServices] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        services: Pre-built service container (tests); built at startup
            when omitted

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.app_name,
        description="AI provider orchestration for sermon preparation",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan
    )
    app.state.services = services

    setup_middleware(app)

    app.add_exception_handler(AggregateFailure, aggregate_failure_handler)
    app.add_exception_handler(UnknownProvider, unknown_provider_handler)
    app.add_exception_handler(IncompleteComparison, incomplete_comparison_handler)

    app.include_router(providers.router, prefix="/api/ai")
    app.include_router(chat.router, prefix="/api/ai")
    app.include_router(metrics.router, prefix="/api/ai")

    @app.get("/health", tags=["root"])
    @app.get("/healthz", tags=["root"])
    async def health_check():
        """Liveness endpoint for load balancers."""
        return {"status": "healthy", "service": settings.app_name}

    logger.info("Routes registered")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sermon_ai.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
