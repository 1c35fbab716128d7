"""
FastAPI application factory for the Matchday API service.

Creates the app with:
- REST routes (matches, live, analysis, history, quota)
- Middleware stack
- Health check endpoint
- Lifespan management (sync runtime startup/shutdown)
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable

from fastapi import FastAPI

from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server
from sync.runtime import SyncRuntime

from api.dependencies import init_dependencies
from api.middleware import setup_middleware
from api.routes.analysis import router as analysis_router
from api.routes.matches import router as matches_router
from api.routes.quota import router as quota_router

logger = get_logger(__name__)

# Retry startup connections (e.g. Redis not ready yet in a fresh deployment)
_CONNECT_RETRY_ATTEMPTS = 10
_CONNECT_RETRY_BASE_DELAY_S = 2.0


async def _connect_with_retry(connect_fn: Callable[[], Awaitable[None]], name: str) -> None:
    """Call async connect_fn(); retry with exponential backoff on failure."""
    for attempt in range(1, _CONNECT_RETRY_ATTEMPTS + 1):
        try:
            await connect_fn()
            return
        except Exception as exc:
            if attempt == _CONNECT_RETRY_ATTEMPTS:
                raise
            delay = _CONNECT_RETRY_BASE_DELAY_S * (2 ** (attempt - 1))
            logger.warning(
                "connect_retry",
                name=name,
                attempt=attempt,
                max_attempts=_CONNECT_RETRY_ATTEMPTS,
                delay_s=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without Redis or upstream providers."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the sync runtime, connect it, and tear it down on shutdown."""
    settings = get_settings()
    setup_logging("api")
    start_metrics_server()

    runtime = SyncRuntime(settings)
    await _connect_with_retry(runtime.start, "sync_runtime")
    init_dependencies(runtime)

    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        credentials=settings.key_count,
    )

    yield

    await runtime.close()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing without Redis."""
    app = FastAPI(
        title="Matchday API",
        description="Quota-aware football fixture sync and analysis",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(matches_router)
    app.include_router(analysis_router)
    app.include_router(quota_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    return app


app = create_app()
