"""
FastAPI application hosting the sync engine.

The app exposes read-only health, sync status, and metrics routes; the
adaptive sync loop runs in the background for the lifetime of the process.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from hoopsync.api.routes import health, sync
from hoopsync.core.config import settings
from hoopsync.core.database import init_db
from hoopsync.core.logging import configure_logging, get_logger
from hoopsync.core.middleware import CorrelationIdMiddleware
from hoopsync.core.scheduler import start_scheduler, stop_scheduler
from hoopsync.services.runtime import close_runtime

# Configure structured logging with JSON formatter
configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    # checkfirst: existing tables are left alone
    init_db()

    await start_scheduler()
    logger.info("Automation scheduler started")

    yield

    await stop_scheduler()
    logger.info("Automation scheduler stopped")
    await close_runtime()
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Sports data synchronization and caching engine",
    lifespan=lifespan,
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(health.router)
app.include_router(sync.router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "sync_health": "/health/sync",
            "cache_health": "/health/cache",
            "sync_status": "/api/v1/sync/status",
            "metrics": "/metrics",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "hoopsync.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
