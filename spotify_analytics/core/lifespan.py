from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request

from spotify_analytics.core.config import settings
from spotify_analytics.services.analytics import AnalyticsService
from spotify_analytics.utils.logger import setup_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the analytics service for the life of the app."""
    setup_logging()
    logger.info("Starting Spotify Analytics API", version=settings.version)

    service = AnalyticsService(database_url=settings.database_url)
    await service.initialize()
    app.state.analytics = service

    try:
        yield
    finally:
        app.state.analytics = None
        await service.cleanup()
        logger.info("Spotify Analytics API stopped")


def get_analytics_service(request: Request) -> AnalyticsService:
    """Dependency returning the service created at startup."""
    service = getattr(request.app.state, "analytics", None)
    if service is None:
        raise RuntimeError("Analytics service not initialized")
    return service
