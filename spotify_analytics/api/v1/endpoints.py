from datetime import datetime, timezone
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from spotify_analytics.core.config import settings
from spotify_analytics.core.lifespan import get_analytics_service
from spotify_analytics.schemas.analytics import (
    HealthCheck,
    IndexExperiment,
    PlanReport,
    QueryInfo,
    QueryResult,
)
from spotify_analytics.services.analytics import AnalyticsService
from spotify_analytics.services.queries import Tier

logger = structlog.get_logger()
router = APIRouter()


@router.get("/health", response_model=HealthCheck)
async def health_check():
    """Health check endpoint."""
    return HealthCheck(
        status="healthy",
        version=settings.version,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/queries", response_model=List[QueryInfo])
async def list_queries(
    tier: Optional[Tier] = None,
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """List the query battery, optionally for one tier."""
    return analytics.catalog(tier)


@router.get("/queries/{name}", response_model=QueryResult)
async def run_query(
    name: str,
    threshold: Optional[float] = None,
    limit: Optional[int] = Query(default=None, ge=1),
    top_n: Optional[int] = Query(default=None, ge=1),
    require_both: Optional[bool] = None,
    artist: Optional[str] = None,
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """Run one query of the battery."""
    params = _query_params(
        threshold=threshold, limit=limit, top_n=top_n, require_both=require_both, artist=artist
    )
    try:
        return await analytics.run(name, max_rows=settings.max_result_rows, **params)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/queries/{name}/plan", response_model=PlanReport)
async def explain_query(
    name: str,
    analyze: bool = True,
    threshold: Optional[float] = None,
    limit: Optional[int] = Query(default=None, ge=1),
    top_n: Optional[int] = Query(default=None, ge=1),
    require_both: Optional[bool] = None,
    artist: Optional[str] = None,
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """Show the engine's execution plan for one query."""
    params = _query_params(
        threshold=threshold, limit=limit, top_n=top_n, require_both=require_both, artist=artist
    )
    try:
        return await analytics.explain(name, analyze=analyze, **params)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/index-experiment", response_model=IndexExperiment)
async def index_experiment(
    artist: str = Query(..., min_length=1),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """Compare the artist filter's plan without and with the artist index."""
    logger.info("Running index experiment", artist=artist)
    return await analytics.index_experiment(artist)


def _query_params(**params):
    # Only parameters the caller actually sent reach the query builder.
    return {key: value for key, value in params.items() if value is not None}
