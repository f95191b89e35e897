"""Show how the artist index changes the plan of an artist filter."""

import asyncio
import sys
from spotify_analytics.services.analytics import AnalyticsService
import structlog

logger = structlog.get_logger()

async def index_experiment(artist: str):
    service = AnalyticsService()
    await service.initialize()

    try:
        experiment = await service.index_experiment(artist)
    finally:
        await service.cleanup()

    for label, plan in (
        ("without index", experiment.without_index),
        ("with index", experiment.with_index),
    ):
        logger.info(
            f"Plan {label}",
            node_types=plan.node_types,
            uses_index=plan.uses_index,
            total_cost=plan.total_cost,
            planning_time_ms=plan.planning_time_ms,
            execution_time_ms=plan.execution_time_ms,
        )
    logger.info(
        "Results unchanged by index",
        results_match=experiment.results_match,
        row_count=experiment.row_count,
    )

if __name__ == "__main__":
    if len(sys.argv) != 2:
        sys.exit("usage: python -m scripts.index_experiment ARTIST")
    asyncio.run(index_experiment(sys.argv[1]))
