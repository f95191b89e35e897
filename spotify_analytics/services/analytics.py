import asyncio
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from spotify_analytics.core.config import settings
from spotify_analytics.db.database import create_engine
from spotify_analytics.schemas.analytics import (
    IndexExperiment,
    PlanReport,
    QueryInfo,
    QueryResult,
)
from spotify_analytics.services.planner import explain_statement, run_index_experiment
from spotify_analytics.services.queries import Tier, get_query, list_queries

logger = structlog.get_logger()


class AnalyticsService:
    """Runs the query battery against the configured database."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.database_url
        self.engine: Optional[AsyncEngine] = None
        # The experiment drops and recreates the index; one run at a time.
        self._index_lock = asyncio.Lock()
        self._initialized = False

    async def initialize(self):
        """Create the database engine."""
        if self._initialized:
            return

        logger.info("Initializing analytics service")
        self.engine = create_engine(self.database_url)
        self._initialized = True
        logger.info("Analytics service initialized successfully")

    def _require_engine(self) -> AsyncEngine:
        if not self._initialized or self.engine is None:
            raise RuntimeError("Analytics service not initialized")
        return self.engine

    def catalog(self, tier: Optional[Tier] = None) -> List[QueryInfo]:
        return [
            QueryInfo(
                name=query.name,
                tier=query.tier.value,
                description=query.description,
                parameters=dict(query.defaults),
            )
            for query in list_queries(tier)
        ]

    async def run(
        self, name: str, max_rows: Optional[int] = None, **params: Any
    ) -> QueryResult:
        """Execute one query of the battery and return its rows.

        Database errors propagate unchanged; a failed statement returns nothing.
        """
        engine = self._require_engine()
        query = get_query(name)
        stmt = query.build(**params)

        async with engine.connect() as conn:
            result = await conn.execute(stmt)
            columns = list(result.keys())
            if max_rows is None:
                fetched = result.all()
            else:
                fetched = result.fetchmany(max_rows + 1)

        truncated = max_rows is not None and len(fetched) > max_rows
        if truncated:
            fetched = fetched[:max_rows]
        rows: List[Dict[str, Any]] = [dict(row._mapping) for row in fetched]

        logger.info("Query executed", query=name, row_count=len(rows), truncated=truncated)
        return QueryResult(
            name=query.name,
            tier=query.tier.value,
            columns=columns,
            rows=rows,
            row_count=len(rows),
            truncated=truncated,
        )

    async def explain(self, name: str, analyze: bool = True, **params: Any) -> PlanReport:
        """Return the engine's execution plan for one query."""
        engine = self._require_engine()
        stmt = get_query(name).build(**params)

        async with engine.connect() as conn:
            report = await conn.run_sync(explain_statement, stmt, analyze)

        logger.info("Query explained", query=name, node_types=report.node_types)
        return report

    async def index_experiment(self, artist: str) -> IndexExperiment:
        """Compare the artist filter's plan before and after creating the index."""
        engine = self._require_engine()
        if not artist:
            raise ValueError("'artist' is required")

        async with self._index_lock:
            async with engine.begin() as conn:
                return await conn.run_sync(run_index_experiment, artist)

    async def cleanup(self):
        logger.info("Cleaning up analytics service")
        if self.engine is not None:
            await self.engine.dispose()
        self.engine = None
        self._initialized = False
