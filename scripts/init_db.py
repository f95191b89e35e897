"""Create (or recreate) the track table and its artist index."""

import asyncio
from spotify_analytics.db.database import create_engine, reset_schema
import structlog

logger = structlog.get_logger()

async def init_db():
    """Drop the track table if present, then create it."""
    logger.info("Initializing database...")

    engine = create_engine(echo=True)

    async with engine.begin() as conn:
        await conn.run_sync(reset_schema)

    await engine.dispose()
    logger.info("Database initialized successfully")

if __name__ == "__main__":
    asyncio.run(init_db())
