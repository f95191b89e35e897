"""Load the Spotify/YouTube dataset CSV into the database."""

import asyncio
from spotify_analytics.core.config import settings
from spotify_analytics.db.database import create_engine
from spotify_analytics.services.loader import load_csv
import structlog

logger = structlog.get_logger()

async def load_csv_to_db():
    """Load CSV data to database."""
    logger.info("Starting data load process...")

    engine = create_engine(echo=False)

    try:
        total_inserted = await load_csv(
            engine,
            csv_path=settings.csv_file_path,
            max_rows=settings.max_csv_rows,
            batch_size=settings.load_batch_size,
        )
        logger.info(f"Data load completed! Total records inserted: {total_inserted}")

    except Exception as e:
        logger.error("Error loading data", error=str(e))
        raise
    finally:
        await engine.dispose()

if __name__ == "__main__":
    asyncio.run(load_csv_to_db())
