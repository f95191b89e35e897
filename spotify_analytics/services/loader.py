"""Bulk load of the Spotify/YouTube dataset into the track table."""

import asyncio
from pathlib import Path
from typing import Dict, Iterator, Optional

import pandas as pd
import structlog
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncEngine

from spotify_analytics.core.config import settings
from spotify_analytics.models.track import TRACK_COLUMNS, spotify_tracks
from spotify_analytics.schemas.track import TrackRecord

logger = structlog.get_logger()

# Raw export headers (lower-cased) that differ from the table's column names.
COLUMN_ALIASES = {
    "energyliveness": "energy_liveness",
    "most_playedon": "most_played_on",
    "most_played": "most_played_on",
    "streams": "stream",
}


def clean_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Map the raw export onto the table's columns.

    Duplicate rows are kept; they are part of the dataset.
    """
    df = df.copy()
    df.columns = [col.strip().lower().replace(" ", "_") for col in df.columns]
    df = df.rename(columns=COLUMN_ALIASES)

    if "duration_min" not in df.columns and "duration_ms" in df.columns:
        df["duration_min"] = df["duration_ms"] / 60000

    df = df[[col for col in TRACK_COLUMNS if col in df.columns]]
    df = df.dropna(subset=[col for col in ("artist", "track") if col in df.columns])
    return df.astype(object).where(pd.notna(df), None)


def iter_records(df: pd.DataFrame) -> Iterator[Dict]:
    """Validate each row and yield it as a dict keyed by table column."""
    for row in df.to_dict(orient="records"):
        yield TrackRecord(**row).model_dump()


async def load_frame(
    engine: AsyncEngine, df: pd.DataFrame, batch_size: Optional[int] = None
) -> int:
    """Insert a cleaned frame in batches; returns the number of rows inserted."""
    batch_size = batch_size or settings.load_batch_size
    records = list(iter_records(df))
    total_inserted = 0

    async with engine.begin() as conn:
        for i in range(0, len(records), batch_size):
            batch = records[i : i + batch_size]
            await conn.execute(insert(spotify_tracks), batch)
            total_inserted += len(batch)
            logger.info(
                "Inserted batch", batch=i // batch_size + 1, total=total_inserted
            )

    return total_inserted


async def load_csv(
    engine: AsyncEngine,
    csv_path: Optional[str] = None,
    max_rows: Optional[int] = None,
    batch_size: Optional[int] = None,
) -> int:
    """Read, clean and load the dataset CSV."""
    path = Path(csv_path or settings.csv_file_path)
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")

    logger.info("Loading CSV file", path=str(path))
    loop = asyncio.get_running_loop()
    raw = await loop.run_in_executor(
        None, lambda: pd.read_csv(path, nrows=max_rows, low_memory=False)
    )
    df = clean_frame(raw)
    logger.info("Data loaded and cleaned", raw_rows=len(raw), rows=len(df))

    return await load_frame(engine, df, batch_size)
