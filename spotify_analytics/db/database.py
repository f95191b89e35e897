from pathlib import Path
from typing import Optional

import structlog
from sqlalchemy import MetaData
from sqlalchemy.engine import Connection, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from spotify_analytics.core.config import settings

logger = structlog.get_logger()

metadata = MetaData()


def create_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    """Create the async engine for the configured database."""
    url = make_url(url or settings.database_url)
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    return create_async_engine(
        url,
        echo=settings.database_echo if echo is None else echo,
    )


def reset_schema(conn: Connection) -> None:
    """Drop the track table if it exists, then create it with its index.

    Run through ``AsyncConnection.run_sync``.
    """
    from spotify_analytics.models.track import spotify_tracks  # register table

    spotify_tracks.drop(conn, checkfirst=True)
    spotify_tracks.create(conn)
    logger.info("Schema reset", table=spotify_tracks.name)


def drop_artist_index(conn: Connection) -> None:
    from spotify_analytics.models.track import artist_index

    artist_index.drop(conn, checkfirst=True)


def create_artist_index(conn: Connection) -> None:
    from spotify_analytics.models.track import artist_index

    artist_index.create(conn, checkfirst=True)
