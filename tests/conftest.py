"""Shared fixtures: a throwaway SQLite database with the track schema."""

import pytest
from sqlalchemy import insert

from spotify_analytics.db.database import create_engine, reset_schema
from spotify_analytics.models.track import TRACK_COLUMNS, spotify_tracks
from spotify_analytics.services.analytics import AnalyticsService


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'spotify.db'}"


@pytest.fixture
async def engine(database_url):
    """Engine over a freshly created, empty track table."""
    eng = create_engine(database_url)
    async with eng.begin() as conn:
        await conn.run_sync(reset_schema)
    yield eng
    await eng.dispose()


@pytest.fixture
async def service(engine, database_url):
    svc = AnalyticsService(database_url=database_url)
    await svc.initialize()
    yield svc
    await svc.cleanup()


@pytest.fixture
def make_row():
    """Build a full table row; unspecified columns are NULL."""

    def _make_row(**values):
        unknown = set(values) - set(TRACK_COLUMNS)
        assert not unknown, f"not a track column: {unknown}"
        row = dict.fromkeys(TRACK_COLUMNS)
        row.update(values)
        return row

    return _make_row


@pytest.fixture
def insert_rows(engine, make_row):
    async def _insert_rows(*rows):
        async with engine.begin() as conn:
            await conn.execute(insert(spotify_tracks), [make_row(**row) for row in rows])

    return _insert_rows
