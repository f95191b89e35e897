from sqlalchemy import BigInteger, Boolean, Column, Float, Index, String, Table

from spotify_analytics.core.config import settings
from spotify_analytics.db.database import metadata

PLATFORMS = ("Spotify", "Youtube")

# One row per (artist, track, album, video); no key, duplicates are expected.
spotify_tracks = Table(
    settings.table_name,
    metadata,
    # Identity
    Column("artist", String(255)),
    Column("track", String(255)),
    Column("album", String(255)),
    Column("album_type", String(50)),
    # Audio features
    Column("danceability", Float),
    Column("energy", Float),
    Column("loudness", Float),
    Column("speechiness", Float),
    Column("acousticness", Float),
    Column("instrumentalness", Float),
    Column("liveness", Float),
    Column("valence", Float),
    Column("tempo", Float),
    Column("duration_min", Float),
    Column("energy_liveness", Float),
    # Video metadata
    Column("title", String(255)),
    Column("channel", String(255)),
    Column("licensed", Boolean),
    Column("official_video", Boolean),
    # Engagement
    Column("views", Float),
    Column("likes", BigInteger),
    Column("comments", BigInteger),
    Column("stream", BigInteger),
    # Platform attribution
    Column("most_played_on", String(50)),
)

artist_index = Index("idx_artist", spotify_tracks.c.artist)

TRACK_COLUMNS = [column.name for column in spotify_tracks.columns]
