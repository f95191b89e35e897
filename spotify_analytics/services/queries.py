"""The analytical query battery over the track table.

Every query is a read-only SQLAlchemy Core ``Select`` so that the same
question renders for PostgreSQL and SQLite alike. Queries are grouped in
three tiers: plain filters and aggregates, grouped and conditional
aggregates, and window/CTE/subquery queries.

Null metrics are left out of aggregates (SQL semantics). The only place
they are coalesced to zero is the platform pivot, where a track missing a
platform must read as 0 streams on that platform.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import BigInteger, Float, Select, case, cast, distinct, func, select

from spotify_analytics.core.config import settings
from spotify_analytics.models.track import PLATFORMS, spotify_tracks as t


class Tier(str, Enum):
    BASIC = "basic"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


def _positive(name: str, value: int) -> int:
    if value is None or int(value) < 1:
        raise ValueError(f"'{name}' must be a positive integer, got {value!r}")
    return int(value)


def _count_sum(column):
    # SUM(bigint) is NUMERIC on PostgreSQL; keep counts integral on every engine.
    return cast(func.sum(column), BigInteger)


# Basic tier


def billion_stream_tracks(threshold: int) -> Select:
    return (
        select(t)
        .where(t.c.stream > threshold)
        .order_by(t.c.stream.desc(), t.c.artist, t.c.track)
    )


def albums_with_artists() -> Select:
    return (
        select(t.c.album, t.c.artist)
        .distinct()
        .order_by(t.c.album, t.c.artist)
    )


def licensed_comment_total() -> Select:
    return select(_count_sum(t.c.comments).label("total_comments")).where(
        t.c.licensed.is_(True)
    )


def single_tracks() -> Select:
    return (
        select(t)
        .where(t.c.album_type == "single")
        .order_by(t.c.artist, t.c.track)
    )


def tracks_per_artist() -> Select:
    # Duplicate rows exist per track, so count names rather than rows.
    total_tracks = func.count(distinct(t.c.track)).label("total_tracks")
    return (
        select(t.c.artist, total_tracks)
        .group_by(t.c.artist)
        .order_by(total_tracks.desc(), t.c.artist)
    )


# Intermediate tier


def album_avg_danceability() -> Select:
    avg_danceability = func.avg(t.c.danceability).label("avg_danceability")
    return (
        select(t.c.album, avg_danceability)
        .group_by(t.c.album)
        .having(func.count(t.c.danceability) > 0)
        .order_by(avg_danceability.desc(), t.c.album)
    )


def top_energy_tracks(limit: int) -> Select:
    limit = _positive("limit", limit)
    max_energy = func.max(t.c.energy).label("max_energy")
    return (
        select(t.c.track, max_energy)
        .group_by(t.c.track)
        .having(func.count(t.c.energy) > 0)
        .order_by(max_energy.desc(), t.c.track)
        .limit(limit)
    )


def _engagement_by_track() -> Select:
    total_views = func.sum(t.c.views).label("total_views")
    total_likes = _count_sum(t.c.likes).label("total_likes")
    return (
        select(t.c.track, total_views, total_likes)
        .group_by(t.c.track)
        .order_by(total_views.desc().nulls_last(), t.c.track)
    )


def official_video_engagement() -> Select:
    """Sum views and likes over official-video rows only."""
    return _engagement_by_track().where(t.c.official_video.is_(True))


def official_video_engagement_any() -> Select:
    """Sum views and likes over every row of tracks with any official video."""
    has_official = func.max(case((t.c.official_video.is_(True), 1), else_=0))
    return _engagement_by_track().having(has_official == 1)


def album_track_views() -> Select:
    total_views = func.sum(t.c.views).label("total_views")
    return (
        select(t.c.album, t.c.track, total_views)
        .group_by(t.c.album, t.c.track)
        .order_by(total_views.desc().nulls_last(), t.c.album, t.c.track)
    )


def _platform_pivot() -> Select:
    spotify, youtube = PLATFORMS

    def streamed_on(platform: str):
        return func.coalesce(
            _count_sum(case((t.c.most_played_on == platform, t.c.stream))), 0
        )

    return select(
        t.c.track,
        streamed_on(spotify).label("streamed_on_spotify"),
        streamed_on(youtube).label("streamed_on_youtube"),
    ).group_by(t.c.track)


def platform_streams() -> Select:
    return _platform_pivot().order_by(t.c.track)


def spotify_over_youtube(require_both: bool) -> Select:
    # The comparison runs on the materialized pivot, never inside it.
    pivot = _platform_pivot().cte("platform_streams")
    stmt = select(pivot).where(
        pivot.c.streamed_on_spotify > pivot.c.streamed_on_youtube
    )
    if require_both:
        stmt = stmt.where(pivot.c.streamed_on_youtube != 0)
    return stmt.order_by(pivot.c.streamed_on_spotify.desc(), pivot.c.track)


# Advanced tier


def top_viewed_per_artist(top_n: int) -> Select:
    top_n = _positive("top_n", top_n)
    total_views = func.sum(t.c.views)
    ranked = (
        select(
            t.c.artist,
            t.c.track,
            total_views.label("total_views"),
            func.dense_rank()
            .over(partition_by=t.c.artist, order_by=total_views.desc())
            .label("view_rank"),
        )
        .group_by(t.c.artist, t.c.track)
        .having(func.count(t.c.views) > 0)
        .cte("ranked_tracks")
    )
    return (
        select(ranked)
        .where(ranked.c.view_rank <= top_n)
        .order_by(ranked.c.artist, ranked.c.view_rank, ranked.c.track)
    )


def above_average_liveness() -> Select:
    avg_liveness = select(func.avg(t.c.liveness)).scalar_subquery()
    return (
        select(
            t.c.artist,
            t.c.track,
            t.c.album,
            t.c.liveness,
            avg_liveness.label("avg_liveness"),
        )
        .where(t.c.liveness > avg_liveness)
        .order_by(t.c.liveness.desc(), t.c.artist, t.c.track)
    )


def album_energy_spread() -> Select:
    stats = (
        select(
            t.c.album,
            func.max(t.c.energy).label("highest_energy"),
            func.min(t.c.energy).label("lowest_energy"),
        )
        .group_by(t.c.album)
        .having(func.count(t.c.energy) > 0)
        .cte("album_energy")
    )
    energy_diff = (stats.c.highest_energy - stats.c.lowest_energy).label("energy_diff")
    return select(
        stats.c.album, stats.c.highest_energy, stats.c.lowest_energy, energy_diff
    ).order_by(energy_diff.desc(), stats.c.album)


def energy_liveness_ratio(threshold: float) -> Select:
    measurable = (
        select(t)
        .where(
            t.c.energy.is_not(None),
            t.c.liveness.is_not(None),
            t.c.liveness > 0,
        )
        .cte("measurable_tracks")
    )
    # NULLIF keeps the division safe even if the planner merges both stages.
    ratio = measurable.c.energy / func.nullif(measurable.c.liveness, 0, type_=Float)
    return (
        select(
            measurable.c.artist,
            measurable.c.track,
            measurable.c.album,
            measurable.c.energy,
            measurable.c.liveness,
            ratio.label("energy_liveness_ratio"),
        )
        .where(ratio > threshold)
        .order_by(ratio.desc(), measurable.c.artist, measurable.c.track)
    )


def cumulative_likes() -> Select:
    # Tied views fall back to identity columns so the running sum is stable.
    ordering = [
        t.c.views.desc().nulls_last(),
        t.c.track,
        t.c.artist,
        t.c.album,
        t.c.likes.desc().nulls_last(),
    ]
    running_likes = cast(
        func.sum(t.c.likes).over(order_by=ordering, rows=(None, 0)), BigInteger
    )
    return select(
        t.c.artist,
        t.c.track,
        t.c.album,
        t.c.views,
        t.c.likes,
        running_likes.label("cumulative_likes"),
    ).order_by(*ordering)


def artist_tracks(artist: Optional[str]) -> Select:
    if not artist:
        raise ValueError("'artist' is required")
    return (
        select(t)
        .where(t.c.artist == artist)
        .order_by(t.c.track, t.c.album)
    )


@dataclass(frozen=True)
class QueryDefinition:
    name: str
    tier: Tier
    description: str
    builder: Callable[..., Select]
    defaults: Dict[str, Any] = field(default_factory=dict)

    def build(self, **params) -> Select:
        unknown = set(params) - set(self.defaults)
        if unknown:
            raise ValueError(
                f"Unknown parameter(s) for '{self.name}': {', '.join(sorted(unknown))}"
            )
        merged = dict(self.defaults)
        merged.update({key: value for key, value in params.items() if value is not None})
        return self.builder(**merged)


_DEFINITIONS = [
    QueryDefinition(
        "billion_stream_tracks",
        Tier.BASIC,
        "Tracks streamed more than the threshold (default one billion)",
        billion_stream_tracks,
        {"threshold": settings.stream_threshold},
    ),
    QueryDefinition(
        "albums_with_artists",
        Tier.BASIC,
        "Every album with its artist",
        albums_with_artists,
    ),
    QueryDefinition(
        "licensed_comment_total",
        Tier.BASIC,
        "Total comments on licensed videos",
        licensed_comment_total,
    ),
    QueryDefinition(
        "single_tracks",
        Tier.BASIC,
        "Tracks released on singles",
        single_tracks,
    ),
    QueryDefinition(
        "tracks_per_artist",
        Tier.BASIC,
        "Distinct track count per artist",
        tracks_per_artist,
    ),
    QueryDefinition(
        "album_avg_danceability",
        Tier.INTERMEDIATE,
        "Average danceability per album",
        album_avg_danceability,
    ),
    QueryDefinition(
        "top_energy_tracks",
        Tier.INTERMEDIATE,
        "Tracks with the highest energy",
        top_energy_tracks,
        {"limit": settings.top_energy_limit},
    ),
    QueryDefinition(
        "official_video_engagement",
        Tier.INTERMEDIATE,
        "Views and likes per track, counting official-video rows only",
        official_video_engagement,
    ),
    QueryDefinition(
        "official_video_engagement_any",
        Tier.INTERMEDIATE,
        "Views and likes per track over all rows, for tracks with any official video",
        official_video_engagement_any,
    ),
    QueryDefinition(
        "album_track_views",
        Tier.INTERMEDIATE,
        "Total views per album track",
        album_track_views,
    ),
    QueryDefinition(
        "platform_streams",
        Tier.INTERMEDIATE,
        "Streams per track split by the platform it is most played on",
        platform_streams,
    ),
    QueryDefinition(
        "spotify_over_youtube",
        Tier.INTERMEDIATE,
        "Tracks streamed more on Spotify than on YouTube",
        spotify_over_youtube,
        {"require_both": False},
    ),
    QueryDefinition(
        "top_viewed_per_artist",
        Tier.ADVANCED,
        "Most-viewed tracks per artist by dense rank",
        top_viewed_per_artist,
        {"top_n": settings.top_tracks_per_artist},
    ),
    QueryDefinition(
        "above_average_liveness",
        Tier.ADVANCED,
        "Tracks livelier than the dataset average",
        above_average_liveness,
    ),
    QueryDefinition(
        "album_energy_spread",
        Tier.ADVANCED,
        "Difference between the highest and lowest energy per album",
        album_energy_spread,
    ),
    QueryDefinition(
        "energy_liveness_ratio",
        Tier.ADVANCED,
        "Tracks whose energy-to-liveness ratio exceeds the threshold",
        energy_liveness_ratio,
        {"threshold": settings.energy_liveness_threshold},
    ),
    QueryDefinition(
        "cumulative_likes",
        Tier.ADVANCED,
        "Running total of likes ordered by views",
        cumulative_likes,
    ),
    QueryDefinition(
        "artist_tracks",
        Tier.BASIC,
        "Every row for one artist",
        artist_tracks,
        {"artist": None},
    ),
]

QUERIES: Dict[str, QueryDefinition] = {query.name: query for query in _DEFINITIONS}


def get_query(name: str) -> QueryDefinition:
    try:
        return QUERIES[name]
    except KeyError:
        raise KeyError(f"Unknown query '{name}'") from None


def build_query(name: str, **params) -> Select:
    return get_query(name).build(**params)


def list_queries(tier: Optional[Tier] = None) -> List[QueryDefinition]:
    return [query for query in _DEFINITIONS if tier is None or query.tier == tier]
