"""Behaviour of the analytical query battery against SQLite."""

import pytest
from sqlalchemy import BigInteger, exc
from sqlalchemy.dialects import postgresql

from spotify_analytics.db.database import drop_artist_index
from spotify_analytics.models.track import spotify_tracks
from spotify_analytics.services.analytics import AnalyticsService
from spotify_analytics.services.queries import QUERIES, Tier, build_query, list_queries


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def test_registry_covers_every_tier():
    tiers = {query.tier for query in QUERIES.values()}
    assert tiers == {Tier.BASIC, Tier.INTERMEDIATE, Tier.ADVANCED}
    assert [q.name for q in list_queries(Tier.ADVANCED)] == [
        "top_viewed_per_artist",
        "above_average_liveness",
        "album_energy_spread",
        "energy_liveness_ratio",
        "cumulative_likes",
    ]


def test_unknown_query_raises_key_error():
    with pytest.raises(KeyError):
        build_query("no_such_query")


def test_unknown_parameter_raises_value_error():
    with pytest.raises(ValueError, match="Unknown parameter"):
        build_query("tracks_per_artist", limit=3)


@pytest.mark.parametrize("name,param", [("top_energy_tracks", "limit"), ("top_viewed_per_artist", "top_n")])
def test_non_positive_limits_rejected(name, param):
    with pytest.raises(ValueError):
        build_query(name, **{param: 0})


def test_artist_filter_requires_artist():
    with pytest.raises(ValueError):
        build_query("artist_tracks")


# ---------------------------------------------------------------------------
# Basic tier
# ---------------------------------------------------------------------------


async def test_single_billion_stream_row_round_trips(service, insert_rows):
    await insert_rows(dict(artist="Gorillaz", track="Feel Good Inc.", stream=1_500_000_000))

    result = await service.run("billion_stream_tracks")

    assert result.row_count == 1
    row = result.rows[0]
    assert row["artist"] == "Gorillaz"
    assert row["stream"] == 1_500_000_000
    assert len(result.columns) == 24


async def test_billion_stream_filter_keeps_duplicates(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="big", stream=2_000_000_000),
        dict(artist="A", track="big", stream=2_000_000_000),
        dict(artist="A", track="small", stream=999_999_999),
        dict(artist="A", track="exact", stream=1_000_000_000),
        dict(artist="A", track="unknown", stream=None),
    )

    result = await service.run("billion_stream_tracks")

    assert [row["track"] for row in result.rows] == ["big", "big"]


async def test_albums_with_artists_are_distinct(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="1", album="Demon Days"),
        dict(artist="A", track="2", album="Demon Days"),
        dict(artist="B", track="3", album="Plastic Beach"),
    )

    result = await service.run("albums_with_artists")

    assert result.rows == [
        {"album": "Demon Days", "artist": "A"},
        {"album": "Plastic Beach", "artist": "B"},
    ]


async def test_licensed_comment_total_uses_native_booleans(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="1", licensed=True, comments=10),
        dict(artist="A", track="2", licensed=True, comments=20),
        dict(artist="A", track="3", licensed=True, comments=None),
        dict(artist="A", track="4", licensed=False, comments=100),
        dict(artist="A", track="5", licensed=None, comments=1000),
    )

    result = await service.run("licensed_comment_total")

    assert result.rows == [{"total_comments": 30}]


async def test_single_tracks(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="one", album_type="single"),
        dict(artist="A", track="two", album_type="album"),
        dict(artist="B", track="three", album_type="compilation"),
    )

    result = await service.run("single_tracks")

    assert [row["track"] for row in result.rows] == ["one"]


async def test_tracks_per_artist_ignores_duplicate_rows(service, insert_rows):
    await insert_rows(
        *[dict(artist="A", track="X", album="P")] * 3,
        dict(artist="A", track="Y", album="P"),
        dict(artist="B", track="Z", album="Q"),
        dict(artist="B", track="Z", album="R"),
    )

    result = await service.run("tracks_per_artist")

    assert result.rows == [
        {"artist": "A", "total_tracks": 2},
        {"artist": "B", "total_tracks": 1},
    ]


# ---------------------------------------------------------------------------
# Intermediate tier
# ---------------------------------------------------------------------------


async def test_album_avg_danceability_skips_all_null_albums(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="1", album="P", danceability=0.4),
        dict(artist="A", track="2", album="P", danceability=0.6),
        dict(artist="A", track="3", album="P", danceability=None),
        dict(artist="B", track="4", album="Q", danceability=None),
        dict(artist="C", track="5", album="R", danceability=0.9),
    )

    result = await service.run("album_avg_danceability")

    assert [row["album"] for row in result.rows] == ["R", "P"]
    assert result.rows[1]["avg_danceability"] == pytest.approx(0.5)


async def test_top_energy_tracks_deduplicates_and_limits(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="loud", energy=0.95),
        dict(artist="A", track="loud", energy=0.90),
        dict(artist="A", track="mid", energy=0.5),
        dict(artist="A", track="soft", energy=0.1),
        dict(artist="A", track="blank", energy=None),
    )

    result = await service.run("top_energy_tracks", limit=2)

    assert [row["track"] for row in result.rows] == ["loud", "mid"]
    assert result.rows[0]["max_energy"] == pytest.approx(0.95)


@pytest.fixture
def official_video_rows():
    return [
        dict(artist="A", track="T", views=100.0, likes=10, official_video=True),
        dict(artist="A", track="T", views=200.0, likes=20, official_video=True),
        dict(artist="A", track="T", views=50.0, likes=5, official_video=False),
        dict(artist="B", track="U", views=999.0, likes=99, official_video=False),
    ]


async def test_official_video_row_filter_sums_matching_rows_only(
    service, insert_rows, official_video_rows
):
    await insert_rows(*official_video_rows)

    result = await service.run("official_video_engagement")

    assert result.rows == [{"track": "T", "total_views": 300.0, "total_likes": 30}]


async def test_official_video_group_filter_sums_every_row(
    service, insert_rows, official_video_rows
):
    await insert_rows(*official_video_rows)

    result = await service.run("official_video_engagement_any")

    assert result.rows == [{"track": "T", "total_views": 350.0, "total_likes": 35}]


async def test_album_track_views(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="1", album="P", views=10.0),
        dict(artist="A", track="1", album="P", views=15.0),
        dict(artist="A", track="1", album="Q", views=100.0),
        dict(artist="A", track="2", album="P", views=None),
    )

    result = await service.run("album_track_views")

    assert result.rows == [
        {"album": "Q", "track": "1", "total_views": 100.0},
        {"album": "P", "track": "1", "total_views": 25.0},
        {"album": "P", "track": "2", "total_views": None},
    ]


@pytest.fixture
def platform_rows():
    return [
        dict(artist="A", track="only_spotify", stream=100, most_played_on="Spotify"),
        dict(artist="A", track="mostly_youtube", stream=100, most_played_on="Spotify"),
        dict(artist="A", track="mostly_youtube", stream=300, most_played_on="Youtube"),
        dict(artist="A", track="both", stream=500, most_played_on="Spotify"),
        dict(artist="A", track="both", stream=200, most_played_on="Youtube"),
    ]


async def test_platform_pivot_coalesces_missing_platform_to_zero(
    service, insert_rows, platform_rows
):
    await insert_rows(*platform_rows)

    result = await service.run("platform_streams")
    by_track = {row["track"]: row for row in result.rows}

    assert by_track["only_spotify"]["streamed_on_spotify"] == 100
    assert by_track["only_spotify"]["streamed_on_youtube"] == 0
    assert by_track["mostly_youtube"]["streamed_on_youtube"] == 300
    assert by_track["both"]["streamed_on_spotify"] == 500


async def test_spotify_over_youtube_compares_materialized_pivot(
    service, insert_rows, platform_rows
):
    await insert_rows(*platform_rows)

    result = await service.run("spotify_over_youtube")

    assert [row["track"] for row in result.rows] == ["both", "only_spotify"]


async def test_spotify_over_youtube_can_require_both_platforms(
    service, insert_rows, platform_rows
):
    await insert_rows(*platform_rows)

    result = await service.run("spotify_over_youtube", require_both=True)

    assert [row["track"] for row in result.rows] == ["both"]


# ---------------------------------------------------------------------------
# Advanced tier
# ---------------------------------------------------------------------------


async def test_top_viewed_per_artist_uses_dense_rank(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="t1", views=100.0),
        dict(artist="A", track="t2", views=100.0),
        dict(artist="A", track="t3", views=40.0),
        dict(artist="A", track="t3", views=40.0),
        dict(artist="A", track="t4", views=50.0),
        dict(artist="A", track="t5", views=10.0),
        dict(artist="B", track="silent", views=None),
        dict(artist="C", track="c1", views=5.0),
        dict(artist="C", track="c2", views=3.0),
    )

    result = await service.run("top_viewed_per_artist")
    ranks = [(row["artist"], row["track"], row["view_rank"]) for row in result.rows]

    assert ranks == [
        ("A", "t1", 1),
        ("A", "t2", 1),
        ("A", "t3", 2),
        ("A", "t4", 3),
        ("C", "c1", 1),
        ("C", "c2", 2),
    ]
    assert result.rows[2]["total_views"] == 80.0


async def test_top_viewed_per_artist_rank_values_are_dense(service, insert_rows):
    await insert_rows(
        *[dict(artist="A", track=f"t{i}", views=float(views)) for i, views in enumerate([9, 9, 9, 7, 7, 5, 3, 1])]
    )

    result = await service.run("top_viewed_per_artist", top_n=3)
    ranks = sorted({row["view_rank"] for row in result.rows})

    assert ranks == [1, 2, 3]
    assert result.row_count == 6


async def test_above_average_liveness(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="quiet", liveness=0.1),
        dict(artist="A", track="room", liveness=0.2),
        dict(artist="A", track="live", liveness=0.6),
        dict(artist="A", track="unknown", liveness=None),
    )

    result = await service.run("above_average_liveness")

    assert [row["track"] for row in result.rows] == ["live"]
    assert result.rows[0]["avg_liveness"] == pytest.approx(0.3)


async def test_album_energy_spread(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="1", album="X", energy=0.9),
        dict(artist="A", track="2", album="X", energy=0.3),
        dict(artist="B", track="3", album="Y", energy=None),
        dict(artist="C", track="4", album="Z", energy=0.5),
    )

    result = await service.run("album_energy_spread")
    spread = {row["album"]: row["energy_diff"] for row in result.rows}

    assert spread == {"X": pytest.approx(0.6), "Z": pytest.approx(0.0)}


async def test_energy_liveness_ratio_guards_division(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="hot", energy=0.9, liveness=0.5),
        dict(artist="A", track="flat", energy=0.5, liveness=0.5),
        dict(artist="A", track="studio", energy=0.8, liveness=0.0),
        dict(artist="A", track="no_energy", energy=None, liveness=0.5),
        dict(artist="A", track="no_liveness", energy=0.7, liveness=None),
        dict(artist="A", track="spiky", energy=0.3, liveness=0.1),
    )

    result = await service.run("energy_liveness_ratio")

    assert [row["track"] for row in result.rows] == ["spiky", "hot"]
    for row in result.rows:
        assert row["liveness"] > 0
        assert row["energy"] is not None
        assert row["energy_liveness_ratio"] > 1.2


async def test_cumulative_likes_breaks_view_ties_by_track(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="b", views=200.0, likes=2),
        dict(artist="A", track="top", views=300.0, likes=1),
        dict(artist="A", track="unseen", views=None, likes=8),
        dict(artist="A", track="a", views=200.0, likes=4),
        dict(artist="A", track="quiet", views=100.0, likes=None),
    )

    result = await service.run("cumulative_likes")

    assert [(row["track"], row["cumulative_likes"]) for row in result.rows] == [
        ("top", 1),
        ("a", 5),
        ("b", 7),
        ("quiet", 7),
        ("unseen", 15),
    ]


async def test_artist_tracks(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="2"),
        dict(artist="A", track="1"),
        dict(artist="B", track="3"),
    )

    result = await service.run("artist_tracks", artist="A")

    assert [row["track"] for row in result.rows] == ["1", "2"]


# ---------------------------------------------------------------------------
# Service behaviour
# ---------------------------------------------------------------------------


async def test_results_are_identical_without_artist_index(service, engine, insert_rows):
    await insert_rows(
        dict(artist="A", track="x", album="P", views=10.0, likes=1, energy=0.9, liveness=0.2,
             stream=2_000_000_000, most_played_on="Spotify", official_video=True, licensed=True,
             comments=3, danceability=0.7, album_type="single"),
        dict(artist="B", track="y", album="Q", views=20.0, likes=2, energy=0.4, liveness=0.8,
             stream=5, most_played_on="Youtube", official_video=False, licensed=False,
             comments=4, danceability=0.2, album_type="album"),
    )
    params = {"artist_tracks": {"artist": "A"}}

    with_index = {
        name: (await service.run(name, **params.get(name, {}))).rows for name in QUERIES
    }
    async with engine.begin() as conn:
        await conn.run_sync(drop_artist_index)
    without_index = {
        name: (await service.run(name, **params.get(name, {}))).rows for name in QUERIES
    }

    assert with_index == without_index


async def test_max_rows_truncates(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="1", album="P"),
        dict(artist="B", track="2", album="Q"),
    )

    result = await service.run("albums_with_artists", max_rows=1)

    assert result.truncated is True
    assert result.row_count == 1


async def test_database_errors_propagate(service, engine):
    async with engine.begin() as conn:
        await conn.run_sync(spotify_tracks.drop)

    with pytest.raises(exc.OperationalError):
        await service.run("tracks_per_artist")


async def test_run_before_initialize_raises(database_url):
    with pytest.raises(RuntimeError):
        await AnalyticsService(database_url=database_url).run("tracks_per_artist")


@pytest.mark.parametrize(
    "name,column",
    [
        ("licensed_comment_total", "total_comments"),
        ("official_video_engagement", "total_likes"),
        ("platform_streams", "streamed_on_spotify"),
        ("platform_streams", "streamed_on_youtube"),
        ("cumulative_likes", "cumulative_likes"),
    ],
)
def test_count_sums_stay_integral_on_postgresql(name, column):
    stmt = build_query(name)
    sql = str(stmt.compile(dialect=postgresql.dialect()))

    assert isinstance(stmt.selected_columns[column].type, BigInteger)
    assert "CAST(sum(" in sql
    assert "AS BIGINT)" in sql


async def test_count_sums_are_ints_on_sqlite(service, insert_rows):
    await insert_rows(
        dict(artist="A", track="x", likes=3, comments=2, licensed=True, views=1.0,
             stream=7, most_played_on="Spotify", official_video=True),
    )

    likes = (await service.run("cumulative_likes")).rows[0]["cumulative_likes"]
    comments = (await service.run("licensed_comment_total")).rows[0]["total_comments"]

    assert type(likes) is int and likes == 3
    assert type(comments) is int and comments == 2
