"""Execution-plan inspection and the artist-index experiment."""

import json
import re
import time
from typing import Any, Dict, Iterator, List

import structlog
from sqlalchemy import Select
from sqlalchemy.engine import Connection

from spotify_analytics.db.database import create_artist_index, drop_artist_index
from spotify_analytics.schemas.analytics import IndexExperiment, PlanReport
from spotify_analytics.services.queries import artist_tracks

logger = structlog.get_logger()

_SQLITE_INDEX = re.compile(r"USING (?:COVERING )?INDEX (\w+)")


def render_sql(conn: Connection, stmt: Select) -> str:
    """Render a statement for the connection's dialect with inlined values."""
    return str(
        stmt.compile(dialect=conn.dialect, compile_kwargs={"literal_binds": True})
    )


def _walk_postgres_plan(node: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    yield node
    for child in node.get("Plans", []):
        yield from _walk_postgres_plan(child)


def parse_postgres_plan(payload: Any) -> PlanReport:
    """Summarise an ``EXPLAIN (FORMAT JSON)`` document.

    ``payload`` is the single value PostgreSQL returns: a JSON string or the
    already-decoded list holding one ``{"Plan": ...}`` document.
    """
    if isinstance(payload, str):
        payload = json.loads(payload)
    document = payload[0]
    root = document["Plan"]
    nodes = list(_walk_postgres_plan(root))
    index_names = sorted({node["Index Name"] for node in nodes if "Index Name" in node})
    return PlanReport(
        dialect="postgresql",
        node_types=[node["Node Type"] for node in nodes],
        uses_index=any("Index" in node["Node Type"] for node in nodes),
        index_names=index_names,
        total_cost=root.get("Total Cost"),
        planning_time_ms=document.get("Planning Time"),
        execution_time_ms=document.get("Execution Time"),
        raw=payload,
    )


def _explain_postgres(conn: Connection, sql: str, analyze: bool) -> PlanReport:
    options = "ANALYZE, FORMAT JSON" if analyze else "FORMAT JSON"
    payload = conn.exec_driver_sql(f"EXPLAIN ({options}) {sql}").scalar_one()
    return parse_postgres_plan(payload)


def _explain_sqlite(conn: Connection, sql: str, analyze: bool) -> PlanReport:
    rows = conn.exec_driver_sql(f"EXPLAIN QUERY PLAN {sql}").all()
    details: List[str] = [row[-1] for row in rows]

    execution_time_ms = None
    if analyze:
        started = time.perf_counter()
        conn.exec_driver_sql(sql).all()
        execution_time_ms = (time.perf_counter() - started) * 1000

    index_names = sorted(
        {match.group(1) for detail in details for match in _SQLITE_INDEX.finditer(detail)}
    )
    return PlanReport(
        dialect="sqlite",
        node_types=details,
        uses_index=bool(index_names),
        index_names=index_names,
        execution_time_ms=execution_time_ms,
        raw=[list(row) for row in rows],
    )


def explain_statement(conn: Connection, stmt: Select, analyze: bool = True) -> PlanReport:
    """Ask the engine how it would run (or did run, with ``analyze``) a query.

    Run through ``AsyncConnection.run_sync``.
    """
    sql = render_sql(conn, stmt)
    dialect = conn.dialect.name
    if dialect == "postgresql":
        report = _explain_postgres(conn, sql, analyze)
    elif dialect == "sqlite":
        report = _explain_sqlite(conn, sql, analyze)
    else:
        raise NotImplementedError(f"Plan inspection is not supported for '{dialect}'")

    logger.info(
        "Plan inspected",
        dialect=dialect,
        uses_index=report.uses_index,
        execution_time_ms=report.execution_time_ms,
    )
    return report


def run_index_experiment(conn: Connection, artist: str) -> IndexExperiment:
    """Compare the artist filter's plan without and with ``idx_artist``.

    The index is left in place afterwards. Run through ``AsyncConnection.run_sync``.
    """
    stmt = artist_tracks(artist)

    drop_artist_index(conn)
    without_index = explain_statement(conn, stmt)
    rows_without = conn.execute(stmt).all()

    create_artist_index(conn)
    with_index = explain_statement(conn, stmt)
    rows_with = conn.execute(stmt).all()

    logger.info(
        "Index experiment complete",
        artist=artist,
        before=without_index.execution_time_ms,
        after=with_index.execution_time_ms,
    )
    return IndexExperiment(
        artist=artist,
        without_index=without_index,
        with_index=with_index,
        results_match=rows_without == rows_with,
        row_count=len(rows_with),
    )
