"""Run-history persistence."""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import DateTime, bindparam
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql import text

from stocksync.logic.report import SyncReport


def persist_report(engine: Engine, report: SyncReport) -> int:
    with engine.begin() as conn:
        run_id = _insert_run(conn, report)
        failures = [
            {"run_id": run_id, "phase": f.phase.value, "sku": f.sku, "reason": f.reason}
            for f in report.failures
        ]
        if failures:
            conn.execute(
                text(
                    """
                    INSERT INTO sync_failures (run_id, phase, sku, reason)
                    VALUES (:run_id, :phase, :sku, :reason)
                    """
                ),
                failures,
            )
    return run_id


def _insert_run(conn: Connection, report: SyncReport) -> int:
    summary_param = ":summary" if conn.dialect.name == "sqlite" else "CAST(:summary AS JSONB)"
    result = conn.execute(
        text(
            f"""
            INSERT INTO sync_runs (
                started_at, finished_at, feed_path, remote_count, parsed_count, filtered_count,
                created, updated, drafted, activated, failed, live_update_skipped, summary
            )
            VALUES (
                :started_at, :finished_at, :feed_path, :remote_count, :parsed_count, :filtered_count,
                :created, :updated, :drafted, :activated, :failed, :live_update_skipped, {summary_param}
            )
            RETURNING id
            """
        ).bindparams(
            bindparam("started_at", type_=DateTime(timezone=True)),
            bindparam("finished_at", type_=DateTime(timezone=True)),
        ),
        {
            "started_at": report.started_at,
            "finished_at": report.finished_at,
            "feed_path": report.feed_path,
            "remote_count": report.remote_count,
            "parsed_count": report.parsed_count,
            "filtered_count": report.filtered_count,
            "created": report.created,
            "updated": report.updated,
            "drafted": report.drafted,
            "activated": report.activated,
            "failed": report.failed,
            "live_update_skipped": report.live_update_skipped,
            "summary": json.dumps(report.summary()),
        },
    )
    return int(result.scalar_one())


def load_runs(engine: Engine, limit: int = 20) -> list[dict[str, Any]]:
    query = text(
        """
        SELECT id, started_at, finished_at, feed_path, parsed_count, filtered_count,
               created, updated, drafted, activated, failed, live_update_skipped
        FROM sync_runs
        ORDER BY id DESC
        LIMIT :limit
        """
    )
    with engine.connect() as conn:
        return [dict(row) for row in conn.execute(query, {"limit": limit}).mappings()]


def load_run(engine: Engine, run_id: int) -> dict[str, Any] | None:
    with engine.connect() as conn:
        row = conn.execute(
            text(
                """
                SELECT id, started_at, finished_at, feed_path, parsed_count, filtered_count,
                       created, updated, drafted, activated, failed, live_update_skipped
                FROM sync_runs WHERE id = :id
                """
            ),
            {"id": run_id},
        ).mappings().first()
        if row is None:
            return None
        failures = conn.execute(
            text("SELECT phase, sku, reason FROM sync_failures WHERE run_id = :id ORDER BY id"),
            {"id": run_id},
        ).mappings()
        run = dict(row)
        run["failures"] = [dict(f) for f in failures]
    return run
