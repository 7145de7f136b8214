"""Run-history tables for engines that cannot run schema.sql."""

from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, MetaData, Table, Text

metadata = MetaData()

sync_runs = Table(
    "sync_runs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("started_at", DateTime(timezone=True), nullable=False),
    Column("finished_at", DateTime(timezone=True)),
    Column("feed_path", Text),
    Column("remote_count", Integer, nullable=False, server_default="0"),
    Column("parsed_count", Integer, nullable=False, server_default="0"),
    Column("filtered_count", Integer, nullable=False, server_default="0"),
    Column("created", Integer, nullable=False, server_default="0"),
    Column("updated", Integer, nullable=False, server_default="0"),
    Column("drafted", Integer, nullable=False, server_default="0"),
    Column("activated", Integer, nullable=False, server_default="0"),
    Column("failed", Integer, nullable=False, server_default="0"),
    Column("live_update_skipped", Text),
    Column("summary", JSON),
)

sync_failures = Table(
    "sync_failures",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("run_id", Integer, ForeignKey("sync_runs.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("phase", Text, nullable=False),
    Column("sku", Text, nullable=False),
    Column("reason", Text, nullable=False),
)
