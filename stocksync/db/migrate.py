"""Creates the run-history tables."""

from __future__ import annotations

import logging
import pathlib
import sys
from typing import Iterator

from dotenv import load_dotenv
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from stocksync.db.session import create_engine_from_env
from stocksync.db.tables import metadata

logger = logging.getLogger(__name__)

SCHEMA_PATH = pathlib.Path(__file__).with_name("schema.sql")
TABLES = ("sync_runs", "sync_failures")


def ensure_schema(engine: Engine) -> bool:
    """Create the history tables unless both already exist.

    PostgreSQL gets schema.sql; other dialects get the equivalent tables from
    ``stocksync.db.tables``.
    """
    existing = set(inspect(engine).get_table_names())
    if all(table in existing for table in TABLES):
        return False
    if engine.dialect.name != "postgresql":
        metadata.create_all(engine)
        logger.info("Created run-history tables for %s", engine.dialect.name)
        return True
    with engine.begin() as conn:
        for stmt in split_statements(SCHEMA_PATH.read_text()):
            conn.execute(text(stmt))
    logger.info("Created run-history tables")
    return True


def split_statements(sql: str) -> Iterator[str]:
    buffer: list[str] = []
    for line in sql.splitlines():
        if not line.strip():
            continue
        buffer.append(line)
        if line.rstrip().endswith(";"):
            yield "\n".join(buffer)
            buffer.clear()
    if buffer:
        yield "\n".join(buffer)


def main() -> None:
    load_dotenv()
    try:
        engine = create_engine_from_env()
    except KeyError as exc:
        print(f"Missing environment variable: {exc}", file=sys.stderr)
        sys.exit(1)
    try:
        created = ensure_schema(engine)
    except SQLAlchemyError as exc:
        print(f"Migration failed: {exc}", file=sys.stderr)
        sys.exit(2)
    print("Schema created" if created else "Schema already up to date")


if __name__ == "__main__":
    main()
