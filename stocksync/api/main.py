"""FastAPI application for on-demand runs and run history."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.engine import Engine

from stocksync.db.session import create_engine_from_env
from stocksync.errors import SyncError
from stocksync.jobs.reconcile import run_sync
from stocksync.logic.history import load_run, load_runs

logger = logging.getLogger(__name__)

app = FastAPI(title="Stocksync API")


class RunSummary(BaseModel):
    id: int
    started_at: datetime | str
    finished_at: datetime | str | None = None
    feed_path: str | None = None
    parsed_count: int
    filtered_count: int
    created: int
    updated: int
    drafted: int
    activated: int
    failed: int
    live_update_skipped: str | None = None


class RunDetail(RunSummary):
    failures: list[dict[str, Any]]


class TriggerResponse(BaseModel):
    message: str


def get_engine() -> Engine:
    try:
        return create_engine_from_env()
    except KeyError as exc:
        raise HTTPException(status_code=503, detail="Run history is not configured") from exc


async def _run_in_background() -> None:
    try:
        report = await run_sync()
    except (SyncError, FileNotFoundError) as exc:
        logger.error("On-demand sync failed: %s", exc)
        return
    logger.info("On-demand sync done: %s", report.summary())


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/runs", response_model=TriggerResponse, status_code=202)
async def trigger_run(background_tasks: BackgroundTasks) -> TriggerResponse:
    background_tasks.add_task(_run_in_background)
    return TriggerResponse(message="Sync scheduled")


@app.get("/runs", response_model=list[RunSummary])
async def list_runs(limit: int = Query(20, ge=1, le=200), engine: Engine = Depends(get_engine)) -> list[RunSummary]:
    return [RunSummary(**row) for row in load_runs(engine, limit=limit)]


@app.get("/runs/{run_id}", response_model=RunDetail)
async def get_run(run_id: int, engine: Engine = Depends(get_engine)) -> RunDetail:
    run = load_run(engine, run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return RunDetail(**run)
