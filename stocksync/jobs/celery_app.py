"""Celery configuration for the scheduled sync."""

from __future__ import annotations

import os

from celery import Celery
from celery.schedules import crontab

from stocksync.utils.dates import timezone_name

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

celery_app = Celery("stocksync", broker=broker_url, backend=backend_url, include=["stocksync.jobs.reconcile"])
celery_app.conf.timezone = timezone_name()
celery_app.conf.beat_schedule = {
    "catalog-sync": {
        "task": "stocksync.jobs.reconcile.run_sync",
        "schedule": crontab(minute=int(os.environ.get("SYNC_MINUTE", "0")), hour=os.environ.get("SYNC_HOURS", "*/12")),
    },
}


@celery_app.task(name="stocksync.jobs.reconcile.run_sync")
def run_sync_task():  # pragma: no cover - executed by worker
    import asyncio

    from stocksync.jobs.reconcile import run_sync

    report = asyncio.run(run_sync())
    return report.summary()
