"""Run report aggregated by the reconciliation driver."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from stocksync.utils.dates import now_in_tz


class RunPhase(str, enum.Enum):
    FETCH_REMOTE = "fetch_remote"
    PARSE_FEED = "parse_feed"
    FILTER = "filter"
    BUILD_PLAN = "build_plan"
    CREATE = "create"
    DRAFT_ORPHANS = "draft_orphans"
    LIVE_UPDATE = "live_update"
    REPORT = "report"


@dataclass(slots=True)
class ItemFailure:
    phase: RunPhase
    sku: str
    reason: str


@dataclass(slots=True)
class PhaseStats:
    processed: int = 0
    succeeded: int = 0
    failures: list[ItemFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)


@dataclass(slots=True)
class SyncReport:
    started_at: datetime = field(default_factory=now_in_tz)
    finished_at: datetime | None = None
    feed_path: str = ""
    phase: RunPhase = RunPhase.FETCH_REMOTE
    remote_count: int = 0
    parsed_count: int = 0
    filtered_count: int = 0
    created: int = 0
    updated: int = 0
    drafted: int = 0
    activated: int = 0
    duplicate_skus: dict[str, list[str]] = field(default_factory=dict)
    live_update_skipped: str | None = None
    phases: dict[RunPhase, PhaseStats] = field(
        default_factory=lambda: {p: PhaseStats() for p in (RunPhase.CREATE, RunPhase.DRAFT_ORPHANS, RunPhase.LIVE_UPDATE)}
    )

    def stats(self, phase: RunPhase) -> PhaseStats:
        return self.phases.setdefault(phase, PhaseStats())

    def record_failure(self, phase: RunPhase, sku: str, reason: str) -> None:
        self.stats(phase).failures.append(ItemFailure(phase=phase, sku=sku, reason=reason))

    @property
    def failures(self) -> list[ItemFailure]:
        return [f for stats in self.phases.values() for f in stats.failures]

    @property
    def failed(self) -> int:
        return len(self.failures)

    def finish(self) -> None:
        self.phase = RunPhase.REPORT
        self.finished_at = now_in_tz()

    def summary(self) -> dict[str, Any]:
        return {
            "feed_path": self.feed_path,
            "remote_products": self.remote_count,
            "parsed": self.parsed_count,
            "filtered": self.filtered_count,
            "created": self.created,
            "updated": self.updated,
            "drafted": self.drafted,
            "activated": self.activated,
            "failed": self.failed,
            "duplicate_skus": sorted(self.duplicate_skus),
            "live_update_skipped": self.live_update_skipped,
            "phases": {
                phase.value: {"processed": s.processed, "succeeded": s.succeeded, "failed": s.failed}
                for phase, s in self.phases.items()
            },
        }
