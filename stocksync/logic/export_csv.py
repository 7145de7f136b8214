"""Report file exports."""

from __future__ import annotations

import csv
import json
import pathlib
from dataclasses import asdict
from typing import Sequence

from stocksync.ingest.models import FeedRecord
from stocksync.logic.report import SyncReport
from stocksync.utils.dates import format_timestamp

FAILURE_COLUMNS = ["phase", "sku", "reason"]


def generate_failures_csv(report: SyncReport, output_dir: pathlib.Path) -> pathlib.Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    file_path = output_dir / f"failures-{format_timestamp(report.started_at)}.csv"
    with file_path.open("w", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=FAILURE_COLUMNS)
        writer.writeheader()
        for failure in report.failures:
            writer.writerow({"phase": failure.phase.value, "sku": failure.sku, "reason": failure.reason})
    return file_path


def write_filtered_snapshot(
    records: Sequence[FeedRecord],
    report: SyncReport,
    output_dir: pathlib.Path,
) -> pathlib.Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    file_path = output_dir / "filtered-products.json"
    payload = {
        "metadata": {
            "totalProducts": len(records),
            "originalCount": report.parsed_count,
            "filterDate": report.started_at.isoformat(),
            "filePath": report.feed_path,
        },
        "products": [asdict(record) for record in records],
    }
    file_path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
    return file_path
