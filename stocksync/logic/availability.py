"""Visibility policy driven by vendor stock."""

from __future__ import annotations

from stocksync.ingest.models import ProductStatus, StockRecord


def target_status(record: StockRecord) -> ProductStatus:
    """DRAFT when nothing is on hand locally or remotely; incoming stock does not count."""
    if not record.stock_entries or record.available_quantity <= 0:
        return ProductStatus.DRAFT
    return ProductStatus.ACTIVE


def inventory_delta(available: int, known_quantity: int) -> int:
    return available - known_quantity
