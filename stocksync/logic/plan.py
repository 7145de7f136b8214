"""Diff of the filtered feed against the catalog snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from stocksync.ingest.mapper import map_record
from stocksync.ingest.models import CatalogProduct, FeedRecord, ProductDraft, ProductStatus

logger = logging.getLogger(__name__)


class CatalogIndex:
    """SKU lookup over the catalog snapshot, kept current by the driver.

    The snapshot is fetched once per run. Every mutation the driver makes is
    written back here so later phases never act on the stale copy.
    """

    def __init__(self, products: Iterable[CatalogProduct] = ()) -> None:
        self.products: list[CatalogProduct] = []
        self._by_sku: dict[str, CatalogProduct] = {}
        self.duplicate_skus: dict[str, list[str]] = {}
        for product in products:
            self.add(product)
        for sku, ids in self.duplicate_skus.items():
            logger.warning("SKU %s is shared by %s catalog products %s; using %s", sku, len(ids), ids, ids[0])

    def add(self, product: CatalogProduct) -> None:
        self.products.append(product)
        for sku in product.skus:
            existing = self._by_sku.get(sku)
            if existing is None:
                self._by_sku[sku] = product
            elif existing.id != product.id:
                self.duplicate_skus.setdefault(sku, [existing.id]).append(product.id)

    def get(self, sku: str) -> CatalogProduct | None:
        return self._by_sku.get(sku.strip())

    def __contains__(self, sku: str) -> bool:
        return sku.strip() in self._by_sku

    def __len__(self) -> int:
        return len(self.products)

    def set_status(self, product: CatalogProduct, status: ProductStatus) -> None:
        product.status = status


@dataclass(slots=True)
class PlannedCreate:
    record: FeedRecord
    draft: ProductDraft


@dataclass(slots=True)
class PlannedUpdate:
    record: FeedRecord
    product: CatalogProduct


@dataclass(slots=True)
class ReconciliationPlan:
    to_create: list[PlannedCreate] = field(default_factory=list)
    to_update: list[PlannedUpdate] = field(default_factory=list)
    to_draft: list[CatalogProduct] = field(default_factory=list)

    @property
    def feed_skus(self) -> set[str]:
        return {p.record.sku for p in self.to_create} | {p.record.sku for p in self.to_update}


def build_plan(
    records: Sequence[FeedRecord],
    index: CatalogIndex,
    *,
    mapper: Callable[[FeedRecord], ProductDraft] = map_record,
) -> ReconciliationPlan:
    plan = ReconciliationPlan()
    for record in records:
        product = index.get(record.sku)
        if product is None:
            plan.to_create.append(PlannedCreate(record=record, draft=mapper(record)))
        else:
            plan.to_update.append(PlannedUpdate(record=record, product=product))
    plan.to_draft = find_orphans(index.products, {r.sku.strip() for r in records})
    logger.info(
        "Plan: %s to create, %s to update, %s orphans to draft",
        len(plan.to_create),
        len(plan.to_update),
        len(plan.to_draft),
    )
    return plan


def find_orphans(products: Iterable[CatalogProduct], feed_skus: set[str]) -> list[CatalogProduct]:
    """Catalog products with no SKU in the feed that are not drafts yet."""
    return [
        product
        for product in products
        if product.status is not ProductStatus.DRAFT and not (product.skus & feed_skus)
    ]
