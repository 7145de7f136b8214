"""Vendor feed to storefront reconciliation job."""

from __future__ import annotations

import asyncio
import logging
import pathlib
import sys
from decimal import Decimal, InvalidOperation
from typing import Protocol, Sequence

from dotenv import load_dotenv

from stocksync.catalog.shopify import ShopifyCatalogClient, stock_snapshot
from stocksync.config import Settings
from stocksync.db.migrate import ensure_schema
from stocksync.db.session import create_engine_from_url
from stocksync.errors import ConfigError, ParseError, SyncError, VendorAuthError
from stocksync.ingest import load_filter_rule
from stocksync.ingest.documents import DocumentLinkFinder
from stocksync.ingest.feed import parse_feed
from stocksync.ingest.filters import filter_feed
from stocksync.ingest.mapper import map_record
from stocksync.ingest.models import (
    CatalogProduct,
    FeedRecord,
    FilterRule,
    ProductDraft,
    ProductStatus,
    StockRecord,
    Variant,
)
from stocksync.logic.availability import inventory_delta, target_status
from stocksync.logic.export_csv import generate_failures_csv, write_filtered_snapshot
from stocksync.logic.history import persist_report
from stocksync.logic.plan import CatalogIndex, PlannedCreate, ReconciliationPlan, build_plan
from stocksync.logic.report import RunPhase, SyncReport
from stocksync.utils.logs import configure_logging
from stocksync.vendor.eet import EETClient

logger = logging.getLogger(__name__)

STOCK_METAFIELD_KEY = "stock_object"
CENT = Decimal("0.01")


class CatalogPort(Protocol):
    async def fetch_all_products(self) -> list[CatalogProduct]: ...
    async def create_product(self, draft: ProductDraft, *, status: ProductStatus = ...) -> CatalogProduct: ...
    async def update_variant(self, product_id: str, variant_id: str, **fields) -> None: ...
    async def adjust_inventory(self, inventory_item_id: str, location_id: str, delta: int) -> None: ...
    async def set_status(self, product_id: str, status: ProductStatus) -> None: ...
    async def set_metadata(self, product_id: str, key: str, namespace: str, value: str, type: str = ...) -> None: ...
    async def add_tags(self, product_id: str, tags: Sequence[str]) -> None: ...
    async def primary_location_id(self) -> str | None: ...
    async def online_channel_id(self) -> str | None: ...


class VendorPort(Protocol):
    failed_skus: list[str]

    async def login(self) -> str: ...
    async def get_price_and_stock(self, skus: Sequence[str]) -> list[StockRecord]: ...


class ReconciliationDriver:
    """Runs one reconciliation pass, phase by phase.

    FETCH_REMOTE -> PARSE_FEED -> FILTER -> BUILD_PLAN -> CREATE ->
    DRAFT_ORPHANS -> LIVE_UPDATE -> REPORT. Phases never overlap and there is
    no rollback; item failures are recorded on the report and the run moves on.
    """

    def __init__(
        self,
        catalog: CatalogPort,
        vendor: VendorPort | None,
        settings: Settings,
        *,
        document_finder: DocumentLinkFinder | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.catalog = catalog
        self.vendor = vendor
        self.settings = settings
        self.document_finder = document_finder
        self.log = log or logger
        self.index = CatalogIndex()
        self.filtered: list[FeedRecord] = []
        self.failed_creates: set[str] = set()

    async def run(self, feed_path: str | pathlib.Path, rule: FilterRule) -> SyncReport:
        report = SyncReport(feed_path=str(feed_path))
        self.failed_creates = set()

        report.phase = RunPhase.FETCH_REMOTE
        self.index = CatalogIndex(await self.catalog.fetch_all_products())
        report.remote_count = len(self.index)
        report.duplicate_skus = dict(self.index.duplicate_skus)
        await self._log_sales_channel()

        report.phase = RunPhase.PARSE_FEED
        records = parse_feed(feed_path)
        report.parsed_count = len(records)

        report.phase = RunPhase.FILTER
        result = filter_feed(records, rule)
        self.filtered = result.records
        report.filtered_count = result.total

        report.phase = RunPhase.BUILD_PLAN
        plan = build_plan(self.filtered, self.index, mapper=self._map)

        report.phase = RunPhase.CREATE
        await self.create_phase(plan, report)

        report.phase = RunPhase.DRAFT_ORPHANS
        await self.draft_orphans_phase(plan, report)

        report.phase = RunPhase.LIVE_UPDATE
        await self.live_update_phase(report)

        report.finish()
        self.log.info("Sync finished: %s", report.summary())
        for failure in report.failures:
            self.log.warning("Failed [%s] %s: %s", failure.phase.value, failure.sku, failure.reason)
        return report

    async def _log_sales_channel(self) -> None:
        try:
            channel_id = await self.catalog.online_channel_id()
        except SyncError as exc:
            self.log.warning("Could not look up the Online Store channel: %s", exc)
            return
        if channel_id:
            self.log.info("Online Store channel: %s", channel_id)
        else:
            self.log.warning("No Online Store channel found")

    def _map(self, record: FeedRecord, document_urls: Sequence[str] = ()) -> ProductDraft:
        return map_record(record, namespace=self.settings.metafield_namespace, document_urls=document_urls)

    # --- CREATE ---

    async def create_phase(self, plan: ReconciliationPlan, report: SyncReport) -> None:
        stats = report.stats(RunPhase.CREATE)
        for planned in plan.to_create:
            stats.processed += 1
            product = await self._create_one(planned, report)
            if product is None:
                self.failed_creates.add(planned.record.sku)
            else:
                stats.succeeded += 1
                report.created += 1
                self.index.add(product)
            await asyncio.sleep(self.settings.item_delay)
        self.log.info("Create phase: %s created, %s failures", stats.succeeded, stats.failed)

    async def _create_one(self, planned: PlannedCreate, report: SyncReport) -> CatalogProduct | None:
        record = planned.record
        draft = planned.draft
        if self.document_finder is not None and record.product_url:
            urls = await self.document_finder.find(record.product_url)
            if urls:
                draft = self._map(record, urls)

        status = ProductStatus.ACTIVE if draft.inventory_quantity > 0 else ProductStatus.DRAFT
        try:
            product = await self.catalog.create_product(draft, status=status)
        except SyncError as exc:
            self.log.error("Product registration failed for %s: %s", record.sku, exc)
            report.record_failure(RunPhase.CREATE, record.sku, str(exc))
            return None

        variant = product.variants[0] if product.variants else None
        if variant is None:
            self.log.error("Created product %s for %s has no variant", product.id, record.sku)
            report.record_failure(RunPhase.CREATE, record.sku, "created product has no variant")
            return None

        try:
            await self.catalog.update_variant(
                product.id,
                variant.id,
                price=draft.price,
                barcode=draft.barcode or None,
                sku=draft.sku,
                weight=draft.weight,
                weight_unit=draft.weight_unit,
            )
            variant.price = draft.price
            variant.sku = draft.sku
            variant.barcode = draft.barcode or variant.barcode
        except SyncError as exc:
            self.log.error("Variant update failed for %s: %s", record.sku, exc)
            report.record_failure(RunPhase.CREATE, record.sku, f"variant update: {exc}")
            # the remote variant has no SKU yet, so live update cannot find it
            self.failed_creates.add(record.sku)

        if draft.inventory_quantity > 0:
            await self._set_initial_stock(record.sku, variant, draft.inventory_quantity, report)
        return product

    async def _set_initial_stock(self, sku: str, variant: Variant, quantity: int, report: SyncReport) -> None:
        try:
            await self._adjust_to(variant, quantity)
        except SyncError as exc:
            self.log.error("Initial stock failed for %s: %s", sku, exc)
            report.record_failure(RunPhase.CREATE, sku, f"initial stock: {exc}")

    # --- DRAFT_ORPHANS ---

    async def draft_orphans_phase(self, plan: ReconciliationPlan, report: SyncReport) -> None:
        stats = report.stats(RunPhase.DRAFT_ORPHANS)
        for product in plan.to_draft:
            if product.status is ProductStatus.DRAFT:
                continue
            stats.processed += 1
            label = ",".join(sorted(product.skus)) or product.id
            try:
                await self.catalog.set_status(product.id, ProductStatus.DRAFT)
            except SyncError as exc:
                self.log.error("Could not draft orphan %s: %s", label, exc)
                report.record_failure(RunPhase.DRAFT_ORPHANS, label, str(exc))
            else:
                self.index.set_status(product, ProductStatus.DRAFT)
                stats.succeeded += 1
                report.drafted += 1
            await asyncio.sleep(self.settings.item_delay)
        self.log.info("Orphan phase: %s drafted, %s failures", stats.succeeded, stats.failed)

    # --- LIVE_UPDATE ---

    async def live_update_phase(self, report: SyncReport) -> None:
        stats = report.stats(RunPhase.LIVE_UPDATE)
        if self.vendor is None:
            report.live_update_skipped = "no vendor client configured"
            self.log.warning("Skipping live update: %s", report.live_update_skipped)
            return
        try:
            await self.vendor.login()
        except VendorAuthError as exc:
            report.live_update_skipped = f"vendor login failed: {exc}"
            self.log.error("Skipping live update: %s", report.live_update_skipped)
            return

        stock_records = await self.vendor.get_price_and_stock([r.sku for r in self.filtered])
        for sku in self.vendor.failed_skus:
            report.record_failure(RunPhase.LIVE_UPDATE, sku, "vendor price/stock batch failed")

        brands = {r.sku: r.brand for r in self.filtered}
        for stock in stock_records:
            if stock.sku in self.failed_creates:
                self.log.debug("Skipping %s, its create failed", stock.sku)
                continue
            stats.processed += 1
            product = self.index.get(stock.sku)
            if product is None:
                report.record_failure(RunPhase.LIVE_UPDATE, stock.sku, "no catalog product for SKU")
                continue
            try:
                await self._apply_stock(product, stock, report)
            except SyncError as exc:
                self.log.error("Error updating %s: %s", stock.sku, exc)
                report.record_failure(RunPhase.LIVE_UPDATE, stock.sku, str(exc))
            else:
                stats.succeeded += 1
                report.updated += 1
                await self._tag_brand(product, brands.get(stock.sku, ""))
            await asyncio.sleep(self.settings.item_delay)
        self.log.info(
            "Live update: %s of %s items updated, %s failures", stats.succeeded, stats.processed, stats.failed
        )

    async def _apply_stock(self, product: CatalogProduct, stock: StockRecord, report: SyncReport) -> None:
        variant = product.variant_for(stock.sku)
        if variant is None:
            raise SyncError("catalog product has no variant for SKU")

        live_price = stock.live_price
        if live_price is None:
            self.log.warning("No vendor price for %s; price left unchanged", stock.sku)
        else:
            try:
                price = live_price.quantize(CENT)
            except InvalidOperation as exc:
                raise SyncError(f"vendor price {live_price} is out of range") from exc
            if variant.price != price:
                await self.catalog.update_variant(product.id, variant.id, price=price, cost=stock.price)
                variant.price = price

        if target_status(stock) is ProductStatus.DRAFT:
            if product.status is not ProductStatus.DRAFT:
                await self.catalog.set_status(product.id, ProductStatus.DRAFT)
                self.index.set_status(product, ProductStatus.DRAFT)
                report.drafted += 1
            return

        if product.status is not ProductStatus.ACTIVE:
            await self.catalog.set_status(product.id, ProductStatus.ACTIVE)
            self.index.set_status(product, ProductStatus.ACTIVE)
            report.activated += 1
        await self._adjust_to(variant, stock.available_quantity)
        await self.catalog.set_metadata(
            product.id, STOCK_METAFIELD_KEY, self.settings.metafield_namespace, stock_snapshot(stock.raw_stock)
        )

    async def _adjust_to(self, variant: Variant, quantity: int) -> None:
        """Bring the variant to ``quantity`` with a delta from the last known level."""
        delta = inventory_delta(quantity, variant.inventory_quantity)
        if not delta:
            return
        location_id = variant.inventory_location_id or await self.catalog.primary_location_id()
        if not variant.inventory_item_id or not location_id:
            raise SyncError("no inventory item or location to stock")
        await self.catalog.adjust_inventory(variant.inventory_item_id, location_id, delta)
        variant.inventory_location_id = location_id
        variant.inventory_quantity = quantity

    async def _tag_brand(self, product: CatalogProduct, brand: str) -> None:
        if not self.settings.tag_brand or not brand or brand in product.tags:
            return
        try:
            await self.catalog.add_tags(product.id, [brand])
            product.tags.append(brand)
        except SyncError as exc:
            self.log.warning("Failed to add brand tag %s to %s: %s", brand, product.id, exc)


async def run_sync(settings: Settings | None = None) -> SyncReport:
    load_dotenv()
    settings = settings or Settings.from_env()
    configure_logging(settings)
    rule = load_filter_rule(settings.filter_config_path)

    catalog = ShopifyCatalogClient(settings)
    vendor = EETClient.from_settings(settings) if settings.has_vendor_credentials else None
    finder = DocumentLinkFinder() if settings.fetch_documents else None
    driver = ReconciliationDriver(catalog, vendor, settings, document_finder=finder)
    try:
        report = await driver.run(settings.feed_path, rule)
    finally:
        await catalog.close()
        if vendor:
            await vendor.close()
        if finder:
            await finder.close()

    _publish(settings, report, driver.filtered)
    return report


def _publish(settings: Settings, report: SyncReport, filtered: list[FeedRecord]) -> None:
    if settings.report_dir:
        output_dir = pathlib.Path(settings.report_dir)
        write_filtered_snapshot(filtered, report, output_dir)
        if report.failures:
            path = generate_failures_csv(report, output_dir)
            logger.info("Failure report written to %s", path)
    if settings.database_url:
        engine = create_engine_from_url(settings.database_url)
        try:
            ensure_schema(engine)
            run_id = persist_report(engine, report)
            logger.info("Run recorded as #%s", run_id)
        finally:
            engine.dispose()


def main() -> None:
    try:
        asyncio.run(run_sync())
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)
    except (FileNotFoundError, ParseError) as exc:
        logger.error("Feed unreadable: %s", exc)
        print(f"Feed unreadable: {exc}", file=sys.stderr)
        sys.exit(1)
    except SyncError as exc:
        logger.error("Sync aborted: %s", exc)
        print(f"Sync aborted: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
