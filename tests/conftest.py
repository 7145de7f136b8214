from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine

from stocksync.config import Settings
from stocksync.db.tables import metadata
from stocksync.errors import RemoteValidationError, VendorAuthError
from stocksync.ingest.models import CatalogProduct, ProductStatus, StockEntry, StockLocation, StockRecord, Variant


@pytest.fixture()
def engine():
    engine = create_engine("sqlite:///:memory:", future=True)
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        shop_domain="test-store.myshopify.com",
        access_token="shpat_test",
        feed_path=str(tmp_path / "eet_prices.txt"),
        vendor_username="user",
        vendor_password="secret",
        vendor_base_url="https://vendor.test",
        item_delay=0,
        page_delay=0,
        batch_delay=0,
    )


@pytest.fixture()
def write_feed(tmp_path):
    def _write(lines: list[str], name: str = "eet_prices.txt") -> Path:
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


def feed_line(
    sku: str,
    title: str = "Widget",
    price: str = "10,00",
    stock: str = "1",
    brand: str = "Axis",
    **extra: str,
) -> str:
    cells = [
        sku,
        title,
        price,
        stock,
        brand,
        extra.get("delivery", ""),
        extra.get("category_id", "100"),
        extra.get("category", "Cameras"),
        extra.get("link", ""),
        extra.get("image", ""),
        extra.get("description2", ""),
        extra.get("description3", ""),
        extra.get("barcode", ""),
        extra.get("gross", "0"),
        extra.get("net", "0"),
        extra.get("mpn", ""),
    ]
    return ";".join(cells)


def catalog_product(
    pid: str,
    sku: str | None,
    *,
    status: ProductStatus = ProductStatus.ACTIVE,
    quantity: int = 0,
    price: str = "10.00",
) -> CatalogProduct:
    return CatalogProduct(
        id=f"gid://shopify/Product/{pid}",
        title=f"Product {pid}",
        status=status,
        variants=[
            Variant(
                id=f"gid://shopify/ProductVariant/{pid}",
                sku=sku,
                price=Decimal(price),
                inventory_quantity=quantity,
                inventory_item_id=f"gid://shopify/InventoryItem/{pid}",
                inventory_location_id="gid://shopify/Location/1",
            )
        ],
    )


def stock_record(sku: str, price: str | None = "100", vat: str = "25", **stock: int) -> StockRecord:
    names = {"local": StockLocation.LOCAL, "remote": StockLocation.REMOTE, "incoming": StockLocation.INCOMING}
    entries = [StockEntry(location=names[key], quantity=qty) for key, qty in stock.items()]
    return StockRecord(
        sku=sku,
        price=Decimal(price) if price is not None else None,
        vat_amount=Decimal(vat),
        stock_entries=entries,
        raw_stock=[{"StockTypeName": e.location.value, "Quantity": e.quantity} for e in entries],
    )


class FakeSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture()
def fake_sleep():
    return FakeSleep()


class FakeCatalog:
    """In-memory stand-in for the Shopify client that records every call."""

    def __init__(
        self,
        products=(),
        *,
        fail_create_for=(),
        fail_status_for=(),
        fail_variant_for=(),
        fail_adjust_for=(),
        fail_metadata_for=(),
        bare_create_for=(),
    ) -> None:
        self.products = list(products)
        self.fail_create_for = set(fail_create_for)
        self.fail_status_for = set(fail_status_for)
        self.fail_variant_for = set(fail_variant_for)
        self.fail_adjust_for = set(fail_adjust_for)
        self.fail_metadata_for = set(fail_metadata_for)
        self.bare_create_for = set(bare_create_for)
        self.channel_id = "gid://shopify/Publication/1"
        self.calls: list[tuple] = []
        self._next_id = 1000

    async def close(self):
        self.closed = True

    async def fetch_all_products(self):
        return self.products

    async def create_product(self, draft, *, status=ProductStatus.ACTIVE):
        self.calls.append(("create", draft.sku, status))
        if draft.sku in self.fail_create_for:
            raise RemoteValidationError("productCreate failed: Handle has already been taken")
        self._next_id += 1
        pid = str(self._next_id)
        product = CatalogProduct(
            id=f"gid://shopify/Product/{pid}",
            title=draft.title,
            status=status,
            variants=[
                Variant(
                    id=f"gid://shopify/ProductVariant/{pid}",
                    sku=None,
                    inventory_item_id=f"gid://shopify/InventoryItem/{pid}",
                )
            ],
        )
        if draft.sku in self.bare_create_for:
            product.variants = []
        return product

    async def update_variant(self, product_id, variant_id, **fields):
        self.calls.append(("update_variant", product_id, fields))
        if product_id in self.fail_variant_for:
            raise RemoteValidationError("productVariantsBulkUpdate failed")

    async def adjust_inventory(self, inventory_item_id, location_id, delta):
        self.calls.append(("adjust", inventory_item_id, location_id, delta))
        if inventory_item_id in self.fail_adjust_for:
            raise RemoteValidationError("inventoryAdjustQuantities failed")

    async def set_status(self, product_id, status):
        if product_id in self.fail_status_for:
            raise RemoteValidationError("productUpdate failed")
        self.calls.append(("status", product_id, status))

    async def set_metadata(self, product_id, key, namespace, value, type="json"):
        self.calls.append(("metadata", product_id, key, value))
        if product_id in self.fail_metadata_for:
            raise RemoteValidationError("metafieldsSet failed")

    async def add_tags(self, product_id, tags):
        self.calls.append(("tags", product_id, list(tags)))

    async def primary_location_id(self):
        return "gid://shopify/Location/1"

    async def online_channel_id(self):
        return self.channel_id

    def calls_of(self, kind: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == kind]


class FakeVendor:
    def __init__(self, records=(), *, fail_login: bool = False, failed_skus=()) -> None:
        self.records = list(records)
        self.fail_login = fail_login
        self.failed_skus = list(failed_skus)
        self.requested: list[str] = []

    async def close(self):
        self.closed = True

    async def login(self):
        if self.fail_login:
            raise VendorAuthError("EET login failed")
        return "token"

    async def get_price_and_stock(self, skus):
        self.requested = list(skus)
        return self.records
