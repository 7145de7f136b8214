"""Ingestion and catalog data models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass(slots=True, frozen=True)
class FeedRecord:
    """One row of the vendor price export."""

    sku: str
    title: str
    price: Decimal = Decimal("0")
    stock_quantity: int = 0
    brand: str = ""
    expected_delivery_date: str = ""
    category_id: str = ""
    category_name: str = ""
    product_url: str = ""
    image_url: str = ""
    description2: str = ""
    description3: str = ""
    barcode: str = ""
    gross_weight_kg: Decimal = Decimal("0")
    net_weight_kg: Decimal = Decimal("0")
    manufacturer_part_no: str = ""

    @property
    def description1(self) -> str:
        # The export repeats the title in its first description column.
        return self.title


@dataclass(slots=True)
class FilterRule:
    include_brand: frozenset[str] = frozenset()
    include_sku: frozenset[str] = frozenset()
    exclude_brand: frozenset[str] = frozenset()
    exclude_sku: frozenset[str] = frozenset()
    limit: int = 0

    def __post_init__(self) -> None:
        self.include_brand = frozenset(v.lower() for v in self.include_brand)
        self.include_sku = frozenset(v.lower() for v in self.include_sku)
        self.exclude_brand = frozenset(v.lower() for v in self.exclude_brand)
        self.exclude_sku = frozenset(v.lower() for v in self.exclude_sku)
        if self.limit < 0:
            raise ValueError("limit must be >= 0")


@dataclass(slots=True)
class Metafield:
    namespace: str
    key: str
    value: str
    type: str = "single_line_text_field"

    def as_input(self) -> dict[str, str]:
        return {"namespace": self.namespace, "key": self.key, "value": self.value, "type": self.type}


@dataclass(slots=True)
class ImageInput:
    src: str
    alt_text: str


@dataclass(slots=True)
class ProductDraft:
    """Storefront-shaped product built from a feed record."""

    sku: str
    title: str
    description_html: str
    vendor: str
    product_type: str
    price: Decimal
    barcode: str
    inventory_quantity: int
    tags: list[str] = field(default_factory=list)
    weight: Decimal | None = None
    weight_unit: str = "KILOGRAMS"
    metafields: list[Metafield] = field(default_factory=list)
    images: list[ImageInput] = field(default_factory=list)


class ProductStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    DRAFT = "DRAFT"
    ARCHIVED = "ARCHIVED"


@dataclass(slots=True)
class Variant:
    id: str
    sku: str | None
    price: Decimal | None = None
    barcode: str | None = None
    inventory_quantity: int = 0
    inventory_item_id: str | None = None
    inventory_location_id: str | None = None


@dataclass(slots=True)
class CatalogProduct:
    id: str
    title: str
    vendor: str = ""
    status: ProductStatus = ProductStatus.ACTIVE
    variants: list[Variant] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)

    @property
    def skus(self) -> set[str]:
        return {v.sku.strip() for v in self.variants if v.sku and v.sku.strip()}

    def variant_for(self, sku: str) -> Variant | None:
        for variant in self.variants:
            if variant.sku and variant.sku.strip() == sku:
                return variant
        return None


class StockLocation(str, enum.Enum):
    LOCAL = "Local"
    REMOTE = "Remote"
    INCOMING = "Incoming"


@dataclass(slots=True)
class StockEntry:
    location: StockLocation
    quantity: int


@dataclass(slots=True)
class StockRecord:
    """Vendor-authoritative price and stock for one SKU."""

    sku: str
    price: Decimal | None
    vat_amount: Decimal = Decimal("0")
    stock_entries: list[StockEntry] = field(default_factory=list)
    raw_stock: list[dict[str, Any]] = field(default_factory=list)

    @property
    def available_quantity(self) -> int:
        return sum(
            entry.quantity
            for entry in self.stock_entries
            if entry.location in (StockLocation.LOCAL, StockLocation.REMOTE)
        )

    @property
    def incoming_quantity(self) -> int:
        return sum(e.quantity for e in self.stock_entries if e.location is StockLocation.INCOMING)

    @property
    def live_price(self) -> Decimal | None:
        if self.price is None:
            return None
        return self.price + self.vat_amount
