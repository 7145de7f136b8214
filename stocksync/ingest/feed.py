"""Reader for the vendor's semicolon-delimited price export."""

from __future__ import annotations

import csv
import logging
import pathlib
from decimal import Decimal, InvalidOperation
from typing import Iterator

from stocksync.errors import ParseError
from stocksync.ingest.models import FeedRecord

logger = logging.getLogger(__name__)

DELIMITER = ";"
CENT = Decimal("0.01")

# Positional layout of the export; the file carries no usable header.
COLUMNS = (
    "sku",
    "title",
    "price",
    "stock_quantity",
    "brand",
    "expected_delivery_date",
    "category_id",
    "category_name",
    "product_url",
    "image_url",
    "description2",
    "description3",
    "barcode",
    "gross_weight_kg",
    "net_weight_kg",
    "manufacturer_part_no",
)

HEADER_SKU_LABELS = {"varenr", "sku", "item no", "item no.", "itemid"}


def parse_feed(path: str | pathlib.Path) -> list[FeedRecord]:
    """Read the whole export into memory, skipping rows without SKU or title."""
    return list(iter_feed(path))


def iter_feed(path: str | pathlib.Path) -> Iterator[FeedRecord]:
    feed_path = pathlib.Path(path)
    if not feed_path.exists():
        raise FileNotFoundError(f"File not found: {feed_path}")
    return _read_rows(feed_path)


def _read_rows(feed_path: pathlib.Path) -> Iterator[FeedRecord]:
    dropped = 0
    kept = 0
    try:
        with feed_path.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.reader(handle, delimiter=DELIMITER, quotechar='"')
            for line_no, row in enumerate(reader, start=1):
                if line_no == 1 and row and _clean(row[0]).lower() in HEADER_SKU_LABELS:
                    continue
                record = parse_row(row)
                if record is None:
                    dropped += 1
                    continue
                kept += 1
                yield record
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise ParseError(f"Error parsing feed {feed_path}: {exc}", details={"path": str(feed_path)}) from exc
    logger.info("Parsed %s records from %s (%s rows dropped)", kept, feed_path, dropped)


def parse_row(row: list[str]) -> FeedRecord | None:
    """Turn one split row into a record, or ``None`` when it has no identity."""
    cells = [_clean(cell) for cell in row[: len(COLUMNS)]]
    cells += [""] * (len(COLUMNS) - len(cells))
    values = dict(zip(COLUMNS, cells))
    if not values["sku"] or not values["title"]:
        return None
    return FeedRecord(
        sku=values["sku"],
        title=values["title"],
        price=parse_decimal(values["price"]),
        stock_quantity=max(int(parse_decimal(values["stock_quantity"])), 0),
        brand=values["brand"],
        expected_delivery_date=values["expected_delivery_date"],
        category_id=values["category_id"],
        category_name=values["category_name"],
        product_url=values["product_url"],
        image_url=values["image_url"],
        description2=values["description2"],
        description3=values["description3"],
        barcode=values["barcode"],
        gross_weight_kg=parse_decimal(values["gross_weight_kg"]),
        net_weight_kg=parse_decimal(values["net_weight_kg"]),
        manufacturer_part_no=values["manufacturer_part_no"],
    )


def parse_decimal(value: str | None) -> Decimal:
    """Parse a number that may use ``,`` as decimal separator; junk becomes 0."""
    if not value:
        return Decimal("0")
    normalized = value.strip().replace(" ", "").replace(",", ".")
    try:
        number = Decimal(normalized)
    except InvalidOperation:
        return Decimal("0")
    if not number.is_finite():
        return Decimal("0")
    try:
        number.quantize(CENT)
    except InvalidOperation:
        logger.debug("Value %r is out of range; using 0", value)
        return Decimal("0")
    return number


def _clean(value: str | None) -> str:
    if value is None:
        return ""
    return value.strip().strip('"').strip()
