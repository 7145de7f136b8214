"""Feed record to storefront product mapping."""

from __future__ import annotations

import html
import json
from decimal import Decimal
from typing import Sequence

from stocksync.ingest.models import FeedRecord, ImageInput, Metafield, ProductDraft
from stocksync.utils.dates import format_date, parse_delivery_date

DEFAULT_NAMESPACE = "supplier"


def map_record(
    record: FeedRecord,
    *,
    namespace: str = DEFAULT_NAMESPACE,
    document_urls: Sequence[str] = (),
) -> ProductDraft:
    title = record.title or f"Product {record.sku}"
    tags = [tag for tag in (record.brand, record.category_name, record.sku) if tag]
    return ProductDraft(
        sku=record.sku,
        title=title,
        description_html=description_html(record),
        vendor=record.brand,
        product_type=record.category_name,
        price=record.price.quantize(Decimal("0.01")),
        barcode=record.barcode,
        inventory_quantity=record.stock_quantity,
        tags=tags,
        weight=record.gross_weight_kg if record.gross_weight_kg > 0 else None,
        weight_unit="KILOGRAMS",
        metafields=build_metafields(record, namespace=namespace, document_urls=document_urls),
        images=[ImageInput(src=record.image_url, alt_text=title)] if record.image_url else [],
    )


def description_html(record: FeedRecord) -> str:
    # description1 repeats the title, so only 2 and 3 go into the body.
    items = [d for d in (record.description2, record.description3) if d]
    if not items:
        return ""
    return "<ul>" + "".join(f"<li>{html.escape(item)}</li>" for item in items) + "</ul>"


def build_metafields(
    record: FeedRecord,
    *,
    namespace: str = DEFAULT_NAMESPACE,
    document_urls: Sequence[str] = (),
) -> list[Metafield]:
    delivery = parse_delivery_date(record.expected_delivery_date)
    candidates = [
        Metafield(namespace, "brand", record.brand),
        Metafield(namespace, "mpn", record.manufacturer_part_no),
        Metafield(namespace, "incoming_date", format_date(delivery) if delivery else "", "date"),
        Metafield(namespace, "category_id", record.category_id),
        Metafield(namespace, "docs", json.dumps(list(document_urls)) if document_urls else "", "list.url"),
    ]
    return [m for m in candidates if m.value]
