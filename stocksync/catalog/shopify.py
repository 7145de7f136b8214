"""Shopify Admin GraphQL client for the storefront catalog."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

import httpx

from stocksync.config import Settings
from stocksync.errors import RateLimitExceeded, RemoteAPIError, RemoteValidationError
from stocksync.ingest.models import CatalogProduct, ProductDraft, ProductStatus, Variant
from stocksync.utils.rate_limit import CostBudget, Sleep
from stocksync.utils.retry import retry_async

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 250
MAX_THROTTLE_RETRIES = 3

PRODUCTS_QUERY = """
query listProducts($first: Int!, $after: String) {
  products(first: $first, after: $after) {
    edges {
      cursor
      node {
        id
        title
        vendor
        status
        tags
        variants(first: 20) {
          nodes {
            id
            sku
            price
            barcode
            inventoryQuantity
            inventoryItem {
              id
              inventoryLevels(first: 1) {
                nodes { location { id } }
              }
            }
          }
        }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

PRODUCT_CREATE = """
mutation productCreate($input: ProductInput!, $media: [CreateMediaInput!]) {
  productCreate(input: $input, media: $media) {
    product {
      id
      title
      vendor
      status
      tags
      variants(first: 1) {
        nodes {
          id
          sku
          price
          barcode
          inventoryQuantity
          inventoryItem { id }
        }
      }
    }
    userErrors { field message }
  }
}
"""

VARIANTS_BULK_UPDATE = """
mutation productVariantsBulkUpdate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkUpdate(productId: $productId, variants: $variants) {
    productVariants { id price barcode }
    userErrors { field message }
  }
}
"""

INVENTORY_ADJUST = """
mutation inventoryAdjustQuantities($input: InventoryAdjustQuantitiesInput!) {
  inventoryAdjustQuantities(input: $input) {
    inventoryAdjustmentGroup { reason }
    userErrors { field message }
  }
}
"""

PRODUCT_STATUS_UPDATE = """
mutation productUpdate($input: ProductInput!) {
  productUpdate(input: $input) {
    product { id status }
    userErrors { field message }
  }
}
"""

METAFIELDS_SET = """
mutation metafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { id key namespace }
    userErrors { field message }
  }
}
"""

TAGS_ADD = """
mutation tagsAdd($id: ID!, $tags: [String!]!) {
  tagsAdd(id: $id, tags: $tags) {
    node { id }
    userErrors { field message }
  }
}
"""

LOCATIONS_QUERY = """
query primaryLocation {
  locations(first: 1) {
    nodes { id name }
  }
}
"""

PUBLICATIONS_QUERY = """
query publications {
  publications(first: 20) {
    nodes { id name }
  }
}
"""


@dataclass(slots=True)
class ProductPage:
    products: list[CatalogProduct]
    next_cursor: str | None
    has_more: bool


class ShopifyCatalogClient:
    def __init__(
        self,
        settings: Settings,
        *,
        session: httpx.AsyncClient | None = None,
        budget: CostBudget | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.url = settings.graphql_url
        self._session = session or httpx.AsyncClient(timeout=30.0)
        self._headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": settings.access_token,
        }
        self._sleep = sleep
        self.budget = budget or CostBudget(sleep=sleep)
        self._location_id: str | None = None

    async def close(self) -> None:
        await self._session.aclose()

    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run a query or mutation and return its ``data`` payload."""
        for attempt in range(MAX_THROTTLE_RETRIES + 1):
            await self.budget.reserve()
            try:
                return await self._post(query, variables or {})
            except RateLimitExceeded:
                self.budget.exhaust()
                if attempt == MAX_THROTTLE_RETRIES:
                    raise
                logger.warning("Throttled by Shopify (attempt %s/%s)", attempt + 1, MAX_THROTTLE_RETRIES)
        raise RateLimitExceeded("Throttle retries exhausted")  # pragma: no cover - loop always returns or raises

    async def _post(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await retry_async(self._session.post)(
                self.url, headers=self._headers, json={"query": query, "variables": variables}
            )
        except httpx.HTTPError as exc:
            raise RemoteAPIError(f"Shopify request failed: {exc}") from exc
        if response.status_code == 429:
            raise RateLimitExceeded("HTTP 429 from Shopify", details={"retry_after": response.headers.get("Retry-After")})
        if response.status_code >= 400:
            raise RemoteAPIError(
                f"HTTP error! status: {response.status_code}",
                details={"status": response.status_code, "body": response.text[:500]},
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteAPIError("Shopify returned a non-JSON response") from exc

        cost = (payload.get("extensions") or {}).get("cost") or {}
        self.budget.update(cost.get("throttleStatus"))

        errors = payload.get("errors")
        if errors:
            if any((e.get("extensions") or {}).get("code") == "THROTTLED" for e in errors):
                raise RateLimitExceeded("Query throttled", details={"errors": errors})
            messages = ", ".join(e.get("message", "Unknown error") for e in errors)
            raise RemoteAPIError(f"GraphQL errors: {messages}", details={"errors": errors})
        return payload.get("data") or {}

    async def _mutate(self, name: str, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        data = await self.execute(query, variables)
        result = data.get(name) or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            messages = ", ".join(e.get("message", "") for e in user_errors)
            raise RemoteValidationError(f"{name} failed: {messages}", errors=user_errors)
        return result

    # --- reads ---

    async def list_products(self, page_size: int = MAX_PAGE_SIZE, cursor: str | None = None) -> ProductPage:
        data = await self.execute(PRODUCTS_QUERY, {"first": min(page_size, MAX_PAGE_SIZE), "after": cursor})
        connection = data.get("products") or {}
        products = [_product_from_node(edge["node"]) for edge in connection.get("edges", [])]
        page_info = connection.get("pageInfo") or {}
        return ProductPage(
            products=products,
            next_cursor=page_info.get("endCursor"),
            has_more=bool(page_info.get("hasNextPage")),
        )

    async def fetch_all_products(self, page_size: int | None = None) -> list[CatalogProduct]:
        size = page_size or self.settings.page_size
        products: list[CatalogProduct] = []
        cursor: str | None = None
        pages = 0
        while True:
            page = await self.list_products(size, cursor)
            pages += 1
            products.extend(page.products)
            logger.debug("Fetched page %s (%s products so far)", pages, len(products))
            if not page.has_more:
                break
            cursor = page.next_cursor
            await self._sleep(self.settings.page_delay)
        logger.info("Fetched %s products from Shopify in %s pages", len(products), pages)
        return products

    async def primary_location_id(self) -> str | None:
        if self._location_id is None:
            data = await self.execute(LOCATIONS_QUERY)
            nodes = (data.get("locations") or {}).get("nodes") or []
            self._location_id = nodes[0]["id"] if nodes else None
        return self._location_id

    async def online_channel_id(self) -> str | None:
        data = await self.execute(PUBLICATIONS_QUERY)
        for node in (data.get("publications") or {}).get("nodes") or []:
            if node.get("name") == "Online Store":
                return node["id"]
        return None

    # --- writes ---

    async def create_product(self, draft: ProductDraft, *, status: ProductStatus = ProductStatus.ACTIVE) -> CatalogProduct:
        product_input: dict[str, Any] = {
            "title": draft.title,
            "descriptionHtml": draft.description_html,
            "vendor": draft.vendor,
            "productType": draft.product_type,
            "tags": draft.tags,
            "status": status.value,
            "metafields": [m.as_input() for m in draft.metafields],
        }
        media = [
            {"originalSource": image.src, "alt": image.alt_text, "mediaContentType": "IMAGE"}
            for image in draft.images
        ]
        result = await self._mutate("productCreate", PRODUCT_CREATE, {"input": product_input, "media": media})
        node = result.get("product")
        if not node:
            raise RemoteAPIError("productCreate returned no product", details={"sku": draft.sku})
        product = _product_from_node(node)
        logger.info("Created product %s for SKU %s", product.id, draft.sku)
        return product

    async def update_variant(
        self,
        product_id: str,
        variant_id: str,
        *,
        price: Decimal | None = None,
        barcode: str | None = None,
        sku: str | None = None,
        weight: Decimal | None = None,
        weight_unit: str = "KILOGRAMS",
        cost: Decimal | None = None,
    ) -> None:
        variant: dict[str, Any] = {"id": variant_id}
        inventory_item: dict[str, Any] = {}
        if price is not None:
            variant["price"] = str(price)
        if barcode:
            variant["barcode"] = barcode
        if sku:
            inventory_item["sku"] = sku
            inventory_item["tracked"] = True
        if weight is not None:
            inventory_item["measurement"] = {"weight": {"value": float(weight), "unit": weight_unit}}
        if cost is not None:
            inventory_item["cost"] = str(cost)
        if inventory_item:
            variant["inventoryItem"] = inventory_item
        await self._mutate(
            "productVariantsBulkUpdate", VARIANTS_BULK_UPDATE, {"productId": product_id, "variants": [variant]}
        )

    async def adjust_inventory(self, inventory_item_id: str, location_id: str, delta: int) -> None:
        """Shift available stock by ``delta``; callers track the prior quantity."""
        await self._mutate(
            "inventoryAdjustQuantities",
            INVENTORY_ADJUST,
            {
                "input": {
                    "reason": "correction",
                    "name": "available",
                    "changes": [{"delta": delta, "inventoryItemId": inventory_item_id, "locationId": location_id}],
                }
            },
        )

    async def set_status(self, product_id: str, status: ProductStatus) -> None:
        await self._mutate("productUpdate", PRODUCT_STATUS_UPDATE, {"input": {"id": product_id, "status": status.value}})

    async def set_metadata(
        self,
        product_id: str,
        key: str,
        namespace: str,
        value: str,
        type: str = "json",
    ) -> None:
        await self._mutate(
            "metafieldsSet",
            METAFIELDS_SET,
            {"metafields": [{"ownerId": product_id, "namespace": namespace, "key": key, "type": type, "value": value}]},
        )

    async def add_tags(self, product_id: str, tags: Iterable[str]) -> None:
        await self._mutate("tagsAdd", TAGS_ADD, {"id": product_id, "tags": list(tags)})


def _product_from_node(node: dict[str, Any]) -> CatalogProduct:
    variants_conn = node.get("variants") or {}
    variant_nodes = variants_conn.get("nodes")
    if variant_nodes is None:
        variant_nodes = [edge["node"] for edge in variants_conn.get("edges", [])]
    try:
        status = ProductStatus(node.get("status") or "ACTIVE")
    except ValueError:
        status = ProductStatus.ACTIVE
    tags = node.get("tags") or []
    if isinstance(tags, str):
        tags = [t.strip() for t in tags.split(",") if t.strip()]
    return CatalogProduct(
        id=node["id"],
        title=node.get("title") or "",
        vendor=node.get("vendor") or "",
        status=status,
        variants=[_variant_from_node(v) for v in variant_nodes],
        tags=list(tags),
    )


def _variant_from_node(node: dict[str, Any]) -> Variant:
    item = node.get("inventoryItem") or {}
    levels = ((item.get("inventoryLevels") or {}).get("nodes")) or []
    location_id = levels[0]["location"]["id"] if levels else None
    return Variant(
        id=node["id"],
        sku=node.get("sku"),
        price=_decimal_or_none(node.get("price")),
        barcode=node.get("barcode"),
        inventory_quantity=int(node.get("inventoryQuantity") or 0),
        inventory_item_id=item.get("id"),
        inventory_location_id=location_id,
    )


def _decimal_or_none(value: Any) -> Decimal | None:
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def stock_snapshot(raw_stock: list[dict[str, Any]]) -> str:
    return json.dumps(raw_stock, separators=(",", ":"), default=str)
