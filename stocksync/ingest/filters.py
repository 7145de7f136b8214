"""Include/exclude/limit rules applied to the parsed feed."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from stocksync.ingest.models import FeedRecord, FilterRule

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FilterResult:
    records: list[FeedRecord]
    original_count: int

    @property
    def total(self) -> int:
        return len(self.records)


def apply_filter(records: Iterable[FeedRecord], rule: FilterRule) -> list[FeedRecord]:
    """Apply the rule passes in order: include, exclude brand, exclude SKU, limit.

    Include is OR across brand and SKU. The two exclude passes run
    independently, so a record matching either exclude list is dropped.
    """
    result = list(records)

    if rule.include_brand or rule.include_sku:
        result = [
            r for r in result
            if r.brand.lower() in rule.include_brand or r.sku.lower() in rule.include_sku
        ]
        logger.debug("After include filters: %s records", len(result))

    if rule.exclude_brand:
        result = [r for r in result if r.brand.lower() not in rule.exclude_brand]
        logger.debug("After brand exclude filter: %s records", len(result))

    if rule.exclude_sku:
        result = [r for r in result if r.sku.lower() not in rule.exclude_sku]
        logger.debug("After SKU exclude filter: %s records", len(result))

    if rule.limit > 0 and len(result) > rule.limit:
        result = result[: rule.limit]
        logger.debug("After product limit (%s): %s records", rule.limit, len(result))

    return result


def filter_feed(records: Sequence[FeedRecord], rule: FilterRule) -> FilterResult:
    filtered = apply_filter(records, rule)
    logger.info("Filter kept %s of %s records", len(filtered), len(records))
    return FilterResult(records=filtered, original_count=len(records))
