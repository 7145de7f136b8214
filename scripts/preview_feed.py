"""Parse and filter a vendor feed and print what would be synced."""

from __future__ import annotations

import argparse
import os
import sys

from dotenv import load_dotenv

from stocksync.config import DEFAULT_FILTER_CONFIG
from stocksync.errors import ConfigError, ParseError
from stocksync.ingest import load_filter_rule
from stocksync.ingest.feed import parse_feed
from stocksync.ingest.filters import filter_feed


def _truncate(value: str, width: int) -> str:
    return value if len(value) <= width else value[: width - 3] + "..."


def main() -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("feed", nargs="?", default=os.environ.get("FEED_PATH") or os.environ.get("EET_PRICE"))
    parser.add_argument("--filter", default=os.environ.get("FILTER_CONFIG", DEFAULT_FILTER_CONFIG))
    args = parser.parse_args()
    if not args.feed:
        parser.error("no feed path given and FEED_PATH is not set")

    try:
        rule = load_filter_rule(args.filter)
        records = parse_feed(args.feed)
    except (ConfigError, ParseError, FileNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    result = filter_feed(records, rule)
    print(f"{'SKU':<15}{'Brand':<15}{'Title':<40}{'Price':>12}{'Stock':>8}  Category")
    print("-" * 110)
    for record in result.records:
        print(
            f"{record.sku:<15}{_truncate(record.brand, 14):<15}{_truncate(record.title, 39):<40}"
            f"{record.price:>12.2f}{record.stock_quantity:>8}  {_truncate(record.category_name, 20)}"
        )
    print("-" * 110)
    print(f"Total filtered products: {result.total} of {result.original_count}")


if __name__ == "__main__":
    main()
