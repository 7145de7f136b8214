"""Datasheet/manual link discovery on vendor product pages."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Sequence
from urllib.parse import urljoin, urlparse

import httpx

from stocksync.utils.rate_limit import RateLimiter, Sleep
from stocksync.utils.retry import retry_async

logger = logging.getLogger(__name__)

DOCUMENT_HREF_RE = re.compile(r"""href\s*=\s*["']([^"'#]+?\.pdf(?:\?[^"'#]*)?)["']""", re.IGNORECASE)
RETRY_DELAYS = (2.0, 4.0, 8.0)


class DocumentLinkFinder:
    def __init__(
        self,
        *,
        session: httpx.AsyncClient | None = None,
        retry_delays: Sequence[float] = RETRY_DELAYS,
        rate_limiter: RateLimiter | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._session = session or httpx.AsyncClient(
            timeout=30.0, follow_redirects=True, headers={"User-Agent": "StocksyncBot/1.0"}
        )
        self._retry_delays = tuple(retry_delays)
        self._rate_limiter = rate_limiter or RateLimiter(rate=1.0, sleep=sleep)
        self._sleep = sleep

    async def close(self) -> None:
        await self._session.aclose()

    async def find(self, product_url: str) -> list[str]:
        """Return the unique document URLs linked from ``product_url``.

        Pages are sometimes served before their downloads section renders, so
        an empty result is retried after each delay in ``retry_delays``. Gives
        up with ``[]``.
        """
        if not product_url:
            return []
        delays = (0.0, *self._retry_delays)
        for attempt, delay in enumerate(delays, start=1):
            if delay:
                await self._sleep(delay)
            links = await self._scan(product_url)
            if links:
                return links
            logger.debug("No documents on %s (attempt %s/%s)", product_url, attempt, len(delays))
        logger.info("No documents found for %s", product_url)
        return []

    async def _scan(self, product_url: str) -> list[str]:
        await self._rate_limiter.wait_for_host(urlparse(product_url).netloc)
        try:
            response = await retry_async(self._session.get)(product_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Document page fetch failed for %s: %s", product_url, exc)
            return []
        return extract_document_links(response.text, product_url)


def extract_document_links(page: str, base_url: str) -> list[str]:
    seen: dict[str, None] = {}
    for match in DOCUMENT_HREF_RE.finditer(page):
        seen.setdefault(urljoin(base_url, match.group(1).strip()), None)
    return list(seen)
