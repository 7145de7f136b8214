"""Request pacing utilities."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any, Mapping

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class RateLimiter:
    """Minimum interval between requests, per host."""

    def __init__(self, *, rate: float = 1.5, sleep: Sleep = asyncio.sleep) -> None:
        self.rate = rate
        self._sleep = sleep
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._last_request: dict[str, float] = defaultdict(lambda: 0.0)

    async def wait_for_host(self, host: str) -> None:
        lock = self._locks[host]
        async with lock:
            now = time.monotonic()
            elapsed = now - self._last_request[host]
            min_interval = 1.0 / self.rate
            if elapsed < min_interval:
                await self._sleep(min_interval - elapsed)
            self._last_request[host] = time.monotonic()


class CostBudget:
    """Token bucket mirroring the catalog's advertised query-cost budget.

    The remote reports ``maximumAvailable``, ``currentlyAvailable`` and
    ``restoreRate`` on every response. Before a call, if the available points
    drop under ``threshold`` the caller is suspended for
    ``(max - available) / restore_rate`` seconds.
    """

    def __init__(
        self,
        *,
        maximum: float = 1000.0,
        restore_rate: float = 50.0,
        threshold: float = 100.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.maximum = maximum
        self.available = maximum
        self.restore_rate = restore_rate
        self.threshold = threshold
        self._sleep = sleep

    def wait_time(self) -> float:
        if self.available >= self.threshold:
            return 0.0
        if self.restore_rate <= 0:
            return 10.0
        return max(self.maximum - self.available, 0.0) / self.restore_rate

    async def reserve(self) -> float:
        wait = self.wait_time()
        if wait > 0:
            logger.info(
                "Query budget low (%.0f/%.0f points), waiting %.2fs",
                self.available,
                self.maximum,
                wait,
            )
            await self._sleep(wait)
            self.available = self.maximum
        return wait

    def exhaust(self) -> None:
        self.available = 0.0

    def update(self, throttle_status: Mapping[str, Any] | None) -> None:
        if not throttle_status:
            return
        try:
            self.maximum = float(throttle_status["maximumAvailable"])
            self.available = float(throttle_status["currentlyAvailable"])
            self.restore_rate = float(throttle_status["restoreRate"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed throttle status: %s", throttle_status)
