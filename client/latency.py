"""
HTTP round-trip latency measurement.

Protocol flow::

    1. GET /ping, timed from dispatch until the body has been read
    2. Sleep ``PING_INTERVAL``
    3. Repeat for the desired number of samples

Probes run strictly one after another: overlapping them would add queueing
delay to the very thing being measured.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional

import aiohttp

from .api import Target
from .constants import (
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    DEFAULT_PING_COUNT,
    PING_INTERVAL,
    PING_SCALE,
    READ_TIMEOUT,
)
from .context import TestContext
from .stats import PING, PhaseResult, calculate_jitter, calculate_mean

LOGGER = logging.getLogger(__name__)


class LatencyTester:
    """Sequential ping sampler against a backend's ``/ping`` endpoint."""

    def __init__(
        self,
        ping_count: int = DEFAULT_PING_COUNT,
        interval: float = PING_INTERVAL,
    ) -> None:
        self.ping_count = ping_count
        self.interval = interval
        self.on_progress: Optional[Callable[[float, float], None]] = None

    async def test(self, target: Target, context: Optional[TestContext] = None) -> PhaseResult:
        """Run the probes.  Transport errors propagate to the caller."""
        context = context or TestContext()
        context.begin_phase(PING, PING_SCALE)
        result = PhaseResult.empty(PING)
        pings: List[float] = []

        start = time.perf_counter()
        timeout = aiohttp.ClientTimeout(total=None, connect=CONNECT_TIMEOUT, sock_read=READ_TIMEOUT)

        async with aiohttp.ClientSession(headers=COMMON_HEADERS, timeout=timeout) as session:
            for i in range(self.ping_count):
                took = await self._ping_once(session, target.ping_url)
                pings.append(took)
                result.samples.append(time.perf_counter(), took)
                context.report(took, adapt_scale=False)
                LOGGER.debug("Ping %d/%d: %.2f ms", i + 1, self.ping_count, took)

                if self.on_progress:
                    self.on_progress((i + 1) / self.ping_count, took)

                await asyncio.sleep(self.interval)

        result.mean = calculate_mean(pings)
        result.jitter = calculate_jitter(pings)
        result.duration_ms = (time.perf_counter() - start) * 1000
        LOGGER.info("Ping %.2f ms, jitter %.2f ms over %d probes", result.mean, result.jitter, len(pings))
        return result

    @staticmethod
    async def _ping_once(session: aiohttp.ClientSession, url: str) -> float:
        """One GET round trip in milliseconds."""
        sent = time.perf_counter()
        async with session.get(url) as resp:
            resp.raise_for_status()
            await resp.read()
        return (time.perf_counter() - sent) * 1000
