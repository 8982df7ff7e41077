"""
Download speed test module.

Runs one or more parallel GET streams against the backend's chunked
``/download`` endpoint.  Every stream keeps its own counters; a sampler
coroutine sums them every ``SAMPLE_INTERVAL`` and reports a cumulative
average anchored at the end of the warm-up window, so TCP slow start does
not drag the figure down.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional

import aiohttp

from .api import Target
from .constants import (
    CANCEL_GRACE,
    CHUNK_SIZE,
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    DEFAULT_CONNECTIONS,
    DEFAULT_DURATION,
    MAX_CONNECTIONS,
    MIN_CONNECTIONS,
    READ_TIMEOUT,
    SAMPLE_INTERVAL,
    SPEED_SCALE,
    WARMUP_SECONDS,
)
from .context import TestContext
from .stats import DOWNLOAD, PhaseResult, TransferState, rate_mbps

LOGGER = logging.getLogger(__name__)


def windowed_rate(states: List[TransferState], now: float, window_start: float) -> float:
    """Cumulative-average Mbps of post-warm-up bytes across *states*."""
    valid = sum(s.valid_bytes for s in states)
    return rate_mbps(valid, now - window_start)


def final_rate(states: List[TransferState], window_start: float) -> float:
    """Post-warm-up Mbps up to the last byte received on any stream."""
    last_at = max((s.last_at for s in states if s.last_at is not None), default=window_start)
    return windowed_rate(states, last_at, window_start)


class DownloadTester:
    """
    Parallel download speed tester.

    Each worker opens one GET request and reads ``CHUNK_SIZE`` increments
    until the body ends, its own deadline check fires, or the shared stop
    event is set.  The phase settles when all workers are done or the
    overall timer fires, whichever comes first; workers still blocked on a
    read after ``CANCEL_GRACE`` are cancelled.
    """

    def __init__(
        self,
        duration_seconds: float = DEFAULT_DURATION,
        warmup_seconds: float = WARMUP_SECONDS,
        sample_interval: float = SAMPLE_INTERVAL,
        size_mb: Optional[int] = None,
    ) -> None:
        self.duration_seconds = duration_seconds
        self.warmup_seconds = warmup_seconds
        self.sample_interval = sample_interval
        self.size_mb = size_mb
        self.on_progress: Optional[Callable[[float, float], None]] = None

    async def test(
        self,
        target: Target,
        connections: int = DEFAULT_CONNECTIONS,
        context: Optional[TestContext] = None,
        stop: Optional[asyncio.Event] = None,
    ) -> PhaseResult:
        connections = max(MIN_CONNECTIONS, min(connections, MAX_CONNECTIONS))
        context = context or TestContext()
        context.begin_phase(DOWNLOAD, SPEED_SCALE)
        stop = stop or asyncio.Event()

        result = PhaseResult.empty(DOWNLOAD)
        url = target.download_url(self.size_mb)

        start_time = time.perf_counter()
        warmup_end = start_time + self.warmup_seconds
        end_time = start_time + self.duration_seconds

        states = [
            TransferState(id=i, started_at=start_time, window_start=warmup_end)
            for i in range(connections)
        ]
        context.track(states)

        # -- Worker ---------------------------------------------------------

        async def _worker(session: aiohttp.ClientSession, state: TransferState) -> None:
            try:
                async with session.get(url) as resp:
                    resp.raise_for_status()
                    while not stop.is_set():
                        chunk = await resp.content.read(CHUNK_SIZE)
                        if not chunk:
                            break

                        now = time.perf_counter()
                        state.record(len(chunk), now)

                        if now >= end_time:
                            stop.set()
                            break
            except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
                if not stop.is_set():
                    LOGGER.warning("Download stream %d failed: %s", state.id, exc)
            finally:
                state.finish(time.perf_counter())

        # -- Sampler --------------------------------------------------------

        async def _sampler() -> None:
            rate = 0.0
            while not stop.is_set():
                try:
                    await asyncio.wait_for(stop.wait(), timeout=self.sample_interval)
                    break
                except asyncio.TimeoutError:
                    pass

                now = time.perf_counter()
                if now > warmup_end:
                    rate = windowed_rate(states, now, warmup_end)
                    result.samples.append(now, rate)
                    context.report(rate)

                if self.on_progress:
                    prog = min((now - start_time) / self.duration_seconds, 1.0)
                    self.on_progress(prog, rate)

        # -- Orchestration --------------------------------------------------

        connector = aiohttp.TCPConnector(
            limit=connections,
            limit_per_host=connections,
            force_close=True,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=None, connect=CONNECT_TIMEOUT, sock_read=READ_TIMEOUT)

        async with aiohttp.ClientSession(
            headers=COMMON_HEADERS,
            connector=connector,
            timeout=timeout,
        ) as session:
            workers = [asyncio.create_task(_worker(session, s)) for s in states]
            sampler = asyncio.create_task(_sampler())
            settled = asyncio.gather(*workers, return_exceptions=True)
            halted = asyncio.create_task(stop.wait())

            try:
                await asyncio.wait(
                    {settled, halted},
                    timeout=max(0.0, end_time - time.perf_counter()),
                    return_when=asyncio.FIRST_COMPLETED,
                )
                stop.set()

                pending = [w for w in workers if not w.done()]
                if pending:
                    _, still_running = await asyncio.wait(pending, timeout=CANCEL_GRACE)
                    for t in still_running:
                        t.cancel()

                await settled
            finally:
                stop.set()
                for t in (*workers, sampler, halted):
                    if not t.done():
                        t.cancel()
                await asyncio.gather(*workers, sampler, halted, return_exceptions=True)

        result.mean = final_rate(states, warmup_end)
        result.duration_ms = (time.perf_counter() - start_time) * 1000
        result.bytes_total = sum(s.bytes_transferred for s in states)
        result.connections = states

        LOGGER.info(
            "Download %.2f Mbps (%d bytes over %d connections)",
            result.mean, result.bytes_total, connections,
        )
        return result
