"""
Upload speed test module.

Streams a fixed-size payload to the backend's ``/upload`` endpoint over a
single POST.  The body is an async generator that hands out one reusable
chunk at a time; each time aiohttp comes back for the next chunk the
previous one has been written, which is the progress notification the
rate is computed from.  Unlike download there is no warm-up window.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import AsyncIterator, Callable, Optional

import aiohttp

from .api import Target
from .constants import (
    CHUNK_SIZE,
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    DEFAULT_DURATION,
    READ_TIMEOUT,
    SAMPLE_INTERVAL,
    SPEED_SCALE,
    UPLOAD_PAYLOAD_BYTES,
)
from .context import TestContext
from .stats import UPLOAD, PhaseResult, TransferState, rate_mbps

LOGGER = logging.getLogger(__name__)


async def payload_stream(
    total_bytes: int,
    on_sent: Callable[[int], None],
    chunk_size: int = CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """Yield *total_bytes* of zeros from one buffer, reporting each chunk sent."""
    chunk = bytes(min(chunk_size, max(total_bytes, 0)))
    sent = 0
    while sent < total_bytes:
        n = min(len(chunk), total_bytes - sent)
        yield chunk if n == len(chunk) else chunk[:n]
        sent += n
        on_sent(n)


class UploadTester:
    """
    Upload speed tester using one streaming HTTP POST.

    The transfer is aborted once ``duration_seconds`` have elapsed; an
    aborted upload is a normal end of phase, not an error.
    """

    HEADERS = {
        **COMMON_HEADERS,
        "Content-Type": "application/octet-stream",
    }

    def __init__(
        self,
        duration_seconds: float = DEFAULT_DURATION,
        payload_bytes: int = UPLOAD_PAYLOAD_BYTES,
        sample_interval: float = SAMPLE_INTERVAL,
    ) -> None:
        self.duration_seconds = duration_seconds
        self.payload_bytes = payload_bytes
        self.sample_interval = sample_interval
        self.on_progress: Optional[Callable[[float, float], None]] = None

    async def test(
        self,
        target: Target,
        context: Optional[TestContext] = None,
        stop: Optional[asyncio.Event] = None,
    ) -> PhaseResult:
        """Perform upload speed test."""
        context = context or TestContext()
        context.begin_phase(UPLOAD, SPEED_SCALE)
        stop = stop or asyncio.Event()

        result = PhaseResult.empty(UPLOAD)
        start_time = time.perf_counter()
        state = TransferState(id=0, started_at=start_time, window_start=start_time)
        context.track([state])

        current_rate = 0.0
        last_sample = start_time

        def _on_sent(nbytes: int) -> None:
            nonlocal current_rate, last_sample

            now = time.perf_counter()
            state.record(nbytes, now)
            elapsed = now - start_time
            if elapsed <= 0:
                return

            current_rate = rate_mbps(state.bytes_transferred, elapsed)
            context.report(current_rate)

            if now - last_sample >= self.sample_interval:
                result.samples.append(now, current_rate)
                last_sample = now

            if self.on_progress:
                self.on_progress(min(elapsed / self.duration_seconds, 1.0), current_rate)

            if elapsed > self.duration_seconds:
                stop.set()

        async def _post(session: aiohttp.ClientSession) -> None:
            body = payload_stream(self.payload_bytes, _on_sent)
            async with session.post(target.upload_url, data=body) as resp:
                if resp.status != 200:
                    LOGGER.warning("Upload rejected with HTTP %d: %s", resp.status, await resp.text())
                    return
                data = await resp.json()
                result.confirmed_bytes = int(data.get("receivedBytes", 0))

        # -- Orchestration --------------------------------------------------

        timeout = aiohttp.ClientTimeout(total=None, connect=CONNECT_TIMEOUT, sock_read=READ_TIMEOUT)
        async with aiohttp.ClientSession(headers=self.HEADERS, timeout=timeout) as session:
            post = asyncio.create_task(_post(session))
            halted = asyncio.create_task(stop.wait())
            try:
                await asyncio.wait(
                    {post, halted},
                    timeout=self.duration_seconds,
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                for t in (post, halted):
                    if not t.done():
                        t.cancel()
                outcome, _ = await asyncio.gather(post, halted, return_exceptions=True)

        state.finish(time.perf_counter())
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, asyncio.CancelledError):
            LOGGER.debug("Upload aborted after %d bytes", state.bytes_transferred)

        result.mean = current_rate
        result.duration_ms = (time.perf_counter() - start_time) * 1000
        result.bytes_total = state.bytes_transferred
        result.connections = [state]

        LOGGER.info("Upload %.2f Mbps (%d bytes)", result.mean, result.bytes_total)
        return result
