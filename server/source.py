"""
Chunked download source.

Streams a target number of bytes to a client by writing one pre-allocated
buffer over and over.  Writes only continue while the outbound transport
buffer has room; once it is full the source parks on a single drain wait
before writing again, so memory use stays at one chunk no matter how large
the requested download is, and the send rate follows what the receiver
actually consumes.

State machine::

    WRITING ----(buffer full)----> WAITING_FOR_DRAIN
       ^                                  |
       +------------(drained)-------------+
    WRITING / WAITING_FOR_DRAIN --(target | disconnect | ceiling)--> DONE
"""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Callable, Optional, Protocol

from aiohttp import web
from aiohttp.abc import AbstractStreamWriter

from .constants import CHUNK_SIZE, MAX_STREAM_SECONDS, YIELD_INTERVAL

LOGGER = logging.getLogger(__name__)


class SourceState(enum.Enum):
    WRITING = "writing"
    WAITING_FOR_DRAIN = "waiting_for_drain"
    DONE = "done"


# ---------------------------------------------------------------------------
# Channel
# ---------------------------------------------------------------------------

class Channel(Protocol):
    """Outbound byte channel with a backpressure signal."""

    @property
    def closing(self) -> bool:
        """True once the peer is gone."""

    async def write(self, data: bytes) -> bool:
        """Queue *data* without waiting; return True while there is room."""

    async def drain(self) -> None:
        """Suspend until the outbound buffer has been flushed below its limit."""


class ResponseChannel:
    """Channel over a prepared aiohttp ``StreamResponse``.

    Data goes through the stream writer returned by ``prepare()`` (so the
    chunked framing stays aiohttp's business) while the room signal is read
    from the request's asyncio transport buffer limits.
    """

    def __init__(self, request: web.BaseRequest, writer: AbstractStreamWriter) -> None:
        self._request = request
        self._writer = writer

    @property
    def closing(self) -> bool:
        transport = self._request.transport
        return transport is None or transport.is_closing()

    def has_room(self) -> bool:
        transport = self._request.transport
        if transport is None or transport.is_closing():
            return False
        _, high = transport.get_write_buffer_limits()
        return transport.get_write_buffer_size() < max(high, 1)

    async def write(self, data: bytes) -> bool:
        await self._writer.write(data, drain=False)
        return self.has_room()

    async def drain(self) -> None:
        await self._writer.drain()


# ---------------------------------------------------------------------------
# Source
# ---------------------------------------------------------------------------

class ChunkedSource:
    """
    Emit ``target_bytes`` (or, when ``None``, an unbounded stream) through a
    :class:`Channel`, reusing a single ``chunk_size`` buffer.

    The stream ends on whichever comes first: the target is reached, the
    peer disconnects, or ``max_duration`` seconds have passed.
    """

    def __init__(
        self,
        target_bytes: Optional[int],
        chunk_size: int = CHUNK_SIZE,
        max_duration: float = MAX_STREAM_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.target_bytes = None if target_bytes is None else max(0, target_bytes)
        self.chunk_size = chunk_size
        self.max_duration = max_duration
        self.buffer = bytes(chunk_size)
        self.bytes_sent = 0
        self.state = SourceState.WRITING
        self.stop_reason = ""
        self._clock = clock
        self._started_at: Optional[float] = None

    # -- Helpers ------------------------------------------------------------

    def _remaining(self) -> Optional[int]:
        if self.target_bytes is None:
            return None
        return self.target_bytes - self.bytes_sent

    def next_chunk(self) -> bytes:
        """The shared buffer, or a slice of it for the final remainder."""
        remaining = self._remaining()
        if remaining is None or remaining >= self.chunk_size:
            return self.buffer
        return self.buffer[:remaining]

    def _time_left(self) -> float:
        if self._started_at is None:
            return self.max_duration
        return self.max_duration - (self._clock() - self._started_at)

    def _expired(self) -> bool:
        return self._time_left() <= 0

    def _finish(self, reason: str) -> None:
        self.state = SourceState.DONE
        self.stop_reason = reason

    # -- Main loop ----------------------------------------------------------

    async def pump(self, channel: Channel) -> int:
        """Drive the state machine until DONE.  Returns bytes sent."""
        self._started_at = self._clock()
        since_yield = 0

        if self._remaining() == 0:
            self._finish("complete")

        while self.state is not SourceState.DONE:
            if channel.closing:
                self._finish("disconnected")
                break
            if self._expired():
                self._finish("timeout")
                break

            try:
                if self.state is SourceState.WAITING_FOR_DRAIN:
                    await asyncio.wait_for(channel.drain(), timeout=self._time_left())
                    self.state = SourceState.WRITING
                    since_yield = 0
                    continue

                chunk = self.next_chunk()
                room = await channel.write(chunk)
            except asyncio.TimeoutError:
                self._finish("timeout")
                break
            except ConnectionResetError:
                self._finish("disconnected")
                break

            self.bytes_sent += len(chunk)
            since_yield += len(chunk)

            if self._remaining() == 0:
                self._finish("complete")
            elif not room:
                self.state = SourceState.WAITING_FOR_DRAIN
            elif since_yield >= YIELD_INTERVAL:
                since_yield = 0
                await asyncio.sleep(0)

        LOGGER.debug(
            "Download stream finished (%s): %d bytes", self.stop_reason, self.bytes_sent
        )
        return self.bytes_sent
