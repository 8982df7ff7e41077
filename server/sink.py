"""
Upload sink.

Counts the bytes of an inbound request body as they arrive and discards
them.  The body is never held in memory; only the running total is kept.
"""
from __future__ import annotations

import enum
import logging
from typing import Any, AsyncIterator, Dict, Optional

from aiohttp import ClientPayloadError, StreamReader
from aiohttp.http_exceptions import HttpProcessingError

LOGGER = logging.getLogger(__name__)


class SinkState(enum.Enum):
    RECEIVING = "receiving"
    COMPLETED = "completed"
    FAILED = "failed"


class StreamSink:
    """Byte counter for one upload request."""

    def __init__(self) -> None:
        self.state = SinkState.RECEIVING
        self.bytes_received = 0
        self.error: Optional[str] = None

    async def consume(self, reader: StreamReader) -> int:
        """Drain *reader* to EOF.  Returns the byte count.

        Transport or payload errors move the sink to FAILED instead of
        raising; the caller turns that into an error response.
        """
        return await self.consume_chunks(reader.iter_any())

    async def consume_chunks(self, chunks: AsyncIterator[bytes]) -> int:
        try:
            async for chunk in chunks:
                self.bytes_received += len(chunk)
        except (ClientPayloadError, HttpProcessingError, OSError) as exc:
            self.state = SinkState.FAILED
            self.error = str(exc) or exc.__class__.__name__
            LOGGER.error("Upload stream error after %d bytes: %s", self.bytes_received, self.error)
        else:
            self.state = SinkState.COMPLETED
        return self.bytes_received

    # -- Response payloads ---------------------------------------------------

    @property
    def status(self) -> int:
        return 500 if self.state is SinkState.FAILED else 200

    def to_dict(self) -> Dict[str, Any]:
        if self.state is SinkState.FAILED:
            return {"error": "Stream error", "details": self.error}
        return {"receivedBytes": self.bytes_received}
