"""
Test orchestration: ping -> download -> upload.

``SpeedtestRunner`` owns the per-run :class:`TestContext`, runs the three
phases in order and folds their results into a :class:`TestResult`.  Any
failure other than cancellation aborts the whole sequence and surfaces as a
single :class:`SpeedtestError`.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .api import Target
from .constants import (
    DEFAULT_CONNECTIONS,
    DEFAULT_DURATION,
    DEFAULT_PING_COUNT,
    PHASE_PAUSE,
    UPLOAD_PAYLOAD_BYTES,
)
from .context import DONE, IDLE, TestContext
from .download import DownloadTester
from .errors import PhaseError
from .grading import rate_connection
from .latency import LatencyTester
from .stats import DOWNLOAD, PING, UPLOAD, PhaseResult
from .upload import UploadTester

LOGGER = logging.getLogger(__name__)

FAILURE_MESSAGE = "Test configuration error or server unreachable."

ProgressCallback = Callable[[str, float, float], None]


@dataclass
class TestResult:
    """Everything one complete run produced."""

    target: str
    connections: int
    ping: PhaseResult = field(default_factory=lambda: PhaseResult.empty(PING))
    download: PhaseResult = field(default_factory=lambda: PhaseResult.empty(DOWNLOAD))
    upload: PhaseResult = field(default_factory=lambda: PhaseResult.empty(UPLOAD))
    data_transferred: int = 0
    duration_s: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    __test__ = False

    @property
    def rating(self) -> str:
        return rate_connection(self.download.mean, self.ping.mean)[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "target": self.target,
            "connections": self.connections,
            "ping": self.ping.to_dict(),
            "download": self.download.to_dict(),
            "upload": self.upload.to_dict(),
            "data_transferred": self.data_transferred,
            "duration_s": round(self.duration_s, 2),
            "rating": self.rating,
        }


class SpeedtestRunner:
    """Sequences the three measurement phases against one backend."""

    def __init__(
        self,
        target: Target,
        *,
        connections: int = DEFAULT_CONNECTIONS,
        ping_count: int = DEFAULT_PING_COUNT,
        download_duration: float = DEFAULT_DURATION,
        upload_duration: float = DEFAULT_DURATION,
        upload_bytes: int = UPLOAD_PAYLOAD_BYTES,
        phase_pause: float = PHASE_PAUSE,
    ) -> None:
        self.target = target
        self.connections = connections
        self.latency = LatencyTester(ping_count=ping_count)
        self.downloader = DownloadTester(duration_seconds=download_duration)
        self.uploader = UploadTester(duration_seconds=upload_duration, payload_bytes=upload_bytes)
        self.phase_pause = phase_pause
        self.on_progress: Optional[ProgressCallback] = None
        self._stop: Optional[asyncio.Event] = None

    # -- Control ------------------------------------------------------------

    def cancel(self) -> None:
        """End the running throughput phase early; its partial result stands."""
        if self._stop is not None:
            self._stop.set()

    def _wire_progress(self) -> None:
        for phase, tester in ((PING, self.latency), (DOWNLOAD, self.downloader), (UPLOAD, self.uploader)):
            if self.on_progress:
                tester.on_progress = lambda p, v, _phase=phase: self.on_progress(_phase, p, v)
            else:
                tester.on_progress = None

    # -- Run ----------------------------------------------------------------

    async def run(self, context: Optional[TestContext] = None) -> TestResult:
        context = context or TestContext()
        context.reset()
        self._wire_progress()

        result = TestResult(target=self.target.base_url, connections=self.connections)
        started = time.perf_counter()
        phase = PING

        try:
            result.ping = await self.latency.test(self.target, context)

            phase = DOWNLOAD
            await asyncio.sleep(self.phase_pause)
            self._stop = asyncio.Event()
            result.download = await self.downloader.test(
                self.target, connections=self.connections, context=context, stop=self._stop,
            )

            phase = UPLOAD
            await asyncio.sleep(self.phase_pause)
            self._stop = asyncio.Event()
            result.upload = await self.uploader.test(self.target, context=context, stop=self._stop)

        except asyncio.CancelledError:
            context.status = IDLE
            raise
        except Exception as exc:
            LOGGER.error("Test failed during %s phase: %s", phase, exc, exc_info=True)
            context.status = IDLE
            raise PhaseError(FAILURE_MESSAGE, phase=phase) from exc
        finally:
            self._stop = None
            result.duration_s = time.perf_counter() - started

        result.data_transferred = context.bytes_transferred
        context.status = DONE
        context.current_value = 0.0
        return result
