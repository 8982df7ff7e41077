"""
Network measurement statistics.

Pure functions and lightweight dataclasses -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import statistics
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterator, List, Optional

from .constants import MIB, PING_RETENTION, SPEED_RETENTION

PING = "ping"
DOWNLOAD = "download"
UPLOAD = "upload"
PHASES = (PING, DOWNLOAD, UPLOAD)


# ---------------------------------------------------------------------------
# Samples
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MeasurementSample:
    """One rate (Mbps) or latency (ms) reading at a monotonic instant."""

    timestamp: float
    value: float

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError(f"Sample value must be non-negative, got {self.value}")

    def to_dict(self) -> dict:
        return {"timestamp": round(self.timestamp, 3), "value": round(self.value, 3)}


class SampleWindow:
    """The most recent *maxlen* samples, oldest evicted first."""

    def __init__(self, maxlen: int = SPEED_RETENTION) -> None:
        if maxlen < 1:
            raise ValueError("maxlen must be at least 1")
        self._samples: Deque[MeasurementSample] = deque(maxlen=maxlen)

    @property
    def maxlen(self) -> int:
        return self._samples.maxlen or 0

    def append(self, timestamp: float, value: float) -> MeasurementSample:
        sample = MeasurementSample(timestamp=timestamp, value=value)
        self._samples.append(sample)
        return sample

    def clear(self) -> None:
        self._samples.clear()

    @property
    def latest(self) -> Optional[MeasurementSample]:
        return self._samples[-1] if self._samples else None

    def values(self) -> List[float]:
        return [s.value for s in self._samples]

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[MeasurementSample]:
        return iter(self._samples)


def window_for(kind: str) -> SampleWindow:
    return SampleWindow(PING_RETENTION if kind == PING else SPEED_RETENTION)


# ---------------------------------------------------------------------------
# Per-stream state
# ---------------------------------------------------------------------------

@dataclass
class TransferState:
    """Byte counters for one download or upload stream.

    Only the owning stream calls :meth:`record`; readers sum across states.
    Bytes that arrive at or before ``window_start`` count toward
    ``bytes_transferred`` only.
    """

    id: int = 0
    started_at: float = 0.0
    window_start: float = 0.0
    bytes_transferred: int = 0
    valid_bytes: int = 0
    last_at: Optional[float] = None
    duration_ms: float = 0.0
    speed_mbps: float = 0.0

    def record(self, nbytes: int, now: float) -> None:
        if nbytes <= 0:
            return
        self.bytes_transferred += nbytes
        if now > self.window_start:
            self.valid_bytes += nbytes
        self.last_at = now

    def finish(self, now: float) -> None:
        self.duration_ms = max(0.0, (now - self.started_at) * 1000)
        self.speed_mbps = rate_mbps(self.bytes_transferred, self.duration_ms / 1000)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bytes": self.bytes_transferred,
            "valid_bytes": self.valid_bytes,
            "duration_ms": round(self.duration_ms, 2),
            "speed_mbps": round(self.speed_mbps, 2),
        }


# ---------------------------------------------------------------------------
# Phase result
# ---------------------------------------------------------------------------

@dataclass
class PhaseResult:
    """Outcome of one ping / download / upload phase."""

    kind: str
    mean: float = 0.0
    jitter: Optional[float] = None
    samples: SampleWindow = field(default_factory=SampleWindow)
    bytes_total: int = 0
    duration_ms: float = 0.0
    connections: List[TransferState] = field(default_factory=list)
    confirmed_bytes: Optional[int] = None

    @classmethod
    def empty(cls, kind: str) -> PhaseResult:
        if kind not in PHASES:
            raise ValueError(f"Unknown phase: {kind}")
        return cls(kind=kind, samples=window_for(kind))

    @property
    def unit(self) -> str:
        return "ms" if self.kind == PING else "Mbps"

    def to_dict(self) -> dict:
        result: dict = {
            "kind": self.kind,
            "mean": round(self.mean, 3),
            "unit": self.unit,
            "samples": [s.to_dict() for s in self.samples],
        }
        if self.jitter is not None:
            result["jitter"] = round(self.jitter, 3)
        if self.kind != PING:
            result["bytes_total"] = self.bytes_total
            result["duration_ms"] = round(self.duration_ms, 2)
            result["connections"] = [c.to_dict() for c in self.connections]
        if self.confirmed_bytes is not None:
            result["confirmed_bytes"] = self.confirmed_bytes
        return result


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def rate_mbps(nbytes: int, seconds: float) -> float:
    """Mbps with binary megabits (``bytes * 8 / 2**20 / seconds``).

    Returns 0.0 for a non-positive interval or byte count.
    """
    if seconds <= 0 or nbytes <= 0:
        return 0.0
    return (nbytes * 8) / MIB / seconds


def calculate_jitter(samples: List[float]) -> float:
    """Mean absolute difference between consecutive samples."""
    if len(samples) < 2:
        return 0.0
    diffs = [abs(samples[i] - samples[i - 1]) for i in range(1, len(samples))]
    return statistics.mean(diffs)


def calculate_mean(samples: List[float]) -> float:
    return statistics.mean(samples) if samples else 0.0


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"


def format_bytes(nbytes: int) -> str:
    """MiB with one decimal, as shown in the summary."""
    return f"{nbytes / MIB:.1f} MB"
