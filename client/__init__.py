"""Speedtest client library -- measurement phases, orchestration, statistics."""

from .api import Server, SpeedtestAPI, Target
from .context import DisplayScale, TestContext
from .download import DownloadTester
from .errors import PhaseError, SpeedtestError
from .latency import LatencyTester
from .runner import SpeedtestRunner, TestResult
from .stats import (
    MeasurementSample,
    PhaseResult,
    SampleWindow,
    TransferState,
    calculate_jitter,
    format_latency,
    format_speed,
    rate_mbps,
)
from .upload import UploadTester

__all__ = [
    "DisplayScale",
    "DownloadTester",
    "LatencyTester",
    "MeasurementSample",
    "PhaseError",
    "PhaseResult",
    "SampleWindow",
    "Server",
    "SpeedtestAPI",
    "SpeedtestError",
    "SpeedtestRunner",
    "Target",
    "TestContext",
    "TestResult",
    "TransferState",
    "UploadTester",
    "calculate_jitter",
    "format_latency",
    "format_speed",
    "rate_mbps",
]
