"""Exceptions raised to callers of the test orchestrator."""
from __future__ import annotations

from typing import Optional


class SpeedtestError(Exception):
    """A test run failed; the message is meant for the user."""


class PhaseError(SpeedtestError):
    """A specific phase (ping, download, upload) failed."""

    def __init__(self, message: str, phase: Optional[str] = None) -> None:
        super().__init__(message)
        self.phase = phase
