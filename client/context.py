"""
Per-run test context.

Holds what the presentation layer reads while a test is running: the
current phase, the latest value, the gauge ceiling and the byte counters of
every stream.  One context is created per run and handed to each phase, so
phases never touch module-level state.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .constants import PING_SCALE, SCALE_FACTOR, SCALE_LIMIT, SCALE_TRIGGER
from .stats import TransferState

IDLE = "idle"
DONE = "done"


@dataclass
class DisplayScale:
    """Auto-ranging gauge ceiling.  Purely presentational."""

    ceiling: float = PING_SCALE
    limit: float = SCALE_LIMIT
    trigger: float = SCALE_TRIGGER
    factor: float = SCALE_FACTOR

    def reset(self, ceiling: float) -> None:
        self.ceiling = ceiling

    def observe(self, value: float) -> float:
        """Grow the ceiling once if *value* is near it.  Returns the ceiling."""
        if value > self.ceiling * self.trigger and self.ceiling < self.limit:
            self.ceiling *= self.factor
        return self.ceiling


@dataclass
class TestContext:
    """Shared state for one ping -> download -> upload run."""

    status: str = IDLE
    current_value: float = 0.0
    scale: DisplayScale = field(default_factory=DisplayScale)
    transfers: List[TransferState] = field(default_factory=list)
    on_update: Optional[Callable[[TestContext], None]] = None

    __test__ = False  # not a unittest/pytest test class

    def begin_phase(self, status: str, ceiling: float) -> None:
        self.status = status
        self.current_value = 0.0
        self.scale.reset(ceiling)
        self._notify()

    def track(self, states: List[TransferState]) -> None:
        self.transfers.extend(states)

    def report(self, value: float, adapt_scale: bool = True) -> None:
        self.current_value = value
        if adapt_scale:
            self.scale.observe(value)
        self._notify()

    @property
    def bytes_transferred(self) -> int:
        return sum(s.bytes_transferred for s in self.transfers)

    def reset(self) -> None:
        self.status = IDLE
        self.current_value = 0.0
        self.scale.reset(PING_SCALE)
        self.transfers.clear()

    def _notify(self) -> None:
        if self.on_update:
            self.on_update(self)
