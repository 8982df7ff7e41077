"""
Server configuration.

Values come from the environment (``HOST`` / ``PORT``) with everything else
fixed to the defaults in :mod:`server.constants`.  Download sizes are
requested in MiB and clamped here, so a bad ``size`` query never reaches
the streaming code.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .constants import (
    CHUNK_SIZE,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_SIZE_MB,
    MAX_SIZE_MB,
    MAX_STREAM_SECONDS,
    MIB,
    MIN_SIZE_MB,
)

LOGGER = logging.getLogger(__name__)


@dataclass
class ServerConfig:
    """Runtime settings for the speedtest backend."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    min_size_mb: int = MIN_SIZE_MB
    max_size_mb: int = MAX_SIZE_MB
    default_size_mb: int = DEFAULT_SIZE_MB
    max_stream_seconds: float = MAX_STREAM_SECONDS
    chunk_size: int = CHUNK_SIZE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> ServerConfig:
        env = os.environ if environ is None else environ
        port_raw = env.get("PORT", "")
        try:
            port = int(port_raw) if port_raw else DEFAULT_PORT
        except ValueError:
            LOGGER.warning("Ignoring invalid PORT %r, using %d", port_raw, DEFAULT_PORT)
            port = DEFAULT_PORT
        return cls(host=env.get("HOST", DEFAULT_HOST), port=port)

    def resolve_size_mb(self, raw: Optional[str]) -> int:
        """Turn a ``size`` query value into a MiB count within bounds.

        Missing or non-integer values fall back to ``default_size_mb``;
        numbers outside the range are clamped to the nearest bound.
        """
        if raw is None or not raw.strip():
            return self.default_size_mb
        try:
            size = int(raw)
        except ValueError:
            LOGGER.debug("Unparsable download size %r, using default", raw)
            return self.default_size_mb
        clamped = max(self.min_size_mb, min(size, self.max_size_mb))
        if clamped != size:
            LOGGER.debug("Download size %d clamped to %d", size, clamped)
        return clamped

    def resolve_size_bytes(self, raw: Optional[str]) -> int:
        return self.resolve_size_mb(raw) * MIB
