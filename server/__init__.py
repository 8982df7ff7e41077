"""Speedtest backend -- chunked download source, upload sink, HTTP routes."""

from .app import CONFIG_KEY, create_app, run_server
from .config import ServerConfig
from .sink import SinkState, StreamSink
from .source import Channel, ChunkedSource, ResponseChannel, SourceState

__all__ = [
    "CONFIG_KEY",
    "Channel",
    "ChunkedSource",
    "ResponseChannel",
    "ServerConfig",
    "SinkState",
    "SourceState",
    "StreamSink",
    "create_app",
    "run_server",
]
