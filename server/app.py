"""
aiohttp application for the speedtest backend.

Routes::

    GET  /ping                 tiny fixed body, used for round-trip timing
    GET  /download?size=<MB>   chunked octet stream, no Content-Length
    POST /upload               counts the request body, answers with JSON
    GET  /servers              static catalogue of test servers

Every response is non-cacheable and open to any origin.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from aiohttp import hdrs, web

from .config import ServerConfig
from .constants import CORS_HEADERS, NO_CACHE_HEADERS, SERVER_CATALOG
from .sink import StreamSink
from .source import ChunkedSource, ResponseChannel

LOGGER = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", ServerConfig)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def handle_ping(request: web.Request) -> web.Response:
    return web.Response(text="pong")


async def handle_download(request: web.Request) -> web.StreamResponse:
    config = request.app[CONFIG_KEY]
    target = config.resolve_size_bytes(request.query.get("size"))

    response = web.StreamResponse(
        headers={hdrs.CONTENT_TYPE: "application/octet-stream"},
    )
    # No Content-Length: the client must not learn the size up front.
    response.enable_chunked_encoding()
    writer = await response.prepare(request)

    source = ChunkedSource(
        target,
        chunk_size=config.chunk_size,
        max_duration=config.max_stream_seconds,
    )
    await source.pump(ResponseChannel(request, writer))

    try:
        await response.write_eof()
    except ConnectionResetError:
        LOGGER.debug("Peer %s left before end of download", request.remote)
    return response


async def handle_upload(request: web.Request) -> web.Response:
    sink = StreamSink()
    await sink.consume(request.content)
    LOGGER.debug("Upload from %s: %d bytes (%s)", request.remote, sink.bytes_received, sink.state.value)
    return web.json_response(sink.to_dict(), status=sink.status)


async def handle_servers(request: web.Request) -> web.Response:
    return web.json_response({"servers": SERVER_CATALOG})


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------

@web.middleware
async def preflight_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Answer CORS preflight requests for any path."""
    if request.method == hdrs.METH_OPTIONS:
        return web.Response(status=204)
    return await handler(request)


async def _add_common_headers(request: web.Request, response: web.StreamResponse) -> None:
    # on_response_prepare runs before headers are sent, streamed bodies included
    response.headers.update(NO_CACHE_HEADERS)
    response.headers.update(CORS_HEADERS)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

def create_app(config: Optional[ServerConfig] = None) -> web.Application:
    app = web.Application(middlewares=[preflight_middleware])
    app[CONFIG_KEY] = config or ServerConfig()
    app.on_response_prepare.append(_add_common_headers)

    app.router.add_get("/ping", handle_ping)
    app.router.add_get("/download", handle_download)
    app.router.add_post("/upload", handle_upload)
    app.router.add_get("/servers", handle_servers)
    return app


def run_server(config: Optional[ServerConfig] = None) -> None:
    """Serve until interrupted."""
    config = config or ServerConfig.from_env()
    LOGGER.info("Speedtest backend running on %s:%d", config.host, config.port)
    web.run_app(create_app(config), host=config.host, port=config.port, print=None)
