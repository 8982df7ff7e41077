"""
Shared constants used across all client modules.

Centralises magic numbers, default headers, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = "httpspeed/0.1 (+aiohttp)"

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Encoding": "identity",   # measured bytes must equal wire bytes
    "Cache-Control": "no-cache",
}

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

DEFAULT_SERVER_URL = "http://localhost:8080"

# ---------------------------------------------------------------------------
# Connection limits
# ---------------------------------------------------------------------------

CONNECTION_MODES = {"single": 1, "multi": 4}
DEFAULT_CONNECTION_MODE = "multi"

MIN_CONNECTIONS = 1
MAX_CONNECTIONS = 16
DEFAULT_CONNECTIONS = CONNECTION_MODES[DEFAULT_CONNECTION_MODE]

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

DEFAULT_PING_COUNT = 8
PING_INTERVAL = 0.1              # pause between sequential probes
MIN_PING_COUNT = 1
MAX_PING_COUNT = 100

DEFAULT_DURATION = 10.0          # seconds for download / upload
MIN_DURATION = 1.0
MAX_DURATION = 300.0

WARMUP_SECONDS = 2.0             # download bytes in this window skip the rate
SAMPLE_INTERVAL = 0.1            # 100 ms between speed samples
CANCEL_GRACE = 1.0               # time for streams to notice cancellation
PHASE_PAUSE = 0.5                # gap between ping / download / upload

CONNECT_TIMEOUT = 5.0
READ_TIMEOUT = 10.0

# ---------------------------------------------------------------------------
# Data transfer
# ---------------------------------------------------------------------------

MIB = 1024 * 1024
CHUNK_SIZE = 64 * 1024           # read / write increment
DEFAULT_UPLOAD_MB = 30
UPLOAD_PAYLOAD_BYTES = DEFAULT_UPLOAD_MB * MIB
MAX_UPLOAD_MB = 1000

# ---------------------------------------------------------------------------
# Samples and display scale
# ---------------------------------------------------------------------------

PING_RETENTION = 20              # samples kept for the live chart
SPEED_RETENTION = 30

PING_SCALE = 100.0               # initial gauge ceilings
SPEED_SCALE = 500.0
SCALE_LIMIT = 10_000.0           # 10 Gbps
SCALE_TRIGGER = 0.8
SCALE_FACTOR = 1.5
