"""
Server-side constants.

Sizes, limits and the static server catalogue served by ``GET /servers``.
"""

# ---------------------------------------------------------------------------
# Data transfer
# ---------------------------------------------------------------------------

MIB = 1024 * 1024
CHUNK_SIZE = 64 * 1024            # one reusable buffer per download stream
YIELD_INTERVAL = 1024 * 1024      # hand control back to the loop every 1 MiB

MIN_SIZE_MB = 1
MAX_SIZE_MB = 1000
DEFAULT_SIZE_MB = 100

MAX_STREAM_SECONDS = 15.0         # safety ceiling for a single download

# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080

# ---------------------------------------------------------------------------
# Response headers
# ---------------------------------------------------------------------------

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}

# ---------------------------------------------------------------------------
# Static catalogue
# ---------------------------------------------------------------------------

SERVER_CATALOG = [
    {"id": "1", "name": "US East (N. Virginia)", "location": "Ashburn, VA",
     "lat": 39.0438, "lon": -77.4874, "distance": 0},
    {"id": "2", "name": "US West (Oregon)", "location": "Boardman, OR",
     "lat": 45.8399, "lon": -119.7006, "distance": 0},
    {"id": "3", "name": "EU (Frankfurt)", "location": "Frankfurt, Germany",
     "lat": 50.1109, "lon": 8.6821, "distance": 0},
    {"id": "4", "name": "Asia Pacific (Singapore)", "location": "Singapore",
     "lat": 1.3521, "lon": 103.8198, "distance": 0},
]
