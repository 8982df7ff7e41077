"""
Connection quality rating and shareable summary text.

The rating turns the download speed and ping of a finished run into a
one-line verdict of what the connection is good for.
"""
from __future__ import annotations

from typing import Tuple


# ---------------------------------------------------------------------------
# Rating
# ---------------------------------------------------------------------------

# (min download Mbps, max ping ms or None, label, color)
_RATINGS = [
    (300.0, 20.0, "Excellent for UHD Streaming & Gaming", "green"),
    (100.0, 50.0, "Great for HD Streaming & Working", "green"),
    (25.0, None, "Good for Standard Web Use", "yellow"),
]
_FALLBACK = ("Poor - Network Optimization Suggested", "red")


def rate_connection(download_mbps: float, ping_ms: float) -> Tuple[str, str]:
    """Return ``(label, color)`` for a run's download speed and ping."""
    for min_download, max_ping, label, color in _RATINGS:
        if download_mbps > min_download and (max_ping is None or ping_ms < max_ping):
            return (label, color)
    return _FALLBACK


# ---------------------------------------------------------------------------
# Share result
# ---------------------------------------------------------------------------

def format_share_text(
    ping_ms: float,
    jitter_ms: float,
    download_mbps: float,
    upload_mbps: float,
    server_url: str,
    data_transferred_mb: float = 0.0,
) -> str:
    """Generate a plain-text shareable result block."""
    lines = [
        "Speedtest Results",
        f"Server: {server_url}",
        f"Ping: {ping_ms:.0f} ms (jitter: {jitter_ms:.0f} ms)",
        f"Download: {download_mbps:.1f} Mbps",
        f"Upload: {upload_mbps:.1f} Mbps",
    ]
    if data_transferred_mb > 0:
        lines.append(f"Data transferred: {data_transferred_mb:.1f} MB")
    lines.append(f"Rating: {rate_connection(download_mbps, ping_ms)[0]}")
    return "\n".join(lines)
