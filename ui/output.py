"""
Output formatting -- JSON export and plain text.
"""
from __future__ import annotations

import json
import os
import statistics
from typing import Any, Dict, List


def create_result_json(result: Dict[str, Any]) -> Dict[str, Any]:
    """Build the exported JSON document from ``TestResult.to_dict()``."""
    ping = result.get("ping", {})
    pings: List[float] = [s["value"] for s in ping.get("samples", [])]
    n = len(pings)

    if pings:
        rtt_min, rtt_max = min(pings), max(pings)
        rtt_median = statistics.median(pings)
    else:
        rtt_min = rtt_max = rtt_median = 0

    download = result.get("download", {})
    upload = result.get("upload", {})

    return {
        "timestamp": result.get("timestamp", ""),
        "server": result.get("target", ""),
        "connections": result.get("connections", 0),
        "ping": ping.get("mean", 0),
        "jitter": ping.get("jitter", 0),
        "latency": {
            "rtt": {
                "min": rtt_min,
                "max": rtt_max,
                "mean": ping.get("mean", 0),
                "median": rtt_median,
            },
            "count": n,
            "samples": pings,
        },
        "download": {
            "speed_mbps": download.get("mean", 0),
            "bytes": download.get("bytes_total", 0),
            "duration_ms": download.get("duration_ms", 0),
            "connections": download.get("connections", []),
            "samples": [s["value"] for s in download.get("samples", [])],
        },
        "upload": {
            "speed_mbps": upload.get("mean", 0),
            "bytes": upload.get("bytes_total", 0),
            "confirmed_bytes": upload.get("confirmed_bytes"),
            "duration_ms": upload.get("duration_ms", 0),
            "samples": [s["value"] for s in upload.get("samples", [])],
        },
        "data_transferred": result.get("data_transferred", 0),
        "duration_s": result.get("duration_s", 0),
        "rating": result.get("rating", ""),
    }


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except (IOError, OSError) as exc:
        # Clean up partial temp file
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to save JSON to {filepath}: {exc}") from exc


# ---------------------------------------------------------------------------
# Plain-text helpers
# ---------------------------------------------------------------------------

def format_text_result(
    ping_ms: float,
    jitter_ms: float,
    download_mbps: float,
    upload_mbps: float,
    server_url: str,
    rating: str = "",
) -> str:
    sep = "=" * 50
    mid = "-" * 50
    text = (
        f"{sep}\n"
        f"Speedtest Results\n"
        f"{sep}\n"
        f"Server: {server_url}\n"
        f"{mid}\n"
        f"Ping: {ping_ms:.1f} ms (jitter: {jitter_ms:.2f} ms)\n"
        f"Download: {download_mbps:.2f} Mbps\n"
        f"Upload: {upload_mbps:.2f} Mbps\n"
    )
    if rating:
        text += f"Rating: {rating}\n"
    return text + sep
