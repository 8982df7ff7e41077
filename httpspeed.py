#!/usr/bin/env python3
"""
httpspeed -- ping, jitter, download and upload against an HTTP backend.

Usage::

    python httpspeed.py                          # rich dashboard
    python httpspeed.py --simple                 # plain text
    python httpspeed.py --json                   # JSON to stdout
    python httpspeed.py -o result.json           # save to file
    python httpspeed.py --server http://host:8080 --connections single
    python httpspeed.py --list-servers           # show the backend's catalog
    python httpspeed.py --share                  # print shareable text
    python httpspeed.py --set ping_count=12      # persist a default
    python httpspeed.py --serve --port 9000      # run the backend
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Optional

from client.api import SpeedtestAPI, Target
from client.config import DEFAULTS, config_path, load_config, set_config_value
from client.constants import (
    CONNECTION_MODES,
    DEFAULT_CONNECTIONS,
    DEFAULT_DURATION,
    DEFAULT_PING_COUNT,
    DEFAULT_UPLOAD_MB,
    MAX_CONNECTIONS,
    MAX_DURATION,
    MAX_PING_COUNT,
    MAX_UPLOAD_MB,
    MIB,
    MIN_CONNECTIONS,
    MIN_DURATION,
    MIN_PING_COUNT,
)
from client.context import TestContext
from client.errors import SpeedtestError
from client.grading import format_share_text
from client.runner import SpeedtestRunner, TestResult
from client.stats import DOWNLOAD, PING, UPLOAD
from ui.dashboard import (
    ProgressDisplay,
    console,
    err_console,
    print_final_results,
    print_header,
    print_latency_details,
    print_server_list,
    print_speed_result,
    print_target_info,
)
from ui.logging_setup import configure_logging
from ui.output import create_result_json, format_text_result, save_json


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(
    ping_count: int,
    download_duration: float,
    upload_duration: float,
    connections: int,
    upload_size_mb: int = 1,
) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    if not MIN_PING_COUNT <= ping_count <= MAX_PING_COUNT:
        raise ValueError(f"Ping count must be between {MIN_PING_COUNT} and {MAX_PING_COUNT}")
    if not MIN_DURATION <= download_duration <= MAX_DURATION:
        raise ValueError(f"Download duration must be between {MIN_DURATION} and {MAX_DURATION} s")
    if not MIN_DURATION <= upload_duration <= MAX_DURATION:
        raise ValueError(f"Upload duration must be between {MIN_DURATION} and {MAX_DURATION} s")
    if not MIN_CONNECTIONS <= connections <= MAX_CONNECTIONS:
        raise ValueError(f"Connections must be between {MIN_CONNECTIONS} and {MAX_CONNECTIONS}")
    if not 0 <= upload_size_mb <= MAX_UPLOAD_MB:
        raise ValueError(f"Upload size must be between 0 and {MAX_UPLOAD_MB} MB")


def _resolve_connections(mode: str) -> int:
    try:
        return CONNECTION_MODES[mode]
    except KeyError:
        raise ValueError(f"Connection mode must be one of: {', '.join(CONNECTION_MODES)}") from None


# ---------------------------------------------------------------------------
# Core test runner
# ---------------------------------------------------------------------------

_PHASE_LABELS = {
    PING: "Measuring latency",
    DOWNLOAD: "Downloading",
    UPLOAD: "Uploading",
}


async def run_speedtest(
    *,
    server_url: str,
    json_output: bool = False,
    output_file: Optional[str] = None,
    simple: bool = False,
    connections: int = DEFAULT_CONNECTIONS,
    ping_count: int = DEFAULT_PING_COUNT,
    download_duration: float = DEFAULT_DURATION,
    upload_duration: float = DEFAULT_DURATION,
    upload_size_mb: int = DEFAULT_UPLOAD_MB,
    share: bool = False,
) -> dict:
    """Execute the full speedtest sequence and return a JSON-serialisable dict."""

    show_ui = not json_output and not simple
    target = Target(server_url)

    if show_ui:
        print_header()
        print_target_info(target.base_url, connections)

    context = TestContext()
    runner = SpeedtestRunner(
        target,
        connections=connections,
        ping_count=ping_count,
        download_duration=download_duration,
        upload_duration=upload_duration,
        upload_bytes=upload_size_mb * MIB,
    )

    # One progress bar per phase, swapped when the phase changes
    current: dict = {"phase": None, "display": None}

    def _on_progress(phase: str, progress: float, value: float) -> None:
        if current["phase"] != phase:
            if current["display"] is not None:
                current["display"].stop()
            current["display"] = ProgressDisplay(context)
            current["display"].start(_PHASE_LABELS[phase], phase)
            current["phase"] = phase
        current["display"].update(progress, value)

    if show_ui:
        runner.on_progress = _on_progress

    try:
        result = await runner.run(context)
    finally:
        if current["display"] is not None:
            current["display"].stop()

    _report(result, show_ui=show_ui, simple=simple)

    result_json = create_result_json(result.to_dict())

    if json_output:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    if share:
        share_text = format_share_text(
            ping_ms=result.ping.mean,
            jitter_ms=result.ping.jitter or 0.0,
            download_mbps=result.download.mean,
            upload_mbps=result.upload.mean,
            server_url=result.target,
            data_transferred_mb=result.data_transferred / MIB,
        )
        if show_ui:
            from rich.panel import Panel
            console.print(Panel(share_text, title="Share This Result", border_style="cyan"))
        else:
            print("\n" + share_text)

    return result_json


def _report(result: TestResult, *, show_ui: bool, simple: bool) -> None:
    if show_ui:
        console.print()
        print_latency_details(result.ping)
        print_speed_result(result.download, "Download Results", "green")
        print_speed_result(result.upload, "Upload Results", "blue")
        print_final_results(result)
    elif simple:
        print(
            format_text_result(
                ping_ms=result.ping.mean,
                jitter_ms=result.ping.jitter or 0.0,
                download_mbps=result.download.mean,
                upload_mbps=result.upload.mean,
                server_url=result.target,
                rating=result.rating,
            )
        )


async def list_servers(server_url: str) -> None:
    async with SpeedtestAPI(Target(server_url)) as api:
        servers = await api.fetch_servers()
    print_server_list(servers)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser(config: dict) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="httpspeed -- HTTP network speed testing",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    parser.add_argument("--share", action="store_true", help="Print shareable result text")

    # Target
    parser.add_argument("--server", type=str, default=config["server_url"], metavar="URL", help="Backend base URL (default: %(default)s)")
    parser.add_argument("--list-servers", action="store_true", help="List the backend's server catalog and exit")
    parser.add_argument("--connections", choices=sorted(CONNECTION_MODES), default=config["connection_mode"], help="Single stream or multi-stream download (default: %(default)s)")

    # Test parameters
    parser.add_argument("--ping-count", type=int, default=config["ping_count"], metavar="N", help="Number of ping samples (default: %(default)s)")
    parser.add_argument("--download-duration", type=float, default=config["download_duration"], metavar="SECS", help="Download test duration in seconds (default: %(default)s)")
    parser.add_argument("--upload-duration", type=float, default=config["upload_duration"], metavar="SECS", help="Upload test duration in seconds (default: %(default)s)")
    parser.add_argument("--upload-size", type=int, default=config["upload_size_mb"], metavar="MB", help="Upload payload size in MB (default: %(default)s)")

    # Backend
    parser.add_argument("--serve", action="store_true", help="Run the speedtest backend instead of a test")
    parser.add_argument("--host", type=str, default=None, help="Backend bind address (with --serve)")
    parser.add_argument("--port", type=int, default=None, help="Backend port (with --serve)")

    # Config and logging
    parser.add_argument("--set", type=str, metavar="KEY=VALUE", help=f"Persist a default ({', '.join(DEFAULTS)})")
    parser.add_argument("--log-level", type=str, default=config["log_level"], help="Logging level (default: %(default)s)")
    parser.add_argument("--log-file", type=str, default=None, metavar="FILE", help="Also write logs to a rotating file")
    return parser


def _set_config(assignment: str) -> None:
    key, sep, value = assignment.partition("=")
    if not sep:
        raise ValueError("--set expects KEY=VALUE")
    path = set_config_value(key.strip(), value.strip())
    console.print(f"[green]Saved[/green] {key.strip()} = {value.strip()} [dim]({path})[/dim]")


def _serve(host: Optional[str], port: Optional[int]) -> None:
    from server.app import run_server
    from server.config import ServerConfig

    config = ServerConfig.from_env()
    if host:
        config.host = host
    if port:
        config.port = port
    run_server(config)


def main(argv: Optional[list] = None) -> None:
    config = load_config()
    args = build_parser(config).parse_args(argv)

    configure_logging(args.log_level, args.log_file)

    if args.set:
        try:
            _set_config(args.set)
        except (KeyError, ValueError) as exc:
            err_console.print(f"[red]Error: {exc}[/red]")
            sys.exit(1)
        return

    if args.serve:
        _serve(args.host, args.port)
        return

    if args.list_servers:
        try:
            asyncio.run(list_servers(args.server))
        except Exception as exc:
            err_console.print(f"[red]Error: could not fetch servers from {args.server}: {exc}[/red]")
            sys.exit(1)
        return

    # Validate
    try:
        connections = _resolve_connections(args.connections)
        _validate(
            ping_count=args.ping_count,
            download_duration=args.download_duration,
            upload_duration=args.upload_duration,
            connections=connections,
            upload_size_mb=args.upload_size,
        )
    except ValueError as exc:
        err_console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    try:
        asyncio.run(
            run_speedtest(
                server_url=args.server,
                json_output=args.json,
                output_file=args.output,
                simple=args.simple,
                connections=connections,
                ping_count=args.ping_count,
                download_duration=args.download_duration,
                upload_duration=args.upload_duration,
                upload_size_mb=args.upload_size,
                share=args.share,
            )
        )
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except SpeedtestError as exc:
        err_console.print(f"\n[red]Error: {exc}[/red] [dim](config: {config_path()})[/dim]")
        sys.exit(1)
    except Exception as exc:
        err_console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
