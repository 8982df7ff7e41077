"""
Rich-based terminal dashboard for speedtest results.

All formatting helpers live in ``client.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

import statistics
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from client.context import TestContext
from client.grading import rate_connection
from client.stats import PING, format_bytes, format_latency, format_speed

console = Console()
err_console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Histogram helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_histogram(values: List[float], width: int = 40, height: int = 5) -> str:
    """Return a single-line Unicode bar-chart."""
    if not values:
        return "No data"

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    norm = [(v - lo) / span * height for v in values[-width:]]
    return "".join(_BARS[min(int(n * (len(_BARS) - 1) / height), len(_BARS) - 1)] for n in norm)


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]httpspeed[/bold cyan]\n"
            "[dim]Ping, jitter, download and upload over plain HTTP[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_target_info(server_url: str, connections: int) -> None:
    mode = "Multi" if connections > 1 else "Single"
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="dim")
    table.add_column(style="bold")
    table.add_row("Server:", server_url)
    table.add_row("Connections:", f"{mode} ({connections})")
    console.print(Panel(table, title="[bold]Test Target[/bold]", border_style="blue"))


def print_server_list(servers: list) -> None:
    table = Table(title="Available Servers", box=box.ROUNDED)
    table.add_column("ID", style="dim", width=4)
    table.add_column("Name", style="bold")
    table.add_column("Location")
    table.add_column("Coordinates", justify="right")

    for server in servers:
        table.add_row(
            server.id,
            server.name,
            server.location,
            f"{server.lat:.2f}, {server.lon:.2f}",
        )

    console.print(table)


def print_latency_details(result) -> None:  # noqa: ANN001 (PhaseResult)
    """Print detailed latency statistics and a histogram."""
    pings = result.samples.values()
    if not pings:
        console.print("[yellow]No latency samples collected[/yellow]")
        return

    table = Table(title="Latency Details", box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Min", format_latency(min(pings)))
    table.add_row("Max", format_latency(max(pings)))
    table.add_row("Mean", format_latency(result.mean))
    table.add_row("Median", format_latency(statistics.median(pings)))
    table.add_row("Jitter", f"{result.jitter or 0.0:.2f} ms")
    table.add_row("Samples", str(len(pings)))
    console.print(table)

    console.print(
        Panel(
            f"[cyan]{create_histogram(pings, width=len(pings))}[/cyan]\n"
            f"[dim]Min: {min(pings):.1f} ms  Max: {max(pings):.1f} ms[/dim]",
            title="Ping Histogram",
        )
    )


def print_speed_result(result, title: str, color: str = "green") -> None:  # noqa: ANN001
    """Print a download or upload result panel."""
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Speed", f"[bold {color}]{format_speed(result.mean)}[/bold {color}]")
    table.add_row("Data Transferred", format_bytes(result.bytes_total))
    table.add_row("Duration", f"{result.duration_ms / 1000:.1f} s")
    table.add_row("Connections", str(len(result.connections)))
    if result.confirmed_bytes is not None:
        table.add_row("Server Received", format_bytes(result.confirmed_bytes))
    console.print(table)

    samples = result.samples.values()
    if samples:
        console.print(
            Panel(
                f"[{color}]{create_histogram(samples)}[/{color}]\n"
                f"[dim]Min: {min(samples):.1f} Mbps  "
                f"Max: {max(samples):.1f} Mbps[/dim]",
                title="Speed Over Time",
            )
        )

    if len(result.connections) > 1:
        ct = Table(title="Per-Connection Stats", box=box.SIMPLE)
        ct.add_column("ID", style="dim")
        ct.add_column("Bytes", justify="right")
        ct.add_column("After Warm-up", justify="right")
        ct.add_column("Speed", justify="right")
        for conn in result.connections:
            ct.add_row(
                str(conn.id),
                format_bytes(conn.bytes_transferred),
                format_bytes(conn.valid_bytes),
                format_speed(conn.speed_mbps),
            )
        console.print(ct)


def print_final_results(result) -> None:  # noqa: ANN001 (TestResult)
    label, color = rate_connection(result.download.mean, result.ping.mean)
    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Server:[/bold cyan] {result.target}\n\n"
            f"[bold white]   Ping:[/bold white]  [bold yellow]{result.ping.mean:.0f} ms[/bold yellow]  "
            f"[dim](jitter: {result.ping.jitter or 0.0:.0f} ms)[/dim]\n"
            f"[bold white]   Download:[/bold white]  [bold green]{format_speed(result.download.mean)}[/bold green]\n"
            f"[bold white]   Upload:[/bold white]  [bold blue]{format_speed(result.upload.mean)}[/bold blue]\n\n"
            f"[bold white]   Rating:[/bold white]  [{color}]{label}[/{color}]\n"
            f"[dim]   Data transferred: {format_bytes(result.data_transferred)}  "
            f"Test duration: {result.duration_s:.0f} s[/dim]",
            title="[bold]Test Summary[/bold]",
            border_style="cyan",
        )
    )
    console.print()


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

class ProgressDisplay:
    """Manages a ``rich`` progress bar for one phase of a run."""

    def __init__(self, context: Optional[TestContext] = None) -> None:
        self.context = context
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[bold cyan]{task.fields[value]}[/bold cyan]"),
            TextColumn("[dim]{task.fields[scale]}[/dim]"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = None
        self._phase = ""
        self._last_value = 0.0
        self._last_prog = 0.0

    def start(self, description: str, phase: str) -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(description, total=100, value="", scale="")
        self._phase = phase
        self._last_value = 0.0
        self._last_prog = 0.0

    def update(self, progress: float, value: float = 0) -> None:
        if self._task_id is None:
            return
        # Debounce: only update when values change noticeably
        if abs(progress - self._last_prog) < 0.01 and abs(value - self._last_value) < 1.0:
            return
        if value <= 0:
            value_str = "..."
        elif self._phase == PING:
            value_str = format_latency(value)
        else:
            value_str = format_speed(value)
        scale_str = f"/ {self.context.scale.ceiling:.0f}" if self.context else ""
        self.progress.update(self._task_id, completed=progress * 100, value=value_str, scale=scale_str)
        self._last_prog = progress
        self._last_value = value

    def stop(self) -> None:
        if self._task_id is not None:
            self.progress.update(self._task_id, completed=100)
        self.progress.stop()
        self._task_id = None
