"""
Rich-based terminal dashboard for LibreSpeed results.

All formatting helpers live in ``libreclient.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

import statistics
from typing import List, Optional, Sequence

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

from libreclient.progress import ProgressEvent
from libreclient.server import Server
from libreclient.stats import format_bytes, format_latency, format_speed

console = Console()


# ---------------------------------------------------------------------------
# Histogram helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_histogram(values: List[float]) -> str:
    """Return a single-line Unicode bar-chart."""
    if not values:
        return "No data"

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    return "".join(
        _BARS[min(int((v - lo) / span * (len(_BARS) - 1)), len(_BARS) - 1)]
        for v in values
    )


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]LibreSpeed CLI[/bold cyan]\n"
            "[dim]Latency, jitter and throughput against LibreSpeed servers[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_server_list(servers: Sequence[Server]) -> None:
    table = Table(title="Available Servers", box=box.ROUNDED)
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Server", style="bold")
    table.add_column("URL")
    for s in servers:
        table.add_row(str(s.id) if s.id is not None else "-", s.name, s.base_url)
    console.print(table)


def print_server_selection(servers: Sequence[Server], selected: Optional[Server] = None) -> None:
    table = Table(title="Server Selection", box=box.ROUNDED)
    table.add_column("#", style="dim", width=4)
    table.add_column("Server", style="bold")
    table.add_column("Latency", justify="right")
    table.add_column("Jitter", justify="right")

    ranked = sorted(servers, key=lambda s: s.latency_ms)
    for i, server in enumerate(ranked):
        chosen = server is selected
        reachable = server.latency_ms != float("inf")
        table.add_row(
            f"{'>' if chosen else ' '}{i + 1}",
            server.name,
            format_latency(server.latency_ms),
            f"{server.jitter_ms:.2f} ms" if reachable else "N/A",
            style="green" if chosen else None,
        )

    console.print(table)


def print_latency_details(result) -> None:  # noqa: ANN001 (PingResult)
    """Print detailed latency statistics and a histogram."""
    samples = result.samples
    if not samples:
        console.print("[yellow]No latency samples collected[/yellow]")
        return

    table = Table(title="Latency Details", box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Min", format_latency(min(samples)))
    table.add_row("Max", format_latency(max(samples)))
    table.add_row("Mean", format_latency(result.latency_ms))
    table.add_row("Median", format_latency(statistics.median(samples)))
    table.add_row("Jitter", f"{result.jitter_ms:.2f} ms")
    table.add_row("Samples", f"{len(samples)}/{result.attempts}")
    console.print(table)

    console.print(
        Panel(
            f"[cyan]{create_histogram(samples)}[/cyan]\n"
            f"[dim]Min: {min(samples):.1f} ms  Max: {max(samples):.1f} ms[/dim]",
            title="Ping Histogram",
        )
    )


def print_speed_result(result, title: str, color: str = "green") -> None:  # noqa: ANN001
    """Print a download or upload result panel."""
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Speed", f"[bold {color}]{format_speed(result.speed_mbps)}[/bold {color}]")
    table.add_row("Data Transferred", format_bytes(result.bytes_total))
    table.add_row("Duration", f"{result.duration_s:.1f} s")
    table.add_row("Streams", str(len(result.streams)))
    console.print(table)

    if result.streams:
        st = Table(title="Per-Stream Stats", box=box.SIMPLE)
        st.add_column("ID", style="dim")
        st.add_column("Bytes", justify="right")
        st.add_column("Requests", justify="right")
        st.add_column("Errors", justify="right")
        st.add_column("Speed", justify="right")
        for stream in result.streams:
            st.add_row(
                str(stream.id),
                format_bytes(stream.bytes_transferred),
                str(stream.requests),
                str(stream.errors),
                format_speed(stream.speed_mbps),
            )
        console.print(st)


def print_final_results(result) -> None:  # noqa: ANN001 (SpeedTestResult)
    ip_line = f"[bold white]   Client IP:[/bold white]  {result.client_ip}\n" if result.client_ip else ""
    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Server:[/bold cyan] {result.server.name}\n\n"
            f"{ip_line}"
            f"[bold white]   Ping:[/bold white]  [bold yellow]{result.latency_ms:.1f} ms[/bold yellow]  "
            f"[dim](jitter: {result.jitter_ms:.2f} ms)[/dim]\n"
            f"[bold white]   Download:[/bold white]  [bold green]{format_speed(result.download_mbps)}[/bold green]\n"
            f"[bold white]   Upload:[/bold white]  [bold blue]{format_speed(result.upload_mbps)}[/bold blue]",
            title="[bold]Results[/bold]",
            border_style="cyan",
        )
    )
    console.print()


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

class ProgressDisplay:
    """Manages a ``rich`` progress bar during download / upload tests."""

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[bold cyan]{task.fields[speed]}[/bold cyan]"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = None
        self._last_prog = 0.0

    def start(self, description: str) -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(description, total=100, speed="")
        self._last_prog = 0.0

    def update(self, event: ProgressEvent) -> None:
        if self._task_id is None:
            return
        # Debounce: one redraw per percent
        if event.fraction - self._last_prog < 0.01 and event.fraction < 1.0:
            return
        speed = event.speed_mbps
        speed_str = format_speed(speed) if speed > 0 else "..."
        self.progress.update(self._task_id, completed=event.fraction * 100, speed=speed_str)
        self._last_prog = event.fraction

    def stop(self) -> None:
        self.progress.stop()
        self._task_id = None
