#!/usr/bin/env python3
"""
LibreSpeed CLI -- network speed testing against LibreSpeed servers.

Usage::

    python librespeed.py                          # rich dashboard, best public server
    python librespeed.py --simple                 # plain text
    python librespeed.py --json                   # JSON to stdout
    python librespeed.py -o result.json           # save to file
    python librespeed.py --server https://speed.example.com/
    python librespeed.py --list-servers           # show the public server list
    python librespeed.py --repeat 5 --interval 60 # repeat 5 times
    python librespeed.py --save-config -c 6       # remember options
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
import time
from typing import Any, Dict, List, Optional

from libreclient.cancel import CancelToken
from libreclient.client import LibreSpeedClient
from libreclient.config import MeasurementConfig, load_config, save_config
from libreclient.constants import (
    MAX_CHUNK_MB,
    MAX_CONNECTIONS,
    MAX_DURATION,
    MAX_PING_COUNT,
    MAX_UPLOAD_SIZE,
    MIN_CONNECTIONS,
    MIN_DURATION,
    MIN_PING_COUNT,
)
from libreclient.errors import SpeedtestError, TestCancelled
from libreclient.logging_setup import configure_logging
from libreclient.progress import ProgressEvent
from libreclient.server import Server
from ui.dashboard import (
    ProgressDisplay,
    console,
    print_final_results,
    print_header,
    print_latency_details,
    print_server_list,
    print_server_selection,
    print_speed_result,
)
from ui.output import create_result_json, format_text_result, save_json

logger = logging.getLogger("librespeed")


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(
    ping_count: int,
    download_duration: float,
    upload_duration: float,
    connections: int,
    chunk_size: int,
    upload_size: int,
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
    if not 1 <= chunk_size <= MAX_CHUNK_MB:
        raise ValueError(f"Chunk size must be between 1 and {MAX_CHUNK_MB} MB")
    if not 1 <= upload_size <= MAX_UPLOAD_SIZE:
        raise ValueError(f"Upload size must be between 1 and {MAX_UPLOAD_SIZE} bytes")


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

_PHASE_LABELS = {"download": "Downloading", "upload": "Uploading"}


class _PhaseProgress:
    """Progress-feed subscriber that opens one bar per phase."""

    def __init__(self) -> None:
        self._display: Optional[ProgressDisplay] = None
        self._phase: Optional[str] = None

    def __call__(self, event: ProgressEvent) -> None:
        if event.phase != self._phase:
            self.close()
            self._display = ProgressDisplay()
            self._display.start(_PHASE_LABELS.get(event.phase, event.phase))
            self._phase = event.phase
        self._display.update(event)

    def close(self) -> None:
        if self._display is not None:
            self._display.stop()
            self._display = None


def _install_sigint(token: CancelToken) -> bool:
    """Turn Ctrl-C into a token cancellation where the loop supports it."""
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError):
        return False
    return True


def _remove_sigint() -> None:
    try:
        asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
    except (NotImplementedError, RuntimeError):
        pass


# ---------------------------------------------------------------------------
# Core test runner
# ---------------------------------------------------------------------------

async def run_speedtest(
    config: MeasurementConfig,
    *,
    json_output: bool = False,
    output_file: Optional[str] = None,
    simple: bool = False,
    server_url: str = "",
    server_list: Optional[str] = None,
    max_servers: int = 10,
    token: Optional[CancelToken] = None,
) -> Dict[str, Any]:
    """Execute the full test sequence and return a JSON-serialisable dict."""

    show_ui = not json_output and not simple
    token = token or CancelToken()
    handles_sigint = _install_sigint(token)

    if show_ui:
        print_header()

    progress = _PhaseProgress()

    try:
        async with LibreSpeedClient(config) as client:

            # -- Server -----------------------------------------------------
            candidates: List[Server] = []
            if server_url:
                best = Server(name=server_url, base_url=server_url)
            else:
                if show_ui:
                    console.print("[dim]Fetching server list...[/dim]")
                kwargs = {"url": server_list} if server_list else {}
                candidates = await client.fetch_servers(**kwargs)

                if show_ui:
                    console.print("\n[bold]Testing latency to servers...[/bold]")
                best = await client.get_best_server(candidates, max_servers, token)
                candidates = candidates[:max_servers]

                if show_ui:
                    print_server_selection(candidates, selected=best)
                    console.print(f"\n[green]Selected server:[/green] {best.name}")

            # -- Measurement ------------------------------------------------
            if show_ui:
                console.print("\n[bold]Running ping, download and upload tests...[/bold]")
                client.progress.subscribe(progress)

            result = await client.run(best, token)

    finally:
        progress.close()
        if handles_sigint:
            _remove_sigint()

    # -- Report -------------------------------------------------------------
    if show_ui:
        if result.ping is not None:
            print_latency_details(result.ping)
        if result.download is not None:
            print_speed_result(result.download, "Download Results", "green")
        if result.upload is not None:
            print_speed_result(result.upload, "Upload Results", "blue")
        print_final_results(result)
    elif simple:
        print(format_text_result(result))

    result_json = create_result_json(result, candidates)

    if json_output:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    return result_json


async def _list_servers(server_list: Optional[str]) -> None:
    async with LibreSpeedClient() as client:
        kwargs = {"url": server_list} if server_list else {}
        servers = await client.fetch_servers(**kwargs)
    print_server_list(servers)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser(defaults: Dict[str, Any]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="LibreSpeed CLI -- network speed testing",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")

    # Server selection
    parser.add_argument("--server", type=str, default=defaults["server"], metavar="URL", help="Test against this LibreSpeed backend instead of the public list")
    parser.add_argument("--server-list", type=str, default=defaults["server_list"], metavar="URL", help="Server list JSON URL")
    parser.add_argument("--max-servers", type=int, default=defaults["max_servers"], metavar="N", help="Number of servers to probe when selecting")
    parser.add_argument("--list-servers", action="store_true", help="List available servers and exit")

    # Test parameters
    parser.add_argument("--ping-count", type=int, default=defaults["ping_count"], metavar="N", help="Number of ping samples")
    parser.add_argument("--download-duration", type=float, default=defaults["download_duration"], metavar="SECS", help="Download test duration in seconds")
    parser.add_argument("--upload-duration", type=float, default=defaults["upload_duration"], metavar="SECS", help="Upload test duration in seconds")
    parser.add_argument("--connections", "-c", type=int, default=defaults["connections"], metavar="N", help="Number of parallel streams")
    parser.add_argument("--chunk-size", type=int, default=defaults["chunk_size"], metavar="MB", help="Download request size hint in MB")
    parser.add_argument("--upload-size", type=int, default=defaults["upload_size"], metavar="BYTES", help="Upload payload size in bytes")

    # Repeat mode
    parser.add_argument("--repeat", type=int, default=1, metavar="N", help="Run the test N times (default: 1)")
    parser.add_argument("--interval", type=float, default=60.0, metavar="SECS", help="Seconds between repeated tests (default: 60)")

    # Logging and config
    parser.add_argument("--verbose", "-v", action="store_true", help="Log measurement details to stderr")
    parser.add_argument("--log-level", type=str, default=defaults["log_level"], metavar="LEVEL", help="Log level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--log-file", type=str, metavar="FILE", help="Also write logs to FILE")
    parser.add_argument("--save-config", action="store_true", help="Save the current options as defaults")

    return parser


def _options_to_config(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "server": args.server,
        "server_list": args.server_list,
        "max_servers": args.max_servers,
        "connections": args.connections,
        "ping_count": args.ping_count,
        "download_duration": args.download_duration,
        "upload_duration": args.upload_duration,
        "chunk_size": args.chunk_size,
        "upload_size": args.upload_size,
        "log_level": args.log_level,
    }


def main(argv: Optional[List[str]] = None) -> None:
    defaults = load_config()
    args = build_parser(defaults).parse_args(argv)

    configure_logging("DEBUG" if args.verbose else args.log_level, args.log_file)

    # Validate
    try:
        _validate(
            ping_count=args.ping_count,
            download_duration=args.download_duration,
            upload_duration=args.upload_duration,
            connections=args.connections,
            chunk_size=args.chunk_size,
            upload_size=args.upload_size,
        )
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    if args.repeat < 1:
        console.print("[red]Error: --repeat must be >= 1[/red]")
        sys.exit(1)
    if args.max_servers < 1:
        console.print("[red]Error: --max-servers must be >= 1[/red]")
        sys.exit(1)

    options = _options_to_config(args)
    if args.save_config:
        path = save_config(options)
        console.print(f"[green]Configuration saved to:[/green] {path}")

    try:
        # List-servers mode
        if args.list_servers:
            asyncio.run(_list_servers(args.server_list))
            return

        config = MeasurementConfig.from_mapping(options)

        # Normal run (with repeat support)
        for run_idx in range(args.repeat):
            if args.repeat > 1 and not args.json:
                console.print(f"\n[bold cyan]--- Run {run_idx + 1}/{args.repeat} ---[/bold cyan]")

            asyncio.run(
                run_speedtest(
                    config,
                    json_output=args.json,
                    output_file=args.output,
                    simple=args.simple,
                    server_url=args.server,
                    server_list=args.server_list,
                    max_servers=args.max_servers,
                )
            )

            # Wait between runs (but not after the last one)
            if run_idx < args.repeat - 1:
                if not args.json:
                    console.print(f"[dim]Next run in {args.interval:.0f}s...[/dim]")
                time.sleep(args.interval)

    except (TestCancelled, KeyboardInterrupt):
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except SpeedtestError as exc:
        logger.debug("Run failed", exc_info=True)
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)
    except (IOError, OSError) as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
