#!/usr/bin/env python3
"""
Tidbyt donation worker - Entry point.

Usage:
    python -m tidbyt_worker start [--host HOST] [--port PORT] [--batch-window MS] [--max-wait MS]
    python -m tidbyt_worker render --count N --sum S [--output FILE]

Commands:
    start   Start the HTTP worker
    render  Render one frame with the configured applet and write it to a file
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

from effekt_common import setup_logging as effekt_setup_logging

from .accumulator import BatchSnapshot
from .config import WorkerConfig
from .errors import RenderError
from .server import serve
from .sink import DisplaySink


def setup_logging(verbose: bool = False) -> None:
    if verbose:
        os.environ.setdefault("LOG_LEVEL", "DEBUG")
    effekt_setup_logging("tidbyt-worker")


def build_config(args: argparse.Namespace) -> WorkerConfig:
    """Env vars / defaults, overridden by explicit CLI args."""
    config = WorkerConfig()
    overrides = {}
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None) is not None:
        overrides["port"] = args.port
    if getattr(args, "batch_window", None) is not None:
        overrides["batch_window_ms"] = args.batch_window
    if getattr(args, "max_wait", None) is not None:
        overrides["max_batch_wait_ms"] = args.max_wait
    if getattr(args, "applet", None):
        overrides["applet_path"] = Path(args.applet)
    if overrides:
        config = config.model_copy(update=overrides)
    return config


def cmd_start(args: argparse.Namespace) -> int:
    """Start the worker."""
    setup_logging(args.verbose)
    config = build_config(args)

    print(f"Starting Tidbyt worker on {config.host}:{config.port}")
    print(f"  Applet: {config.applet_path} (pixlet={config.pixlet_bin})")
    print(f"  Batching: window={config.batch_window_ms}ms max={config.max_batch_wait_ms}ms")
    if not config.push_enabled:
        print("  Push disabled: TIDBYT_API_KEY / TIDBYT_DEVICE_ID not set")

    try:
        serve(config)
    except KeyboardInterrupt:
        print("\nShutting down...")
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    """Render a preview frame without pushing it."""
    setup_logging(args.verbose)
    config = build_config(args)
    sink = DisplaySink.from_config(config)

    snapshot = BatchSnapshot(count=args.count, sum=args.sum)
    try:
        image = asyncio.run(sink.render(snapshot))
    except RenderError as e:
        print(f"Render failed: {e}", file=sys.stderr)
        return 1

    Path(args.output).write_bytes(image)
    print(f"Wrote {len(image)} bytes to {args.output}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Tidbyt donation worker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    start_parser = subparsers.add_parser("start", help="Start the HTTP worker")
    start_parser.add_argument("--host", default=None, help="Host to bind to (default: 0.0.0.0)")
    start_parser.add_argument("--port", type=int, default=None, help="Port to listen on (default: 8080)")
    start_parser.add_argument(
        "--batch-window",
        type=int,
        default=None,
        help="Sliding batch window in milliseconds (default: 8000, floor 250)",
    )
    start_parser.add_argument(
        "--max-wait",
        type=int,
        default=None,
        help="Maximum batch wait in milliseconds (default: 60000, floor 1000)",
    )
    start_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    start_parser.set_defaults(func=cmd_start)

    render_parser = subparsers.add_parser("render", help="Render a preview frame")
    render_parser.add_argument("--count", type=int, default=1, help="Donation count to display")
    render_parser.add_argument("--sum", type=float, default=100.0, help="Donation sum to display")
    render_parser.add_argument("--applet", default=None, help="Path to the .star applet")
    render_parser.add_argument("--output", default="preview.webp", help="Output file")
    render_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    render_parser.set_defaults(func=cmd_render)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
