# src/app/main.py
"""
Process entrypoint for the bridge.

    mc-bridge [host] [port] [username] [--config PATH] [--profile NAME]
              [--dashboard] [--log-level LEVEL]

stdin carries controller commands, stdout carries events (one JSON object
per line), stderr carries logs and the optional dashboard.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from bot_core.bridge import Bridge
from bot_core.net import StreamEventSink, create_session_factory
from env.loader import apply_overrides, load_environment
from env.schema import BridgeProfile
from monitoring.bus import EventBus
from monitoring.dashboard_tui import TuiDashboard
from monitoring.logger import JsonFileLogger, parse_event_types

from .logging_config import configure_logging

log = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2

# Controller lines above this size are rejected by the bridge.
MAX_LINE_BYTES = 1 << 20


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mc-bridge",
        description="Bridge a controller (stdin/stdout JSON lines) to a game session.",
    )
    parser.add_argument("host", nargs="?", default=None, help="Server host (overrides config)")
    parser.add_argument("port", nargs="?", type=int, default=None, help="Server port")
    parser.add_argument("username", nargs="?", default=None, help="Bot username")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to bridge.yaml (default: $BRIDGE_CONFIG or config/bridge.yaml)",
    )
    parser.add_argument("--profile", default=None, help="Profile name inside the config")
    parser.add_argument(
        "--dashboard",
        action="store_true",
        help="Render the live dashboard on stderr",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for stderr diagnostics",
    )
    return parser


def resolve_profile(args: argparse.Namespace) -> BridgeProfile:
    profile = load_environment(args.config, args.profile)
    return apply_overrides(
        profile,
        host=args.host,
        port=args.port,
        username=args.username,
    )


async def _stdin_reader() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=MAX_LINE_BYTES)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return reader


async def serve(profile: BridgeProfile, bus: EventBus) -> int:
    """Run one Bridge against stdin/stdout until it finishes."""
    bridge = Bridge(
        profile,
        create_session_factory(profile.session),
        StreamEventSink(sys.stdout),
        bus=bus,
    )
    reader = await _stdin_reader()
    return await bridge.run(reader)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    configure_logging(getattr(logging, args.log_level))

    try:
        profile = resolve_profile(args)
        event_types = parse_event_types(profile.monitoring.events_filter)
    except (OSError, KeyError, ValueError) as exc:
        log.error("failed to load configuration: %s", exc)
        return EXIT_CONFIG_ERROR

    bus = EventBus()
    events_logger: Optional[JsonFileLogger] = None
    if profile.monitoring.events_log:
        events_logger = JsonFileLogger(
            Path(profile.monitoring.events_log), bus, event_types=event_types
        )

    dashboard: Optional[TuiDashboard] = None
    if args.dashboard or profile.monitoring.dashboard:
        dashboard = TuiDashboard(bus)
        dashboard.start()

    log.info("using profile %r", profile.name)
    try:
        return asyncio.run(serve(profile, bus))
    except KeyboardInterrupt:
        log.info("interrupted")
        return 0
    finally:
        if dashboard is not None:
            dashboard.stop()
        if events_logger is not None:
            events_logger.close()


if __name__ == "__main__":
    sys.exit(main())
