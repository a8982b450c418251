"""ewam-sim -- send simulated aerospace entity data to a TCP socket.

Usage:
    ewam-sim --host localhost --port 12345 --scenario combat --interval 500
    ewam-sim --server --port 12345
    ewam-sim --test --message "ping" --interval 2000
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

from loguru import logger
from pydantic import ValidationError

from ewam import __version__
from ewam.config import SCENARIOS, Settings
from ewam.console import print_report
from ewam.errors import BindError
from ewam.runtime import ClientRuntime, ProbeRuntime, ServerRuntime

MIN_SANE_INTERVAL_MS = 100


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ewam-sim",
        description="Send simulated aerospace entity data to TCP socket",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ewam-sim --host 10.0.0.5 --port 12345 --scenario combat
  ewam-sim --server --port 12345
  ewam-sim --server --serve-scenario convoy
  ewam-sim --test --message "Hello World" --interval 2000
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-H", "--host", default="localhost", help="Server host address")
    parser.add_argument("-p", "--port", type=int, default=12345, help="Server port")
    parser.add_argument("-s", "--scenario", default="melbourne",
                        help=f"Simulation scenario ({', '.join(SCENARIOS)})")
    parser.add_argument("-i", "--interval", type=int, default=1000,
                        help="Update interval in milliseconds")
    parser.add_argument("-V", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("--server", action="store_true",
                        help="Run in server mode instead of client mode")
    parser.add_argument("--serve-scenario", default=None,
                        help="Server mode: also broadcast this scenario to connected clients")
    parser.add_argument("--test", action="store_true",
                        help="Run in test mode (send/receive simple messages)")
    parser.add_argument("-m", "--message", default="Hello World",
                        help="Test message to send in test mode")
    parser.add_argument("--no-reconnect", action="store_true",
                        help="Disable automatic reconnection attempts")
    parser.add_argument("-r", "--reconnect-interval", type=int, default=5,
                        help="Reconnection attempt interval in seconds")
    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "INFO",
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <7}</level> | {message}",
    )


def build_settings(args: argparse.Namespace) -> Settings:
    """Merge CLI flags over environment defaults.  Raises ValidationError."""
    overrides = dict(
        host=args.host,
        port=args.port,
        interval_ms=args.interval,
        reconnect_enabled=not args.no_reconnect,
        reconnect_interval_ms=args.reconnect_interval * 1000,
        server_mode=args.server,
        test_mode=args.test,
        test_message=args.message,
        serve_scenario=args.serve_scenario,
        verbose=args.verbose,
    )
    # Scenario only matters (and is only validated) for client simulation
    if not args.server and not args.test:
        overrides["scenario"] = args.scenario
    return Settings(**overrides)


async def run(settings: Settings) -> int:
    """Run until SIGINT/SIGTERM.  Returns the process exit code."""
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()

    def shutdown(signame: str) -> None:
        logger.info(f"Received signal {signame}")
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown, sig.name)

    if settings.server_mode:
        logger.info(f"Starting server on port {settings.port}")
        runtime = ServerRuntime(loop, settings, on_report=print_report)
        try:
            await runtime.start()
        except BindError as e:
            logger.error(str(e))
            return 1
    elif settings.test_mode:
        logger.info("Starting in test mode")
        logger.info(f"Server: {settings.host}:{settings.port}")
        logger.info(f"Test message: {settings.test_message}")
        logger.info(f"Interval: {settings.interval_ms}ms")
        runtime = ProbeRuntime(loop, settings)
        runtime.start()
    else:
        logger.info(f"Starting {settings.scenario} scenario...")
        logger.info(f"Server: {settings.host}:{settings.port}")
        logger.info(f"Update interval: {settings.interval_ms}ms")
        if settings.reconnect_enabled:
            logger.info(
                f"Auto-reconnect enabled (interval: {settings.reconnect_interval_ms // 1000}s)"
            )
        runtime = ClientRuntime(loop, settings, on_report=print_report)
        runtime.start()

    if settings.verbose:
        logger.debug("Interactive commands: Ctrl+C - Quit application")

    try:
        await stop.wait()
    finally:
        runtime.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = build_settings(args)
    except ValidationError as e:
        for err in e.errors():
            logger.error(err["msg"])
        return 1

    if settings.interval_ms < MIN_SANE_INTERVAL_MS:
        logger.warning("Update interval less than 100ms may cause performance issues")

    code = asyncio.run(run(settings))
    logger.info("Application ended.")
    return code


if __name__ == "__main__":
    sys.exit(main())
