"""Command line entry point: forward and reverse TCP relays."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import threading
from collections.abc import Awaitable, Callable, Sequence

from tcprelay.config import get_remote_host
from tcprelay.dashboard import Dashboard
from tcprelay.manager import ProxyError, ProxyManager

logger = logging.getLogger(__name__)

_HEADLESS_HELP = "Run without TUI dashboard"


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the ``forward`` and ``reverse`` modes."""
    parser = argparse.ArgumentParser(
        prog="proxy",
        description=(
            "A simple TCP proxy tool that supports both forward and reverse "
            "proxy modes, with automatic configuration file support and a TUI dashboard."
        ),
    )
    parser.add_argument("--headless", action="store_true", help=_HEADLESS_HELP)
    parser.set_defaults(mode="forward", args=[])
    commands = parser.add_subparsers(dest="command")

    forward = commands.add_parser(
        "forward",
        help="Forward localhost connections to remote servers",
        usage="%(prog)s [--headless] [remote:port localPort]",
    )
    forward.add_argument("--headless", action="store_true", default=argparse.SUPPRESS, help=_HEADLESS_HELP)
    forward.add_argument("args", nargs="*", metavar="ARG")
    forward.set_defaults(mode="forward")

    reverse = commands.add_parser(
        "reverse",
        aliases=["r"],
        help="Expose localhost services on all network interfaces",
        usage="%(prog)s [--headless] [localPort externalPort]",
    )
    reverse.add_argument("--headless", action="store_true", default=argparse.SUPPRESS, help=_HEADLESS_HELP)
    reverse.add_argument("args", nargs="*", metavar="ARG")
    reverse.set_defaults(mode="reverse")
    return parser


def _print_usage(mode: str, prog: str) -> None:
    if mode == "forward":
        lines = [
            f"Usage: {prog} forward [remote:port localPort]",
            "Examples:",
            f"  {prog} forward                              # auto forward with config file",
            f"  {prog} forward --headless                   # auto forward headless",
            f"  {prog} forward work-mbp:8080 3000           # manual forward",
        ]
    else:
        lines = [
            f"Usage: {prog} reverse [localPort externalPort]",
            "Examples:",
            f"  {prog} reverse                              # auto reverse with config file",
            f"  {prog} reverse --headless                   # auto reverse headless",
            f"  {prog} reverse 8080 8080                    # manual reverse",
        ]
    print("\n".join(lines), file=sys.stderr)


def _run_blocking(make: Callable[[], Awaitable[None]]) -> int:
    try:
        asyncio.run(make())
    except ProxyError as err:
        logger.error("%s", err)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


def _run_with_dashboard(manager: ProxyManager, mode: str, make: Callable[[], Awaitable[None]]) -> int:
    def background() -> None:
        try:
            asyncio.run(make())
        except ProxyError as err:
            logger.error("Error in %s mode: %s", mode, err)

    threading.Thread(target=background, name=f"{mode}-proxies", daemon=True).start()
    logging.disable(logging.CRITICAL)
    try:
        Dashboard(manager).run()
    finally:
        logging.disable(logging.NOTSET)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; return the process exit status."""
    parser = build_parser()
    options = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(message)s",
        datefmt="%Y/%m/%d %H:%M:%S",
        stream=sys.stderr,
    )
    manager = ProxyManager()
    mode: str = options.mode
    args: list[str] = options.args

    if len(args) == 2:
        first, second = args
        if mode == "forward":
            return _run_blocking(lambda: manager.run_single_forward_proxy(first, second))
        return _run_blocking(lambda: manager.run_single_reverse_proxy(first, second))
    if args:
        _print_usage(mode, parser.prog)
        return 1

    if options.headless:
        if mode == "forward":
            return _run_blocking(manager.run_config_forward_mode)
        return _run_blocking(manager.run_config_reverse_mode)

    if mode == "forward":
        # Ask for the host before the dashboard takes over the screen.
        remote_host = get_remote_host()
        return _run_with_dashboard(
            manager, mode, lambda: manager.run_config_forward_mode(None, remote_host)
        )
    return _run_with_dashboard(manager, mode, manager.run_config_reverse_mode)


if __name__ == "__main__":
    sys.exit(main())