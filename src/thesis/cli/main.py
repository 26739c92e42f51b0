#!/usr/bin/env python3
"""
Thesis CLI - operator tools for the opinion market and reputation engine.

Commands:
  thesis init                 Initialize database (creates schema)
  thesis price <debate>       Show current market price
  thesis history <debate>     Show price history
  thesis spikes <debate>      Show stance spikes
  thesis stats <debate>       Show aggregate stance statistics
  thesis reputation <user>    Show reputation breakdown
  thesis decay <user>...      Persist inactivity decay (scheduler hook)
"""

from __future__ import annotations

import argparse
import sys

from ..core.logging import configure_logging, correlation_context
from .commands import COMMAND_MODULES


def app() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="thesis",
        description="Opinion market and reputation engine for structured debates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  thesis init                        Initialize database
  thesis price debate-42             Current support/oppose price
  thesis --json stats debate-42      Aggregate statistics as JSON
  thesis reputation user-7           Reputation factor breakdown
  thesis decay user-7 user-9         Apply inactivity decay
        """,
    )
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument("--log-level", default=None, help="Log level (default: from THESIS_LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command", required=True)
    for module in COMMAND_MODULES:
        module.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = app()
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level)

    # One correlation id per invocation
    with correlation_context():
        return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
