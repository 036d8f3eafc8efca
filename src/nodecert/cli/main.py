# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""
nodecert CLI - DNS-01 challenges for key-identified nodes.

Commands:
  nodecert keygen                   Generate a node key
  nodecert digest <value>           Compute a challenge TXT value
  nodecert register --ip <ip>       Register the node's A record
  nodecert challenge <value>        Publish a challenge and wait for propagation
  nodecert lookup                   Read the node's TXT record
"""

from __future__ import annotations

import argparse
import sys

from ..core.logging import configure_logging
from .commands import COMMAND_MODULES


def app() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="nodecert",
        description="DNS-01 challenges proven by node signatures",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  nodecert keygen                                 New key (store private_key in NODECERT_PRIVATE_KEY)
  nodecert register --ip 203.0.113.7              Point <node_id>.<domain> at this host
  nodecert challenge "<key-authorization>"        Publish and wait for the TXT record
        """,
    )
    parser.add_argument("--log-level", help="Log level (default: NODECERT_LOG_LEVEL or INFO)")
    parser.add_argument("--log-format", choices=["json", "text"], help="Log format (default: auto-detect)")

    subparsers = parser.add_subparsers(dest="command", required=True)
    for module in COMMAND_MODULES:
        module.register(subparsers)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = app()
    args = parser.parse_args(argv)

    json_format = None if args.log_format is None else args.log_format == "json"
    configure_logging(level=args.log_level, json_format=json_format)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
