# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Key and digest helpers.

Commands:
    nodecert keygen             Generate an Ed25519 node key
    nodecert digest <value>     Print the DNS-01 TXT value for a challenge
"""

from __future__ import annotations

import argparse

from ...challenge.coordinator import challenge_digest
from ...identity.node_key import Ed25519NodeKey
from ..output import output_result


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the keygen and digest commands."""
    keygen_p = subparsers.add_parser("keygen", help="Generate an Ed25519 node key")
    keygen_p.set_defaults(func=cmd_keygen)

    digest_p = subparsers.add_parser("digest", help="Compute the TXT value for a challenge")
    digest_p.add_argument("value", help="Raw challenge value (key authorization)")
    digest_p.set_defaults(func=cmd_digest)


def cmd_keygen(args: argparse.Namespace) -> int:
    key = Ed25519NodeKey.generate()
    output_result(
        {
            "node_id": key.get_node_id(),
            "public_key": key.get_public_key(),
            "private_key": key.private_hex(),
        }
    )
    return 0


def cmd_digest(args: argparse.Namespace) -> int:
    output_result({"value": args.value, "digest": challenge_digest(args.value)})
    return 0
