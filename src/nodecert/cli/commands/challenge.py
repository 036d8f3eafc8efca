# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Node registration and challenge commands.

Commands:
    nodecert register --ip <ip>             Register the node's A record
    nodecert challenge <value> --ip <ip>    Register, publish a challenge, wait for propagation
    nodecert lookup                         Read the node's TXT record
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from ...challenge.coordinator import ChallengeCoordinator
from ...core.config import get_settings
from ...core.exceptions import NodecertException
from ...identity.node_key import Ed25519NodeKey
from ..output import output_error, output_result

logger = logging.getLogger(__name__)


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the register, challenge and lookup commands."""
    for name, func, help_text in (
        ("register", cmd_register, "Register the node's A record with the TLD service"),
        ("challenge", cmd_challenge, "Publish a DNS-01 challenge and wait until it propagates"),
        ("lookup", cmd_lookup, "Resolve the node's TXT record"),
    ):
        p = subparsers.add_parser(name, help=help_text)
        if name == "challenge":
            p.add_argument("value", help="Raw challenge value (key authorization)")
        p.add_argument("--private-key", help="Ed25519 private key hex (default: NODECERT_PRIVATE_KEY)")
        p.add_argument("--ip", help="IP address to assert (default: NODECERT_IP)")
        p.add_argument("--tld-service", help="TLD service URL (default: NODECERT_TLD_SERVICE)")
        p.add_argument("--domain", help="Base domain (default: NODECERT_DOMAIN)")
        p.add_argument("--timeout", type=float, help="Propagation timeout in seconds (default: unbounded)")
        p.set_defaults(func=func)


def build_coordinator(args: argparse.Namespace) -> ChallengeCoordinator:
    """Coordinator from environment settings, overridden by command-line flags."""
    settings = get_settings()
    options = settings.as_options()
    for option, value in (
        ("ip", args.ip),
        ("tld_service", args.tld_service),
        ("domain", args.domain),
        ("propagation_timeout", args.timeout),
    ):
        if value is not None:
            options[option] = value

    private_key = args.private_key or settings.private_key
    if private_key:
        options["key"] = Ed25519NodeKey.from_private_hex(private_key)
    return ChallengeCoordinator(options)


def _run(args: argparse.Namespace, action) -> int:
    try:
        coordinator = build_coordinator(args)
        result = asyncio.run(action(coordinator))
    except (NodecertException, ValueError) as e:
        output_error(str(e))
        return 1
    output_result(result)
    return 0


def cmd_register(args: argparse.Namespace) -> int:
    async def action(coordinator: ChallengeCoordinator) -> dict:
        node_id = await coordinator.register()
        return {"node_id": node_id, "hostname": coordinator.hostname, "ip": coordinator.records.ip}

    return _run(args, action)


def cmd_challenge(args: argparse.Namespace) -> int:
    async def action(coordinator: ChallengeCoordinator) -> dict:
        await coordinator.register()
        request = await coordinator.set_challenge(args.value)
        return {
            "state": coordinator.state.value,
            "name": f"{request.name}.{coordinator.config.domain}",
            "digest": request.digest,
        }

    return _run(args, action)


def cmd_lookup(args: argparse.Namespace) -> int:
    async def action(coordinator: ChallengeCoordinator) -> dict:
        return {"hostname": coordinator.hostname, "txt": await coordinator.lookup()}

    return _run(args, action)
