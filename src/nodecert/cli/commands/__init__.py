# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""CLI command modules. Each exposes ``register(subparsers)``."""

from . import challenge, keys

COMMAND_MODULES = [keys, challenge]

__all__ = ["COMMAND_MODULES", "challenge", "keys"]
