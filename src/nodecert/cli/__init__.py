# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""nodecert CLI - register a node and answer DNS-01 challenges."""

from .main import app, main

__all__ = ["main", "app"]
