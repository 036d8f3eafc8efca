# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""nodecert - DNS-01 challenges proven by node signatures instead of DNS provider credentials."""

__version__ = "0.1.0"
