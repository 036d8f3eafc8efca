# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Node identities: a key-derived node ID plus a signing capability."""

from nodecert.identity.node_key import (
    Ed25519NodeKey,
    NodeIdentity,
    is_node_identity,
    node_id_from_public_key,
    verify_signature,
)

__all__ = [
    "Ed25519NodeKey",
    "NodeIdentity",
    "is_node_identity",
    "node_id_from_public_key",
    "verify_signature",
]
