# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Node identities used to sign record updates.

The challenge responder only needs a capability with three methods, captured
by :class:`NodeIdentity`. :class:`Ed25519NodeKey` is the stock implementation,
built on ``cryptography``:

- the node ID is the first 40 hex characters of ``sha256(raw public key)``;
- the public key travels as hex of the raw 32 bytes;
- signatures are hex Ed25519 signatures over the UTF-8 content.
"""

from __future__ import annotations

import hashlib
from typing import Any, Protocol, runtime_checkable

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

NODE_ID_LENGTH = 40  # hex characters


@runtime_checkable
class NodeIdentity(Protocol):
    """Signing capability owned by the caller."""

    def get_node_id(self) -> str: ...
    def sign(self, content: str | bytes) -> str: ...
    def get_public_key(self) -> str: ...


def is_node_identity(obj: Any) -> bool:
    """True if ``obj`` exposes callable ``sign``, ``get_node_id`` and ``get_public_key``."""
    if obj is None:
        return False
    return all(callable(getattr(obj, name, None)) for name in ("sign", "get_node_id", "get_public_key"))


def _to_bytes(content: str | bytes) -> bytes:
    return content.encode("utf-8") if isinstance(content, str) else content


def _public_key_bytes(pub: Ed25519PublicKey) -> bytes:
    """Extract raw 32-byte public key."""
    return pub.public_bytes(Encoding.Raw, PublicFormat.Raw)


def node_id_from_public_key(pub: Ed25519PublicKey | bytes) -> str:
    """Derive the node ID from an Ed25519 public key (or its raw bytes)."""
    raw = pub if isinstance(pub, bytes) else _public_key_bytes(pub)
    return hashlib.sha256(raw).hexdigest()[:NODE_ID_LENGTH]


def verify_signature(public_key_hex: str, content: str | bytes, signature_hex: str) -> bool:
    """Check a signature produced by :meth:`Ed25519NodeKey.sign`."""
    try:
        pub = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
        pub.verify(bytes.fromhex(signature_hex), _to_bytes(content))
    except (InvalidSignature, ValueError):
        return False
    return True


class Ed25519NodeKey:
    """Ed25519 keypair acting as a node identity."""

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        self._public_key = private_key.public_key()
        self._node_id = node_id_from_public_key(self._public_key)

    @classmethod
    def generate(cls) -> Ed25519NodeKey:
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_hex(cls, private_hex: str) -> Ed25519NodeKey:
        """Load a key from the hex of its raw 32-byte private seed."""
        try:
            raw = bytes.fromhex(private_hex.strip())
            return cls(Ed25519PrivateKey.from_private_bytes(raw))
        except ValueError as e:
            raise ValueError(f"Invalid Ed25519 private key hex: {e}") from e

    def private_hex(self) -> str:
        raw = self._private_key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
        return raw.hex()

    def get_node_id(self) -> str:
        return self._node_id

    def get_public_key(self) -> str:
        return _public_key_bytes(self._public_key).hex()

    def sign(self, content: str | bytes) -> str:
        return self._private_key.sign(_to_bytes(content)).hex()

    def __repr__(self) -> str:
        return f"Ed25519NodeKey(node_id={self._node_id!r})"
