# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Configuration for the challenge responder.

Two layers:

- ``ResponderSettings`` reads ``NODECERT_*`` environment variables (and
  ``.env``) for the CLI and long-running hosts.
- ``resolve_config`` merges caller-supplied options over ``DEFAULT_OPTIONS``
  into an immutable ``ChallengeConfig``. It is a pure function: it never
  reads the environment and never touches the network.

Usage:
    from nodecert.core.config import resolve_config
    config = resolve_config({"key": node_key, "ip": "203.0.113.7"})
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..identity.node_key import NodeIdentity, is_node_identity
from .exceptions import ConfigException, IdentityMissingError
from .retry import (
    IntervalFunction,
    ResponseClassifier,
    RetryPolicy,
    default_request_interval,
    default_response_handler,
)

# Polling cadence and stability window of public DNS verification
DEFAULT_POLL_INTERVAL = 1.0  # seconds
DEFAULT_STABILITY_THRESHOLD = 60  # consecutive matching polls

# Read-only; resolve_config copies it
DEFAULT_OPTIONS: Mapping[str, Any] = MappingProxyType(
    {
        "tld_service": "https://dns.storj.farm",
        "domain": "storj.farm",
        "ip": None,
        "key": None,
        "request_interval": default_request_interval,
        "request_jitter": 0,
        "request_pool_size": 1,
        "request_retry_count": 10,
        "request_handler": default_response_handler,
        "request_timeout": 30.0,
        "poll_interval": DEFAULT_POLL_INTERVAL,
        "stability_threshold": DEFAULT_STABILITY_THRESHOLD,
        "propagation_timeout": None,
    }
)


@dataclass(frozen=True)
class ChallengeConfig:
    """Resolved, immutable configuration of one coordinator instance."""

    tld_service: str
    domain: str
    ip: str | None
    key: NodeIdentity
    retry: RetryPolicy
    request_timeout: float
    poll_interval: float
    stability_threshold: int
    propagation_timeout: float | None

    def to_dict(self) -> dict[str, Any]:
        """Serializable view; the identity is reduced to its node ID."""
        return {
            "tld_service": self.tld_service,
            "domain": self.domain,
            "ip": self.ip,
            "node_id": self.key.get_node_id(),
            "request_jitter": self.retry.jitter,
            "request_pool_size": self.retry.pool_size,
            "request_retry_count": self.retry.max_attempts,
            "request_timeout": self.request_timeout,
            "poll_interval": self.poll_interval,
            "stability_threshold": self.stability_threshold,
            "propagation_timeout": self.propagation_timeout,
        }


def resolve_config(options: Mapping[str, Any] | None = None, /, **overrides: Any) -> ChallengeConfig:
    """Merge options over the defaults and validate the identity.

    Keyword overrides win over ``options``, which win over ``DEFAULT_OPTIONS``.

    Raises:
        IdentityMissingError: ``key`` lacks ``sign``, ``get_node_id`` or
            ``get_public_key``.
        ConfigException: Unknown option name or unusable value.
    """
    merged: dict[str, Any] = dict(DEFAULT_OPTIONS)
    for source in (options or {}, overrides):
        unknown = set(source) - set(DEFAULT_OPTIONS)
        if unknown:
            name = sorted(unknown)[0]
            raise ConfigException(f"Unknown option: {name}", option=name)
        merged.update(source)

    key = merged["key"]
    if not is_node_identity(key):
        raise IdentityMissingError()

    interval: IntervalFunction = merged["request_interval"]
    classifier: ResponseClassifier = merged["request_handler"]
    if not callable(interval):
        raise ConfigException("request_interval must be callable", option="request_interval")
    if not callable(classifier):
        raise ConfigException("request_handler must be callable", option="request_handler")

    try:
        retry = RetryPolicy(
            interval=interval,
            jitter=float(merged["request_jitter"] or 0),
            max_attempts=int(merged["request_retry_count"]),
            pool_size=int(merged["request_pool_size"]),
            classifier=classifier,
        )
    except ValueError as e:
        raise ConfigException(str(e)) from e

    threshold = int(merged["stability_threshold"])
    if threshold < 1:
        raise ConfigException("stability_threshold must be at least 1", option="stability_threshold", value=threshold)

    timeout = merged["propagation_timeout"]
    return ChallengeConfig(
        tld_service=merged["tld_service"],
        domain=str(merged["domain"]).rstrip("."),
        ip=merged["ip"],
        key=key,
        retry=retry,
        request_timeout=float(merged["request_timeout"]),
        poll_interval=float(merged["poll_interval"]),
        stability_threshold=threshold,
        propagation_timeout=float(timeout) if timeout is not None else None,
    )


class ResponderSettings(BaseSettings):
    """Environment-driven settings for the CLI and long-running hosts.

    Settings can be configured via environment variables with NODECERT_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="NODECERT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # TLD SERVICE
    # ==========================================================================

    tld_service: str = Field(default=DEFAULT_OPTIONS["tld_service"], description="Authoritative update endpoint")
    domain: str = Field(default=DEFAULT_OPTIONS["domain"], description="Base domain node records live under")
    ip: str | None = Field(default=None, description="IP address to assert in the node's A record")
    private_key: str | None = Field(default=None, description="Ed25519 private key hex of the node")

    # ==========================================================================
    # REQUESTS
    # ==========================================================================

    request_jitter: float = Field(default=0, description="Max random delay (ms) added to each retry")
    request_pool_size: int = Field(default=1, description="Concurrent submissions in flight")
    request_retry_count: int = Field(default=10, description="Attempts before giving up")
    request_timeout: float = Field(default=30.0, description="Per-request HTTP timeout in seconds")

    # ==========================================================================
    # PROPAGATION
    # ==========================================================================

    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, description="Seconds between DNS polls")
    stability_threshold: int = Field(
        default=DEFAULT_STABILITY_THRESHOLD,
        description="Consecutive matching polls required",
    )
    propagation_timeout: float | None = Field(
        default=None,
        description="Give up verifying a record after this many seconds (unbounded if unset)",
    )

    # ==========================================================================
    # LOGGING
    # ==========================================================================

    log_level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    log_format: str = Field(default="", description="Log format: 'json', 'text', or '' (auto-detect)")
    log_file: str | None = Field(default=None, description="Log file path (optional)")

    def as_options(self) -> dict[str, Any]:
        """Options for ``resolve_config`` (everything except the identity)."""
        return {
            "tld_service": self.tld_service,
            "domain": self.domain,
            "ip": self.ip,
            "request_jitter": self.request_jitter,
            "request_pool_size": self.request_pool_size,
            "request_retry_count": self.request_retry_count,
            "request_timeout": self.request_timeout,
            "poll_interval": self.poll_interval,
            "stability_threshold": self.stability_threshold,
            "propagation_timeout": self.propagation_timeout,
        }


_settings: ResponderSettings | None = None


def get_settings() -> ResponderSettings:
    """Get the lazily created settings instance."""
    global _settings
    if _settings is None:
        _settings = ResponderSettings()
    return _settings


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    global _settings
    _settings = None
