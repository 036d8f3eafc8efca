# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""DNS-01 challenge coordinator.

Drives one node through the challenge cycle:

    CONSTRUCTING -> REGISTERED -> CHALLENGE_SUBMITTED -> VERIFYING -> READY

``FAILED`` is terminal and reachable from every other state. Registration
(the node's A record) must finish before a challenge is accepted; after
``READY`` the next challenge may be set.

The coordinator also exposes the challenge-plugin surface ACME clients call:
``set``, ``get``, ``remove`` and ``get_options``.

Example:
    >>> coordinator = await ChallengeCoordinator.create({"key": key, "ip": "203.0.113.7"})
    >>> await coordinator.set_challenge(key_authorization)
    >>> coordinator.state
    <CoordinatorState.READY: 'ready'>
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..core.config import ChallengeConfig, resolve_config
from ..core.exceptions import (
    AuthenticationMismatchError,
    ConfigException,
    CoordinatorStateError,
    OperationNotImplementedError,
    RecordNotFoundError,
)
from ..core.logging import log_context
from .propagation import DnsResolver, PropagationVerifier, Sleep
from .update_client import SignedUpdateClient, Transport

logger = logging.getLogger(__name__)

ACME_CHALLENGE_LABEL = "_acme-challenge"


def challenge_digest(value: str | None) -> str:
    """DNS-01 TXT value: unpadded base64url of ``sha256(value)``."""
    digest = hashlib.sha256((value or "").encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class CoordinatorState(StrEnum):
    """Lifecycle of a coordinator instance."""

    CONSTRUCTING = "constructing"
    REGISTERED = "registered"
    CHALLENGE_SUBMITTED = "challenge_submitted"
    VERIFYING = "verifying"
    READY = "ready"
    FAILED = "failed"


@dataclass
class NodeRecordState:
    """What this instance asserts about its node."""

    node_id: str
    ip: str | None
    confirmed_node_id: str | None = None

    def confirm(self, node_id: str) -> None:
        """Record the service-confirmed node ID; it may be set only once."""
        if node_id != self.node_id:
            raise AuthenticationMismatchError(self.node_id, node_id)
        if self.confirmed_node_id is not None and self.confirmed_node_id != node_id:
            raise AuthenticationMismatchError(self.confirmed_node_id, node_id)
        self.confirmed_node_id = node_id


@dataclass(frozen=True)
class ChallengeRequest:
    """One record to publish and wait for."""

    name: str
    record_type: str
    expected_value: str
    digest: str | None = None


class ChallengeCoordinator:
    """Register a node and publish DNS-01 challenges for it."""

    def __init__(
        self,
        options: Mapping[str, Any] | ChallengeConfig | None = None,
        *,
        transport: Transport | None = None,
        resolver: DnsResolver | None = None,
        sleep: Sleep = asyncio.sleep,
        **overrides: Any,
    ):
        """Resolve configuration and build the collaborators.

        No network call happens here; see :meth:`register` or :meth:`create`.

        Raises:
            IdentityMissingError: No usable signing identity in the options.
        """
        if isinstance(options, ChallengeConfig):
            if overrides:
                raise ConfigException("Overrides cannot be combined with a resolved ChallengeConfig")
            self.config = options
        else:
            self.config = resolve_config(options, **overrides)

        self.state = CoordinatorState.CONSTRUCTING
        self.error: BaseException | None = None
        self._busy = False
        self.records = NodeRecordState(node_id=self.config.key.get_node_id(), ip=self.config.ip)
        self.update_client = SignedUpdateClient(self.config, transport=transport, sleep=sleep)
        self.verifier = PropagationVerifier(
            domain=self.config.domain,
            resolver=resolver,
            sleep=sleep,
            poll_interval=self.config.poll_interval,
            stability_threshold=self.config.stability_threshold,
        )

    @classmethod
    async def create(
        cls,
        options: Mapping[str, Any] | ChallengeConfig | None = None,
        **kwargs: Any,
    ) -> ChallengeCoordinator:
        """Construct a coordinator and register its A record."""
        coordinator = cls(options, **kwargs)
        await coordinator.register()
        return coordinator

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def subdomain(self) -> str:
        """Locally derived node ID, used as the DNS label."""
        return self.records.node_id

    @property
    def node_id(self) -> str | None:
        """Service-confirmed node ID, once registered."""
        return self.records.confirmed_node_id

    @property
    def hostname(self) -> str:
        return f"{self.subdomain}.{self.config.domain}"

    # -------------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------------

    def _transition(self, state: CoordinatorState) -> None:
        logger.debug(f"Coordinator {self.subdomain}: {self.state.value} -> {state.value}")
        self.state = state

    def _fail(self, error: BaseException) -> None:
        self.error = error
        logger.error(f"Coordinator {self.subdomain} failed in {self.state.value}: {error}")
        self.state = CoordinatorState.FAILED

    @contextmanager
    def _exclusive(self, operation: str, *allowed: CoordinatorState) -> Generator[None, None, None]:
        """Claim the instance for one operation; overlapping calls are rejected."""
        if self._busy:
            raise CoordinatorStateError(operation, f"{self.state.value} (busy)")
        if self.state not in allowed:
            raise CoordinatorStateError(operation, self.state.value)
        self._busy = True
        try:
            with log_context(node_id=self.subdomain):
                yield
        finally:
            self._busy = False

    async def register(self) -> str:
        """Assert the node's A record and confirm the node ID.

        Returns:
            The confirmed node ID.

        Raises:
            CoordinatorStateError: Called after construction or while a
                registration is in flight.
            AuthenticationMismatchError / RejectedRequestError /
            TransportFailureError / ServiceError: Registration failed; the
                coordinator is now FAILED.
        """
        with self._exclusive("register", CoordinatorState.CONSTRUCTING):
            try:
                if not self.records.ip:
                    raise ConfigException("An ip is required to register the node", option="ip")
                node_id = await self.update_client.submit_and_confirm("A", self.records.ip, self.records.node_id)
                self.records.confirm(node_id)
            except (Exception, asyncio.CancelledError) as e:
                self._fail(e)
                raise

            logger.info(f"Registered {self.hostname} -> {self.records.ip}")
            self._transition(CoordinatorState.REGISTERED)
        return node_id

    async def set_challenge(self, value: str | None) -> ChallengeRequest:
        """Publish a challenge and wait until both records are stable.

        Returns:
            The TXT request that was published.

        Raises:
            CoordinatorStateError: Not registered yet, busy, or failed.
        """
        with self._exclusive("set a challenge", CoordinatorState.REGISTERED, CoordinatorState.READY):
            return await self._run_challenge(value)

    async def _run_challenge(self, value: str | None) -> ChallengeRequest:
        node_id = self.records.confirmed_node_id
        digest = challenge_digest(value)
        txt = ChallengeRequest(
            name=f"{ACME_CHALLENGE_LABEL}.{node_id}",
            record_type="TXT",
            expected_value=digest,
            digest=digest,
        )
        a_record = ChallengeRequest(name=node_id, record_type="A", expected_value=self.records.ip)

        try:
            confirmed = await self.update_client.submit_and_confirm("TXT", digest, node_id)
            self.records.confirm(confirmed)
            self._transition(CoordinatorState.CHALLENGE_SUBMITTED)

            self._transition(CoordinatorState.VERIFYING)
            for request in (txt, a_record):
                await self.verifier.verify(
                    request.name,
                    request.record_type,
                    request.expected_value,
                    timeout=self.config.propagation_timeout,
                )
        except (Exception, asyncio.CancelledError) as e:
            self._fail(e)
            raise

        self._transition(CoordinatorState.READY)
        logger.info(f"Challenge for {self.hostname} is ready")
        return txt

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def lookup(self) -> str | None:
        """First TXT record at ``<subdomain>.<domain>``, or None if absent."""
        try:
            records = await self.verifier.resolver.resolve(self.hostname, "TXT")
        except RecordNotFoundError:
            return None
        if not records:
            return None
        first = records[0]
        return first if isinstance(first, str) else "".join(first)

    # -------------------------------------------------------------------------
    # Challenge plugin interface
    # -------------------------------------------------------------------------

    async def set(self, defaults: Any, domain: str, key: str, value: str | None) -> None:
        """Plugin hook: publish the challenge ``value`` for ``domain``."""
        await self.set_challenge(value)

    async def get(self, defaults: Any, domain: str, key: str) -> str | None:
        """Plugin hook: read back the node's TXT record."""
        return await self.lookup()

    loopback = get

    async def remove(self, defaults: Any, domain: str, key: str) -> None:
        """Plugin hook: record removal is not supported."""
        raise OperationNotImplementedError("remove")

    def get_options(self) -> ChallengeConfig:
        return self.config
