# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Public DNS propagation checks.

A record counts as propagated only once public resolution returns the
expected value on ``stability_threshold`` consecutive polls, one poll per
``poll_interval``. A mismatch or resolution error never aborts verification;
it restarts the window.

Verification is unbounded unless ``timeout`` is passed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import dns.asyncresolver
import dns.exception
import dns.resolver

from ..core.config import DEFAULT_POLL_INTERVAL, DEFAULT_STABILITY_THRESHOLD
from ..core.exceptions import PropagationTimeoutError, RecordNotFoundError, ResolutionError

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


# =============================================================================
# RESOLVERS
# =============================================================================


@runtime_checkable
class DnsResolver(Protocol):
    """Read-only public DNS lookups.

    ``A`` lookups return address strings. ``TXT`` lookups return one list of
    string segments per record. Failures raise :class:`ResolutionError`.
    """

    async def resolve(self, name: str, record_type: str) -> Sequence[Any]: ...


class DnspythonResolver:
    """:class:`DnsResolver` backed by ``dns.asyncresolver``.

    An empty or missing ``nameservers`` list uses the system configuration.
    """

    def __init__(
        self,
        timeout: float = 5.0,
        nameservers: list[str] | None = None,
    ):
        self._resolver = dns.asyncresolver.Resolver(configure=not nameservers)
        if nameservers:
            self._resolver.nameservers = nameservers
        self._resolver.timeout = timeout
        self._resolver.lifetime = timeout

    async def resolve(self, name: str, record_type: str) -> Sequence[Any]:
        try:
            answers = await self._resolver.resolve(name, record_type)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer) as e:
            raise RecordNotFoundError(name, record_type, str(e)) from e
        except dns.exception.DNSException as e:
            raise ResolutionError(name, record_type, str(e) or e.__class__.__name__) from e

        if record_type == "TXT":
            return [[segment.decode("utf-8", errors="replace") for segment in rdata.strings] for rdata in answers]
        return [rdata.to_text() for rdata in answers]


def first_value(record_type: str, records: Sequence[Any]) -> str | None:
    """The value compared against the expectation.

    ``A``: the first address. ``TXT``: the first segment of the first record.
    """
    if not records:
        return None
    first = records[0]
    if record_type == "TXT" and not isinstance(first, str):
        return first[0] if first else None
    return first


# =============================================================================
# VERIFIER
# =============================================================================


@dataclass(frozen=True)
class PollObservation:
    """What one poll saw."""

    attempt: int
    value: str | None
    matched: bool
    consecutive_matches: int
    error: ResolutionError | None = None


class PropagationVerifier:
    """Poll public DNS until a record is stable.

    Each :meth:`verify` call keeps its own counter, so concurrent calls for
    different names do not interact.
    """

    def __init__(
        self,
        domain: str = "",
        resolver: DnsResolver | None = None,
        sleep: Sleep = asyncio.sleep,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        stability_threshold: int = DEFAULT_STABILITY_THRESHOLD,
    ):
        self.domain = domain.rstrip(".")
        self.resolver: DnsResolver = resolver or DnspythonResolver()
        self.poll_interval = poll_interval
        self.stability_threshold = stability_threshold
        self._sleep = sleep

    def fqdn(self, name: str) -> str:
        """Name under the base domain."""
        return f"{name}.{self.domain}" if self.domain else name

    async def verify(
        self,
        name: str,
        record_type: str,
        expected_value: str,
        *,
        timeout: float | None = None,
        on_poll: Callable[[PollObservation], None] | None = None,
    ) -> int:
        """Wait until ``name`` stably resolves to ``expected_value``.

        Args:
            name: Label under the base domain (e.g. ``_acme-challenge.<node>``)
            record_type: ``A`` or ``TXT``
            expected_value: Address or first TXT segment to wait for
            timeout: Optional ceiling in seconds; unbounded if None
            on_poll: Called with every observation

        Returns:
            Number of polls performed.

        Raises:
            PropagationTimeoutError: ``timeout`` elapsed first.
        """
        poll = self._poll_until_stable(name, record_type, expected_value, on_poll)
        if timeout is None:
            return await poll
        try:
            return await asyncio.wait_for(poll, timeout)
        except TimeoutError as e:
            logger.warning(f"{record_type} {self.fqdn(name)} not stable after {timeout:g}s")
            raise PropagationTimeoutError(self.fqdn(name), record_type, timeout) from e

    async def _poll_until_stable(
        self,
        name: str,
        record_type: str,
        expected_value: str,
        on_poll: Callable[[PollObservation], None] | None,
    ) -> int:
        fqdn = self.fqdn(name)
        consecutive_matches = 0
        attempt = 0
        fields = {"record_type": record_type, "fqdn": fqdn}

        logger.info(f"Waiting for {record_type} {fqdn} to resolve to {expected_value}", extra=fields)
        while True:
            attempt += 1
            value: str | None = None
            error: ResolutionError | None = None
            try:
                records = await self.resolver.resolve(fqdn, record_type)
                value = first_value(record_type, records)
            except ResolutionError as e:
                error = e

            matched = error is None and value == expected_value
            if matched:
                consecutive_matches += 1
            else:
                if consecutive_matches:
                    logger.debug(
                        f"{record_type} {fqdn} changed after {consecutive_matches} matches "
                        f"(got {value!r}{f', {error}' if error else ''}), restarting window",
                        extra={**fields, "attempt": attempt, "consecutive_matches": consecutive_matches},
                    )
                consecutive_matches = 0

            logger.debug(
                f"Poll {attempt}: {value!r} ({consecutive_matches}/{self.stability_threshold})",
                extra={**fields, "attempt": attempt, "consecutive_matches": consecutive_matches},
            )

            if on_poll is not None:
                on_poll(PollObservation(attempt, value, matched, consecutive_matches, error))

            if consecutive_matches >= self.stability_threshold:
                logger.info(f"{record_type} {fqdn} stable after {attempt} polls", extra={**fields, "attempt": attempt})
                return attempt

            await self._sleep(self.poll_interval)
