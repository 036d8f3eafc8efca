# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Signed record updates against the TLD service.

Every update is a JSON POST carrying the record type, the value, the node's
public key and a signature over the value. The service derives the node ID
from the key, checks the signature and answers with ``{"nodeID": ...}``.

Requests go through a :class:`RequestPool` that bounds concurrency and
retries according to a :class:`~nodecert.core.retry.RetryPolicy`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import aiohttp

from ..core.config import ChallengeConfig
from ..core.exceptions import (
    AuthenticationMismatchError,
    NodecertException,
    RejectedRequestError,
    ServiceError,
    TransportFailureError,
)
from ..core.retry import Outcome, RetryPolicy, UpdateResponse

logger = logging.getLogger(__name__)

RECORD_TYPES = frozenset({"A", "TXT"})

Transport = Callable[[dict[str, Any]], Awaitable[UpdateResponse]]
Sleep = Callable[[float], Awaitable[None]]


class AiohttpTransport:
    """POST a JSON payload to the TLD service with ``aiohttp``."""

    def __init__(self, url: str, timeout: float = 30.0):
        self.url = url
        self.timeout = timeout

    async def __call__(self, payload: dict[str, Any]) -> UpdateResponse:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    try:
                        body = await response.json(content_type=None)
                    except (aiohttp.ContentTypeError, ValueError):
                        body = {}
                    if not isinstance(body, dict):
                        body = {}
                    return UpdateResponse(status=response.status, body=body)
        except TimeoutError as e:
            raise TransportFailureError(f"Timeout after {self.timeout}s", url=self.url) from e
        except aiohttp.ClientError as e:
            raise TransportFailureError(str(e) or e.__class__.__name__, url=self.url) from e


@dataclass(frozen=True)
class PoolResult:
    """Final state of one submission through the pool."""

    response: UpdateResponse | None
    outcome: Outcome
    attempts: int


class RequestPool:
    """Bounded, retrying executor for TLD service requests.

    At most ``policy.pool_size`` requests are in flight at once. The slot is
    held only for the request itself, not while waiting to retry, so one
    submission backing off never blocks another.
    """

    def __init__(self, policy: RetryPolicy, sleep: Sleep = asyncio.sleep):
        self.policy = policy
        self._sleep = sleep
        self._slots = asyncio.Semaphore(policy.pool_size)
        self.in_flight = 0

    async def run(self, send: Callable[[], Awaitable[UpdateResponse]]) -> PoolResult:
        """Run ``send`` until the classifier accepts it or attempts run out.

        Raises:
            The classifier's error for the last attempt once ``max_attempts``
            attempts have been retried.
        """
        attempt = 0
        while True:
            attempt += 1
            error: Exception | None = None
            response: UpdateResponse | None = None

            async with self._slots:
                self.in_flight += 1
                try:
                    response = await send()
                except Exception as e:  # Classifier decides what is retryable
                    error = e
                finally:
                    self.in_flight -= 1

            classification = self.policy.classifier(error, response)

            if classification.outcome is not Outcome.RETRY:
                if classification.outcome is Outcome.REJECTED:
                    status = response.status if response else None
                    logger.warning(
                        f"Request rejected (HTTP {status or '?'}), not retrying",
                        extra={"attempt": attempt, "status_code": status},
                    )
                return PoolResult(response=response, outcome=classification.outcome, attempts=attempt)

            last_error = classification.error or NodecertException(f"Request failed on attempt {attempt}")
            if attempt >= self.policy.max_attempts:
                logger.warning(f"Giving up after {attempt} attempts: {last_error}", extra={"attempt": attempt})
                raise last_error

            delay = self.policy.delay_for(attempt)
            logger.debug(
                f"Attempt {attempt} failed ({last_error}), retrying in {delay:.2f}s",
                extra={"attempt": attempt},
            )
            await self._sleep(delay)


@dataclass(frozen=True)
class UpdateResult:
    """Outcome of a signed submission."""

    record_type: str
    value: str
    response: UpdateResponse | None
    outcome: Outcome
    attempts: int

    @property
    def rejected(self) -> bool:
        return self.outcome is Outcome.REJECTED

    @property
    def node_id(self) -> str | None:
        if self.response is None or self.rejected:
            return None
        return self.response.node_id


class SignedUpdateClient:
    """Builds signed A/TXT updates and submits them through the request pool."""

    def __init__(
        self,
        config: ChallengeConfig,
        transport: Transport | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.transport: Transport = transport or AiohttpTransport(config.tld_service, config.request_timeout)
        self.pool = RequestPool(config.retry, sleep=sleep)

    def build_payload(self, record_type: str, value: str) -> dict[str, Any]:
        if record_type not in RECORD_TYPES:
            raise ValueError(f"Unsupported record type: {record_type}")
        key = self.config.key
        return {
            "type": record_type,
            "value": value,
            "key": key.get_public_key(),
            "signature": key.sign(value),
        }

    async def submit(self, record_type: str, value: str) -> UpdateResult:
        """Submit one signed update.

        A 400/401 answer resolves without error; check ``result.rejected``.

        Raises:
            TransportFailureError / ServiceError: Retries exhausted.
            ServiceError: A successful status whose body carries an error.
        """
        payload = self.build_payload(record_type, value)
        logger.info(f"Submitting {record_type} update to {self.config.tld_service}", extra={"record_type": record_type})

        result = await self.pool.run(lambda: self.transport(payload))
        response = result.response
        if result.outcome is Outcome.SUCCESS and response is not None and response.error:
            raise ServiceError(response.error, response.status)

        return UpdateResult(
            record_type=record_type,
            value=value,
            response=response,
            outcome=result.outcome,
            attempts=result.attempts,
        )

    async def submit_and_confirm(self, record_type: str, value: str, expected_node_id: str) -> str:
        """Submit an update and check the service's node ID against ours.

        Returns:
            The confirmed node ID.

        Raises:
            RejectedRequestError: The service answered 400/401.
            AuthenticationMismatchError: The service returned another node ID.
        """
        result = await self.submit(record_type, value)
        if result.rejected:
            status = result.response.status if result.response else 0
            error = result.response.error if result.response else None
            raise RejectedRequestError(status, error)

        if result.node_id != expected_node_id:
            logger.error(
                f"{record_type} update answered for node {result.node_id}, expected {expected_node_id}",
                extra={"record_type": record_type},
            )
            raise AuthenticationMismatchError(expected_node_id, result.node_id)

        return expected_node_id
