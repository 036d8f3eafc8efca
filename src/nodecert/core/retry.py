# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Retry policy and response classification for TLD service requests."""

from __future__ import annotations

import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .exceptions import ServiceError, TransportFailureError

# System RNG, independent of any seeding of `random`
_system_random = secrets.SystemRandom()

# Statuses that mean the request itself is malformed or unauthorized
NON_RETRYABLE_STATUSES = frozenset({400, 401})


class Outcome(StrEnum):
    """Decision for a single request attempt."""

    SUCCESS = "success"  # Done, hand the response to the caller
    RETRY = "retry"  # Schedule another attempt (if any remain)
    REJECTED = "rejected"  # Stop retrying, resolve without error


@dataclass(frozen=True)
class UpdateResponse:
    """HTTP answer from the TLD service."""

    status: int
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def node_id(self) -> str | None:
        return self.body.get("nodeID")

    @property
    def error(self) -> str | None:
        return self.body.get("error")


@dataclass(frozen=True)
class Classification:
    outcome: Outcome
    error: Exception | None = None


ResponseClassifier = Callable[[Exception | None, UpdateResponse | None], Classification]
IntervalFunction = Callable[[int], float]


def default_request_interval(attempt: int) -> float:
    """Exponential backoff in milliseconds: ``2**attempt * 1000``."""
    return float(2**attempt * 1000)


def default_response_handler(
    error: Exception | None,
    response: UpdateResponse | None,
) -> Classification:
    """Classify one attempt against the TLD service.

    - transport error: retry
    - HTTP 400/401: malformed or unauthorized, do not retry, no error
    - other non-200: retry, carrying the body's error message
    - HTTP 200: success
    """
    if error is not None:
        if not isinstance(error, TransportFailureError):
            error = TransportFailureError(str(error) or error.__class__.__name__)
        return Classification(Outcome.RETRY, error)
    if response is None:
        return Classification(Outcome.RETRY, TransportFailureError("No response received"))
    if response.status in NON_RETRYABLE_STATUSES:
        return Classification(Outcome.REJECTED)
    if response.status != 200:
        return Classification(Outcome.RETRY, ServiceError(response.error, response.status))
    return Classification(Outcome.SUCCESS)


@dataclass(frozen=True)
class RetryPolicy:
    """How submissions to the TLD service are retried.

    Attributes:
        interval: Maps the number of attempts made so far to a delay in ms
        jitter: Upper bound (ms) of a uniform random delay added to each wait
        max_attempts: Total attempts before the last error is raised
        pool_size: Maximum submissions in flight at once
        classifier: Decides per attempt whether to retry, succeed or stop
    """

    interval: IntervalFunction = default_request_interval
    jitter: float = 0
    max_attempts: int = 10
    pool_size: int = 1
    classifier: ResponseClassifier = default_response_handler

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        if self.jitter < 0:
            raise ValueError("jitter must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after ``attempt`` failed attempts."""
        delay_ms = self.interval(attempt)
        if self.jitter:
            delay_ms += _system_random.uniform(0, self.jitter)
        return max(0.0, delay_ms) / 1000.0
