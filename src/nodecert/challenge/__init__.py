# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""DNS-01 challenge provisioning: signed updates, propagation checks, coordination."""

from nodecert.challenge.coordinator import (
    ACME_CHALLENGE_LABEL,
    ChallengeCoordinator,
    ChallengeRequest,
    CoordinatorState,
    NodeRecordState,
    challenge_digest,
)
from nodecert.challenge.propagation import (
    DnsResolver,
    DnspythonResolver,
    PollObservation,
    PropagationVerifier,
    first_value,
)
from nodecert.challenge.update_client import (
    AiohttpTransport,
    PoolResult,
    RequestPool,
    SignedUpdateClient,
    UpdateResult,
)

__all__ = [
    "ACME_CHALLENGE_LABEL",
    "AiohttpTransport",
    "ChallengeCoordinator",
    "ChallengeRequest",
    "CoordinatorState",
    "DnsResolver",
    "DnspythonResolver",
    "NodeRecordState",
    "PollObservation",
    "PoolResult",
    "PropagationVerifier",
    "RequestPool",
    "SignedUpdateClient",
    "UpdateResult",
    "challenge_digest",
    "first_value",
]
