# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""nodecert core: configuration, retry policy, errors and logging."""

from .config import (
    DEFAULT_OPTIONS,
    ChallengeConfig,
    ResponderSettings,
    clear_settings_cache,
    get_settings,
    resolve_config,
)
from .exceptions import (
    AuthenticationMismatchError,
    ConfigException,
    CoordinatorStateError,
    IdentityMissingError,
    NodecertException,
    OperationNotImplementedError,
    PropagationTimeoutError,
    RecordNotFoundError,
    RejectedRequestError,
    ResolutionError,
    ServiceError,
    TransportFailureError,
)
from .logging import configure_logging, get_correlation_id, log_context
from .retry import (
    Classification,
    Outcome,
    RetryPolicy,
    UpdateResponse,
    default_request_interval,
    default_response_handler,
)

__all__ = [
    "DEFAULT_OPTIONS",
    "AuthenticationMismatchError",
    "ChallengeConfig",
    "Classification",
    "ConfigException",
    "CoordinatorStateError",
    "IdentityMissingError",
    "NodecertException",
    "OperationNotImplementedError",
    "Outcome",
    "PropagationTimeoutError",
    "RecordNotFoundError",
    "RejectedRequestError",
    "ResolutionError",
    "ResponderSettings",
    "RetryPolicy",
    "ServiceError",
    "TransportFailureError",
    "UpdateResponse",
    "clear_settings_cache",
    "configure_logging",
    "default_request_interval",
    "default_response_handler",
    "get_correlation_id",
    "get_settings",
    "log_context",
    "resolve_config",
]
