# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Custom exception hierarchy for nodecert.

Each error kind of the challenge responder maps to one class so callers can
tell fatal failures (identity, authentication) from retryable ones (transport,
service) and from capability gaps (removal).
"""

from __future__ import annotations

from typing import Any


class NodecertException(Exception):  # noqa: N818
    """Base exception for all nodecert errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigException(NodecertException):
    """Exception for configuration errors.

    Raised when:
    - An unknown option name is supplied
    - An option has an unusable value
    """

    def __init__(self, message: str, option: str | None = None, value: Any = None):
        details = {}
        if option:
            details["option"] = option
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.option = option
        self.value = value


class IdentityMissingError(ConfigException):
    """No usable signing identity was supplied.

    Raised at construction time, before any network call is attempted.
    """

    def __init__(self, message: str = "Require valid key for generating a cert"):
        super().__init__(message, option="key")


class AuthenticationMismatchError(NodecertException):
    """The service's node ID disagrees with the locally derived one.

    Never retried.
    """

    def __init__(self, expected: str | None, received: str | None):
        super().__init__(
            f"Invalid key: expected node {expected}, service returned {received}",
            {"expected": expected, "received": received},
        )
        self.expected = expected
        self.received = received


class TransportFailureError(NodecertException):
    """Network-level failure while talking to the TLD service."""

    def __init__(self, message: str, url: str | None = None):
        details = {}
        if url:
            details["url"] = url
        super().__init__(message, details)
        self.url = url


class RejectedRequestError(NodecertException):
    """The TLD service answered 400 or 401.

    The request pool resolves such responses without error; this is raised
    only when a caller needs a confirmed node ID from the response.
    """

    def __init__(self, status_code: int, message: str | None = None):
        super().__init__(
            message or f"Update rejected by service (HTTP {status_code})",
            {"status_code": status_code},
        )
        self.status_code = status_code


class ServiceError(NodecertException):
    """Any other non-200 answer, or an error body, from the TLD service."""

    def __init__(self, message: str | None, status_code: int | None = None):
        details = {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message or f"Service error (HTTP {status_code})", details)
        self.status_code = status_code


class OperationNotImplementedError(NodecertException):
    """The requested plugin operation is not supported."""

    def __init__(self, operation: str):
        super().__init__("Not implemented", {"operation": operation})
        self.operation = operation


class ResolutionError(NodecertException):
    """Public DNS resolution failed."""

    def __init__(self, name: str, record_type: str, reason: str | None = None):
        super().__init__(
            f"Failed to resolve {record_type} {name}" + (f": {reason}" if reason else ""),
            {"name": name, "record_type": record_type},
        )
        self.name = name
        self.record_type = record_type


class RecordNotFoundError(ResolutionError):
    """The name does not exist or has no records of the requested type."""


class PropagationTimeoutError(NodecertException):
    """A record did not stabilise before the configured timeout."""

    def __init__(self, name: str, record_type: str, timeout: float):
        super().__init__(
            f"{record_type} {name} did not propagate within {timeout:g}s",
            {"name": name, "record_type": record_type, "timeout": timeout},
        )
        self.timeout = timeout


class CoordinatorStateError(NodecertException):
    """An operation was called in a state that does not allow it."""

    def __init__(self, operation: str, state: str):
        super().__init__(
            f"Cannot {operation} while coordinator is {state}",
            {"operation": operation, "state": state},
        )
        self.operation = operation
        self.state = state
