"""Global test fixtures for the nodecert test suite."""

from __future__ import annotations

import os
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from nodecert.core.config import clear_settings_cache
from nodecert.core.exceptions import RecordNotFoundError, ResolutionError, TransportFailureError
from nodecert.core.retry import UpdateResponse
from nodecert.identity.node_key import Ed25519NodeKey, node_id_from_public_key, verify_signature

# ============================================================================
# Fakes
# ============================================================================


class RecordingSleep:
    """Async sleep replacement that returns immediately and records delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeTLDService:
    """Transport standing in for the TLD service.

    By default it checks the signature and echoes back the node ID derived
    from the submitted public key. ``responses`` can queue canned answers
    (``UpdateResponse`` or exceptions) that are consumed before falling back
    to the echo behaviour.
    """

    def __init__(self, responses: Sequence[UpdateResponse | Exception] | None = None) -> None:
        self.responses = list(responses or [])
        self.payloads: list[dict[str, Any]] = []
        self.node_id_override: str | None = None

    async def __call__(self, payload: dict[str, Any]) -> UpdateResponse:
        self.payloads.append(payload)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        if not verify_signature(payload["key"], payload["value"], payload["signature"]):
            return UpdateResponse(401, {"error": "Invalid signature"})
        node_id = self.node_id_override or node_id_from_public_key(bytes.fromhex(payload["key"]))
        return UpdateResponse(200, {"nodeID": node_id})

    @property
    def calls(self) -> int:
        return len(self.payloads)


class FakeResolver:
    """Resolver returning scripted answers per (name, record type).

    An answer is either a list of records, an exception to raise, or a
    callable taking the 1-based call number for that key.
    """

    def __init__(self) -> None:
        self.answers: dict[tuple[str, str], Any] = {}
        self.calls: list[tuple[str, str]] = []

    def set(self, name: str, record_type: str, answer: Any) -> None:
        self.answers[(name, record_type)] = answer

    def count(self, name: str, record_type: str) -> int:
        return self.calls.count((name, record_type))

    async def resolve(self, name: str, record_type: str) -> Sequence[Any]:
        self.calls.append((name, record_type))
        answer = self.answers.get((name, record_type))
        if answer is None:
            raise RecordNotFoundError(name, record_type, "NXDOMAIN")
        if isinstance(answer, Callable):
            answer = answer(self.count(name, record_type))
        if isinstance(answer, Exception):
            raise answer
        return answer


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def node_key() -> Ed25519NodeKey:
    return Ed25519NodeKey.generate()


@pytest.fixture
def tld_service() -> FakeTLDService:
    return FakeTLDService()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def transport_error() -> TransportFailureError:
    return TransportFailureError("Connection refused", url="https://dns.example.test")


@pytest.fixture
def resolution_error() -> ResolutionError:
    return ResolutionError("example.test", "A", "SERVFAIL")


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all NODECERT_ environment variables and the cached settings."""
    for key in list(os.environ.keys()):
        if key.startswith("NODECERT_"):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def make_tld_service() -> Callable[..., FakeTLDService]:
    """Factory for TLD service fakes with queued responses."""
    return FakeTLDService
