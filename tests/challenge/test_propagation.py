"""Tests for DNS propagation verification."""

from __future__ import annotations

import asyncio
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import dns.exception
import dns.resolver
import pytest

from nodecert.challenge.propagation import (
    DnspythonResolver,
    PropagationVerifier,
    first_value,
)
from nodecert.core.exceptions import PropagationTimeoutError, RecordNotFoundError, ResolutionError

NAME = "_acme-challenge.abc123"
FQDN = f"{NAME}.example.net"
DIGEST = "ungWv48Bz-pBQUDeXa4iI7ADYaOWF3qctBD_YfIAFa0"


@pytest.fixture
def verifier(resolver, recording_sleep) -> PropagationVerifier:
    return PropagationVerifier("example.net", resolver=resolver, sleep=recording_sleep)


class TestFirstValue:
    def test_txt_uses_first_segment_of_first_record(self):
        assert first_value("TXT", [["one", "two"], ["three"]]) == "one"

    def test_a_uses_first_address(self):
        assert first_value("A", ["198.51.100.1", "198.51.100.2"]) == "198.51.100.1"

    def test_empty(self):
        assert first_value("A", []) is None
        assert first_value("TXT", [[]]) is None


class TestFqdn:
    def test_appends_domain(self, verifier):
        assert verifier.fqdn("abc123") == "abc123.example.net"

    def test_trailing_dot_stripped(self, resolver):
        assert PropagationVerifier("example.net.", resolver=resolver).fqdn("x") == "x.example.net"

    def test_no_domain(self, resolver):
        assert PropagationVerifier(resolver=resolver).fqdn("x.example.org") == "x.example.org"


class TestStabilityWindow:
    @pytest.mark.asyncio
    async def test_terminates_after_threshold_matches(self, verifier, resolver, recording_sleep):
        resolver.set(FQDN, "TXT", [[DIGEST]])

        polls = await verifier.verify(NAME, "TXT", DIGEST)

        assert polls == 60
        assert resolver.count(FQDN, "TXT") == 60
        assert recording_sleep.delays == [1.0] * 59

    @pytest.mark.asyncio
    async def test_mismatch_on_last_poll_restarts_window(self, verifier, resolver):
        resolver.set(FQDN, "TXT", lambda n: [["stale"]] if n == 60 else [[DIGEST]])
        observations = []

        polls = await verifier.verify(NAME, "TXT", DIGEST, on_poll=observations.append)

        assert observations[58].consecutive_matches == 59
        assert observations[59].matched is False
        assert observations[59].value == "stale"
        assert observations[59].consecutive_matches == 0
        assert polls == 120

    @pytest.mark.asyncio
    async def test_resolution_error_restarts_window(self, verifier, resolver):
        def answer(n):
            if n == 30:
                return ResolutionError(FQDN, "A", "SERVFAIL")
            return ["203.0.113.7"]

        resolver.set("abc123.example.net", "A", answer)
        observations = []

        polls = await verifier.verify("abc123", "A", "203.0.113.7", on_poll=observations.append)

        assert observations[29].error is not None
        assert observations[29].consecutive_matches == 0
        assert polls == 90

    @pytest.mark.asyncio
    async def test_missing_record_keeps_polling(self, verifier, resolver):
        resolver.set(FQDN, "TXT", lambda n: RecordNotFoundError(FQDN, "TXT", "NXDOMAIN") if n <= 5 else [[DIGEST]])

        polls = await verifier.verify(NAME, "TXT", DIGEST)

        assert polls == 65

    @pytest.mark.asyncio
    async def test_only_first_txt_segment_is_compared(self, resolver):
        async def tick(delay):
            await asyncio.sleep(0)

        verifier = PropagationVerifier("example.net", resolver=resolver, sleep=tick)
        resolver.set(FQDN, "TXT", [["other", DIGEST]])
        observations = []

        with pytest.raises(PropagationTimeoutError):
            await verifier.verify(NAME, "TXT", DIGEST, timeout=0.05, on_poll=observations.append)

        assert observations
        assert not any(o.matched for o in observations)

    @pytest.mark.asyncio
    async def test_custom_threshold_and_interval(self, resolver, recording_sleep):
        verifier = PropagationVerifier(
            "example.net",
            resolver=resolver,
            sleep=recording_sleep,
            poll_interval=0.25,
            stability_threshold=3,
        )
        resolver.set("abc123.example.net", "A", ["203.0.113.7"])

        assert await verifier.verify("abc123", "A", "203.0.113.7") == 3
        assert recording_sleep.delays == [0.25, 0.25]

    @pytest.mark.asyncio
    async def test_concurrent_verifications_are_independent(self, verifier, resolver):
        resolver.set("a.example.net", "A", ["203.0.113.1"])
        resolver.set("b.example.net", "A", lambda n: ["0.0.0.0"] if n <= 10 else ["203.0.113.2"])

        polls_a, polls_b = await asyncio.gather(
            verifier.verify("a", "A", "203.0.113.1"),
            verifier.verify("b", "A", "203.0.113.2"),
        )

        assert polls_a == 60
        assert polls_b == 70


class TestTimeout:
    @pytest.mark.asyncio
    async def test_timeout_raises(self, resolver):
        async def tick(delay):
            await asyncio.sleep(0)

        verifier = PropagationVerifier("example.net", resolver=resolver, sleep=tick)
        resolver.set(FQDN, "TXT", [["stale"]])

        with pytest.raises(PropagationTimeoutError) as exc_info:
            await verifier.verify(NAME, "TXT", DIGEST, timeout=0.05)

        assert exc_info.value.details["timeout"] == 0.05
        assert FQDN in exc_info.value.message

    @pytest.mark.asyncio
    async def test_completes_within_timeout(self, verifier, resolver):
        resolver.set(FQDN, "TXT", [[DIGEST]])
        assert await verifier.verify(NAME, "TXT", DIGEST, timeout=10) == 60


class TestDnspythonResolver:
    @pytest.mark.asyncio
    async def test_txt_records_decoded_to_segments(self):
        mock_resolver = MagicMock()
        mock_resolver.resolve = AsyncMock(
            return_value=[SimpleNamespace(strings=(b"first", b"second")), SimpleNamespace(strings=(b"x",))]
        )

        with patch("dns.asyncresolver.Resolver", return_value=mock_resolver):
            records = await DnspythonResolver().resolve(FQDN, "TXT")

        assert records == [["first", "second"], ["x"]]
        mock_resolver.resolve.assert_awaited_once_with(FQDN, "TXT")

    @pytest.mark.asyncio
    async def test_a_records_as_text(self):
        rdata = MagicMock()
        rdata.to_text.return_value = "203.0.113.7"
        mock_resolver = MagicMock()
        mock_resolver.resolve = AsyncMock(return_value=[rdata])

        with patch("dns.asyncresolver.Resolver", return_value=mock_resolver):
            records = await DnspythonResolver().resolve("abc123.example.net", "A")

        assert records == ["203.0.113.7"]

    @pytest.mark.asyncio
    async def test_nxdomain_is_record_not_found(self):
        mock_resolver = MagicMock()
        mock_resolver.resolve = AsyncMock(side_effect=dns.resolver.NXDOMAIN())

        with patch("dns.asyncresolver.Resolver", return_value=mock_resolver):
            with pytest.raises(RecordNotFoundError):
                await DnspythonResolver().resolve(FQDN, "TXT")

    @pytest.mark.asyncio
    async def test_timeout_is_resolution_error(self):
        mock_resolver = MagicMock()
        mock_resolver.resolve = AsyncMock(side_effect=dns.exception.Timeout())

        with patch("dns.asyncresolver.Resolver", return_value=mock_resolver):
            with pytest.raises(ResolutionError) as exc_info:
                await DnspythonResolver().resolve(FQDN, "TXT")

        assert not isinstance(exc_info.value, RecordNotFoundError)

    def test_explicit_nameservers_skip_system_config(self):
        with patch("dns.asyncresolver.Resolver") as mock_cls:
            DnspythonResolver(timeout=2.0, nameservers=["192.0.2.53"])

        mock_cls.assert_called_once_with(configure=False)
        assert mock_cls.return_value.nameservers == ["192.0.2.53"]
        assert mock_cls.return_value.lifetime == 2.0

    @pytest.mark.parametrize("nameservers", [None, []])
    def test_no_nameservers_uses_system_config(self, nameservers):
        system_resolver = SimpleNamespace()
        with patch("dns.asyncresolver.Resolver", return_value=system_resolver) as mock_cls:
            DnspythonResolver(nameservers=nameservers)

        mock_cls.assert_called_once_with(configure=True)
        assert not hasattr(system_resolver, "nameservers")


class TestPollLogging:
    @pytest.mark.asyncio
    async def test_poll_records_carry_challenge_fields(self, resolver, recording_sleep, caplog):
        verifier = PropagationVerifier(
            "example.net", resolver=resolver, sleep=recording_sleep, stability_threshold=2
        )
        resolver.set(FQDN, "TXT", lambda n: [["stale"]] if n == 1 else [[DIGEST]])

        with caplog.at_level(logging.DEBUG, logger="nodecert.challenge.propagation"):
            await verifier.verify(NAME, "TXT", DIGEST)

        polls = [r for r in caplog.records if r.getMessage().startswith("Poll ")]
        assert [(r.attempt, r.consecutive_matches) for r in polls] == [(1, 0), (2, 1), (3, 2)]
        assert all(r.record_type == "TXT" and r.fqdn == FQDN for r in polls)
