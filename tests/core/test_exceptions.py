"""Tests for nodecert.core.exceptions module."""

from __future__ import annotations

from nodecert.core.exceptions import (
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


class TestNodecertException:
    """Tests for the base exception."""

    def test_create_with_message(self):
        exc = NodecertException("Something went wrong")
        assert str(exc) == "Something went wrong"
        assert exc.details == {}

    def test_to_dict_uses_class_name(self):
        exc = ServiceError("zone locked", 503)
        d = exc.to_dict()
        assert d["error"] == "ServiceError"
        assert d["message"] == "zone locked"
        assert d["details"] == {"status_code": 503}

    def test_all_errors_share_the_base(self):
        for cls in (
            ConfigException,
            IdentityMissingError,
            AuthenticationMismatchError,
            TransportFailureError,
            RejectedRequestError,
            ServiceError,
            OperationNotImplementedError,
            ResolutionError,
            PropagationTimeoutError,
            CoordinatorStateError,
        ):
            assert issubclass(cls, NodecertException)


class TestSpecificErrors:
    def test_identity_missing_default_message(self):
        exc = IdentityMissingError()
        assert "valid key" in exc.message
        assert exc.option == "key"

    def test_authentication_mismatch_details(self):
        exc = AuthenticationMismatchError("aaa", "bbb")
        assert exc.expected == "aaa"
        assert exc.received == "bbb"
        assert "Invalid key" in str(exc)

    def test_rejected_request_status(self):
        exc = RejectedRequestError(401)
        assert exc.status_code == 401
        assert "401" in exc.message

    def test_service_error_falls_back_to_status(self):
        assert "502" in ServiceError(None, 502).message

    def test_not_implemented(self):
        exc = OperationNotImplementedError("remove")
        assert exc.message == "Not implemented"
        assert exc.details == {"operation": "remove"}

    def test_record_not_found_is_resolution_error(self):
        exc = RecordNotFoundError("x.example.net", "TXT", "NXDOMAIN")
        assert isinstance(exc, ResolutionError)
        assert "NXDOMAIN" in str(exc)

    def test_propagation_timeout_message(self):
        exc = PropagationTimeoutError("x.example.net", "A", 30.0)
        assert str(exc) == "A x.example.net did not propagate within 30s"
