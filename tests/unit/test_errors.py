"""Unit tests for the error hierarchy."""

import pytest

from buddy_sandbox.models.errors import (
    CommandTimeoutError,
    ErrorType,
    MalformedLogLineError,
    ProtocolMismatchError,
    SandboxCreationError,
    SandboxNotFoundError,
    SandboxSDKError,
    TransportError,
    ValidationError,
    details_from_server_errors,
)


class TestTransportError:
    """Tests for TransportError message and retry classification."""

    def test_message_includes_status_and_server_errors(self):
        details = details_from_server_errors(
            [{"message": "Sandbox not found"}, {"message": "Check the id"}]
        )
        error = TransportError("Not Found", status_code=404, details=details)

        assert str(error) == "HTTP 404: Not Found\nSandbox not found\nCheck the id"
        assert error.reason == "Not Found"
        assert error.status_code == 404
        assert [d.message for d in error.errors] == ["Sandbox not found", "Check the id"]
        assert error.error_type == ErrorType.TRANSPORT

    def test_network_failure_has_status_zero(self):
        error = TransportError("Request timeout")

        assert error.status_code == 0
        assert str(error) == "Request timeout"

    @pytest.mark.parametrize(
        "status_code,retryable",
        [(0, True), (429, True), (500, True), (503, True), (400, False), (404, False), (409, False)],
    )
    def test_retryable(self, status_code, retryable):
        assert TransportError("x", status_code=status_code).retryable is retryable

    def test_is_sdk_error(self):
        with pytest.raises(SandboxSDKError):
            raise TransportError("boom", status_code=500)


class TestServerErrorDetails:
    """Tests for extraction of the server error list."""

    def test_non_object_entries_are_stringified(self):
        details = details_from_server_errors([{"message": "bad", "code": "E1"}, "plain", None])

        assert [d.message for d in details] == ["bad", "plain"]
        assert details[0].code == "E1"

    def test_missing_list_yields_nothing(self):
        assert details_from_server_errors(None) == []
        assert details_from_server_errors({"message": "x"}) == []


class TestOtherErrors:
    """Tests for the remaining error types."""

    def test_protocol_mismatch_carries_content_type(self):
        error = ProtocolMismatchError("text/plain")

        assert error.content_type == "text/plain"
        assert "text/plain" in str(error)
        assert error.error_type == ErrorType.PROTOCOL_MISMATCH

    def test_malformed_line_carries_raw_line(self):
        error = MalformedLogLineError("not-json", "invalid JSON")

        assert error.raw_line == "not-json"
        assert "not-json" in str(error)

    def test_validation_error_from_pydantic(self):
        error = ValidationError.from_pydantic(
            "Response validation failed",
            [{"loc": ("id",), "msg": "Field required", "type": "missing"}],
            status_code=200,
        )

        assert error.status_code == 200
        assert error.details[0].field == "id"
        assert error.details[0].code == "missing"
        assert "id: Field required" in str(error)

    def test_creation_error_wraps_transport_error(self):
        cause = TransportError("Bad Request", status_code=400)
        error = SandboxCreationError("Failed to create sandbox", cause)

        assert error.cause is cause
        assert error.status_code == 400
        assert str(error) == "Failed to create sandbox: HTTP 400: Bad Request"

    def test_not_found_response(self):
        response = SandboxNotFoundError("missing-box").to_response()

        assert response.error_type == "resource_not_found"
        assert response.status_code == 404
        assert "missing-box" in response.error

    def test_command_timeout_message(self):
        error = CommandTimeoutError("cmd-1", 2.5, "INPROGRESS")

        assert error.last_status == "INPROGRESS"
        assert "2.5s" in str(error)
