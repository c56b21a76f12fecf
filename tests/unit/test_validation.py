"""Unit tests for request and response validation."""

import httpx
import pytest

from buddy_sandbox.core.http_client import HttpResponse
from buddy_sandbox.core.validation import parse_response, validate_request
from buddy_sandbox.models import CommandResponse, ErrorType, ExecuteCommandRequest, ValidationError


def make_response(data, status_code=200) -> HttpResponse:
    return HttpResponse(
        status_code=status_code,
        reason="OK",
        headers=httpx.Headers({"content-type": "application/json"}),
        data=data,
        content=b"",
    )


class TestValidateRequest:
    """Tests for outgoing payload validation."""

    def test_accepts_mapping(self):
        request = validate_request(ExecuteCommandRequest, {"command": "ls"})

        assert request.command == "ls"

    def test_passes_model_instance_through(self):
        request = ExecuteCommandRequest(command="ls")

        assert validate_request(ExecuteCommandRequest, request) is request

    def test_rejects_empty_command(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_request(ExecuteCommandRequest, {"command": ""})

        error = exc_info.value
        assert error.error_type == ErrorType.VALIDATION
        assert error.details[0].field == "command"
        assert error.status_code is None


class TestParseResponse:
    """Tests for response validation."""

    def test_valid_command_resource(self):
        command = parse_response(
            CommandResponse,
            make_response({"id": "cmd-1", "status": "INPROGRESS", "extra": "ignored"}),
        )

        assert command.id == "cmd-1"
        assert command.exit_code is None

    def test_missing_id_is_rejected_on_success_status(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_response(CommandResponse, make_response({"status": "SUCCESSFUL"}, 201))

        assert exc_info.value.status_code == 201
        assert exc_info.value.details[0].field == "id"

    def test_empty_body_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_response(CommandResponse, make_response(None))

    def test_non_integer_exit_code_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_response(
                CommandResponse,
                make_response({"id": "cmd-1", "status": "FAILED", "exit_code": "boom"}),
            )

    def test_unknown_status_is_accepted(self):
        command = parse_response(
            CommandResponse, make_response({"id": "cmd-1", "status": "QUEUED"})
        )

        assert command.status == "QUEUED"
