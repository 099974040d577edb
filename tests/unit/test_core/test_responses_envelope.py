"""
Tests for the response envelope helpers.

Every tool answer is either ``{success: True, data, errors: []}`` or
``{success: False, data: {error_code, ...}, errors: [...]}``.
"""

from dataclasses import asdict

from statamic_mcp.core.context import sync_request_context
from statamic_mcp.core.responses import (
    ErrorCode,
    ErrorType,
    ToolResponse,
    conflict_error,
    error_response,
    forbidden_error,
    internal_error,
    missing_fields_error,
    not_found_error,
    rate_limit_error,
    success_response,
    unauthorized_error,
    validation_error,
)

RESPONSE_CONTRACT_VERSION = "response-v1"


class TestToolResponse:
    """Tests for the ToolResponse dataclass."""

    def test_defaults(self):
        """A bare response carries empty data, no errors and the version."""
        response = ToolResponse(success=True)
        assert response.data == {}
        assert response.errors == []
        assert response.meta == {"version": RESPONSE_CONTRACT_VERSION}

    def test_error_property_returns_first_message(self):
        """The error property exposes the first failure message."""
        response = ToolResponse(success=False, errors=["first", "second"])
        assert response.error == "first"

    def test_error_property_none_on_success(self):
        response = ToolResponse(success=True)
        assert response.error is None

    def test_asdict_has_envelope_keys(self):
        """Serialized responses expose exactly the envelope keys."""
        envelope = asdict(success_response(entry={"id": "e1"}))
        assert set(envelope) == {"success", "data", "errors", "meta"}


class TestSuccessResponse:
    """Tests for success_response."""

    def test_kwargs_become_data(self):
        response = success_response(entry={"id": "e1"}, created=True)
        assert response.success is True
        assert response.data == {"entry": {"id": "e1"}, "created": True}
        assert response.errors == []

    def test_mapping_and_kwargs_merge(self):
        """Keyword fields are merged over the base mapping."""
        response = success_response({"a": 1, "b": 2}, b=3)
        assert response.data == {"a": 1, "b": 3}

    def test_warnings_go_to_meta(self):
        response = success_response(warnings=["Ignored settings: foo"])
        assert response.meta["warnings"] == ["Ignored settings: foo"]
        assert "warnings" not in response.data

    def test_no_warnings_key_when_empty(self):
        response = success_response(warnings=[])
        assert "warnings" not in response.meta

    def test_request_id_from_context(self):
        """The active correlation id is injected as meta.request_id."""
        with sync_request_context(correlation_id="req_abc123"):
            response = success_response()
        assert response.meta["request_id"] == "req_abc123"

    def test_explicit_request_id_wins(self):
        with sync_request_context(correlation_id="req_abc123"):
            response = success_response(request_id="req_explicit")
        assert response.meta["request_id"] == "req_explicit"


class TestErrorResponse:
    """Tests for error_response and the specialized helpers."""

    def test_defaults_to_internal_error(self):
        response = error_response("Boom")
        assert response.success is False
        assert response.errors == ["Boom"]
        assert response.data["error_code"] == ErrorCode.INTERNAL_ERROR.value
        assert response.data["error_type"] == ErrorType.INTERNAL.value

    def test_multiple_messages(self):
        response = error_response(["one", "two"])
        assert response.errors == ["one", "two"]

    def test_empty_message_list_has_fallback(self):
        """A failure always carries at least one message."""
        response = error_response([])
        assert response.errors == ["Unknown error"]

    def test_remediation_and_details(self):
        response = error_response(
            "Bad",
            error_code=ErrorCode.VALIDATION_ERROR,
            remediation="Fix it",
            details={"field": "data"},
        )
        assert response.data["remediation"] == "Fix it"
        assert response.data["details"] == {"field": "data"}

    def test_validation_error(self):
        response = validation_error("Invalid site handle: de", field="site")
        assert response.data["error_code"] == "VALIDATION_ERROR"
        assert response.data["details"] == {"field": "site"}

    def test_missing_fields_error_default_message(self):
        response = missing_fields_error(["container", "path"])
        assert response.errors == ["Missing required fields: container, path"]
        assert response.data["error_code"] == "MISSING_REQUIRED"
        assert response.data["details"]["missing_fields"] == ["container", "path"]

    def test_missing_fields_error_custom_message(self):
        response = missing_fields_error(["id"], message="Entry ID is required for get action")
        assert response.errors == ["Entry ID is required for get action"]

    def test_not_found_error(self):
        response = not_found_error("Collection", "articles")
        assert response.errors == ["Collection not found: articles"]
        assert response.data["error_code"] == "NOT_FOUND"

    def test_unauthorized_error(self):
        response = unauthorized_error()
        assert response.errors == ["Permission denied: Authentication required"]
        assert response.data["error_code"] == "UNAUTHORIZED"

    def test_forbidden_error_lists_permissions(self):
        response = forbidden_error(
            "Permission denied: Cannot create entries",
            required_permissions=["create blog entries"],
        )
        assert response.data["error_code"] == "FORBIDDEN"
        assert response.data["details"] == {"required_permissions": ["create blog entries"]}

    def test_forbidden_error_custom_code(self):
        response = forbidden_error("disabled", error_code=ErrorCode.TOOL_DISABLED)
        assert response.data["error_code"] == "TOOL_DISABLED"

    def test_conflict_error(self):
        response = conflict_error("Role 'editor' already exists", details={"handle": "editor"})
        assert response.data["error_code"] == "CONFLICT"
        assert response.data["details"] == {"handle": "editor"}

    def test_rate_limit_error(self):
        response = rate_limit_error(60, 2.5)
        assert response.errors == ["Rate limit exceeded: 60 requests per minute"]
        assert response.data["details"]["retry_after_seconds"] == 2.5
        assert response.data["remediation"] == "Wait 3 seconds before retrying"

    def test_internal_error(self):
        response = internal_error("Operation failed: boom")
        assert response.errors == ["Operation failed: boom"]
        assert response.data["error_type"] == "internal"
