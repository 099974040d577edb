"""
Tests for the audit wrapper and argument redaction.

Verifies that every operation is bracketed by started/completed records,
that sensitive data keys never reach the log, and that handler exceptions
become failure envelopes instead of propagating.
"""

import logging
from unittest.mock import MagicMock

import pytest

from statamic_mcp.core.context import WEB_CONTEXT, sync_request_context
from statamic_mcp.core.observability import (
    REDACTION_MARKER,
    AuditLogger,
    audit_log,
    execute_with_audit,
    redact_for_logging,
    sanitize_arguments,
)
from statamic_mcp.core.permissions import Principal
from statamic_mcp.core.responses import success_response, validation_error

AUDIT_LOGGER = "statamic_mcp.core.observability.audit"


def _audit_records(caplog):
    return [r for r in caplog.records if r.name == AUDIT_LOGGER]


class TestSanitizeArguments:
    """Tests for sanitize_arguments."""

    @pytest.mark.parametrize(
        "key",
        ["password", "Password", "client_secret", "access_token", "license_key", "api_url"],
    )
    def test_sensitive_keys_redacted(self, key):
        sanitized = sanitize_arguments({"action": "create", "data": {key: "value"}})
        assert sanitized["data"][key] == REDACTION_MARKER

    def test_nested_keys_redacted(self):
        sanitized = sanitize_arguments(
            {"action": "update", "data": {"profile": {"api_token": "abc", "bio": "hi"}}}
        )
        assert sanitized["data"]["profile"] == {"api_token": REDACTION_MARKER, "bio": "hi"}

    def test_plain_keys_untouched(self):
        sanitized = sanitize_arguments({"action": "create", "data": {"title": "Hello"}})
        assert sanitized["data"] == {"title": "Hello"}

    def test_only_data_is_redacted(self):
        """Top-level selectors are not secrets and stay readable."""
        sanitized = sanitize_arguments({"action": "config_get", "config_key": "app.name"})
        assert sanitized["config_key"] == "app.name"

    def test_input_not_modified(self):
        arguments = {"action": "create", "data": {"password": "secret123"}}
        sanitize_arguments(arguments)
        assert arguments["data"]["password"] == "secret123"

    def test_redact_for_logging_serializes(self):
        line = redact_for_logging({"action": "create", "data": {"password": "secret123"}})
        assert "secret123" not in line
        assert REDACTION_MARKER in line


class TestExecuteWithAudit:
    """Tests for execute_with_audit."""

    def test_started_and_completed_logged(self, caplog):
        caplog.set_level(logging.INFO, logger=AUDIT_LOGGER)
        response = execute_with_audit(
            tool="statamic.entries",
            action="list",
            domain="entries",
            arguments={"action": "list", "collection": "blog"},
            handler=lambda: success_response(entries=[]),
        )

        assert response.success is True
        messages = [r.getMessage() for r in _audit_records(caplog)]
        assert messages == ["MCP Operation Started", "MCP Operation Completed"]

        completed = _audit_records(caplog)[-1].audit
        assert completed["tool"] == "statamic.entries"
        assert completed["outcome"] == "success"
        assert completed["context"] == "cli"
        assert completed["duration_ms"] >= 0

    def test_secret_never_logged_but_handler_sees_it(self, caplog):
        """The handler gets the raw value while the log only holds the marker."""
        caplog.set_level(logging.INFO, logger=AUDIT_LOGGER)
        arguments = {"action": "create", "type": "user", "data": {"email": "a@example.com", "password": "secret123"}}
        seen = {}

        def handler():
            seen.update(arguments["data"])
            return success_response(created=True)

        execute_with_audit(
            tool="statamic.users",
            action="create",
            domain="users",
            arguments=arguments,
            handler=handler,
        )

        assert seen["password"] == "secret123"
        assert "secret123" not in caplog.text
        for record in _audit_records(caplog):
            assert record.audit["arguments"]["data"]["password"] == REDACTION_MARKER
            assert "secret123" not in str(record.audit)

    def test_exception_becomes_failure(self, caplog):
        caplog.set_level(logging.INFO, logger=AUDIT_LOGGER)

        def handler():
            raise RuntimeError("disk full")

        response = execute_with_audit(
            tool="statamic.assets",
            action="upload",
            domain="assets",
            arguments={"action": "upload"},
            handler=handler,
        )

        assert response.success is False
        assert response.errors == ["Operation failed: disk full"]
        assert response.data["error_code"] == "INTERNAL_ERROR"

        failed = _audit_records(caplog)[-1]
        assert failed.levelno == logging.ERROR
        assert failed.getMessage() == "MCP Operation Failed"
        assert failed.audit["error"] == "disk full"
        assert failed.audit["outcome"] == "failure"

    def test_failure_envelope_recorded_as_failure(self, caplog):
        """A handler returning a failure is completed, not failed."""
        caplog.set_level(logging.INFO, logger=AUDIT_LOGGER)
        execute_with_audit(
            tool="statamic.entries",
            action="create",
            domain="entries",
            arguments={"action": "create"},
            handler=lambda: validation_error("Bad slug"),
        )
        completed = _audit_records(caplog)[-1]
        assert completed.getMessage() == "MCP Operation Completed"
        assert completed.audit["outcome"] == "failure"
        assert completed.audit["error"] == "Bad slug"

    def test_disabled_emits_nothing(self, caplog):
        caplog.set_level(logging.INFO, logger=AUDIT_LOGGER)
        response = execute_with_audit(
            tool="statamic.entries",
            action="list",
            domain="entries",
            arguments={"action": "list"},
            handler=lambda: success_response(),
            enabled=False,
        )
        assert response.success is True
        assert _audit_records(caplog) == []

    def test_disabled_still_catches_exceptions(self):
        def handler():
            raise ValueError("boom")

        response = execute_with_audit(
            tool="statamic.entries",
            action="list",
            domain="entries",
            arguments={"action": "list"},
            handler=handler,
            enabled=False,
        )
        assert response.errors == ["Operation failed: boom"]

    def test_records_web_principal(self):
        audit = MagicMock(spec=AuditLogger)
        principal = Principal(id="u1", email="editor@example.com")

        with sync_request_context(
            correlation_id="req_123", execution_context=WEB_CONTEXT, principal=principal
        ):
            execute_with_audit(
                tool="statamic.entries",
                action="list",
                domain="entries",
                arguments={"action": "list"},
                handler=lambda: success_response(),
                audit_logger=audit,
            )

        started = audit.started.call_args[0][0]
        assert started.user == "editor@example.com"
        assert started.context == "web"
        assert started.correlation_id == "req_123"
        audit.completed.assert_called_once()

    def test_audit_failure_does_not_break_operation(self):
        """A broken audit sink never fails the operation."""
        audit = MagicMock(spec=AuditLogger)
        audit.started.side_effect = OSError("log volume gone")

        response = execute_with_audit(
            tool="statamic.entries",
            action="list",
            domain="entries",
            arguments={"action": "list"},
            handler=lambda: success_response(entries=[]),
            audit_logger=audit,
        )
        assert response.success is True


class TestAuditLog:
    """Tests for the free-form audit_log helper."""

    def test_known_event_type(self, caplog):
        caplog.set_level(logging.INFO, logger=AUDIT_LOGGER)
        audit_log("config_change", key="statamic_mcp.tools.entries.enabled")
        record = _audit_records(caplog)[-1]
        assert record.getMessage() == "AUDIT: config_change"
        assert record.audit["details"]["key"] == "statamic_mcp.tools.entries.enabled"

    def test_unknown_event_type_is_kept(self, caplog):
        caplog.set_level(logging.INFO, logger=AUDIT_LOGGER)
        audit_log("server_start", transport="stdio")
        record = _audit_records(caplog)[-1]
        assert record.audit["event_type"] == "tool_invocation"
        assert record.audit["details"]["original_event_type"] == "server_start"
