"""Tests for request context propagation."""

import pytest

from statamic_mcp.core.context import (
    CLI_CONTEXT,
    WEB_CONTEXT,
    generate_correlation_id,
    get_correlation_id,
    get_current_context,
    get_execution_context,
    get_principal,
    sync_request_context,
)
from statamic_mcp.core.permissions import Principal


class TestSyncRequestContext:
    """Tests for sync_request_context."""

    def test_defaults_outside_context(self):
        assert get_correlation_id() == ""
        assert get_execution_context() == CLI_CONTEXT
        assert get_principal() is None

    def test_sets_and_restores(self):
        principal = Principal(id="u1", email="editor@example.com")
        with sync_request_context(
            correlation_id="req_1", execution_context=WEB_CONTEXT, principal=principal
        ) as ctx:
            assert ctx.is_web
            assert get_correlation_id() == "req_1"
            assert get_execution_context() == WEB_CONTEXT
            assert get_principal() is principal
        assert get_correlation_id() == ""
        assert get_execution_context() == CLI_CONTEXT
        assert get_principal() is None

    def test_generates_correlation_id(self):
        with sync_request_context() as ctx:
            assert ctx.correlation_id.startswith("req_")

    def test_nested_context_inherits(self):
        """Inner blocks keep the outer mode and principal unless overridden."""
        principal = Principal(id="u1")
        with sync_request_context(execution_context=WEB_CONTEXT, principal=principal):
            with sync_request_context(correlation_id="inner") as inner:
                assert inner.execution_context == WEB_CONTEXT
                assert inner.principal is principal
            assert get_execution_context() == WEB_CONTEXT

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError, match="Unknown execution context"):
            with sync_request_context(execution_context="batch"):
                pass

    def test_to_dict(self):
        with sync_request_context(correlation_id="req_1", principal=Principal(id="u1", email="a@b.c")):
            data = get_current_context().to_dict()
        assert data["correlation_id"] == "req_1"
        assert data["context"] == CLI_CONTEXT
        assert data["user"] == "a@b.c"


def test_generate_correlation_id_format():
    corr = generate_correlation_id(prefix="tool")
    prefix, token = corr.split("_")
    assert prefix == "tool"
    assert len(token) == 12
