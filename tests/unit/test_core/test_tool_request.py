"""Tests for ToolRequest parsing and pagination."""

import pytest
from pydantic import ValidationError

from statamic_mcp.core.requests import (
    DEFAULT_LIST_LIMIT,
    MAX_LIST_LIMIT,
    ToolRequest,
    paginate,
)


class TestToolRequest:
    """Tests for ToolRequest validation."""

    def test_action_is_required(self):
        with pytest.raises(ValidationError):
            ToolRequest.from_arguments({"collection": "blog"})

    def test_action_normalized(self):
        assert ToolRequest.from_arguments({"action": "  LIST "}).action == "list"

    def test_numeric_id_coerced(self):
        assert ToolRequest.from_arguments({"action": "get", "id": 42}).id == "42"

    def test_unknown_keys_ignored(self):
        request = ToolRequest.from_arguments({"action": "list", "colour": "blue"})
        assert not hasattr(request, "colour")

    def test_wrong_type_rejected(self):
        with pytest.raises(ValidationError):
            ToolRequest.from_arguments({"action": "create", "data": "not-an-object"})

    def test_fields_alias(self):
        request = ToolRequest.from_arguments(
            {"action": "create", "fields": [{"handle": "title", "field": {"type": "text"}}]}
        )
        assert request.blueprint_fields[0]["handle"] == "title"

    def test_to_arguments_only_supplied_keys(self):
        """Defaults are not echoed back as supplied arguments."""
        request = ToolRequest.from_arguments({"action": "list", "collection": "blog"})
        assert request.to_arguments() == {"action": "list", "collection": "blog"}

    def test_to_arguments_uses_wire_names(self):
        request = ToolRequest.from_arguments({"action": "create", "fields": []})
        assert "fields" in request.to_arguments()

    def test_has_treats_empty_as_missing(self):
        request = ToolRequest.from_arguments({"action": "create", "data": {}, "collection": ""})
        assert request.has("data") is False
        assert request.has("collection") is False
        assert request.missing(["collection", "data", "action"]) == ["collection", "data"]

    def test_has_false_for_unknown_field(self):
        assert ToolRequest(action="list").has("nonexistent") is False


class TestPagination:
    """Tests for page_limit and paginate."""

    def test_default_limit(self):
        assert ToolRequest(action="list").page_limit == DEFAULT_LIST_LIMIT

    def test_limit_clamped(self):
        assert ToolRequest(action="list", limit=5000).page_limit == MAX_LIST_LIMIT
        assert ToolRequest(action="list", limit=0).page_limit == 1

    def test_negative_offset_clamped(self):
        assert ToolRequest(action="list", offset=-3).page_offset == 0

    def test_paginate_slices(self):
        items = list(range(10))
        page, meta = paginate(items, ToolRequest(action="list", limit=3, offset=3))
        assert page == [3, 4, 5]
        assert meta == {"total": 10, "limit": 3, "offset": 3, "has_more": True}

    def test_paginate_last_page(self):
        page, meta = paginate(list(range(10)), ToolRequest(action="list", limit=4, offset=8))
        assert page == [8, 9]
        assert meta["has_more"] is False

    def test_paginate_past_end(self):
        page, meta = paginate(list(range(3)), ToolRequest(action="list", offset=10))
        assert page == []
        assert meta["total"] == 3
