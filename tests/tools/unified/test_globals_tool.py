"""Tests for the unified globals tool."""

import pytest

from statamic_mcp.tools.unified.global_sets import GlobalsTool


@pytest.fixture
def globals_tool(config, repositories, cache):
    return GlobalsTool(config, repositories, cache)


class TestGlobals:
    def test_list(self, globals_tool):
        response = globals_tool.run({"action": "list"})
        summary = response.data["globals"][0]
        assert summary["handle"] == "settings"
        assert summary["localized"] is True
        assert summary["has_values"] is True

    def test_handle_required(self, globals_tool):
        response = globals_tool.run({"action": "get"})
        assert response.errors == ["Global set handle is required for global operations"]

    def test_unknown_set(self, globals_tool):
        response = globals_tool.run({"action": "get", "global_set": "footer"})
        assert response.errors == ["Global set not found: footer"]

    def test_get_default_site(self, globals_tool):
        response = globals_tool.run({"action": "get", "global_set": "settings"})
        assert response.data["global"]["data"] == {"site_name": "Example", "tagline": "Hello"}

    def test_get_handle_alias(self, globals_tool):
        response = globals_tool.run({"action": "get", "handle": "settings", "site": "fr"})
        assert response.data["global"]["site"] == "fr"
        assert response.data["global"]["data"] == {}

    def test_update_merges_per_site(self, globals_tool, repositories):
        response = globals_tool.run(
            {"action": "update", "global_set": "settings", "data": {"tagline": "Bonjour"}, "site": "fr"}
        )
        assert response.data["global"]["updated_fields"] == ["tagline"]
        stored = repositories.global_sets.find("settings")
        assert stored.values["fr"] == {"tagline": "Bonjour"}
        assert stored.values["default"]["tagline"] == "Hello"

    def test_update_requires_data(self, globals_tool):
        response = globals_tool.run({"action": "update", "global_set": "settings"})
        assert response.errors == ["Data is required for update action"]

    def test_update_unavailable_site(self, globals_tool, repositories):
        gs = repositories.global_sets.find("settings")
        gs.sites = ["default"]
        repositories.global_sets.save(gs)
        response = globals_tool.run(
            {"action": "update", "global_set": "settings", "data": {"x": 1}, "site": "fr"}
        )
        assert response.errors == ["Global set not available in site: fr"]

    def test_invalid_site(self, globals_tool):
        response = globals_tool.run({"action": "list", "site": "de"})
        assert response.errors == ["Invalid site handle: de"]

    def test_hosted_requires_edit_globals(self, web_config, repositories, cache, as_web_user):
        tool = GlobalsTool(web_config, repositories, cache)
        with as_web_user("editor@example.com"):
            response = tool.run({"action": "list"})
        assert response.data["details"] == {"required_permissions": ["edit globals"]}
