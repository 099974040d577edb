"""Tests for the unified system tool."""

import logging

import pytest

from statamic_mcp.core.cache import CACHE_SEGMENTS, CacheInvalidator
from statamic_mcp.tools.unified.system import SystemTool


@pytest.fixture
def system(config, repositories, cache):
    return SystemTool(config, repositories, cache)


class TestInfo:
    def test_info(self, system):
        response = system.run({"action": "info"})
        info = response.data["system_info"]
        assert info["app_name"] == "Statamic"
        assert info["execution_context"] == "cli"
        assert info["collections_count"] == 2
        assert info["users_count"] == 4

    def test_info_without_details(self, system):
        response = system.run({"action": "info", "include_details": False})
        assert "collections_count" not in response.data["system_info"]

    def test_health(self, system):
        response = system.run({"action": "health"})
        health = response.data["health"]
        assert set(health) == {"overall_status", "is_healthy", "timestamp", "checks"}
        assert health["checks"]


class TestCaches:
    def test_status_lists_segments(self, system):
        response = system.run({"action": "cache_status"})
        assert response.data["cache_types"] == list(CACHE_SEGMENTS)
        assert response.data["cache_status"]["stache"]["status"] == "active"

    def test_clear_all_by_default(self, system, cache):
        response = system.run({"action": "cache_clear"})
        assert response.data["cleared_types"] == list(CACHE_SEGMENTS)
        assert cache.status()["views"]["status"] == "cleared"

    def test_clear_single_segment(self, system, cache):
        response = system.run({"action": "cache_clear", "cache_type": "stache"})
        assert response.data["cache_cleared"]["stache"]["message"] == "Stache cache cleared"
        assert cache.status()["static"]["clear_count"] == 0

    def test_clear_unknown_type(self, system, cache):
        response = system.run({"action": "cache_clear", "cache_type": "redis"})
        assert response.errors == ["Unknown cache type: redis"]
        assert response.data["details"] == {"field": "cache_type"}

    def test_hook_failure_becomes_warning(self, config, repositories):
        def broken():
            raise RuntimeError("disk full")

        cache = CacheInvalidator(clear_hooks={"static": broken})
        tool = SystemTool(config, repositories, cache)
        response = tool.run({"action": "cache_clear", "cache_type": "static"})
        assert response.success is True
        assert response.meta["warnings"] == ["static: disk full"]
        assert response.data["cleared_types"] == []

    def test_clear_dry_run(self, system, cache):
        response = system.run({"action": "cache_clear", "dry_run": True})
        assert response.data["would_execute"] == "cache_clear"
        assert cache.status()["stache"]["clear_count"] == 0

    def test_warm_without_hook_is_skipped(self, system):
        response = system.run({"action": "cache_warm"})
        assert response.data["cache_warmed"] == {
            "stache": {"status": "skipped", "reason": "No warming available"}
        }

    def test_warm_with_hook(self, config, repositories):
        warmed = []
        cache = CacheInvalidator(warm_hooks={"stache": lambda: warmed.append("stache")})
        tool = SystemTool(config, repositories, cache)
        response = tool.run({"action": "cache_warm", "cache_type": "stache"})
        assert response.data["cache_warmed"]["stache"] == {"status": "warmed"}
        assert warmed == ["stache"]

    def test_warm_hook_failure_becomes_warning(self, config, repositories):
        def broken():
            raise RuntimeError("index locked")

        cache = CacheInvalidator(warm_hooks={"stache": broken})
        tool = SystemTool(config, repositories, cache)
        response = tool.run({"action": "cache_warm", "cache_type": "stache"})
        assert response.success is True
        assert response.data["cache_warmed"]["stache"] == {"status": "failed", "reason": "index locked"}
        assert response.meta["warnings"] == ["stache: index locked"]


class TestRuntimeConfig:
    def test_key_required(self, system):
        response = system.run({"action": "config_get"})
        assert response.errors == ["Config key is required"]

    def test_get_allowed_key(self, system):
        response = system.run({"action": "config_get", "config_key": "app.env"})
        assert response.data["config"] == {"key": "app.env", "value": "production"}

    def test_get_restricted_key(self, system):
        response = system.run({"action": "config_get", "config_key": "database.password"})
        assert response.errors == ["Access to config key 'database.password' is restricted"]
        assert response.data["error_code"] == "FORBIDDEN"

    def test_get_unknown_key(self, system):
        response = system.run({"action": "config_get", "config_key": "statamic_mcp.nope"})
        assert response.errors == ["Config key not found: statamic_mcp.nope"]

    def test_set_tool_switch(self, system, config):
        response = system.run(
            {"action": "config_set", "config_key": "statamic_mcp.tools.entries.web_enabled", "config_value": True}
        )
        assert response.data["config"]["updated"] is True
        assert config.tools["entries"].web_enabled is True

    def test_set_decodes_json(self, system, config):
        response = system.run(
            {
                "action": "config_set",
                "config_key": "statamic_mcp.tools.terms",
                "config_value": '{"web_enabled": true, "audit_logging": false}',
            }
        )
        assert response.data["config"]["value"] == {"web_enabled": True, "audit_logging": False}
        assert config.tools["terms"].audit_logging is False

    def test_set_invalid_json(self, system):
        response = system.run(
            {"action": "config_set", "config_key": "statamic_mcp.tools.terms", "config_value": "{oops"}
        )
        assert response.errors == ["Invalid JSON value provided"]

    def test_set_restricted_key(self, system, config):
        response = system.run({"action": "config_set", "config_key": "app.debug", "config_value": True})
        assert response.data["error_code"] == "FORBIDDEN"
        assert config.app.debug is False

    def test_set_is_audited(self, system, caplog):
        with caplog.at_level(logging.INFO, logger="statamic_mcp.core.observability.audit"):
            system.run(
                {
                    "action": "config_set",
                    "config_key": "statamic_mcp.security.force_web_mode",
                    "config_value": "false",
                }
            )
        events = [r.audit["event_type"] for r in caplog.records if hasattr(r, "audit")]
        assert "config_change" in events
