"""
Tests for ServerConfig loading and the dotted settings view.

Covers TOML loading, environment overrides, closed defaults for the
hosted surface, and the runtime override rules used by config_set.
"""

import logging
import os
from pathlib import Path

import pytest

from statamic_mcp.config import TOOL_DOMAINS, ServerConfig, ToolConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate from the developer's environment and any local config file."""
    for key in list(os.environ):
        if key.startswith("STATAMIC_MCP_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


class TestDefaults:
    def test_every_tool_closed_to_web(self):
        config = ServerConfig.from_env()
        assert set(config.tools) == set(TOOL_DOMAINS)
        assert all(not tool.web_enabled for tool in config.tools.values())
        assert all(tool.audit_logging for tool in config.tools.values())

    def test_security_defaults(self):
        config = ServerConfig()
        assert config.security.force_web_mode is False
        assert config.security.require_mcp_permission is True
        assert config.web.enabled is False
        assert config.web.path == "/mcp/statamic"

    def test_unknown_domain_gets_closed_switches(self):
        assert ServerConfig().tool("widgets") == ToolConfig()


class TestTomlLoading:
    def test_loads_sections(self, tmp_path):
        path = tmp_path / "statamic-mcp.toml"
        path.write_text(
            """
[logging]
level = "debug"

[content]
path = "content.json"
sites = ["en", "de"]

[web]
enabled = true
user = "editor@example.com"

[tools.entries]
web_enabled = true
audit_logging = false
"""
        )
        config = ServerConfig.from_env(str(path))
        assert config.log_level == "DEBUG"
        assert config.content_path == Path("content.json")
        assert config.sites == ["en", "de"]
        assert config.web.enabled is True
        assert config.web.user == "editor@example.com"
        assert config.tool("entries") == ToolConfig(web_enabled=True, audit_logging=False)
        assert config.tool("terms").web_enabled is False

    def test_default_file_discovered(self, tmp_path):
        (tmp_path / "statamic-mcp.toml").write_text('[app]\nname = "Docs Site"\n')
        assert ServerConfig.from_env().app.name == "Docs Site"

    def test_unknown_tool_section_ignored(self, tmp_path, caplog):
        path = tmp_path / "c.toml"
        path.write_text("[tools.widgets]\nweb_enabled = true\n")
        with caplog.at_level(logging.WARNING):
            config = ServerConfig.from_env(str(path))
        assert "widgets" not in config.tools
        assert "unknown tool domain 'widgets'" in caplog.text

    def test_missing_file_keeps_defaults(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            config = ServerConfig.from_env(str(tmp_path / "nope.toml"))
        assert config.log_level == "INFO"
        assert "Config file not found" in caplog.text

    def test_invalid_toml_keeps_defaults(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[web\nenabled = ")
        assert ServerConfig.from_env(str(path)).web.enabled is False


class TestEnvOverrides:
    def test_env_beats_toml(self, tmp_path, monkeypatch):
        path = tmp_path / "c.toml"
        path.write_text("[web]\nenabled = false\n")
        monkeypatch.setenv("STATAMIC_MCP_WEB_ENABLED", "true")
        assert ServerConfig.from_env(str(path)).web.enabled is True

    def test_per_tool_switches(self, monkeypatch):
        monkeypatch.setenv("STATAMIC_MCP_ENTRIES_WEB_ENABLED", "1")
        monkeypatch.setenv("STATAMIC_MCP_SYSTEM_AUDIT_LOGGING", "false")
        config = ServerConfig.from_env()
        assert config.tool("entries").web_enabled is True
        assert config.tool("system").audit_logging is False

    def test_sites_list(self, monkeypatch):
        monkeypatch.setenv("STATAMIC_MCP_SITES", "en, fr ,")
        assert ServerConfig.from_env().sites == ["en", "fr"]

    def test_rate_limit_zero_disables(self, monkeypatch):
        monkeypatch.setenv("STATAMIC_MCP_RATE_LIMIT", "0")
        assert ServerConfig.from_env().rate_limit.enabled is False

    def test_invalid_rate_limit_ignored(self, monkeypatch):
        monkeypatch.setenv("STATAMIC_MCP_RATE_LIMIT", "lots")
        config = ServerConfig.from_env()
        assert config.rate_limit.requests_per_minute == 60


class TestSettings:
    """Tests for get_setting / set_setting."""

    def test_get_nested(self):
        config = ServerConfig()
        assert config.get_setting("app.env") == "production"
        assert config.get_setting("statamic_mcp.tools.entries.web_enabled") is False

    def test_get_missing_raises(self):
        with pytest.raises(KeyError):
            ServerConfig().get_setting("app.nope")

    def test_set_tool_switch(self):
        config = ServerConfig()
        assert config.set_setting("statamic_mcp.tools.entries.web_enabled", "true") is True
        assert config.tool("entries").web_enabled is True

    def test_set_tool_object(self):
        config = ServerConfig()
        stored = config.set_setting("statamic_mcp.tools.terms", {"web_enabled": True})
        assert stored == {"web_enabled": True, "audit_logging": True}

    def test_set_tool_object_requires_mapping(self):
        with pytest.raises(ValueError, match="must be an object"):
            ServerConfig().set_setting("statamic_mcp.tools.terms", True)

    def test_set_force_web_mode(self):
        config = ServerConfig()
        config.set_setting("statamic_mcp.security.force_web_mode", True)
        assert config.security.force_web_mode is True

    @pytest.mark.parametrize(
        "key",
        [
            "app.name",
            "statamic_mcp.tools.widgets.web_enabled",
            "statamic_mcp.tools.entries.colour",
            "statamic_mcp.security.require_mcp_permission",
        ],
    )
    def test_unwritable_keys_raise(self, key):
        with pytest.raises(KeyError):
            ServerConfig().set_setting(key, True)
