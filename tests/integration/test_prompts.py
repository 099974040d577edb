"""Tests for the workflow prompts registered on the MCP server."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from statamic_mcp.config import ServerConfig
from statamic_mcp.prompts import register_workflow_prompts
from statamic_mcp.server import create_server


_PROMPT_NAMES = {
    "statamic_contract",
    "statamic_best_practices",
    "statamic_data_handling",
    "statamic_workflow",
}


@pytest.fixture
def prompts(repositories):
    config = ServerConfig(server_name="statamic-mcp-test", log_level="WARNING")
    mcp = create_server(config, repositories=repositories)
    return mcp._prompt_manager._prompts


def test_prompts_registered(prompts):
    assert set(prompts) == _PROMPT_NAMES


class TestContract:
    def test_describes_safety_protocol(self, prompts):
        text = prompts["statamic_contract"].fn()
        assert text.startswith("# Statamic MCP Tool Usage Contract")
        assert "dry_run=true" in text
        assert "confirm=true" in text
        assert "RATE_LIMIT_EXCEEDED" in text

    def test_reflects_forced_web_mode(self, repositories):
        mcp = MagicMock()
        registered = {}
        mcp.prompt.return_value = lambda func: registered.setdefault(func.__name__, func)
        config = ServerConfig()
        config.security.force_web_mode = True

        register_workflow_prompts(mcp, config, repositories=repositories)

        assert "hosted (web) mode forced on" in registered["statamic_contract"]()


class TestBestPractices:
    def test_general_covers_every_section(self, prompts):
        text = prompts["statamic_best_practices"].fn()
        for heading in ("## Template Development", "## Content Modeling", "## Performance"):
            assert heading in text

    def test_context_narrows_sections(self, prompts):
        text = prompts["statamic_best_practices"].fn(context="performance")
        assert "## Performance" in text
        assert "## Content Modeling" not in text

    def test_blade_templates(self, prompts):
        text = prompts["statamic_best_practices"].fn(context="templates", template_engine="blade")
        assert "Blade components" in text
        assert "Antlers tags" not in text

    def test_unknown_context_falls_back(self, prompts):
        text = prompts["statamic_best_practices"].fn(context="seo")
        assert "Unknown context `seo`" in text
        assert "## Performance" in text


class TestDataHandling:
    def test_issue_type_section(self, prompts):
        text = prompts["statamic_data_handling"].fn(context="antlers-scoping", issue_type="scope-bleeding")
        assert "## Addressing: Scope Bleeding" in text
        assert "## Variable Resolution" in text
        assert "## Raw vs Augmented Data" not in text


class TestWorkflow:
    def test_lists_existing_collections(self, prompts):
        text = prompts["statamic_workflow"].fn()
        assert "## Existing Collections\n- blog\n- pages" in text

    def test_task_type_narrows_steps(self, prompts):
        text = prompts["statamic_workflow"].fn(task_type="content-migration")
        assert "workflow=duplicate_content" in text
        assert "## 2. Set Up Content" not in text
