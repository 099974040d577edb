"""Unified action-based MCP tools, one per content domain."""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Optional

from .assets import register_unified_assets_tool
from .base import DomainTool
from .blueprints import register_unified_blueprints_tool
from .content import register_unified_content_tool
from .entries import register_unified_entries_tool
from .global_sets import register_unified_globals_tool
from .structures import register_unified_structures_tool
from .system import register_unified_system_tool
from .terms import register_unified_terms_tool
from .users import register_unified_users_tool

from statamic_mcp.core.cache import CacheInvalidator
from statamic_mcp.core.memory import build_memory_repositories


if TYPE_CHECKING:  # pragma: no cover - import-time typing only
    from mcp.server.fastmcp import FastMCP
    from statamic_mcp.config import ServerConfig
    from statamic_mcp.core.repositories import Repositories


_REGISTRARS = (
    register_unified_entries_tool,
    register_unified_terms_tool,
    register_unified_globals_tool,
    register_unified_assets_tool,
    register_unified_blueprints_tool,
    register_unified_structures_tool,
    register_unified_users_tool,
    register_unified_system_tool,
    register_unified_content_tool,
)


def register_unified_tools(
    mcp: "FastMCP",
    config: "ServerConfig",
    repositories: Optional["Repositories"] = None,
    cache: Optional[CacheInvalidator] = None,
) -> Dict[str, DomainTool]:
    """Register all unified tool routers.

    Every tool shares one repository bundle and one cache collaborator.
    Returns the registered tools keyed by domain.
    """
    if repositories is None:
        repositories = build_memory_repositories(sites=config.sites)
    if cache is None:
        cache = CacheInvalidator()

    tools: Dict[str, DomainTool] = {}
    for register in _REGISTRARS:
        tool = register(mcp, config, repositories=repositories, cache=cache)
        tools[tool.domain] = tool
    return tools


__all__ = [
    "register_unified_tools",
    "register_unified_assets_tool",
    "register_unified_blueprints_tool",
    "register_unified_content_tool",
    "register_unified_entries_tool",
    "register_unified_globals_tool",
    "register_unified_structures_tool",
    "register_unified_system_tool",
    "register_unified_terms_tool",
    "register_unified_users_tool",
]
