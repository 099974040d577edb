"""MCP tool registration surface.

Only the unified per-domain router tools are exported.
"""

from statamic_mcp.tools.unified import register_unified_tools

__all__ = [
    "register_unified_tools",
]
