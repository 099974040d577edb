"""Naming helpers for MCP tool registration."""

from __future__ import annotations

import functools
import json
import logging
from typing import Any, Callable

from mcp.server.fastmcp import FastMCP
from mcp.types import TextContent

from statamic_mcp.core.observability import mcp_tool

logger = logging.getLogger(__name__)


def _minify_response(result: dict[str, Any]) -> TextContent:
    """Convert dict to TextContent with minified JSON."""
    return TextContent(
        type="text",
        text=json.dumps(result, separators=(",", ":"), default=str),
    )


def canonical_tool(
    mcp: FastMCP,
    *,
    canonical_name: str,
    **tool_kwargs: Any,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator that registers a tool under its canonical name.

    The tool function is instrumented with ``mcp_tool`` (correlation id and
    invocation audit), its dict result is minified into ``TextContent``, and
    the wrapper is registered with FastMCP as ``canonical_name``.

    Args:
        mcp: FastMCP instance
        canonical_name: The canonical name for the tool (e.g. ``statamic.entries``)
        **tool_kwargs: Additional kwargs passed to mcp.tool()
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        instrumented = mcp_tool(tool_name=canonical_name)(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            result = instrumented(*args, **kwargs)
            if isinstance(result, dict):
                return _minify_response(result)
            return result

        logger.debug("Registering tool %s", canonical_name)
        return mcp.tool(name=canonical_name, **tool_kwargs)(wrapper)

    return decorator
