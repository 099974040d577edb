"""FastMCP server for statamic-mcp.

This server exposes one unified router tool per content domain
(``statamic.entries``, ``statamic.terms``, ... ``statamic.system``).
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from mcp.server.fastmcp import FastMCP

from statamic_mcp.config import ServerConfig, get_config
from statamic_mcp.core.cache import CacheInvalidator
from statamic_mcp.core.memory import build_memory_repositories, load_seed
from statamic_mcp.core.observability import audit_log
from statamic_mcp.core.repositories import Repositories
from statamic_mcp.prompts import register_workflow_prompts
from statamic_mcp.tools.unified import register_unified_tools

logger = logging.getLogger(__name__)

STDIO_TRANSPORT = "stdio"
HTTP_TRANSPORT = "streamable-http"


def build_repositories(config: ServerConfig) -> Repositories:
    """Content store for ``config``: the seed file when set, else empty."""

    seed = None
    if config.content_path is not None:
        seed = load_seed(config.content_path)
    return build_memory_repositories(seed, sites=config.sites)


def create_server(
    config: Optional[ServerConfig] = None,
    repositories: Optional[Repositories] = None,
    cache: Optional[CacheInvalidator] = None,
) -> FastMCP:
    """Create and configure the FastMCP server instance."""

    if config is None:
        config = get_config()

    config.setup_logging()

    if repositories is None:
        repositories = build_repositories(config)

    mcp = FastMCP(name=config.server_name, streamable_http_path=config.web.path)

    tools = register_unified_tools(mcp, config, repositories=repositories, cache=cache)

    # Prompts
    register_workflow_prompts(mcp, config, repositories=repositories)

    logger.info(
        "Server created: %s v%s (%d tools)",
        config.server_name,
        config.server_version,
        len(tools),
    )
    return mcp


def main(transport: str = STDIO_TRANSPORT) -> None:
    """Main entry point for the statamic-mcp server."""

    try:
        config = get_config()
        if transport == HTTP_TRANSPORT:
            if not config.web.enabled:
                logger.error("Web surface is disabled; set STATAMIC_MCP_WEB_ENABLED=true")
                sys.exit(1)
            # Every call arriving over HTTP is a hosted call
            config.security.force_web_mode = True

        server = create_server(config)

        logger.info("Starting %s v%s (%s)", config.server_name, config.server_version, transport)
        audit_log("tool_invocation", tool="server_start", version=config.server_version, transport=transport)

        server.run(transport=transport)

    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
        sys.exit(0)
    except Exception as exc:
        logger.error("Server error: %s: %s", type(exc).__name__, exc)
        audit_log("tool_invocation", tool="server_error", error=str(exc), success=False)
        sys.exit(1)


if __name__ == "__main__":
    main()
