"""statamic-mcp CLI entry point.

``serve`` runs the MCP server; ``tools`` and ``call`` drive the same tool
routers directly, which is handy for scripting and for checking permission
setups. ``call --web`` runs the invocation in hosted context.
"""

import json
from typing import Optional

import click

from statamic_mcp.cli.output import emit, emit_envelope, emit_error
from statamic_mcp.config import ServerConfig
from statamic_mcp.core.cache import CacheInvalidator
from statamic_mcp.core.context import CLI_CONTEXT, WEB_CONTEXT, sync_request_context
from statamic_mcp.core.permissions import principal_from_user
from statamic_mcp.server import HTTP_TRANSPORT, STDIO_TRANSPORT, build_repositories
from statamic_mcp.server import main as run_server
from statamic_mcp.tools.unified import register_unified_tools


class _ToolCollector:
    """Stand-in for FastMCP that records registrations without serving."""

    def __init__(self) -> None:
        self.names = []

    def tool(self, name: str, **_: object):
        self.names.append(name)
        return lambda func: func


@click.group()
@click.option(
    "--config",
    "config_file",
    envvar="STATAMIC_MCP_CONFIG_FILE",
    type=click.Path(exists=False),
    help="Path to a statamic-mcp.toml file",
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str]) -> None:
    """statamic-mcp - MCP server for Statamic-style content management."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = ServerConfig.from_env(config_file)


@cli.command()
@click.option(
    "--transport",
    type=click.Choice([STDIO_TRANSPORT, HTTP_TRANSPORT]),
    default=STDIO_TRANSPORT,
    show_default=True,
)
def serve(transport: str) -> None:
    """Run the MCP server."""
    run_server(transport)


def _build_tools(config: ServerConfig):
    repositories = build_repositories(config)
    tools = register_unified_tools(
        _ToolCollector(), config, repositories=repositories, cache=CacheInvalidator()
    )
    return repositories, {tool.tool_name: tool for tool in tools.values()}


@cli.command("tools")
@click.pass_context
def list_tools(ctx: click.Context) -> None:
    """List registered tools and their actions."""
    _, tools = _build_tools(ctx.obj["config"])
    emit(
        {
            name: {"description": tool.description, "actions": tool.router.allowed_actions()}
            for name, tool in tools.items()
        }
    )


@cli.command()
@click.argument("tool_name")
@click.argument("arguments", default="{}")
@click.option("--web", is_flag=True, help="Run in hosted (web) context")
@click.option("--as-user", "as_user", help="Email of the acting user for --web")
@click.pass_context
def call(ctx: click.Context, tool_name: str, arguments: str, web: bool, as_user: Optional[str]) -> None:
    """Invoke TOOL_NAME with a JSON ARGUMENTS object."""
    config: ServerConfig = ctx.obj["config"]
    config.setup_logging()
    repositories, tools = _build_tools(config)

    tool = tools.get(tool_name)
    if tool is None:
        emit_error(
            f"Unknown tool: {tool_name}",
            code="NOT_FOUND",
            error_type="not_found",
            details={"available_tools": sorted(tools)},
        )

    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError as exc:
        emit_error(f"Invalid JSON arguments: {exc}")
    if not isinstance(parsed, dict):
        emit_error("Arguments must be a JSON object")

    principal = None
    if as_user:
        user = repositories.users.find_by_email(as_user)
        if user is None:
            emit_error(f"User not found: {as_user}", code="NOT_FOUND", error_type="not_found")
        principal = principal_from_user(user, repositories.roles, repositories.groups)

    with sync_request_context(
        execution_context=WEB_CONTEXT if web else CLI_CONTEXT,
        principal=principal,
    ):
        envelope = tool.handle(parsed)
    emit_envelope(envelope)


if __name__ == "__main__":
    cli()
