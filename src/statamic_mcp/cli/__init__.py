"""Command-line interface: run the server or invoke tools directly."""

from statamic_mcp.cli.main import cli

__all__ = ["cli"]
