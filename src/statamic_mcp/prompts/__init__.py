"""MCP prompts that teach agents how to drive the Statamic tools."""

from statamic_mcp.prompts.workflows import register_workflow_prompts

__all__ = ["register_workflow_prompts"]
