"""Self-description payloads for the ``help``, ``discover`` and ``examples`` actions.

These actions introspect a tool's own registration map and never touch
content, so the router answers them before any validation or permission
check.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

from statamic_mcp.core.context import WEB_CONTEXT
from statamic_mcp.core.requests import ToolRequest
from statamic_mcp.core.responses import ToolResponse, success_response

if TYPE_CHECKING:  # pragma: no cover - import-time typing only
    from statamic_mcp.tools.unified.base import DomainTool

DISCOVERY_ACTIONS = ("help", "discover", "examples")

HELP_TOPICS: Dict[str, str] = {
    "actions": "Available actions and their purposes",
    "types": "Resource types and their properties",
    "examples": "Common usage patterns and examples",
    "safety": "Safety protocols and best practices",
    "patterns": "Advanced patterns and workflows",
    "context": "Execution context, web access, and permissions",
}


def _actions_help(tool: "DomainTool") -> List[Dict[str, Any]]:
    return [d.describe() for d in tool.router.definitions()]


def _examples(tool: "DomainTool") -> Dict[str, List[Dict[str, Any]]]:
    return {
        d.name: [dict(example) for example in d.examples]
        for d in tool.router.definitions()
        if d.examples
    }


def _safety_help(tool: "DomainTool") -> Dict[str, Any]:
    destructive = [d.name for d in tool.router.definitions() if d.destructive]
    return {
        "destructive_actions": destructive,
        "dry_run": "Destructive actions accept dry_run=true to preview without changes",
        "confirmation": list(tool.confirmation_required),
        "cache": "Write actions clear the affected cache segments automatically",
    }


def _context_help(tool: "DomainTool") -> Dict[str, Any]:
    tool_config = tool.tool_config
    mode = tool.execution_context()
    return {
        "context": mode,
        "web_enabled": tool_config.web_enabled,
        "audit_logging": tool_config.audit_logging,
        "permissions_enforced": mode == WEB_CONTEXT,
        "note": (
            "Direct (CLI) invocations skip permission checks; hosted (web) "
            "invocations require an authenticated user holding the mapped permissions"
        ),
    }


def build_help(tool: "DomainTool", request: ToolRequest) -> ToolResponse:
    """Help overview, or a single topic when ``help_topic`` is given."""
    topic = (request.help_topic or "").strip().lower()

    if topic == "actions":
        return success_response(topic=topic, actions=_actions_help(tool))
    if topic == "types":
        return success_response(topic=topic, types=dict(tool.types))
    if topic == "examples":
        return success_response(topic=topic, examples=_examples(tool))
    if topic == "safety":
        return success_response(topic=topic, safety=_safety_help(tool))
    if topic == "patterns":
        return success_response(topic=topic, patterns=dict(tool.patterns))
    if topic == "context":
        return success_response(topic=topic, context=_context_help(tool))

    return success_response(
        help={
            "tool": tool.tool_name,
            "domain": tool.domain,
            "overview": tool.description,
            "actions": tool.router.describe(),
            "available_topics": dict(HELP_TOPICS),
            "quick_start": {
                "discovery": "Use action='discover' to explore capabilities",
                "examples": "Use action='examples' for usage patterns",
                "safety": "Use dry_run=true to preview destructive operations",
            },
        }
    )


def build_discover(tool: "DomainTool", request: ToolRequest) -> ToolResponse:
    return success_response(
        discovery={
            "domain": tool.domain,
            "tool_name": tool.tool_name,
            "capabilities": {
                "actions": tool.router.describe(),
                "types": dict(tool.types),
                "features": list(tool.features),
            },
            "agent_guidance": {
                "primary_use": tool.primary_use,
                "context_awareness": _context_help(tool),
            },
            "integration": {
                "related_tools": list(tool.related_tools),
                "workflows": dict(tool.patterns),
            },
        }
    )


def build_examples(tool: "DomainTool", request: ToolRequest) -> ToolResponse:
    return success_response(
        examples={
            "tool": tool.tool_name,
            "actions": _examples(tool),
            "common_patterns": dict(tool.patterns),
            "error_handling": {
                "validation": "Missing or malformed fields are reported before anything runs",
                "not_found": "Referenced resources that do not exist",
                "permission": "Hosted callers lacking a mapped permission",
                "conflict": "Duplicate handles or deletes blocked by dependent content",
            },
        }
    )


DISCOVERY_BUILDERS = {
    "help": build_help,
    "discover": build_discover,
    "examples": build_examples,
}
