"""Core request pipeline pieces: responses, context, permissions, audit, and the content store."""

from statamic_mcp.core.permissions import PermissionResolver, Principal, resolve_permissions
from statamic_mcp.core.requests import ToolRequest
from statamic_mcp.core.responses import ToolResponse, error_response, success_response

__all__ = [
    "PermissionResolver",
    "Principal",
    "ToolRequest",
    "ToolResponse",
    "error_response",
    "resolve_permissions",
    "success_response",
]
