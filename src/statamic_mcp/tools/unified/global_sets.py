"""Unified globals tool: per-site values of global sets."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from statamic_mcp.config import ServerConfig
from statamic_mcp.core.cache import CacheInvalidator, recommended_segments
from statamic_mcp.core.models import GlobalSet
from statamic_mcp.core.naming import canonical_tool
from statamic_mcp.core.repositories import Repositories
from statamic_mcp.core.requests import ToolRequest, paginate
from statamic_mcp.core.responses import (
    ToolResponse,
    missing_fields_error,
    not_found_error,
    success_response,
    validation_error,
)
from statamic_mcp.tools.unified.base import DomainTool, tool_arguments
from statamic_mcp.tools.unified.router import ActionDefinition

logger = logging.getLogger(__name__)

_CACHE_SEGMENTS = recommended_segments("global")

_ACTION_SUMMARY = {
    "list": "List global sets and whether they hold values for the site.",
    "get": "Retrieve a global set's values for a site.",
    "update": "Merge values into a global set for a site.",
}


def _handle_of(request: ToolRequest) -> Optional[str]:
    return request.global_set or request.handle


class GlobalsTool(DomainTool):
    tool_name = "statamic.globals"
    domain = "globals"
    label = "Globals"
    description = "Read and update global set values per site."
    primary_use = "Site-wide settings such as contact details, social links, and footer content."
    features = ("multi_site_values", "merge_updates", "cache_management", "audit_logging")
    patterns = {
        "settings_review": "list -> get",
        "settings_update": "get current values -> update changed fields",
    }
    related_tools = ("statamic.blueprints", "statamic.structures")

    def build_actions(self) -> List[ActionDefinition]:
        return [
            ActionDefinition(
                name="list",
                handler=self._list,
                summary=_ACTION_SUMMARY["list"],
                examples=({"action": "list"},),
            ),
            ActionDefinition(
                name="get",
                handler=self._get,
                summary=_ACTION_SUMMARY["get"],
                examples=({"action": "get", "global_set": "settings", "site": "default"},),
            ),
            ActionDefinition(
                name="update",
                handler=self._update,
                summary=_ACTION_SUMMARY["update"],
                required=("data",),
                destructive=True,
                examples=(
                    {"action": "update", "global_set": "settings", "data": {"site_name": "My Site"}},
                ),
            ),
        ]

    def check_target(self, definition: ActionDefinition, request: ToolRequest) -> Optional[ToolResponse]:
        if definition.name in ("get", "update"):
            handle = _handle_of(request)
            if not handle:
                return missing_fields_error(
                    ["global_set"],
                    message="Global set handle is required for global operations",
                )
            if self.repositories.global_sets.find(handle) is None:
                return not_found_error("Global set", handle)
        if not self.valid_site(request.site):
            return validation_error(f"Invalid site handle: {request.site}", field="site")
        return None

    def missing_field_message(self, field_name: str, action: str) -> Optional[str]:
        if field_name == "data":
            return f"Data is required for {action} action"
        return None

    def _summary(self, global_set: GlobalSet, site: str) -> Dict[str, Any]:
        return {
            **global_set.to_dict(),
            "site": site,
            "localized": len(global_set.sites) > 1,
            "has_values": bool(global_set.values_for(site)),
        }

    def _list(self, *, request: ToolRequest) -> ToolResponse:
        site = request.site or self.default_site()
        page, pagination = paginate(self.repositories.global_sets.all(), request)
        return success_response(
            globals=[self._summary(g, site) for g in page],
            pagination=pagination,
            site=site,
        )

    def _get(self, *, request: ToolRequest) -> ToolResponse:
        handle = _handle_of(request)
        global_set = self.repositories.global_sets.find(handle)
        if global_set is None:
            return not_found_error("Global set", handle)
        site = request.site or self.default_site()
        return success_response(**{"global": global_set.to_dict(site)})

    def _update(self, *, request: ToolRequest) -> ToolResponse:
        handle = _handle_of(request)
        global_set = self.repositories.global_sets.find(handle)
        if global_set is None:
            return not_found_error("Global set", handle)

        site = request.site or self.default_site()
        if global_set.sites and site not in global_set.sites:
            return validation_error(f"Global set not available in site: {site}", field="site")

        values = global_set.values_for(site)
        values.update(request.data or {})
        global_set.values[site] = values
        self.repositories.global_sets.save(global_set)
        logger.info("Updated global set %s (%s)", handle, site)

        return success_response(
            {
                "global": {
                    **global_set.to_dict(site),
                    "updated_fields": list((request.data or {}).keys()),
                }
            },
            updated=True,
            cache=self.invalidate(_CACHE_SEGMENTS),
        )


def register_unified_globals_tool(
    mcp: FastMCP,
    config: ServerConfig,
    *,
    repositories: Repositories,
    cache: CacheInvalidator,
) -> GlobalsTool:
    """Register the consolidated globals tool."""

    tool = GlobalsTool(config, repositories, cache)

    @canonical_tool(
        mcp,
        canonical_name=tool.tool_name,
    )
    def globals_(
        action: str,
        global_set: Optional[str] = None,
        handle: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        site: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        dry_run: Optional[bool] = None,
        help_topic: Optional[str] = None,
    ) -> dict:
        """Manage global set values via `action`.

        Args:
            action: One of list, get, update (or help, discover, examples).
            global_set: Global set handle for get/update.
            handle: Alias for ``global_set``.
            data: Values to merge on update.
            site: Site handle (defaults to the first configured site).
            limit: Page size for list.
            offset: Page offset for list.
            dry_run: Preview update without executing it.
            help_topic: Topic for the help action.
        """

        return tool.handle(
            tool_arguments(
                action=action,
                global_set=global_set,
                handle=handle,
                data=data,
                site=site,
                limit=limit,
                offset=offset,
                dry_run=dry_run,
                help_topic=help_topic,
            )
        )

    logger.debug("Registered unified globals tool")
    return tool


__all__ = [
    "GlobalsTool",
    "register_unified_globals_tool",
]
