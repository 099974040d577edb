"""Unified system tool: environment info, health, caches and runtime config."""

from __future__ import annotations

import json
import logging
import platform
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from statamic_mcp.config import (
    READABLE_SETTING_PREFIXES,
    WRITABLE_SETTING_PREFIXES,
    ServerConfig,
)
from statamic_mcp.core.cache import CACHE_SEGMENTS, CacheInvalidator
from statamic_mcp.core.health import check_health, default_checkers
from statamic_mcp.core.naming import canonical_tool
from statamic_mcp.core.observability import audit_log
from statamic_mcp.core.repositories import Repositories
from statamic_mcp.core.requests import ToolRequest
from statamic_mcp.core.responses import (
    ToolResponse,
    forbidden_error,
    not_found_error,
    success_response,
    validation_error,
)
from statamic_mcp.tools.unified.base import DomainTool, tool_arguments
from statamic_mcp.tools.unified.router import ActionDefinition

logger = logging.getLogger(__name__)

_CACHE_TYPES = CACHE_SEGMENTS + ("all",)

_ACTION_SUMMARY = {
    "info": "Server, runtime and content overview.",
    "health": "Dependency health report.",
    "cache_status": "Per-segment cache bookkeeping.",
    "cache_clear": "Clear one cache segment or all of them.",
    "cache_warm": "Warm cache segments that support warming.",
    "config_get": "Read an allow-listed configuration key.",
    "config_set": "Override an allow-listed configuration key at runtime.",
}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _matches_prefix(key: str, prefixes: tuple) -> bool:
    return any(key == p.rstrip(".") or key.startswith(p) for p in prefixes)


class SystemTool(DomainTool):
    tool_name = "statamic.system"
    domain = "system"
    label = "System"
    description = "System information, health checks, cache management and runtime configuration."
    primary_use = "Operate the installation: diagnose problems and refresh caches after changes."
    features = (
        "system_info",
        "health_monitoring",
        "cache_management",
        "runtime_configuration",
        "audit_logging",
    )
    patterns = {
        "diagnosis": "health -> cache_status -> cache_clear",
        "after_bulk_changes": "cache_clear stache -> cache_warm",
        "tool_enablement": "config_get statamic_mcp.tools -> config_set",
    }
    related_tools = ("statamic.blueprints", "statamic.structures")

    def build_actions(self) -> List[ActionDefinition]:
        return [
            ActionDefinition(
                name="info",
                handler=self._info,
                summary=_ACTION_SUMMARY["info"],
                examples=({"action": "info"},),
            ),
            ActionDefinition(
                name="health",
                handler=self._health,
                summary=_ACTION_SUMMARY["health"],
                examples=({"action": "health"},),
            ),
            ActionDefinition(
                name="cache_status",
                handler=self._cache_status,
                summary=_ACTION_SUMMARY["cache_status"],
                examples=({"action": "cache_status"},),
            ),
            ActionDefinition(
                name="cache_clear",
                handler=self._cache_clear,
                summary=_ACTION_SUMMARY["cache_clear"],
                destructive=True,
                examples=({"action": "cache_clear", "cache_type": "stache"},),
            ),
            ActionDefinition(
                name="cache_warm",
                handler=self._cache_warm,
                summary=_ACTION_SUMMARY["cache_warm"],
                examples=({"action": "cache_warm"},),
            ),
            ActionDefinition(
                name="config_get",
                handler=self._config_get,
                summary=_ACTION_SUMMARY["config_get"],
                required=("config_key",),
                examples=({"action": "config_get", "config_key": "app.env"},),
            ),
            ActionDefinition(
                name="config_set",
                handler=self._config_set,
                summary=_ACTION_SUMMARY["config_set"],
                required=("config_key",),
                destructive=True,
                examples=(
                    {
                        "action": "config_set",
                        "config_key": "statamic_mcp.tools.entries.web_enabled",
                        "config_value": True,
                    },
                ),
            ),
        ]

    def check_target(self, definition: ActionDefinition, request: ToolRequest) -> Optional[ToolResponse]:
        if definition.name in ("cache_clear", "cache_warm") and request.cache_type:
            if request.cache_type not in _CACHE_TYPES:
                return validation_error(
                    f"Unknown cache type: {request.cache_type}",
                    field="cache_type",
                    remediation=f"Use one of: {', '.join(_CACHE_TYPES)}",
                )
        return None

    def missing_field_message(self, field_name: str, action: str) -> Optional[str]:
        if field_name == "config_key":
            return "Config key is required"
        return None

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _info(self, *, request: ToolRequest) -> ToolResponse:
        info: Dict[str, Any] = {
            "server_name": self.config.server_name,
            "server_version": self.config.server_version,
            "python_version": platform.python_version(),
            "platform": platform.platform(),
            "app_name": self.config.app.name,
            "environment": self.config.app.env,
            "debug_mode": self.config.app.debug,
            "timezone": self.config.app.timezone,
            "execution_context": self.execution_context(),
        }
        if request.include_details:
            repos = self.repositories
            info.update(
                {
                    "sites": [s.to_dict() for s in repos.sites.all()],
                    "collections_count": len(repos.collections.all()),
                    "taxonomies_count": len(repos.taxonomies.all()),
                    "navigation_count": len(repos.navigations.all()),
                    "global_sets_count": len(repos.global_sets.all()),
                    "asset_containers_count": len(repos.containers.all()),
                    "blueprint_count": len(repos.blueprints.all()),
                    "users_count": len(repos.users.all()),
                }
            )
        return success_response(system_info=info)

    def _health(self, *, request: ToolRequest) -> ToolResponse:
        result = check_health(default_checkers(self.config, self.repositories, self.cache))
        if not result.is_healthy:
            logger.warning("Health check reported %s", result.status.value)
        return success_response(health=result.to_dict())

    def _cache_status(self, *, request: ToolRequest) -> ToolResponse:
        return success_response(
            cache_status=self.cache.status(),
            cache_types=list(CACHE_SEGMENTS),
        )

    def _cache_clear(self, *, request: ToolRequest) -> ToolResponse:
        cache_type = request.cache_type or "all"
        result = self.cache.clear_caches([cache_type])
        logger.info("Cleared cache: %s", cache_type)
        warnings = [
            f"{name}: {detail['message']}"
            for name, detail in result["details"].items()
            if not detail["success"]
        ]
        return success_response(
            cache_cleared=result["details"],
            cleared_types=result["cleared_types"],
            timestamp=_timestamp(),
            warnings=warnings or None,
        )

    def _cache_warm(self, *, request: ToolRequest) -> ToolResponse:
        cache_type = request.cache_type or "stache"
        warmed = self.cache.warm([cache_type])
        warnings = [
            f"{name}: {outcome['reason']}"
            for name, outcome in warmed.items()
            if outcome["status"] == "failed"
        ]
        return success_response(cache_warmed=warmed, timestamp=_timestamp(), warnings=warnings or None)

    def _config_get(self, *, request: ToolRequest) -> ToolResponse:
        key = request.config_key
        if not _matches_prefix(key, READABLE_SETTING_PREFIXES):
            return forbidden_error(f"Access to config key '{key}' is restricted")
        try:
            value = self.config.get_setting(key)
        except KeyError:
            return not_found_error("Config key", key)
        return success_response(config={"key": key, "value": value})

    def _config_set(self, *, request: ToolRequest) -> ToolResponse:
        key = request.config_key
        if not _matches_prefix(key, WRITABLE_SETTING_PREFIXES):
            return forbidden_error(f"Setting config key '{key}' is restricted")

        value = request.config_value
        if isinstance(value, str) and value.lstrip().startswith(("{", "[")):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return validation_error("Invalid JSON value provided", field="config_value")

        try:
            previous = self.config.get_setting(key)
        except KeyError:
            previous = None
        try:
            stored = self.config.set_setting(key, value)
        except KeyError:
            return not_found_error("Config key", key)
        except ValueError as exc:
            return validation_error(str(exc), field="config_value")

        audit_log("config_change", key=key, previous=previous, value=stored)
        logger.info("Runtime config override: %s", key)
        return success_response(config={"key": key, "value": stored, "updated": True})


def register_unified_system_tool(
    mcp: FastMCP,
    config: ServerConfig,
    *,
    repositories: Repositories,
    cache: CacheInvalidator,
) -> SystemTool:
    """Register the consolidated system tool."""

    tool = SystemTool(config, repositories, cache)

    @canonical_tool(
        mcp,
        canonical_name=tool.tool_name,
    )
    def system(
        action: str,
        cache_type: Optional[str] = None,
        config_key: Optional[str] = None,
        config_value: Any = None,
        include_details: Optional[bool] = None,
        dry_run: Optional[bool] = None,
        help_topic: Optional[str] = None,
    ) -> dict:
        """Operate the installation via `action`.

        Args:
            action: info, health, cache_status, cache_clear, cache_warm,
                config_get, config_set (or help, discover, examples).
            cache_type: stache, static, views, app, config, route, images or
                all. Defaults to all for cache_clear and stache for cache_warm.
            config_key: Dotted key for config_get/config_set.
            config_value: New value for config_set; JSON strings are decoded.
            include_details: Include content counts in info.
            dry_run: Preview destructive actions without executing them.
            help_topic: Topic for the help action.
        """

        return tool.handle(
            tool_arguments(
                action=action,
                cache_type=cache_type,
                config_key=config_key,
                config_value=config_value,
                include_details=include_details,
                dry_run=dry_run,
                help_topic=help_topic,
            )
        )

    logger.debug("Registered unified system tool")
    return tool


__all__ = [
    "SystemTool",
    "register_unified_system_tool",
]
