"""Unified structures tool: collections, taxonomies, navigations, sites and global sets.

Sites are read-only here; they are defined by server configuration
(``content.sites`` / ``STATAMIC_MCP_SITES``) or the content seed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from mcp.server.fastmcp import FastMCP

from statamic_mcp.config import ServerConfig
from statamic_mcp.core.cache import CacheInvalidator, recommended_segments
from statamic_mcp.core.models import Collection, GlobalSet, Navigation, Taxonomy
from statamic_mcp.core.naming import canonical_tool
from statamic_mcp.core.repositories import HandleRepository, Repositories
from statamic_mcp.core.requests import ToolRequest, paginate
from statamic_mcp.core.responses import (
    ToolResponse,
    conflict_error,
    missing_fields_error,
    not_found_error,
    success_response,
    validation_error,
)
from statamic_mcp.core.slugs import is_valid_handle
from statamic_mcp.tools.unified.base import DomainTool, tool_arguments
from statamic_mcp.tools.unified.router import ActionDefinition

logger = logging.getLogger(__name__)

_CACHE_SEGMENTS = recommended_segments("collection")

_ACTION_SUMMARY = {
    "list": "List structures of the given type.",
    "get": "Retrieve one structure with usage counts.",
    "create": "Create a collection, taxonomy, navigation or global set.",
    "update": "Update basic settings such as the title.",
    "delete": "Delete a structure; non-empty collections and taxonomies are refused.",
    "configure": "Change any setting, including sites and relationships.",
}


@dataclass(frozen=True)
class StructureKind:
    """How one structure type maps onto its repository and model.

    Attributes:
        type: Request ``type`` value
        label: Human name used in messages
        repository: Selects the handle repository from the bundle
        factory: Builds a new record from a handle and settings
        update_fields: Settings ``update`` may change
        config_fields: Settings ``configure`` may change
        dependents: Optional ``(repositories, handle) -> (count, noun)`` for delete protection
    """

    type: str
    label: str
    repository: Callable[[Repositories], HandleRepository[Any]]
    factory: Callable[..., Any]
    update_fields: Tuple[str, ...]
    config_fields: Tuple[str, ...]
    dependents: Optional[Callable[[Repositories, str], Tuple[int, str]]] = None


STRUCTURE_KINDS: Dict[str, StructureKind] = {
    "collection": StructureKind(
        type="collection",
        label="Collection",
        repository=lambda r: r.collections,
        factory=Collection,
        update_fields=("title", "route", "dated", "blueprint"),
        config_fields=("title", "route", "dated", "blueprint", "sites", "taxonomies"),
        dependents=lambda r, handle: (r.entries.count(handle), "entries"),
    ),
    "taxonomy": StructureKind(
        type="taxonomy",
        label="Taxonomy",
        repository=lambda r: r.taxonomies,
        factory=Taxonomy,
        update_fields=("title",),
        config_fields=("title", "sites", "collections"),
        dependents=lambda r, handle: (r.terms.count(handle), "terms"),
    ),
    "navigation": StructureKind(
        type="navigation",
        label="Navigation",
        repository=lambda r: r.navigations,
        factory=Navigation,
        update_fields=("title", "max_depth"),
        config_fields=("title", "max_depth", "collections", "tree"),
    ),
    "globalset": StructureKind(
        type="globalset",
        label="Global set",
        repository=lambda r: r.global_sets,
        factory=GlobalSet,
        update_fields=("title",),
        config_fields=("title", "sites"),
    ),
}


class StructuresTool(DomainTool):
    tool_name = "statamic.structures"
    domain = "structures"
    label = "Structures"
    description = (
        "Manage collections, taxonomies, navigations, sites and global sets: "
        "list, get, create, update, delete, configure."
    )
    primary_use = "Shape the content architecture that entries, terms and globals live in."
    types = {
        "collection": "Group of entries sharing a blueprint and routing",
        "taxonomy": "Group of terms used to classify entries",
        "navigation": "Hand-built menu tree",
        "site": "Configured site/locale (read-only)",
        "globalset": "Container of site-wide values",
    }
    features = (
        "multi_type_management",
        "deletion_protection",
        "relationship_configuration",
        "cache_management",
        "audit_logging",
    )
    patterns = {
        "content_modeling": "structures create collection -> blueprints generate -> entries create",
        "taxonomy_setup": "structures create taxonomy -> configure collection taxonomies -> terms create",
        "cleanup": "get to check counts -> delete",
    }
    related_tools = ("statamic.entries", "statamic.terms", "statamic.globals", "statamic.blueprints")

    typed_required = {
        (kind, action): fields
        for kind in ("collection", "taxonomy", "navigation", "globalset", "site")
        for action, fields in (
            ("get", ("handle",)),
            ("update", ("handle", "data")),
            ("configure", ("handle", "data")),
            ("delete", ("handle",)),
        )
        if kind != "site" or action == "get"
    }

    def build_actions(self) -> List[ActionDefinition]:
        writable = tuple(STRUCTURE_KINDS)

        def handlers(method: Callable[..., ToolResponse], kinds: Tuple[str, ...]) -> Dict[str, Callable[..., ToolResponse]]:
            return {kind: method for kind in kinds}

        return [
            self.typed_action(
                "list",
                {**handlers(self._list, writable), "site": self._list_sites},
                summary=_ACTION_SUMMARY["list"],
                examples=({"action": "list", "type": "collection"},),
            ),
            self.typed_action(
                "get",
                {**handlers(self._get, writable), "site": self._get_site},
                summary=_ACTION_SUMMARY["get"],
                examples=({"action": "get", "type": "taxonomy", "handle": "tags"},),
            ),
            self.typed_action(
                "create",
                handlers(self._create, writable),
                summary=_ACTION_SUMMARY["create"],
                examples=(
                    {"action": "create", "type": "collection", "data": {"handle": "events", "title": "Events"}},
                ),
            ),
            self.typed_action(
                "update",
                handlers(self._update, writable),
                summary=_ACTION_SUMMARY["update"],
                destructive=True,
                examples=({"action": "update", "type": "collection", "handle": "events", "data": {"title": "Shows"}},),
            ),
            self.typed_action(
                "delete",
                handlers(self._delete, writable),
                summary=_ACTION_SUMMARY["delete"],
                destructive=True,
                examples=({"action": "delete", "type": "navigation", "handle": "footer"},),
            ),
            self.typed_action(
                "configure",
                handlers(self._configure, writable),
                summary=_ACTION_SUMMARY["configure"],
                destructive=True,
                examples=(
                    {
                        "action": "configure",
                        "type": "collection",
                        "handle": "blog",
                        "data": {"taxonomies": ["tags"]},
                    },
                ),
            ),
        ]

    def missing_field_message(self, field_name: str, action: str) -> Optional[str]:
        if field_name == "handle":
            return f"Handle is required for {action} action"
        if field_name == "data":
            return f"Data is required for {action} action"
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _kind(self, request: ToolRequest) -> StructureKind:
        return STRUCTURE_KINDS[request.type]

    def _describe(self, kind: StructureKind, record: Any) -> Dict[str, Any]:
        result = record.to_dict()
        if kind.dependents is not None:
            count, noun = kind.dependents(self.repositories, record.handle)
            result[f"{noun}_count"] = count
        return result

    def _apply(
        self, kind: StructureKind, request: ToolRequest, allowed: Tuple[str, ...]
    ) -> Tuple[Optional[Any], List[str], Optional[ToolResponse]]:
        repository = kind.repository(self.repositories)
        record = repository.find(request.handle)
        if record is None:
            return None, [], not_found_error(kind.label, request.handle)

        changes = {k: v for k, v in (request.data or {}).items() if k in allowed}
        ignored = sorted(set(request.data or {}) - set(changes) - {"handle"})
        if not changes:
            return None, [], validation_error(
                f"No editable settings supplied; allowed: {', '.join(allowed)}",
                field="data",
            )

        sites = changes.get("sites")
        if sites is not None:
            unknown = [s for s in sites if s not in self.repositories.site_handles()]
            if unknown:
                return None, [], validation_error(f"Invalid site handle: {unknown[0]}", field="sites")

        record = replace(record, **changes)
        repository.save(record)
        return record, ignored, None

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _list(self, *, request: ToolRequest) -> ToolResponse:
        kind = self._kind(request)
        records = kind.repository(self.repositories).all()
        page, pagination = paginate(records, request)
        if request.include_details:
            items = [self._describe(kind, r) for r in page]
        else:
            items = [{"handle": r.handle, "title": r.to_dict()["title"]} for r in page]
        return success_response(
            {f"{kind.type}s": items},
            type=kind.type,
            pagination=pagination,
        )

    def _get(self, *, request: ToolRequest) -> ToolResponse:
        kind = self._kind(request)
        record = kind.repository(self.repositories).find(request.handle)
        if record is None:
            return not_found_error(kind.label, request.handle)
        return success_response({kind.type: self._describe(kind, record)})

    def _create(self, *, request: ToolRequest) -> ToolResponse:
        kind = self._kind(request)
        data: Dict[str, Any] = dict(request.data or {})
        handle = data.pop("handle", None) or request.handle
        if not handle:
            return missing_fields_error(["handle"], message=f"{kind.label} handle is required")
        if not is_valid_handle(handle):
            return validation_error(f"Invalid {kind.label.lower()} handle: {handle}", field="handle")

        repository = kind.repository(self.repositories)
        if repository.find(handle) is not None:
            return conflict_error(f"{kind.label} '{handle}' already exists", details={"handle": handle})

        settings = {k: v for k, v in data.items() if k in kind.config_fields}
        if "sites" in kind.config_fields and "sites" not in settings:
            settings["sites"] = [self.default_site()]
        record = kind.factory(handle=handle, **settings)
        repository.save(record)
        logger.info("Created %s %s", kind.type, handle)

        return success_response(
            {kind.type: {**record.to_dict(), "created": True}},
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _update(self, *, request: ToolRequest) -> ToolResponse:
        kind = self._kind(request)
        record, ignored, failure = self._apply(kind, request, kind.update_fields)
        if failure is not None:
            return failure
        warnings = [f"Ignored settings: {', '.join(ignored)}"] if ignored else None
        return success_response(
            {kind.type: {**record.to_dict(), "updated": True}},
            warnings=warnings,
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _configure(self, *, request: ToolRequest) -> ToolResponse:
        kind = self._kind(request)
        record, ignored, failure = self._apply(kind, request, kind.config_fields)
        if failure is not None:
            return failure
        warnings = [f"Ignored settings: {', '.join(ignored)}"] if ignored else None
        return success_response(
            {kind.type: {"handle": record.handle, "config": record.to_dict()}},
            configured=True,
            warnings=warnings,
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _delete(self, *, request: ToolRequest) -> ToolResponse:
        kind = self._kind(request)
        repository = kind.repository(self.repositories)
        handle = request.handle
        if repository.find(handle) is None:
            return not_found_error(kind.label, handle)

        if kind.dependents is not None:
            count, noun = kind.dependents(self.repositories, handle)
            if count > 0:
                return conflict_error(
                    f"Cannot delete {kind.type} '{handle}' - it contains {count} {noun}",
                    details={"handle": handle, f"{noun}_count": count},
                )

        repository.delete(handle)
        logger.info("Deleted %s %s", kind.type, handle)
        return success_response(
            {kind.type: {"handle": handle, "deleted": True}},
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _list_sites(self, *, request: ToolRequest) -> ToolResponse:
        sites = [s.to_dict() for s in self.repositories.sites.all()]
        return success_response(sites=sites, default=self.default_site(), multisite=len(sites) > 1)

    def _get_site(self, *, request: ToolRequest) -> ToolResponse:
        site = self.repositories.sites.find(request.handle)
        if site is None:
            return not_found_error("Site", request.handle)
        return success_response(site={**site.to_dict(), "default": site.handle == self.default_site()})


def register_unified_structures_tool(
    mcp: FastMCP,
    config: ServerConfig,
    *,
    repositories: Repositories,
    cache: CacheInvalidator,
) -> StructuresTool:
    """Register the consolidated structures tool."""

    tool = StructuresTool(config, repositories, cache)

    @canonical_tool(
        mcp,
        canonical_name=tool.tool_name,
    )
    def structures(
        action: str,
        type: Optional[str] = None,
        handle: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        include_details: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        dry_run: Optional[bool] = None,
        help_topic: Optional[str] = None,
    ) -> dict:
        """Manage content structures via `action` and `type`.

        Args:
            action: list, get, create, update, delete, configure (or help,
                discover, examples).
            type: collection, taxonomy, navigation, site, or globalset.
            handle: Structure handle (or ``data.handle`` on create).
            data: Settings for create/update/configure.
            include_details: Include usage counts in list results.
            limit: Page size for list.
            offset: Page offset for list.
            dry_run: Preview destructive actions without executing them.
            help_topic: Topic for the help action.
        """

        return tool.handle(
            tool_arguments(
                action=action,
                type=type,
                handle=handle,
                data=data,
                include_details=include_details,
                limit=limit,
                offset=offset,
                dry_run=dry_run,
                help_topic=help_topic,
            )
        )

    logger.debug("Registered unified structures tool")
    return tool


__all__ = [
    "STRUCTURE_KINDS",
    "StructureKind",
    "StructuresTool",
    "register_unified_structures_tool",
]
