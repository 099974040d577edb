"""Unified entries tool: CRUD and publication control for collection entries."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from statamic_mcp.config import ServerConfig
from statamic_mcp.core.cache import CacheInvalidator, recommended_segments
from statamic_mcp.core.models import Entry, utc_now
from statamic_mcp.core.naming import canonical_tool
from statamic_mcp.core.repositories import Repositories
from statamic_mcp.core.requests import ToolRequest, paginate
from statamic_mcp.core.responses import (
    ErrorCode,
    ErrorType,
    ToolResponse,
    conflict_error,
    error_response,
    not_found_error,
    success_response,
    validation_error,
)
from statamic_mcp.core.slugs import slugify
from statamic_mcp.tools.unified.base import DomainTool, tool_arguments
from statamic_mcp.tools.unified.router import ActionDefinition

logger = logging.getLogger(__name__)

_CACHE_SEGMENTS = recommended_segments("content")

_ACTION_SUMMARY = {
    "list": "List entries in a collection with filters and pagination.",
    "get": "Retrieve one entry with its full data.",
    "create": "Create an entry; slug is derived from the title when omitted.",
    "update": "Merge data into an existing entry.",
    "delete": "Delete an entry.",
    "publish": "Mark an entry as published.",
    "unpublish": "Mark an entry as a draft.",
}


class EntriesTool(DomainTool):
    tool_name = "statamic.entries"
    domain = "entries"
    label = "Entries"
    description = "Manage collection entries: list, get, create, update, delete, publish, unpublish."
    primary_use = (
        "Comprehensive management of collection entries with CRUD operations, "
        "publication control, and multi-site support."
    )
    features = (
        "collection_based_management",
        "multi_site_localization",
        "publication_control",
        "filtering_and_pagination",
        "cache_management",
        "audit_logging",
    )
    patterns = {
        "entry_discovery": "list -> filter -> get",
        "entry_creation": "statamic.blueprints get -> create -> publish",
        "entry_modification": "get current state -> update with changed fields",
        "publication_management": "create draft -> review -> publish -> unpublish",
    }
    related_tools = ("statamic.blueprints", "statamic.structures", "statamic.terms")

    def build_actions(self) -> List[ActionDefinition]:
        return [
            ActionDefinition(
                name="list",
                handler=self._list,
                summary=_ACTION_SUMMARY["list"],
                required=("collection",),
                examples=({"action": "list", "collection": "articles", "limit": 20},),
            ),
            ActionDefinition(
                name="get",
                handler=self._get,
                summary=_ACTION_SUMMARY["get"],
                required=("collection", "id"),
                examples=({"action": "get", "collection": "articles", "id": "article-123"},),
            ),
            ActionDefinition(
                name="create",
                handler=self._create,
                summary=_ACTION_SUMMARY["create"],
                required=("collection", "data"),
                examples=(
                    {
                        "action": "create",
                        "collection": "articles",
                        "data": {"title": "New Article", "content": "Article content"},
                    },
                ),
            ),
            ActionDefinition(
                name="update",
                handler=self._update,
                summary=_ACTION_SUMMARY["update"],
                required=("collection", "id"),
                destructive=True,
                examples=(
                    {"action": "update", "collection": "articles", "id": "article-123", "data": {"title": "Updated"}},
                ),
            ),
            ActionDefinition(
                name="delete",
                handler=self._delete,
                summary=_ACTION_SUMMARY["delete"],
                required=("collection", "id"),
                destructive=True,
                examples=({"action": "delete", "collection": "articles", "id": "article-123"},),
            ),
            ActionDefinition(
                name="publish",
                handler=self._publish,
                summary=_ACTION_SUMMARY["publish"],
                required=("collection", "id"),
                examples=({"action": "publish", "collection": "articles", "id": "article-123"},),
            ),
            ActionDefinition(
                name="unpublish",
                handler=self._unpublish,
                summary=_ACTION_SUMMARY["unpublish"],
                required=("collection", "id"),
                examples=({"action": "unpublish", "collection": "articles", "id": "article-123"},),
            ),
        ]

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def check_target(self, definition: ActionDefinition, request: ToolRequest) -> Optional[ToolResponse]:
        if not request.has("collection"):
            return error_response(
                "Collection handle is required for entry operations",
                error_code=ErrorCode.MISSING_REQUIRED,
                error_type=ErrorType.VALIDATION,
                details={"missing_fields": ["collection"]},
            )
        if self.repositories.collections.find(request.collection) is None:
            return not_found_error("Collection", request.collection)
        if not self.valid_site(request.site):
            return validation_error(f"Invalid site handle: {request.site}", field="site")
        return None

    def missing_field_message(self, field_name: str, action: str) -> Optional[str]:
        if field_name == "id":
            return f"Entry ID is required for {action} action"
        if field_name == "data":
            return f"Data is required for {action} action"
        return None

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _find(self, request: ToolRequest) -> Optional[Entry]:
        entry = self.repositories.entries.find(request.id)
        if entry is None or entry.collection != request.collection:
            return None
        return entry

    def _list(self, *, request: ToolRequest) -> ToolResponse:
        site = request.site or self.default_site()
        entries = self.repositories.entries.query(
            request.collection,
            site=site,
            include_unpublished=request.include_unpublished,
            filters=request.filters,
        )
        page, pagination = paginate(entries, request)
        return success_response(
            entries=[entry.to_summary() for entry in page],
            pagination=pagination,
            collection=request.collection,
            site=site,
        )

    def _get(self, *, request: ToolRequest) -> ToolResponse:
        entry = self._find(request)
        if entry is None:
            return not_found_error("Entry", request.id)
        return success_response(entry=entry.to_dict())

    def _create(self, *, request: ToolRequest) -> ToolResponse:
        data = dict(request.data or {})
        site = request.site or self.default_site()
        slug = request.slug or data.pop("slug", None) or slugify(str(data.get("title", "")))
        if not slug:
            return validation_error(
                "Entry slug could not be determined; provide data.title or slug",
                field="slug",
            )

        if request.id and self.repositories.entries.find(request.id) is not None:
            return conflict_error(
                f"Entry with ID '{request.id}' already exists",
                details={"id": request.id},
            )

        if self.repositories.entries.find_by_slug(request.collection, slug, site) is not None:
            return conflict_error(
                f"Entry with slug '{slug}' already exists in collection '{request.collection}'",
                details={"collection": request.collection, "slug": slug, "site": site},
            )

        published = data.pop("published", True)
        date = data.pop("date", None)
        entry = Entry(
            id=request.id or str(uuid.uuid4()),
            collection=request.collection,
            slug=slug,
            data=data,
            site=site,
            published=bool(published),
            date=date,
        )
        self.repositories.entries.save(entry)
        logger.info("Created entry %s in %s", entry.id, entry.collection)

        return success_response(
            entry=entry.to_dict(),
            created=True,
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _update(self, *, request: ToolRequest) -> ToolResponse:
        entry = self._find(request)
        if entry is None:
            return not_found_error("Entry", request.id)
        if request.site and entry.site != request.site:
            return validation_error(f"Entry not available in site: {request.site}", field="site")

        changes: Dict[str, Any] = dict(request.data or {})
        if "slug" in changes:
            entry.slug = slugify(str(changes.pop("slug"))) or entry.slug
        if "published" in changes:
            entry.published = bool(changes.pop("published"))
        entry.data.update(changes)
        entry.last_modified = utc_now()
        self.repositories.entries.save(entry)

        return success_response(
            entry=entry.to_dict(),
            updated=True,
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _delete(self, *, request: ToolRequest) -> ToolResponse:
        entry = self._find(request)
        if entry is None:
            return not_found_error("Entry", request.id)

        self.repositories.entries.delete(entry.id)
        logger.info("Deleted entry %s from %s", entry.id, entry.collection)
        return success_response(
            entry={"id": entry.id, "slug": entry.slug, "collection": entry.collection, "site": entry.site},
            deleted=True,
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _set_published(self, request: ToolRequest, published: bool) -> ToolResponse:
        entry = self._find(request)
        if entry is None:
            return not_found_error("Entry", request.id)

        entry.published = published
        entry.last_modified = utc_now()
        self.repositories.entries.save(entry)

        flag = "published" if published else "unpublished"
        return success_response(
            {flag: True},
            entry={"id": entry.id, "slug": entry.slug, "published": entry.published, "url": entry.url},
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _publish(self, *, request: ToolRequest) -> ToolResponse:
        return self._set_published(request, True)

    def _unpublish(self, *, request: ToolRequest) -> ToolResponse:
        return self._set_published(request, False)


def register_unified_entries_tool(
    mcp: FastMCP,
    config: ServerConfig,
    *,
    repositories: Repositories,
    cache: CacheInvalidator,
) -> EntriesTool:
    """Register the consolidated entries tool."""

    tool = EntriesTool(config, repositories, cache)

    @canonical_tool(
        mcp,
        canonical_name=tool.tool_name,
    )
    def entries(
        action: str,
        collection: Optional[str] = None,
        id: Optional[str] = None,
        slug: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        site: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        include_unpublished: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        dry_run: Optional[bool] = None,
        help_topic: Optional[str] = None,
    ) -> dict:
        """Manage collection entries via `action`.

        Args:
            action: One of list, get, create, update, delete, publish,
                unpublish (or help, discover, examples).
            collection: Collection handle; required for every entry action.
            id: Entry ID for get/update/delete/publish/unpublish.
            slug: Explicit slug on create (defaults to slugified title).
            data: Field values for create/update.
            site: Site handle (defaults to the first configured site).
            filters: Field equality filters for list.
            include_unpublished: Include drafts in list results.
            limit: Page size for list (1..1000, default 50).
            offset: Page offset for list.
            dry_run: Preview destructive actions without executing them.
            help_topic: Topic for the help action.
        """

        return tool.handle(
            tool_arguments(
                action=action,
                collection=collection,
                id=id,
                slug=slug,
                data=data,
                site=site,
                filters=filters,
                include_unpublished=include_unpublished,
                limit=limit,
                offset=offset,
                dry_run=dry_run,
                help_topic=help_topic,
            )
        )

    logger.debug("Registered unified entries tool")
    return tool


__all__ = [
    "EntriesTool",
    "register_unified_entries_tool",
]
