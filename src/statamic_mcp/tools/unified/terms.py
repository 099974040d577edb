"""Unified terms tool: taxonomy term management."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from statamic_mcp.config import ServerConfig
from statamic_mcp.core.cache import CacheInvalidator, recommended_segments
from statamic_mcp.core.models import Term, utc_now
from statamic_mcp.core.naming import canonical_tool
from statamic_mcp.core.repositories import Repositories
from statamic_mcp.core.requests import ToolRequest, paginate
from statamic_mcp.core.responses import (
    ErrorCode,
    ErrorType,
    ToolResponse,
    conflict_error,
    error_response,
    missing_fields_error,
    not_found_error,
    success_response,
    validation_error,
)
from statamic_mcp.core.slugs import slugify
from statamic_mcp.tools.unified.base import DomainTool, tool_arguments
from statamic_mcp.tools.unified.router import ActionDefinition

logger = logging.getLogger(__name__)

_CACHE_SEGMENTS = recommended_segments("taxonomy")
_IDENTIFIED_ACTIONS = ("get", "update", "delete")

_ACTION_SUMMARY = {
    "list": "List terms in a taxonomy with pagination.",
    "get": "Retrieve a term by ID or slug, with its entry usage count.",
    "create": "Create a term; slug is derived from the title when omitted.",
    "update": "Merge data into an existing term.",
    "delete": "Delete a term that no entry references.",
}


class TermsTool(DomainTool):
    tool_name = "statamic.terms"
    domain = "terms"
    label = "Terms"
    description = "Manage taxonomy terms: list, get, create, update, delete."
    primary_use = "Classify content by managing the terms of a taxonomy."
    features = (
        "taxonomy_based_management",
        "slug_or_id_lookup",
        "usage_protection",
        "cache_management",
        "audit_logging",
    )
    patterns = {
        "term_discovery": "list -> get",
        "term_creation": "list to check duplicates -> create",
        "term_cleanup": "get to check entries_count -> delete",
    }
    related_tools = ("statamic.entries", "statamic.structures")

    def build_actions(self) -> List[ActionDefinition]:
        return [
            ActionDefinition(
                name="list",
                handler=self._list,
                summary=_ACTION_SUMMARY["list"],
                required=("taxonomy",),
                examples=({"action": "list", "taxonomy": "categories", "limit": 20},),
            ),
            ActionDefinition(
                name="get",
                handler=self._get,
                summary=_ACTION_SUMMARY["get"],
                required=("taxonomy",),
                examples=({"action": "get", "taxonomy": "categories", "slug": "news"},),
            ),
            ActionDefinition(
                name="create",
                handler=self._create,
                summary=_ACTION_SUMMARY["create"],
                required=("taxonomy", "data"),
                examples=(
                    {
                        "action": "create",
                        "taxonomy": "categories",
                        "data": {"title": "New Category", "description": "Category description"},
                    },
                ),
            ),
            ActionDefinition(
                name="update",
                handler=self._update,
                summary=_ACTION_SUMMARY["update"],
                required=("taxonomy", "data"),
                destructive=True,
                examples=(
                    {"action": "update", "taxonomy": "categories", "slug": "news", "data": {"title": "Updated"}},
                ),
            ),
            ActionDefinition(
                name="delete",
                handler=self._delete,
                summary=_ACTION_SUMMARY["delete"],
                required=("taxonomy",),
                destructive=True,
                examples=({"action": "delete", "taxonomy": "categories", "slug": "news"},),
            ),
        ]

    def check_target(self, definition: ActionDefinition, request: ToolRequest) -> Optional[ToolResponse]:
        if not request.has("taxonomy"):
            return error_response(
                "Taxonomy handle is required for term operations",
                error_code=ErrorCode.MISSING_REQUIRED,
                error_type=ErrorType.VALIDATION,
                details={"missing_fields": ["taxonomy"]},
            )
        if self.repositories.taxonomies.find(request.taxonomy) is None:
            return not_found_error("Taxonomy", request.taxonomy)
        if not self.valid_site(request.site):
            return validation_error(f"Invalid site handle: {request.site}", field="site")
        return None

    def validate_required(self, definition: ActionDefinition, request: ToolRequest) -> Optional[ToolResponse]:
        if definition.name in _IDENTIFIED_ACTIONS and not (request.has("id") or request.has("slug")):
            return missing_fields_error(
                ["id"], message=f"Term ID or slug is required for {definition.name} action"
            )
        return super().validate_required(definition, request)

    def missing_field_message(self, field_name: str, action: str) -> Optional[str]:
        if field_name == "data":
            return f"Data is required for {action} action"
        return None

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    @staticmethod
    def _slug_of(request: ToolRequest) -> str:
        """Term slug from ``slug`` or an ``id`` of the form ``taxonomy::slug``."""
        if request.slug:
            return request.slug
        identifier = request.id or ""
        return identifier.split("::", 1)[1] if "::" in identifier else identifier

    def _find(self, request: ToolRequest) -> Optional[Term]:
        return self.repositories.terms.find(request.taxonomy, self._slug_of(request))

    def _usage(self, term: Term) -> int:
        return self.repositories.entries.count_using_term(term.taxonomy, term.slug)

    def _list(self, *, request: ToolRequest) -> ToolResponse:
        terms = self.repositories.terms.query(request.taxonomy, site=request.site)
        page, pagination = paginate(terms, request)
        return success_response(
            terms=[
                {"id": t.id, "slug": t.slug, "title": t.title, "site": t.site}
                for t in page
            ],
            pagination=pagination,
            taxonomy=request.taxonomy,
        )

    def _get(self, *, request: ToolRequest) -> ToolResponse:
        term = self._find(request)
        if term is None:
            return not_found_error("Term", request.slug or request.id)
        return success_response(term=term.to_dict(entries_count=self._usage(term)))

    def _create(self, *, request: ToolRequest) -> ToolResponse:
        data: Dict[str, Any] = dict(request.data or {})
        slug = request.slug or data.pop("slug", None) or slugify(str(data.get("title", "")))
        if not slug:
            return validation_error(
                "Term slug could not be determined; provide data.title or slug",
                field="slug",
            )
        if self.repositories.terms.find(request.taxonomy, slug) is not None:
            return conflict_error(
                f"Term already exists: {slug}",
                details={"taxonomy": request.taxonomy, "slug": slug},
            )

        term = Term(
            taxonomy=request.taxonomy,
            slug=slug,
            data=data,
            site=request.site or self.default_site(),
        )
        self.repositories.terms.save(term)
        logger.info("Created term %s", term.id)

        return success_response(
            term=term.to_dict(),
            created=True,
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _update(self, *, request: ToolRequest) -> ToolResponse:
        term = self._find(request)
        if term is None:
            return not_found_error("Term", request.slug or request.id)
        if request.site and term.site != request.site:
            return validation_error(f"Term not available in site: {request.site}", field="site")

        term.data.update(request.data or {})
        term.last_modified = utc_now()
        self.repositories.terms.save(term)

        return success_response(
            term=term.to_dict(),
            updated=True,
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _delete(self, *, request: ToolRequest) -> ToolResponse:
        term = self._find(request)
        if term is None:
            return not_found_error("Term", request.slug or request.id)

        usage = self._usage(term)
        if usage > 0:
            return conflict_error(
                f"Cannot delete term: {usage} entries are using this term",
                details={"term": term.id, "entries_count": usage},
            )

        self.repositories.terms.delete(term.taxonomy, term.slug)
        logger.info("Deleted term %s", term.id)
        return success_response(
            term={"id": term.id, "slug": term.slug, "taxonomy": term.taxonomy},
            deleted=True,
            cache=self.invalidate(_CACHE_SEGMENTS),
        )


def register_unified_terms_tool(
    mcp: FastMCP,
    config: ServerConfig,
    *,
    repositories: Repositories,
    cache: CacheInvalidator,
) -> TermsTool:
    """Register the consolidated terms tool."""

    tool = TermsTool(config, repositories, cache)

    @canonical_tool(
        mcp,
        canonical_name=tool.tool_name,
    )
    def terms(
        action: str,
        taxonomy: Optional[str] = None,
        id: Optional[str] = None,
        slug: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        site: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        dry_run: Optional[bool] = None,
        help_topic: Optional[str] = None,
    ) -> dict:
        """Manage taxonomy terms via `action`.

        Args:
            action: One of list, get, create, update, delete (or help,
                discover, examples).
            taxonomy: Taxonomy handle; required for every term action.
            id: Term ID (``taxonomy::slug``) for get/update/delete.
            slug: Term slug, an alternative to ``id``.
            data: Field values for create/update.
            site: Site handle.
            limit: Page size for list.
            offset: Page offset for list.
            dry_run: Preview destructive actions without executing them.
            help_topic: Topic for the help action.
        """

        return tool.handle(
            tool_arguments(
                action=action,
                taxonomy=taxonomy,
                id=id,
                slug=slug,
                data=data,
                site=site,
                limit=limit,
                offset=offset,
                dry_run=dry_run,
                help_topic=help_topic,
            )
        )

    logger.debug("Registered unified terms tool")
    return tool


__all__ = [
    "TermsTool",
    "register_unified_terms_tool",
]
