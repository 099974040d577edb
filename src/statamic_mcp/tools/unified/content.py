"""Unified content tool: multi-step workflows across entries, terms and globals.

One action, ``execute``, selects a workflow by name. Each workflow is built
from the same repository operations the single-domain tools use and reports
per-item outcomes instead of failing the whole batch on the first bad item.
"""

from __future__ import annotations

import copy
import logging
import uuid
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from statamic_mcp.config import ServerConfig
from statamic_mcp.core.cache import CacheInvalidator, recommended_segments
from statamic_mcp.core.models import Blueprint, Collection, Entry, Term, utc_now
from statamic_mcp.core.naming import canonical_tool
from statamic_mcp.core.repositories import Repositories
from statamic_mcp.core.requests import ToolRequest
from statamic_mcp.core.responses import (
    ToolResponse,
    conflict_error,
    missing_fields_error,
    not_found_error,
    success_response,
    validation_error,
)
from statamic_mcp.core.slugs import is_valid_handle, slugify
from statamic_mcp.tools.unified.base import DomainTool, tool_arguments
from statamic_mcp.tools.unified.router import ActionDefinition

logger = logging.getLogger(__name__)

WORKFLOWS: Dict[str, str] = {
    "setup_collection": "Create a collection with its blueprint and draft sample entries.",
    "bulk_import": "Create many entries (collection) or terms (taxonomy) from a list of items.",
    "content_audit": "Count content per collection, taxonomy and global set and flag gaps.",
    "cross_reference": "Map entry-to-term references and report orphaned entries and terms.",
    "duplicate_content": "Copy published entries from one collection into another.",
}

DEFAULT_SAMPLE_ENTRIES = 3
MAX_SAMPLE_ENTRIES = 50

_DEFAULT_BLUEPRINT_FIELDS = (
    {"handle": "title", "field": {"type": "text", "display": "Title", "validate": ["required"]}},
    {"handle": "content", "field": {"type": "markdown", "display": "Content"}},
)


def _item_slug(item: Dict[str, Any]) -> str:
    return str(item.pop("slug", None) or slugify(str(item.get("title", ""))))


class ContentTool(DomainTool):
    tool_name = "statamic.content"
    domain = "content"
    label = "Content"
    description = (
        "Run content workflows: setup_collection, bulk_import, content_audit, "
        "cross_reference, duplicate_content."
    )
    primary_use = (
        "High-level workflows that coordinate several content operations across "
        "collections, taxonomies and global sets."
    )
    types = WORKFLOWS
    features = (
        "workflow_orchestration",
        "bulk_operations",
        "cross_content_analysis",
        "content_duplication",
        "audit_workflows",
        "setup_automation",
    )
    patterns = {
        "development_workflow": "setup_collection -> bulk_import -> content_audit -> cross_reference",
        "migration_workflow": "content_audit -> duplicate_content -> cross_reference -> content_audit",
        "maintenance_workflow": "content_audit -> cross_reference -> statamic.entries/statamic.terms fixes",
    }
    related_tools = ("statamic.entries", "statamic.terms", "statamic.structures", "statamic.blueprints")

    def build_actions(self) -> List[ActionDefinition]:
        return [
            ActionDefinition(
                name="execute",
                handler=self._execute,
                summary="Execute a content workflow selected by `workflow`.",
                required=("workflow",),
                destructive=True,
                examples=(
                    {
                        "action": "execute",
                        "workflow": "setup_collection",
                        "collection": "articles",
                        "options": {"sample_entries": 5},
                    },
                    {
                        "action": "execute",
                        "workflow": "bulk_import",
                        "collection": "products",
                        "items": [{"title": "Chair"}, {"title": "Table"}],
                    },
                    {"action": "execute", "workflow": "content_audit"},
                    {
                        "action": "execute",
                        "workflow": "duplicate_content",
                        "source_collection": "articles",
                        "target_collection": "blog_posts",
                    },
                ),
            ),
        ]

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def check_target(self, definition: ActionDefinition, request: ToolRequest) -> Optional[ToolResponse]:
        workflow = request.workflow
        if not workflow:
            return missing_fields_error(["workflow"], message="Workflow is required for content operations")
        if workflow not in WORKFLOWS:
            return validation_error(
                f"Unknown workflow: {workflow}",
                field="workflow",
                remediation=f"Use one of: {', '.join(WORKFLOWS)}",
            )
        if not self.valid_site(request.site):
            return validation_error(f"Invalid site handle: {request.site}", field="site")

        if workflow == "setup_collection":
            return self._check_setup(request)
        if workflow == "bulk_import":
            return self._check_bulk_import(request)
        if workflow == "duplicate_content":
            return self._check_duplicate(request)
        return None

    def _check_setup(self, request: ToolRequest) -> Optional[ToolResponse]:
        handle = request.collection
        if not handle:
            return missing_fields_error(
                ["collection"],
                message="Collection handle is required for setup_collection workflow",
            )
        if not is_valid_handle(handle):
            return validation_error(f"Invalid collection handle: {handle}", field="collection")
        if self.repositories.collections.find(handle) is not None:
            return conflict_error(f"Collection already exists: {handle}", details={"collection": handle})

        options = request.options or {}
        for taxonomy in options.get("taxonomies", []):
            if self.repositories.taxonomies.find(taxonomy) is None:
                return not_found_error("Taxonomy", taxonomy)
        sample_entries = options.get("sample_entries", DEFAULT_SAMPLE_ENTRIES)
        valid = isinstance(sample_entries, int) and not isinstance(sample_entries, bool)
        if not valid or not 0 <= sample_entries <= MAX_SAMPLE_ENTRIES:
            return validation_error(
                f"sample_entries must be an integer between 0 and {MAX_SAMPLE_ENTRIES}",
                field="options.sample_entries",
            )
        return None

    def _check_bulk_import(self, request: ToolRequest) -> Optional[ToolResponse]:
        if not request.collection and not request.taxonomy:
            return missing_fields_error(
                ["collection", "taxonomy"],
                message="Either collection or taxonomy is required for bulk_import workflow",
            )
        if request.collection and request.taxonomy:
            return validation_error(
                "Provide either collection or taxonomy for bulk_import workflow, not both",
                field="taxonomy",
            )
        if not request.items:
            return missing_fields_error(["items"], message="Items are required for bulk_import workflow")
        if request.collection and self.repositories.collections.find(request.collection) is None:
            return not_found_error("Collection", request.collection)
        if request.taxonomy and self.repositories.taxonomies.find(request.taxonomy) is None:
            return not_found_error("Taxonomy", request.taxonomy)
        return None

    def _check_duplicate(self, request: ToolRequest) -> Optional[ToolResponse]:
        missing = request.missing(["source_collection", "target_collection"])
        if missing:
            label = missing[0].replace("_", " ").capitalize()
            message = f"{label} is required for duplicate_content workflow" if len(missing) == 1 else None
            return missing_fields_error(missing, message=message)
        if request.source_collection == request.target_collection:
            return validation_error(
                "Source and target collections must differ",
                field="target_collection",
            )
        for field_name in ("source_collection", "target_collection"):
            handle = getattr(request, field_name)
            if self.repositories.collections.find(handle) is None:
                label = "Source collection" if field_name == "source_collection" else "Target collection"
                return not_found_error(label, handle)
        return None

    def permission_key(self, definition: ActionDefinition, request: ToolRequest) -> str:
        if request.workflow == "bulk_import":
            return "bulk_import_terms" if request.taxonomy else "bulk_import_entries"
        return request.workflow or definition.name

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def _execute(self, *, request: ToolRequest) -> ToolResponse:
        handler = getattr(self, f"_{request.workflow}")
        logger.info("Running content workflow %s", request.workflow)
        return handler(request)

    def _setup_collection(self, request: ToolRequest) -> ToolResponse:
        options = dict(request.options or {})
        handle = request.collection
        site = request.site or self.default_site()
        steps: List[str] = []

        collection = Collection(
            handle=handle,
            title=str(options.get("title") or handle.replace("_", " ").title()),
            route=options.get("route") or f"/{handle}/{{slug}}",
            sites=list(self.repositories.site_handles()) or [site],
            taxonomies=list(options.get("taxonomies", [])),
            dated=bool(options.get("dated", False)),
            blueprint=handle,
        )
        self.repositories.collections.save(collection)
        steps.append("collection_created")

        blueprint = self.repositories.blueprints.find(handle, "collections")
        if blueprint is None:
            blueprint = Blueprint(
                handle=handle,
                namespace="collections",
                title=collection.title,
                fields=[copy.deepcopy(f) for f in _DEFAULT_BLUEPRINT_FIELDS],
            )
            self.repositories.blueprints.save(blueprint)
            steps.append("blueprint_created")

        entries = []
        for number in range(1, options.get("sample_entries", DEFAULT_SAMPLE_ENTRIES) + 1):
            entry = Entry(
                id=str(uuid.uuid4()),
                collection=handle,
                slug=f"sample-entry-{number}",
                data={"title": f"Sample Entry {number}", "content": "Sample content."},
                site=site,
                published=False,
            )
            self.repositories.entries.save(entry)
            entries.append(entry.to_summary())
        if entries:
            steps.append("sample_entries_created")

        cache = self.invalidate(recommended_segments("collection"))
        steps.append("caches_cleared")
        logger.info("Set up collection %s with %d sample entries", handle, len(entries))

        return success_response(
            workflow="setup_collection",
            collection=collection.to_dict(),
            blueprint=blueprint.to_dict(include_fields=True),
            entries=entries,
            steps_completed=steps,
            message=f"Collection '{handle}' setup completed successfully",
            cache=cache,
        )

    def _bulk_import(self, request: ToolRequest) -> ToolResponse:
        site = request.site or self.default_site()
        to_terms = bool(request.taxonomy)
        target = request.taxonomy if to_terms else request.collection
        created: List[str] = []
        errors: List[Dict[str, Any]] = []

        for index, raw in enumerate(request.items or []):
            if not isinstance(raw, dict) or not raw:
                errors.append({"index": index, "error": "Invalid item data"})
                continue
            item = dict(raw)
            published = bool(item.pop("published", True))
            date = item.pop("date", None)
            slug = _item_slug(item)
            if not slug:
                errors.append(
                    {"index": index, "error": "Item slug could not be determined; provide title or slug"}
                )
                continue

            if to_terms:
                if self.repositories.terms.find(target, slug) is not None:
                    errors.append({"index": index, "slug": slug, "error": f"Term already exists: {slug}"})
                    continue
                term = Term(taxonomy=target, slug=slug, data=item, site=site)
                self.repositories.terms.save(term)
                created.append(term.id)
            else:
                if self.repositories.entries.find_by_slug(target, slug, site) is not None:
                    errors.append(
                        {
                            "index": index,
                            "slug": slug,
                            "error": f"Entry with slug '{slug}' already exists in collection '{target}'",
                        }
                    )
                    continue
                entry = Entry(
                    id=str(uuid.uuid4()),
                    collection=target,
                    slug=slug,
                    data=item,
                    site=site,
                    published=published,
                    date=date,
                )
                self.repositories.entries.save(entry)
                created.append(entry.id)

        total = len(request.items or [])
        cache = None
        if created:
            cache = self.invalidate(recommended_segments("taxonomy" if to_terms else "content"))
        logger.info("Bulk import into %s: %d created, %d failed", target, len(created), len(errors))

        return success_response(
            workflow="bulk_import",
            target=target,
            type="terms" if to_terms else "entries",
            total_items=total,
            processed=total,
            successful=len(created),
            failed=len(errors),
            created=created,
            errors=errors,
            message=f"Bulk import completed: {len(created)} successful, {len(errors)} failed",
            cache=cache,
        )

    def _selected(self, records: List[Any], key: str, request: ToolRequest) -> List[Any]:
        wanted = (request.filters or {}).get(key)
        if not wanted:
            return records
        return [r for r in records if r.handle in wanted]

    def _content_audit(self, request: ToolRequest) -> ToolResponse:
        site = request.site or self.default_site()
        collections = self._selected(self.repositories.collections.all(), "collections", request)
        taxonomies = self._selected(self.repositories.taxonomies.all(), "taxonomies", request)
        global_sets = self._selected(self.repositories.global_sets.all(), "globals", request)
        issues: List[Dict[str, Any]] = []
        details: Dict[str, List[Dict[str, Any]]] = {"collections": [], "taxonomies": [], "globals": []}
        total_entries = total_terms = 0

        for collection in collections:
            entries = self.repositories.entries.query(collection.handle)
            total_entries += len(entries)
            published = sum(1 for e in entries if e.published)
            details["collections"].append(
                {
                    "handle": collection.handle,
                    "title": collection.to_dict()["title"],
                    "entry_count": len(entries),
                    "published_count": published,
                    "draft_count": len(entries) - published,
                }
            )
            if not entries:
                issues.append(
                    {
                        "type": "empty_collection",
                        "handle": collection.handle,
                        "message": "Collection has no entries",
                    }
                )
            for entry in entries:
                if not entry.data.get("title"):
                    issues.append(
                        {
                            "type": "missing_title",
                            "id": entry.id,
                            "collection": collection.handle,
                            "message": "Entry has no title",
                        }
                    )

        for taxonomy in taxonomies:
            count = self.repositories.terms.count(taxonomy.handle)
            total_terms += count
            details["taxonomies"].append(
                {"handle": taxonomy.handle, "title": taxonomy.to_dict()["title"], "term_count": count}
            )
            if not count:
                issues.append(
                    {"type": "empty_taxonomy", "handle": taxonomy.handle, "message": "Taxonomy has no terms"}
                )

        for global_set in global_sets:
            has_values = bool(global_set.values_for(site))
            details["globals"].append(
                {
                    "handle": global_set.handle,
                    "title": global_set.to_dict()["title"],
                    "has_values": has_values,
                }
            )
            if not has_values:
                issues.append(
                    {
                        "type": "empty_global",
                        "handle": global_set.handle,
                        "message": f"Global set has no values for site '{site}'",
                    }
                )

        total_content = total_entries + total_terms + len(global_sets)
        score = 100.0
        if total_content:
            score = round(max(0.0, 100 - len(issues) / total_content * 100), 2)

        return success_response(
            workflow="content_audit",
            audit_timestamp=utc_now(),
            summary={
                "total_entries": total_entries,
                "total_terms": total_terms,
                "total_globals": len(global_sets),
                "issues_found": len(issues),
                "quality_score": score,
            },
            details=details,
            issues=issues,
            recommendations=_recommendations(issues),
        )

    def _cross_reference(self, request: ToolRequest) -> ToolResponse:
        collections = self._selected(self.repositories.collections.all(), "collections", request)
        taxonomies = self._selected(self.repositories.taxonomies.all(), "taxonomies", request)
        taxonomy_handles = {t.handle for t in taxonomies}
        entry_to_term: List[Dict[str, Any]] = []
        broken: List[Dict[str, Any]] = []
        orphaned: List[Dict[str, Any]] = []
        total_relationships = orphaned_entries = 0

        for collection in collections:
            attached = [t for t in collection.taxonomies if t in taxonomy_handles]
            if not attached:
                continue
            for entry in self.repositories.entries.query(collection.handle):
                references = 0
                for taxonomy in attached:
                    value = entry.data.get(taxonomy)
                    slugs = [value] if isinstance(value, str) else list(value or [])
                    if not slugs:
                        continue
                    references += len(slugs)
                    entry_to_term.append({"entry_id": entry.id, "taxonomy": taxonomy, "terms": slugs})
                    for slug in slugs:
                        if self.repositories.terms.find(taxonomy, slug) is None:
                            broken.append({"entry_id": entry.id, "taxonomy": taxonomy, "term": slug})
                if references:
                    total_relationships += references
                else:
                    orphaned_entries += 1
                    orphaned.append(
                        {
                            "type": "entry",
                            "id": entry.id,
                            "title": entry.title,
                            "collection": collection.handle,
                        }
                    )

        orphaned_terms = 0
        for taxonomy in taxonomies:
            for term in self.repositories.terms.query(taxonomy.handle):
                if self.repositories.entries.count_using_term(taxonomy.handle, term.slug) == 0:
                    orphaned_terms += 1
                    orphaned.append(
                        {"type": "term", "id": term.id, "title": term.title, "taxonomy": taxonomy.handle}
                    )

        return success_response(
            workflow="cross_reference",
            analysis_timestamp=utc_now(),
            relationships={
                "entry_to_term": entry_to_term,
                "broken_references": broken,
                "orphaned_content": orphaned,
            },
            statistics={
                "total_relationships": total_relationships,
                "broken_references": len(broken),
                "orphaned_entries": orphaned_entries,
                "orphaned_terms": orphaned_terms,
            },
        )

    def _duplicate_content(self, request: ToolRequest) -> ToolResponse:
        source, target = request.source_collection, request.target_collection
        created: List[str] = []
        errors: List[Dict[str, Any]] = []
        entries = self.repositories.entries.query(source)

        for entry in entries:
            if not entry.published and not request.include_unpublished:
                errors.append({"entry_id": entry.id, "error": "Entry not published, cannot duplicate"})
                continue
            if self.repositories.entries.find_by_slug(target, entry.slug, entry.site) is not None:
                errors.append(
                    {
                        "entry_id": entry.id,
                        "error": f"Entry with slug '{entry.slug}' already exists in collection '{target}'",
                    }
                )
                continue
            duplicate = Entry(
                id=str(uuid.uuid4()),
                collection=target,
                slug=entry.slug,
                data=copy.deepcopy(entry.data),
                site=entry.site,
                published=entry.published,
                date=entry.date,
            )
            self.repositories.entries.save(duplicate)
            created.append(duplicate.id)

        cache = self.invalidate(recommended_segments("content")) if created else None
        logger.info("Duplicated %d entries from %s to %s", len(created), source, target)

        return success_response(
            workflow="duplicate_content",
            source_collection=source,
            target_collection=target,
            processed=len(entries),
            successful=len(created),
            failed=len(errors),
            created=created,
            errors=errors,
            message=f"Content duplication completed: {len(created)} successful, {len(errors)} failed",
            cache=cache,
        )


def _recommendations(issues: List[Dict[str, Any]]) -> List[str]:
    kinds = {issue["type"] for issue in issues}
    advice = {
        "missing_title": "Add titles to untitled entries with statamic.entries update",
        "empty_collection": (
            "Populate empty collections with bulk_import or remove them with statamic.structures"
        ),
        "empty_taxonomy": "Add terms to empty taxonomies with statamic.terms create",
        "empty_global": "Fill empty global sets with statamic.globals update",
    }
    return [advice[kind] for kind in advice if kind in kinds]


def register_unified_content_tool(
    mcp: FastMCP,
    config: ServerConfig,
    *,
    repositories: Repositories,
    cache: CacheInvalidator,
) -> ContentTool:
    """Register the consolidated content workflow tool."""

    tool = ContentTool(config, repositories, cache)

    @canonical_tool(
        mcp,
        canonical_name=tool.tool_name,
    )
    def content(
        action: str,
        workflow: Optional[str] = None,
        collection: Optional[str] = None,
        taxonomy: Optional[str] = None,
        source_collection: Optional[str] = None,
        target_collection: Optional[str] = None,
        items: Optional[List[Dict[str, Any]]] = None,
        options: Optional[Dict[str, Any]] = None,
        filters: Optional[Dict[str, Any]] = None,
        site: Optional[str] = None,
        include_unpublished: Optional[bool] = None,
        dry_run: Optional[bool] = None,
        help_topic: Optional[str] = None,
    ) -> dict:
        """Run content workflows via `action="execute"` and `workflow`.

        Args:
            action: execute (or help, discover, examples).
            workflow: setup_collection, bulk_import, content_audit,
                cross_reference or duplicate_content.
            collection: Collection for setup_collection or bulk_import.
            taxonomy: Taxonomy for bulk_import of terms.
            source_collection: Source for duplicate_content.
            target_collection: Target for duplicate_content.
            items: Records to create in bulk_import.
            options: Workflow settings (title, route, taxonomies, dated,
                sample_entries for setup_collection).
            filters: Limit audits to {"collections": [...], "taxonomies": [...],
                "globals": [...]}.
            site: Site handle (defaults to the first configured site).
            include_unpublished: Also duplicate drafts.
            dry_run: Preview the workflow without executing it.
            help_topic: Topic for the help action.
        """

        return tool.handle(
            tool_arguments(
                action=action,
                workflow=workflow,
                collection=collection,
                taxonomy=taxonomy,
                source_collection=source_collection,
                target_collection=target_collection,
                items=items,
                options=options,
                filters=filters,
                site=site,
                include_unpublished=include_unpublished,
                dry_run=dry_run,
                help_topic=help_topic,
            )
        )

    logger.debug("Registered unified content tool")
    return tool


__all__ = [
    "ContentTool",
    "WORKFLOWS",
    "register_unified_content_tool",
]
