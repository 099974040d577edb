"""Unified blueprints tool: schema management for content types."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Sequence

from mcp.server.fastmcp import FastMCP

from statamic_mcp.config import ServerConfig
from statamic_mcp.core.cache import CacheInvalidator, recommended_segments
from statamic_mcp.core.models import Blueprint, utc_now
from statamic_mcp.core.naming import canonical_tool
from statamic_mcp.core.repositories import Repositories
from statamic_mcp.core.requests import ToolRequest
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
from statamic_mcp.core.slugs import is_valid_handle
from statamic_mcp.tools.unified.base import DomainTool, tool_arguments
from statamic_mcp.tools.unified.router import ActionDefinition

logger = logging.getLogger(__name__)

_CACHE_SEGMENTS = recommended_segments("blueprint")
DEFAULT_NAMESPACE = "collections"

FIELD_TYPES = frozenset(
    {
        "array", "assets", "bard", "button_group", "checkboxes", "code", "collections",
        "color", "date", "entries", "float", "grid", "html", "integer", "link", "list",
        "markdown", "radio", "range", "replicator", "revealer", "section", "select",
        "slug", "structures", "table", "tags", "taxonomies", "template", "terms",
        "text", "textarea", "time", "toggle", "users", "video", "yaml",
    }
)

_TITLE = {"handle": "title", "field": {"type": "text", "required": True, "validate": "required"}}
_SLUG = {"handle": "slug", "field": {"type": "slug", "from": "title"}}

FIELD_TEMPLATES: Dict[str, List[Dict[str, Any]]] = {
    "basic": [
        _TITLE,
        _SLUG,
        {"handle": "content", "field": {"type": "textarea", "display": "Content"}},
    ],
    "blog": [
        _TITLE,
        _SLUG,
        {"handle": "featured_image", "field": {"type": "assets", "container": "assets", "max_files": 1}},
        {"handle": "content", "field": {"type": "markdown", "display": "Content"}},
        {"handle": "author", "field": {"type": "users", "display": "Author", "max_items": 1}},
        {"handle": "published_date", "field": {"type": "date", "display": "Published Date"}},
        {"handle": "categories", "field": {"type": "terms", "taxonomies": ["categories"], "display": "Categories"}},
        {"handle": "tags", "field": {"type": "tags", "display": "Tags"}},
    ],
    "product": [
        _TITLE,
        _SLUG,
        {"handle": "price", "field": {"type": "float", "display": "Price"}},
        {"handle": "description", "field": {"type": "textarea", "display": "Description"}},
        {"handle": "images", "field": {"type": "assets", "container": "assets", "display": "Product Images"}},
        {"handle": "inventory", "field": {"type": "integer", "display": "Inventory Count"}},
        {"handle": "sku", "field": {"type": "text", "display": "SKU"}},
    ],
    "page": [
        _TITLE,
        _SLUG,
        {"handle": "content", "field": {"type": "bard", "display": "Page Content"}},
        {"handle": "seo_title", "field": {"type": "text", "display": "SEO Title"}},
        {"handle": "seo_description", "field": {"type": "textarea", "display": "SEO Description"}},
    ],
}

_ACTION_SUMMARY = {
    "list": "List blueprints, optionally within one namespace.",
    "get": "Retrieve a blueprint with its fields.",
    "create": "Create a blueprint from a field list.",
    "update": "Replace a blueprint's fields or title.",
    "delete": "Delete a blueprint (requires confirm=true).",
    "scan": "Scan every namespace and summarize blueprints.",
    "generate": "Create a blueprint from a template (basic, blog, product, page).",
    "types": "Describe field types per blueprint for type generation.",
    "validate": "Check a blueprint's fields for missing handles, types, and duplicates.",
}


def normalize_fields(fields: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Coerce field definitions into ``{"handle": ..., "field": {...}}`` form.

    Accepts either that form already or a flat ``{"handle": ..., "type": ...}``
    mapping; entries without a handle are kept so validation can report them.
    """
    normalized: List[Dict[str, Any]] = []
    for raw in fields:
        item = dict(raw)
        handle = item.pop("handle", "")
        config = item.pop("field", None)
        if not isinstance(config, dict):
            config = item
        normalized.append({"handle": handle, "field": dict(config)})
    return normalized


def validate_fields(fields: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    """Structural checks on a normalized field list."""
    errors: List[str] = []
    warnings: List[str] = []

    handles = [f.get("handle") or "" for f in fields]
    for index, field in enumerate(fields):
        handle = handles[index]
        field_type = (field.get("field") or {}).get("type")
        if not handle:
            errors.append(f"Field {index} missing handle")
            continue
        if not field_type:
            errors.append(f"Field '{handle}' missing type")
        elif field_type not in FIELD_TYPES:
            warnings.append(f"Field '{handle}' uses unknown type '{field_type}'")

    for handle, count in Counter(h for h in handles if h).items():
        if count > 1:
            errors.append(f"Duplicate field handle '{handle}'")

    return {"valid": not errors, "errors": errors, "warnings": warnings}


class BlueprintsTool(DomainTool):
    tool_name = "statamic.blueprints"
    domain = "blueprints"
    label = "Blueprints"
    description = "Manage blueprints: list, get, create, update, delete, scan, generate, types, validate."
    primary_use = "Define and inspect the field schemas that entries, terms, globals, and assets follow."
    features = (
        "namespace_management",
        "template_generation",
        "field_validation",
        "type_analysis",
        "confirmed_deletion",
        "cache_management",
    )
    patterns = {
        "schema_discovery": "scan -> get with include_fields",
        "schema_creation": "generate from template -> validate -> update",
        "type_generation": "types -> generate client types",
    }
    related_tools = ("statamic.entries", "statamic.structures")
    confirmation_required = ("delete",)

    def build_actions(self) -> List[ActionDefinition]:
        return [
            ActionDefinition(
                name="list",
                handler=self._list,
                summary=_ACTION_SUMMARY["list"],
                examples=({"action": "list", "namespace": "collections"},),
            ),
            ActionDefinition(
                name="get",
                handler=self._get,
                summary=_ACTION_SUMMARY["get"],
                required=("handle",),
                examples=({"action": "get", "handle": "article", "namespace": "collections"},),
            ),
            ActionDefinition(
                name="create",
                handler=self._create,
                summary=_ACTION_SUMMARY["create"],
                required=("handle",),
                examples=(
                    {
                        "action": "create",
                        "handle": "event",
                        "namespace": "collections",
                        "fields": [{"handle": "title", "field": {"type": "text"}}],
                    },
                ),
            ),
            ActionDefinition(
                name="update",
                handler=self._update,
                summary=_ACTION_SUMMARY["update"],
                required=("handle",),
                destructive=True,
                examples=(
                    {
                        "action": "update",
                        "handle": "event",
                        "fields": [{"handle": "venue", "field": {"type": "text"}}],
                    },
                ),
            ),
            ActionDefinition(
                name="delete",
                handler=self._delete,
                summary=_ACTION_SUMMARY["delete"],
                required=("handle",),
                destructive=True,
                examples=({"action": "delete", "handle": "event", "namespace": "collections", "confirm": True},),
            ),
            ActionDefinition(
                name="scan",
                handler=self._scan,
                summary=_ACTION_SUMMARY["scan"],
                examples=({"action": "scan"},),
            ),
            ActionDefinition(
                name="generate",
                handler=self._generate,
                summary=_ACTION_SUMMARY["generate"],
                required=("handle",),
                examples=({"action": "generate", "handle": "post", "template": "blog"},),
            ),
            ActionDefinition(
                name="types",
                handler=self._types,
                summary=_ACTION_SUMMARY["types"],
                examples=({"action": "types"},),
            ),
            ActionDefinition(
                name="validate",
                handler=self._validate,
                summary=_ACTION_SUMMARY["validate"],
                required=("handle",),
                examples=({"action": "validate", "handle": "article"},),
            ),
        ]

    def missing_field_message(self, field_name: str, action: str) -> Optional[str]:
        if field_name == "handle":
            return f"Handle is required for {action} action"
        return None

    def _find(self, request: ToolRequest) -> Optional[Blueprint]:
        return self.repositories.blueprints.find(request.handle, request.namespace)

    def _list(self, *, request: ToolRequest) -> ToolResponse:
        blueprints = self.repositories.blueprints.all(request.namespace)
        items = [b.to_dict(include_fields=request.include_fields) for b in blueprints]
        if not request.include_details:
            items = [{"handle": i["handle"], "namespace": i["namespace"], "title": i["title"]} for i in items]
        return success_response(blueprints=items, total=len(items), namespace=request.namespace)

    def _get(self, *, request: ToolRequest) -> ToolResponse:
        blueprint = self._find(request)
        if blueprint is None:
            return not_found_error("Blueprint", request.handle)
        return success_response(blueprint=blueprint.to_dict(include_fields=True))

    def _save_new(self, blueprint: Blueprint, **extra: Any) -> ToolResponse:
        if not is_valid_handle(blueprint.handle):
            return validation_error(f"Invalid blueprint handle: {blueprint.handle}", field="handle")
        if self.repositories.blueprints.find(blueprint.handle, blueprint.namespace) is not None:
            return conflict_error(
                f"Blueprint already exists: {blueprint.handle} in {blueprint.namespace}",
                details={"handle": blueprint.handle, "namespace": blueprint.namespace},
            )
        self.repositories.blueprints.save(blueprint)
        logger.info("Saved blueprint %s", blueprint.key)
        return success_response(
            blueprint=blueprint.to_dict(include_fields=True),
            cache=self.invalidate(_CACHE_SEGMENTS),
            **extra,
        )

    def _create(self, *, request: ToolRequest) -> ToolResponse:
        data = request.data or {}
        fields = request.blueprint_fields or data.get("fields") or []
        blueprint = Blueprint(
            handle=request.handle,
            namespace=request.namespace or DEFAULT_NAMESPACE,
            title=request.title or data.get("title", ""),
            fields=normalize_fields(fields),
        )
        return self._save_new(blueprint, created=True)

    def _generate(self, *, request: ToolRequest) -> ToolResponse:
        template = request.template or "basic"
        if template not in FIELD_TEMPLATES:
            return validation_error(
                f"Unknown template: {template}",
                field="template",
                remediation=f"Use one of: {', '.join(FIELD_TEMPLATES)}",
            )
        blueprint = Blueprint(
            handle=request.handle,
            namespace=request.namespace or DEFAULT_NAMESPACE,
            title=request.title or request.handle.replace("_", " ").replace("-", " ").title(),
            fields=[dict(f, field=dict(f["field"])) for f in FIELD_TEMPLATES[template]],
        )
        return self._save_new(blueprint, template=template, generated=True)

    def _update(self, *, request: ToolRequest) -> ToolResponse:
        blueprint = self._find(request)
        if blueprint is None:
            return not_found_error("Blueprint", request.handle)

        data = request.data or {}
        fields = request.blueprint_fields if request.blueprint_fields is not None else data.get("fields")
        if fields is not None:
            blueprint.fields = normalize_fields(fields)
        title = request.title or data.get("title")
        if title:
            blueprint.title = title
        if "hidden" in data:
            blueprint.hidden = bool(data["hidden"])
        self.repositories.blueprints.save(blueprint)

        return success_response(
            blueprint=blueprint.to_dict(include_fields=True),
            updated=True,
            updated_at=utc_now(),
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _delete(self, *, request: ToolRequest) -> ToolResponse:
        if not request.confirm:
            return error_response(
                "Deletion requires explicit confirmation (set confirm to true)",
                error_code=ErrorCode.CONFIRMATION_REQUIRED,
                error_type=ErrorType.VALIDATION,
                remediation="Repeat the call with confirm=true, or use dry_run=true to preview",
            )
        blueprint = self._find(request)
        if blueprint is None:
            return not_found_error("Blueprint", request.handle)

        self.repositories.blueprints.delete(blueprint.handle, blueprint.namespace)
        logger.info("Deleted blueprint %s", blueprint.key)
        return success_response(
            blueprint={"handle": blueprint.handle, "namespace": blueprint.namespace},
            deleted=True,
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _scan(self, *, request: ToolRequest) -> ToolResponse:
        namespaces: Dict[str, List[Dict[str, Any]]] = {}
        for namespace in self.repositories.blueprints.namespaces():
            namespaces[namespace] = [
                b.to_dict(include_fields=request.include_fields)
                for b in self.repositories.blueprints.all(namespace)
            ]
        return success_response(
            namespaces=namespaces,
            total=sum(len(items) for items in namespaces.values()),
        )

    def _types(self, *, request: ToolRequest) -> ToolResponse:
        types: Dict[str, List[Dict[str, Any]]] = {}
        for blueprint in self.repositories.blueprints.all(request.namespace):
            types[blueprint.key] = [
                {
                    "handle": f.get("handle"),
                    "type": (f.get("field") or {}).get("type"),
                    "required": bool((f.get("field") or {}).get("required", False)),
                }
                for f in blueprint.fields
            ]
        return success_response(types=types, generated_at=utc_now())

    def _validate(self, *, request: ToolRequest) -> ToolResponse:
        blueprint = self._find(request)
        if blueprint is None:
            return not_found_error("Blueprint", request.handle)
        return success_response(blueprint=request.handle, validation=validate_fields(blueprint.fields))


def register_unified_blueprints_tool(
    mcp: FastMCP,
    config: ServerConfig,
    *,
    repositories: Repositories,
    cache: CacheInvalidator,
) -> BlueprintsTool:
    """Register the consolidated blueprints tool."""

    tool = BlueprintsTool(config, repositories, cache)

    @canonical_tool(
        mcp,
        canonical_name=tool.tool_name,
    )
    def blueprints(
        action: str,
        handle: Optional[str] = None,
        namespace: Optional[str] = None,
        title: Optional[str] = None,
        fields: Optional[List[Dict[str, Any]]] = None,
        data: Optional[Dict[str, Any]] = None,
        template: Optional[str] = None,
        include_details: Optional[bool] = None,
        include_fields: Optional[bool] = None,
        confirm: Optional[bool] = None,
        dry_run: Optional[bool] = None,
        help_topic: Optional[str] = None,
    ) -> dict:
        """Manage blueprints via `action`.

        Args:
            action: list, get, create, update, delete, scan, generate, types,
                validate (or help, discover, examples).
            handle: Blueprint handle.
            namespace: Blueprint namespace (default "collections" on create).
            title: Display title.
            fields: Field definitions ``[{"handle": ..., "field": {...}}]``.
            data: Alternative carrier for title/fields/hidden.
            template: Template for generate: basic, blog, product, page.
            include_details: Include counts and flags in list results.
            include_fields: Include field definitions in list/scan results.
            confirm: Must be true to delete.
            dry_run: Preview destructive actions without executing them.
            help_topic: Topic for the help action.
        """

        return tool.handle(
            tool_arguments(
                action=action,
                handle=handle,
                namespace=namespace,
                title=title,
                fields=fields,
                data=data,
                template=template,
                include_details=include_details,
                include_fields=include_fields,
                confirm=confirm,
                dry_run=dry_run,
                help_topic=help_topic,
            )
        )

    logger.debug("Registered unified blueprints tool")
    return tool


__all__ = [
    "BlueprintsTool",
    "FIELD_TEMPLATES",
    "normalize_fields",
    "register_unified_blueprints_tool",
    "validate_fields",
]
