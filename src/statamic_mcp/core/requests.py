"""Typed tool request.

Every tool receives one JSON object. ``ToolRequest`` gives each recognized
key an explicit optional field and silently drops anything else, so routers
and handlers never reach into a raw mapping.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 1000


class ToolRequest(BaseModel):
    """A single tool invocation. Unknown keys are ignored, not rejected."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    action: str

    # Sub-target selectors
    type: Optional[str] = None
    collection: Optional[str] = None
    taxonomy: Optional[str] = None
    global_set: Optional[str] = None
    container: Optional[str] = None
    namespace: Optional[str] = None
    handle: Optional[str] = None

    # Identifiers
    id: Optional[str] = None
    slug: Optional[str] = None
    email: Optional[str] = None
    path: Optional[str] = None
    destination: Optional[str] = None
    new_name: Optional[str] = None
    role: Optional[str] = None
    group: Optional[str] = None

    # Payloads
    data: Optional[Dict[str, Any]] = None
    blueprint_fields: Optional[List[Dict[str, Any]]] = Field(default=None, alias="fields")
    filters: Optional[Dict[str, Any]] = None
    site: Optional[str] = None
    title: Optional[str] = None
    template: Optional[str] = None
    reason: Optional[str] = None

    # Listing
    limit: Optional[int] = None
    offset: Optional[int] = None
    include_unpublished: bool = False
    include_details: bool = True
    include_fields: bool = False
    folder: Optional[str] = None

    # Safety
    confirm: bool = False
    dry_run: bool = False

    # Content workflows
    workflow: Optional[str] = None
    source_collection: Optional[str] = None
    target_collection: Optional[str] = None
    items: Optional[List[Any]] = None
    options: Optional[Dict[str, Any]] = None

    # System
    cache_type: Optional[str] = None
    config_key: Optional[str] = None
    config_value: Any = None

    # Discovery
    help_topic: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("action", mode="before")
    @classmethod
    def _normalize_action(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @classmethod
    def from_arguments(cls, arguments: Mapping[str, Any]) -> "ToolRequest":
        """Validate a raw argument mapping.

        Raises:
            pydantic.ValidationError: If a recognized key has the wrong type
        """
        return cls.model_validate(dict(arguments))

    def to_arguments(self) -> Dict[str, Any]:
        """Arguments actually supplied, keyed by their wire names."""
        return self.model_dump(exclude_unset=True, by_alias=True)

    def has(self, name: str) -> bool:
        """Whether field ``name`` carries a usable value (not None, not empty)."""
        value = getattr(self, name, None)
        if value is None:
            return False
        if isinstance(value, (str, dict, list)) and not value:
            return False
        return True

    def missing(self, names: Sequence[str]) -> List[str]:
        """Subset of ``names`` that are absent or empty, in order."""
        return [name for name in names if not self.has(name)]

    @property
    def page_limit(self) -> int:
        """Requested page size clamped to 1..1000 (default 50)."""
        if self.limit is None:
            return DEFAULT_LIST_LIMIT
        return max(1, min(self.limit, MAX_LIST_LIMIT))

    @property
    def page_offset(self) -> int:
        return max(0, self.offset or 0)


def paginate(items: Sequence[Any], request: ToolRequest) -> tuple[List[Any], Dict[str, Any]]:
    """Slice ``items`` for the request's page and build pagination metadata."""
    total = len(items)
    limit = request.page_limit
    offset = request.page_offset
    page = list(items[offset : offset + limit])
    return page, {
        "total": total,
        "limit": limit,
        "offset": offset,
        "has_more": offset + limit < total,
    }
