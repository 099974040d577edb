"""
Permission resolution for hosted (web) tool invocations.

Maps ``(domain, action, request)`` to the permission names a principal must
hold, following the control panel's naming convention::

    "view {collection} entries"    "edit {taxonomy} terms"
    "configure asset containers"   "manage cache"

Any action without a mapping resolves to ``DEFAULT_PERMISSIONS`` (super
only). Resolution never returns an empty requirement.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from statamic_mcp.core.requests import ToolRequest

if TYPE_CHECKING:  # pragma: no cover - import-time typing only
    from statamic_mcp.core.models import Role, User, UserGroup
    from statamic_mcp.core.repositories import HandleRepository

logger = logging.getLogger(__name__)

SUPER_PERMISSION = "super"
MCP_ACCESS_PERMISSION = "access mcp"
DEFAULT_PERMISSIONS: Tuple[str, ...] = (SUPER_PERMISSION,)


@dataclass(frozen=True)
class Principal:
    """The acting user of a hosted invocation.

    Attributes:
        id: User identifier
        email: User email (used as the audit identity)
        permissions: Effective permission names (direct + via roles)
        super: Super users hold every permission
    """

    id: str
    email: Optional[str] = None
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    super: bool = False

    @property
    def identifier(self) -> str:
        return self.email or self.id

    def has_permission(self, permission: str) -> bool:
        return self.super or permission in self.permissions


PermissionChecker = Callable[[Optional[Principal], str], bool]
"""Predicate ``(principal, permission) -> bool`` queried once per permission."""


def principal_has_permission(principal: Optional[Principal], permission: str) -> bool:
    """Default checker: anonymous principals hold nothing."""
    if principal is None:
        return False
    return principal.has_permission(permission)


# ---------------------------------------------------------------------------
# Mapping tables
# ---------------------------------------------------------------------------
# Templates are formatted with the request's fields, e.g. {collection}.

_ENTRY_RULES: Dict[str, Tuple[str, ...]] = {
    "list": ("view {collection} entries",),
    "get": ("view {collection} entries",),
    "create": ("create {collection} entries",),
    "update": ("edit {collection} entries",),
    "delete": ("delete {collection} entries",),
    "publish": ("publish {collection} entries",),
    "unpublish": ("publish {collection} entries",),
}

_TERM_RULES: Dict[str, Tuple[str, ...]] = {
    "list": ("view {taxonomy} terms",),
    "get": ("view {taxonomy} terms",),
    "create": ("edit {taxonomy} terms",),
    "update": ("edit {taxonomy} terms",),
    "delete": ("edit {taxonomy} terms",),
}

_GLOBAL_RULES: Dict[str, Tuple[str, ...]] = {
    "list": ("edit globals",),
    "get": ("edit globals",),
    "update": ("edit globals",),
}

_ASSET_RULES: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "container": {
        "list": ("view assets",),
        "get": ("view assets",),
        "create": ("configure asset containers",),
        "update": ("configure asset containers",),
        "delete": ("configure asset containers",),
    },
    "asset": {
        "list": ("view assets",),
        "get": ("view assets",),
        "upload": ("upload assets",),
        "create": ("upload assets",),
        "update": ("edit assets",),
        "move": ("edit assets",),
        "copy": ("edit assets",),
        "rename": ("edit assets",),
        "delete": ("delete assets",),
    },
}

_BLUEPRINT_RULES: Dict[str, Tuple[str, ...]] = {
    "list": ("view blueprints",),
    "get": ("view blueprints",),
    "scan": ("view blueprints",),
    "types": ("view blueprints",),
    "validate": ("view blueprints",),
    "create": ("create blueprints",),
    "generate": ("create blueprints",),
    "update": ("edit blueprints",),
    "delete": ("delete blueprints",),
}


def _crud_rules(noun: str) -> Dict[str, Tuple[str, ...]]:
    return {
        "list": (f"view {noun}",),
        "get": (f"view {noun}",),
        "create": (f"create {noun}",),
        "update": (f"edit {noun}",),
        "configure": (f"edit {noun}",),
        "delete": (f"delete {noun}",),
    }


_STRUCTURE_RULES: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "collection": _crud_rules("collections"),
    "taxonomy": _crud_rules("taxonomies"),
    "navigation": _crud_rules("navigation"),
    "globalset": _crud_rules("globals"),
    "site": {
        action: ("configure sites",)
        for action in ("list", "get", "create", "update", "delete", "configure")
    },
}

_USER_RULES: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "user": {
        "list": ("view users",),
        "get": ("view users",),
        "create": ("create users",),
        "update": ("edit users",),
        "activate": ("edit users",),
        "deactivate": ("edit users",),
        "assign_role": ("edit users",),
        "remove_role": ("edit users",),
        "delete": ("delete users",),
    },
    "role": {
        "list": ("view roles",),
        "get": ("view roles",),
        "create": ("create roles",),
        "update": ("edit roles",),
        "delete": ("delete roles",),
    },
    "group": {
        "list": ("view user_groups",),
        "get": ("view user_groups",),
        "create": ("create user_groups",),
        "update": ("edit user_groups",),
        "delete": ("delete user_groups",),
    },
}

_SYSTEM_RULES: Dict[str, Tuple[str, ...]] = {
    "info": ("view system",),
    "health": ("view system",),
    "cache_status": ("view system",),
    "cache_clear": ("manage cache",),
    "cache_warm": ("manage cache",),
    "config_get": ("view config",),
    "config_set": ("manage config",),
}

# Content workflows are keyed by workflow, not action (see ContentTool)
_CONTENT_RULES: Dict[str, Tuple[str, ...]] = {
    "setup_collection": ("super",),
    "bulk_import_entries": ("create {collection} entries",),
    "bulk_import_terms": ("edit {taxonomy} terms",),
    "content_audit": ("view entries", "view terms", "edit globals"),
    "cross_reference": ("view entries", "view terms", "edit globals"),
    "duplicate_content": ("view {source_collection} entries", "create {target_collection} entries"),
}

# Domains keyed by request.type map type -> action -> permissions
_TYPED_TABLES: Dict[str, Mapping[str, Mapping[str, Tuple[str, ...]]]] = {
    "assets": _ASSET_RULES,
    "structures": _STRUCTURE_RULES,
    "users": _USER_RULES,
}

_FLAT_TABLES: Dict[str, Mapping[str, Tuple[str, ...]]] = {
    "entries": _ENTRY_RULES,
    "terms": _TERM_RULES,
    "globals": _GLOBAL_RULES,
    "blueprints": _BLUEPRINT_RULES,
    "system": _SYSTEM_RULES,
    "content": _CONTENT_RULES,
}


class PermissionResolver:
    """Pure mapping from a request to its required permissions.

    Tables may be extended per domain with ``register``; every lookup falls
    back to ``DEFAULT_PERMISSIONS`` so the resolver is total.
    """

    def __init__(self, default: Tuple[str, ...] = DEFAULT_PERMISSIONS):
        if not default:
            raise ValueError("Default permission requirement cannot be empty")
        self._default = tuple(default)
        self._flat: Dict[str, Dict[str, Tuple[str, ...]]] = {
            domain: dict(table) for domain, table in _FLAT_TABLES.items()
        }
        self._typed: Dict[str, Dict[str, Dict[str, Tuple[str, ...]]]] = {
            domain: {t: dict(rules) for t, rules in table.items()}
            for domain, table in _TYPED_TABLES.items()
        }

    @property
    def default(self) -> Tuple[str, ...]:
        return self._default

    def register(
        self,
        domain: str,
        action: str,
        permissions: Iterable[str],
        *,
        type: Optional[str] = None,
    ) -> None:
        """Add or replace the requirement for one action."""
        perms = tuple(permissions)
        if not perms:
            raise ValueError("Permission requirement cannot be empty")
        if type is None:
            self._flat.setdefault(domain, {})[action] = perms
        else:
            self._typed.setdefault(domain, {}).setdefault(type, {})[action] = perms

    def resolve(self, domain: str, action: str, request: ToolRequest) -> Tuple[str, ...]:
        """Ordered permission names required for ``action`` in ``domain``."""
        if domain in self._typed:
            templates = self._typed[domain].get(request.type or "", {}).get(action)
        else:
            templates = self._flat.get(domain, {}).get(action)

        if not templates:
            return self._default

        values = _template_values(request)
        return tuple(template.format_map(values) for template in templates)


class _TemplateValues(dict):
    def __missing__(self, key: str) -> str:
        return ""


def _template_values(request: ToolRequest) -> Dict[str, Any]:
    values = _TemplateValues()
    for name in (
        "collection",
        "taxonomy",
        "global_set",
        "container",
        "handle",
        "type",
        "source_collection",
        "target_collection",
    ):
        values[name] = getattr(request, name) or ""
    return values


_resolver = PermissionResolver()


def get_permission_resolver() -> PermissionResolver:
    """Get the global permission resolver."""
    return _resolver


def resolve_permissions(domain: str, action: str, request: ToolRequest) -> Tuple[str, ...]:
    """Convenience wrapper around the global resolver."""
    return _resolver.resolve(domain, action, request)


def principal_from_user(user: "User", roles: "HandleRepository[Role]", groups: "HandleRepository[UserGroup]") -> Optional[Principal]:
    """Build the effective principal for ``user``.

    Permissions are the user's direct permissions plus those of every role
    assigned directly or through a group. Inactive users yield ``None``.
    """
    if not user.is_active:
        return None

    role_handles = list(user.roles)
    for group_handle in user.groups:
        group = groups.find(group_handle)
        if group is not None:
            role_handles.extend(group.roles)

    permissions = set(user.permissions)
    for handle in role_handles:
        role = roles.find(handle)
        if role is not None:
            permissions.update(role.permissions)

    return Principal(
        id=user.id,
        email=user.email,
        permissions=frozenset(permissions),
        super=user.super or SUPER_PERMISSION in permissions,
    )
