"""Unified users tool: users, roles and user groups."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from statamic_mcp.config import ServerConfig
from statamic_mcp.core.cache import CacheInvalidator, recommended_segments
from statamic_mcp.core.models import Role, User, UserGroup, hash_password, utc_now
from statamic_mcp.core.naming import canonical_tool
from statamic_mcp.core.repositories import Repositories
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

_CACHE_SEGMENTS = recommended_segments("user")
_USER_LOOKUP_ACTIONS = ("get", "update", "delete", "activate", "deactivate", "assign_role", "remove_role")

_ACTION_SUMMARY = {
    "list": "List users, roles or groups.",
    "get": "Retrieve a user (by ID or email), role or group.",
    "create": "Create a user, role or group.",
    "update": "Update a user, role or group.",
    "delete": "Delete a user, role or group; roles and groups still in use are refused.",
    "activate": "Reactivate a user account.",
    "deactivate": "Deactivate a user account; super users are refused.",
    "assign_role": "Assign a role to a user.",
    "remove_role": "Remove a role from a user.",
}


class UsersTool(DomainTool):
    tool_name = "statamic.users"
    domain = "users"
    label = "Users"
    description = "Manage users, roles and user groups."
    primary_use = "Account administration: who can sign in and what they may do."
    types = {
        "user": "User account",
        "role": "Named set of permissions",
        "group": "User group granting roles to its members",
    }
    features = (
        "user_lifecycle",
        "role_assignment",
        "super_user_protection",
        "password_hashing",
        "audit_logging",
    )
    patterns = {
        "onboarding": "create user -> assign_role",
        "offboarding": "deactivate -> remove_role",
        "role_audit": "list role -> get role for user_count",
    }
    related_tools = ("statamic.system",)

    typed_required = {
        ("role", "get"): ("handle",),
        ("role", "update"): ("handle", "data"),
        ("role", "delete"): ("handle",),
        ("group", "get"): ("handle",),
        ("group", "update"): ("handle", "data"),
        ("group", "delete"): ("handle",),
        ("user", "create"): ("data",),
        ("user", "update"): ("data",),
        ("user", "assign_role"): ("role",),
        ("user", "remove_role"): ("role",),
        ("role", "create"): ("data",),
        ("group", "create"): ("data",),
    }

    def build_actions(self) -> List[ActionDefinition]:
        return [
            self.typed_action(
                "list",
                {"user": self._list_users, "role": self._list_roles, "group": self._list_groups},
                summary=_ACTION_SUMMARY["list"],
                examples=({"action": "list", "type": "user"},),
            ),
            self.typed_action(
                "get",
                {"user": self._get_user, "role": self._get_role, "group": self._get_group},
                summary=_ACTION_SUMMARY["get"],
                examples=({"action": "get", "type": "user", "email": "editor@example.com"},),
            ),
            self.typed_action(
                "create",
                {"user": self._create_user, "role": self._create_role, "group": self._create_group},
                summary=_ACTION_SUMMARY["create"],
                examples=(
                    {
                        "action": "create",
                        "type": "user",
                        "data": {"email": "new@example.com", "name": "New User", "roles": ["editor"]},
                    },
                ),
            ),
            self.typed_action(
                "update",
                {"user": self._update_user, "role": self._update_role, "group": self._update_group},
                summary=_ACTION_SUMMARY["update"],
                destructive=True,
                examples=({"action": "update", "type": "role", "handle": "editor", "data": {"title": "Editors"}},),
            ),
            self.typed_action(
                "delete",
                {"user": self._delete_user, "role": self._delete_role, "group": self._delete_group},
                summary=_ACTION_SUMMARY["delete"],
                destructive=True,
                examples=({"action": "delete", "type": "user", "email": "old@example.com"},),
            ),
            self.typed_action(
                "activate",
                {"user": self._activate},
                summary=_ACTION_SUMMARY["activate"],
                examples=({"action": "activate", "type": "user", "email": "editor@example.com"},),
            ),
            self.typed_action(
                "deactivate",
                {"user": self._deactivate},
                summary=_ACTION_SUMMARY["deactivate"],
                destructive=True,
                examples=({"action": "deactivate", "type": "user", "email": "editor@example.com"},),
            ),
            self.typed_action(
                "assign_role",
                {"user": self._assign_role},
                summary=_ACTION_SUMMARY["assign_role"],
                examples=({"action": "assign_role", "type": "user", "email": "editor@example.com", "role": "editor"},),
            ),
            self.typed_action(
                "remove_role",
                {"user": self._remove_role},
                summary=_ACTION_SUMMARY["remove_role"],
                destructive=True,
                examples=({"action": "remove_role", "type": "user", "email": "editor@example.com", "role": "editor"},),
            ),
        ]

    def validate_required(self, definition: ActionDefinition, request: ToolRequest) -> Optional[ToolResponse]:
        if (
            request.type == "user"
            and definition.name in _USER_LOOKUP_ACTIONS
            and not (request.has("id") or request.has("email"))
        ):
            return missing_fields_error(["id", "email"], message="Either ID or email is required")
        return super().validate_required(definition, request)

    def missing_field_message(self, field_name: str, action: str) -> Optional[str]:
        if field_name == "handle":
            return f"Handle is required for {action} action"
        if field_name == "data":
            return f"Data is required for {action} action"
        if field_name == "role":
            return f"Role handle is required for {action} action"
        return None

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def _find_user(self, request: ToolRequest) -> Optional[User]:
        if request.id:
            return self.repositories.users.find(request.id)
        return self.repositories.users.find_by_email(request.email or "")

    @staticmethod
    def _user_ref(request: ToolRequest) -> str:
        return request.id or request.email or ""

    def _unknown_roles(self, handles: List[str]) -> List[str]:
        return [h for h in handles if self.repositories.roles.find(h) is None]

    def _unknown_groups(self, handles: List[str]) -> List[str]:
        return [h for h in handles if self.repositories.groups.find(h) is None]

    def _list_users(self, *, request: ToolRequest) -> ToolResponse:
        page, pagination = paginate(self.repositories.users.all(), request)
        if request.include_details:
            users = [u.to_dict() for u in page]
        else:
            users = [{"id": u.id, "email": u.email, "name": u.name} for u in page]
        return success_response(users=users, pagination=pagination)

    def _get_user(self, *, request: ToolRequest) -> ToolResponse:
        user = self._find_user(request)
        if user is None:
            return not_found_error("User", self._user_ref(request))
        return success_response(user=user.to_dict())

    def _create_user(self, *, request: ToolRequest) -> ToolResponse:
        data: Dict[str, Any] = dict(request.data or {})
        email = data.pop("email", None) or request.email
        if not email:
            return missing_fields_error(["email"], message="Email is required")
        if self.repositories.users.find_by_email(email) is not None:
            return conflict_error(f"User with email '{email}' already exists", details={"email": email})

        roles = list(data.pop("roles", []) or [])
        groups = list(data.pop("groups", []) or [])
        unknown = self._unknown_roles(roles)
        if unknown:
            return not_found_error("Role", unknown[0])
        unknown = self._unknown_groups(groups)
        if unknown:
            return not_found_error("User group", unknown[0])

        password = data.pop("password", None)
        user = User(
            id=str(uuid.uuid4()),
            email=email,
            name=str(data.pop("name", "") or ""),
            super=bool(data.pop("super", False)),
            roles=roles,
            groups=groups,
            permissions=list(data.pop("permissions", []) or []),
            data=data,
            password_hash=hash_password(str(password)) if password else None,
        )
        self.repositories.users.save(user)
        logger.info("Created user %s", user.id)

        return success_response(
            user={**user.to_dict(), "created": True},
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _update_user(self, *, request: ToolRequest) -> ToolResponse:
        user = self._find_user(request)
        if user is None:
            return not_found_error("User", self._user_ref(request))

        data: Dict[str, Any] = dict(request.data or {})
        new_email = data.pop("email", None)
        if new_email and new_email.lower() != user.email.lower():
            if self.repositories.users.find_by_email(new_email) is not None:
                return conflict_error(
                    f"User with email '{new_email}' already exists", details={"email": new_email}
                )
            user.email = new_email

        if "roles" in data:
            roles = list(data.pop("roles") or [])
            unknown = self._unknown_roles(roles)
            if unknown:
                return not_found_error("Role", unknown[0])
            user.roles = roles
        if "groups" in data:
            groups = list(data.pop("groups") or [])
            unknown = self._unknown_groups(groups)
            if unknown:
                return not_found_error("User group", unknown[0])
            user.groups = groups

        if "name" in data:
            user.name = str(data.pop("name") or "")
        if "password" in data:
            user.password_hash = hash_password(str(data.pop("password")))
        if data.pop("super", False):
            user.super = True
        if "permissions" in data:
            user.permissions = list(data.pop("permissions") or [])
        user.data.update(data)
        user.last_modified = utc_now()
        self.repositories.users.save(user)

        return success_response(
            user={**user.to_dict(), "updated": True},
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _delete_user(self, *, request: ToolRequest) -> ToolResponse:
        user = self._find_user(request)
        if user is None:
            return not_found_error("User", self._user_ref(request))

        if user.super:
            supers = [u for u in self.repositories.users.all() if u.super]
            if len(supers) <= 1:
                return conflict_error("Cannot delete the last super user", details={"id": user.id})

        self.repositories.users.delete(user.id)
        logger.info("Deleted user %s", user.id)
        return success_response(
            user={"id": user.id, "email": user.email, "deleted": True},
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _set_status(self, user: User, status: str) -> ToolResponse:
        changed = user.status != status
        if changed:
            user.status = status
            user.last_modified = utc_now()
            self.repositories.users.save(user)
        return success_response(
            user={"id": user.id, "email": user.email, "status": user.status},
            changed=changed,
            cache=self.invalidate(_CACHE_SEGMENTS) if changed else None,
        )

    def _activate(self, *, request: ToolRequest) -> ToolResponse:
        user = self._find_user(request)
        if user is None:
            return not_found_error("User", self._user_ref(request))
        return self._set_status(user, "active")

    def _deactivate(self, *, request: ToolRequest) -> ToolResponse:
        user = self._find_user(request)
        if user is None:
            return not_found_error("User", self._user_ref(request))
        if user.super:
            return validation_error("Cannot deactivate super users for security reasons", field="id")
        return self._set_status(user, "inactive")

    def _assign_role(self, *, request: ToolRequest) -> ToolResponse:
        user = self._find_user(request)
        if user is None:
            return not_found_error("User", self._user_ref(request))
        if self.repositories.roles.find(request.role) is None:
            return not_found_error("Role", request.role)

        changed = request.role not in user.roles
        if changed:
            user.roles.append(request.role)
            self.repositories.users.save(user)
        return success_response(
            user={"id": user.id, "email": user.email, "roles": list(user.roles)},
            role=request.role,
            assigned=True,
            cache=self.invalidate(_CACHE_SEGMENTS) if changed else None,
        )

    def _remove_role(self, *, request: ToolRequest) -> ToolResponse:
        user = self._find_user(request)
        if user is None:
            return not_found_error("User", self._user_ref(request))
        if self.repositories.roles.find(request.role) is None:
            return not_found_error("Role", request.role)

        changed = request.role in user.roles
        if changed:
            user.roles.remove(request.role)
            self.repositories.users.save(user)
        return success_response(
            user={"id": user.id, "email": user.email, "roles": list(user.roles)},
            role=request.role,
            removed=changed,
            cache=self.invalidate(_CACHE_SEGMENTS) if changed else None,
        )

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def _role_user_count(self, handle: str) -> int:
        return sum(1 for u in self.repositories.users.all() if handle in u.roles)

    def _list_roles(self, *, request: ToolRequest) -> ToolResponse:
        page, pagination = paginate(self.repositories.roles.all(), request)
        roles = []
        for role in page:
            item = role.to_dict()
            if not request.include_details:
                item.pop("permissions")
            roles.append(item)
        return success_response(roles=roles, pagination=pagination)

    def _get_role(self, *, request: ToolRequest) -> ToolResponse:
        role = self.repositories.roles.find(request.handle)
        if role is None:
            return not_found_error("Role", request.handle)
        return success_response(role={**role.to_dict(), "user_count": self._role_user_count(role.handle)})

    def _create_role(self, *, request: ToolRequest) -> ToolResponse:
        data = dict(request.data or {})
        handle = data.get("handle") or request.handle
        if not handle:
            return missing_fields_error(["handle"], message="Role handle is required")
        if not is_valid_handle(handle):
            return validation_error(f"Invalid role handle: {handle}", field="handle")
        if self.repositories.roles.find(handle) is not None:
            return conflict_error(f"Role '{handle}' already exists", details={"handle": handle})

        role = Role(
            handle=handle,
            title=str(data.get("title") or ""),
            permissions=list(data.get("permissions") or []),
        )
        self.repositories.roles.save(role)
        logger.info("Created role %s", handle)
        return success_response(
            role={**role.to_dict(), "created": True},
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _update_role(self, *, request: ToolRequest) -> ToolResponse:
        role = self.repositories.roles.find(request.handle)
        if role is None:
            return not_found_error("Role", request.handle)
        data = request.data or {}
        if "title" in data:
            role.title = str(data["title"] or "")
        if "permissions" in data:
            role.permissions = list(data["permissions"] or [])
        self.repositories.roles.save(role)
        return success_response(
            role={**role.to_dict(), "updated": True},
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _delete_role(self, *, request: ToolRequest) -> ToolResponse:
        handle = request.handle
        if self.repositories.roles.find(handle) is None:
            return not_found_error("Role", handle)
        count = self._role_user_count(handle)
        if count > 0:
            return conflict_error(
                f"Cannot delete role '{handle}' - it is assigned to {count} users",
                details={"handle": handle, "user_count": count},
            )
        self.repositories.roles.delete(handle)
        logger.info("Deleted role %s", handle)
        return success_response(
            role={"handle": handle, "deleted": True},
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def _group_members(self, handle: str) -> List[User]:
        return [u for u in self.repositories.users.all() if handle in u.groups]

    def _list_groups(self, *, request: ToolRequest) -> ToolResponse:
        page, pagination = paginate(self.repositories.groups.all(), request)
        return success_response(
            groups=[{**g.to_dict(), "user_count": len(self._group_members(g.handle))} for g in page],
            pagination=pagination,
        )

    def _get_group(self, *, request: ToolRequest) -> ToolResponse:
        group = self.repositories.groups.find(request.handle)
        if group is None:
            return not_found_error("User group", request.handle)
        members = self._group_members(group.handle)
        return success_response(
            group={
                **group.to_dict(),
                "users": [{"id": u.id, "email": u.email, "name": u.name} for u in members],
            }
        )

    def _create_group(self, *, request: ToolRequest) -> ToolResponse:
        data = dict(request.data or {})
        handle = data.get("handle") or request.handle
        if not handle:
            return missing_fields_error(["handle"], message="Group handle is required")
        if not is_valid_handle(handle):
            return validation_error(f"Invalid group handle: {handle}", field="handle")
        if self.repositories.groups.find(handle) is not None:
            return conflict_error(f"User group '{handle}' already exists", details={"handle": handle})

        roles = list(data.get("roles") or [])
        unknown = self._unknown_roles(roles)
        if unknown:
            return not_found_error("Role", unknown[0])

        group = UserGroup(handle=handle, title=str(data.get("title") or ""), roles=roles)
        self.repositories.groups.save(group)
        logger.info("Created user group %s", handle)
        return success_response(
            group={**group.to_dict(), "created": True},
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _update_group(self, *, request: ToolRequest) -> ToolResponse:
        group = self.repositories.groups.find(request.handle)
        if group is None:
            return not_found_error("User group", request.handle)
        data = request.data or {}
        if "roles" in data:
            roles = list(data["roles"] or [])
            unknown = self._unknown_roles(roles)
            if unknown:
                return not_found_error("Role", unknown[0])
            group.roles = roles
        if "title" in data:
            group.title = str(data["title"] or "")
        self.repositories.groups.save(group)
        return success_response(
            group={**group.to_dict(), "updated": True},
            cache=self.invalidate(_CACHE_SEGMENTS),
        )

    def _delete_group(self, *, request: ToolRequest) -> ToolResponse:
        handle = request.handle
        if self.repositories.groups.find(handle) is None:
            return not_found_error("User group", handle)

        # Members keep their accounts; only the membership goes away
        members = self._group_members(handle)
        for user in members:
            user.groups = [g for g in user.groups if g != handle]
            self.repositories.users.save(user)
        self.repositories.groups.delete(handle)
        logger.info("Deleted user group %s (%d members)", handle, len(members))
        return success_response(
            group={"handle": handle, "deleted": True, "members_removed": len(members)},
            cache=self.invalidate(_CACHE_SEGMENTS),
        )


def register_unified_users_tool(
    mcp: FastMCP,
    config: ServerConfig,
    *,
    repositories: Repositories,
    cache: CacheInvalidator,
) -> UsersTool:
    """Register the consolidated users tool."""

    tool = UsersTool(config, repositories, cache)

    @canonical_tool(
        mcp,
        canonical_name=tool.tool_name,
    )
    def users(
        action: str,
        type: Optional[str] = None,
        id: Optional[str] = None,
        email: Optional[str] = None,
        handle: Optional[str] = None,
        role: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        include_details: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        dry_run: Optional[bool] = None,
        help_topic: Optional[str] = None,
    ) -> dict:
        """Manage users, roles and groups via `action` and `type`.

        Args:
            action: list, get, create, update, delete, activate, deactivate,
                assign_role, remove_role (or help, discover, examples).
            type: user, role, or group.
            id: User ID.
            email: User email, an alternative to ``id``.
            handle: Role or group handle.
            role: Role handle for assign_role/remove_role.
            data: Fields for create/update. Passwords are hashed, never returned.
            include_details: Include full records in list results.
            limit: Page size for list.
            offset: Page offset for list.
            dry_run: Preview destructive actions without executing them.
            help_topic: Topic for the help action.
        """

        return tool.handle(
            tool_arguments(
                action=action,
                type=type,
                id=id,
                email=email,
                handle=handle,
                role=role,
                data=data,
                include_details=include_details,
                limit=limit,
                offset=offset,
                dry_run=dry_run,
                help_topic=help_topic,
            )
        )

    logger.debug("Registered unified users tool")
    return tool


__all__ = [
    "UsersTool",
    "register_unified_users_tool",
]
