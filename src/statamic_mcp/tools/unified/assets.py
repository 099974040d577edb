"""Unified assets tool: asset containers and the assets inside them.

Requests are addressed by ``type``:

- ``container``: list, get, create, update, delete
- ``asset``: list, get, update, delete, move, copy, rename
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from statamic_mcp.config import ServerConfig
from statamic_mcp.core.cache import CacheInvalidator
from statamic_mcp.core.models import Asset, AssetContainer, utc_now
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

_CONTAINER_CACHE = ("stache",)
_ASSET_CACHE = ("stache", "static")

_CONTAINER_SETTINGS = ("title", "disk", "allow_uploads", "allow_downloads", "allow_renaming", "allow_moving")

_ACTION_SUMMARY = {
    "list": "List containers, or the assets in a container (optionally one folder).",
    "get": "Retrieve a container or a single asset.",
    "create": "Create an asset container.",
    "update": "Update container settings or asset metadata.",
    "delete": "Delete an empty container or an asset.",
    "move": "Move an asset to another folder.",
    "copy": "Copy an asset to another folder.",
    "rename": "Rename an asset in place.",
}

_REQUIRED_MESSAGES = {
    ("asset", "get"): "Both container and path are required",
    ("asset", "update"): "Both container and path are required",
    ("asset", "delete"): "Both container and path are required",
    ("asset", "move"): "Container, path, and destination are required",
    ("asset", "copy"): "Container, path, and destination are required",
    ("asset", "rename"): "Container, path, and new_name are required",
}


def _asset_error(container: str, path: str) -> ToolResponse:
    return not_found_error("Asset", f"{container}::{path}")


class AssetsTool(DomainTool):
    tool_name = "statamic.assets"
    domain = "assets"
    label = "Assets"
    description = "Manage asset containers and assets: list, get, create, update, delete, move, copy, rename."
    primary_use = "Organize media: containers define storage, assets carry files plus metadata."
    types = {
        "container": "Storage location for assets (disk, permissions, settings)",
        "asset": "A file in a container, addressed by container and path",
    }
    features = (
        "container_management",
        "folder_filtering",
        "move_copy_rename",
        "metadata_updates",
        "deletion_protection",
        "cache_management",
    )
    patterns = {
        "media_audit": "container list -> asset list -> asset get",
        "reorganize": "asset list with folder -> move or rename",
        "container_cleanup": "asset list -> asset delete -> container delete",
    }
    related_tools = ("statamic.blueprints", "statamic.entries")

    typed_required = {
        ("container", "get"): ("handle",),
        ("container", "update"): ("handle", "data"),
        ("container", "delete"): ("handle",),
        ("asset", "list"): ("container",),
        ("asset", "get"): ("container", "path"),
        ("asset", "update"): ("container", "path", "data"),
        ("asset", "delete"): ("container", "path"),
        ("asset", "move"): ("container", "path", "destination"),
        ("asset", "copy"): ("container", "path", "destination"),
        ("asset", "rename"): ("container", "path", "new_name"),
    }

    def build_actions(self) -> List[ActionDefinition]:
        return [
            self.typed_action(
                "list",
                {"container": self._list_containers, "asset": self._list_assets},
                summary=_ACTION_SUMMARY["list"],
                examples=(
                    {"action": "list", "type": "container"},
                    {"action": "list", "type": "asset", "container": "assets", "folder": "images"},
                ),
            ),
            self.typed_action(
                "get",
                {"container": self._get_container, "asset": self._get_asset},
                summary=_ACTION_SUMMARY["get"],
                examples=({"action": "get", "type": "asset", "container": "assets", "path": "images/hero.jpg"},),
            ),
            self.typed_action(
                "create",
                {"container": self._create_container},
                summary=_ACTION_SUMMARY["create"],
                examples=(
                    {"action": "create", "type": "container", "data": {"handle": "documents", "disk": "public"}},
                ),
            ),
            self.typed_action(
                "update",
                {"container": self._update_container, "asset": self._update_asset},
                summary=_ACTION_SUMMARY["update"],
                destructive=True,
                examples=(
                    {
                        "action": "update",
                        "type": "asset",
                        "container": "assets",
                        "path": "images/hero.jpg",
                        "data": {"alt": "Hero image"},
                    },
                ),
            ),
            self.typed_action(
                "delete",
                {"container": self._delete_container, "asset": self._delete_asset},
                summary=_ACTION_SUMMARY["delete"],
                destructive=True,
                examples=({"action": "delete", "type": "container", "handle": "old"},),
            ),
            self.typed_action(
                "move",
                {"asset": self._move_asset},
                summary=_ACTION_SUMMARY["move"],
                destructive=True,
                examples=(
                    {
                        "action": "move",
                        "type": "asset",
                        "container": "assets",
                        "path": "hero.jpg",
                        "destination": "images",
                    },
                ),
            ),
            self.typed_action(
                "copy",
                {"asset": self._copy_asset},
                summary=_ACTION_SUMMARY["copy"],
                examples=(
                    {
                        "action": "copy",
                        "type": "asset",
                        "container": "assets",
                        "path": "hero.jpg",
                        "destination": "archive",
                    },
                ),
            ),
            self.typed_action(
                "rename",
                {"asset": self._rename_asset},
                summary=_ACTION_SUMMARY["rename"],
                destructive=True,
                examples=(
                    {
                        "action": "rename",
                        "type": "asset",
                        "container": "assets",
                        "path": "images/hero.jpg",
                        "new_name": "banner",
                    },
                ),
            ),
        ]

    def validate_required(self, definition: ActionDefinition, request: ToolRequest) -> Optional[ToolResponse]:
        missing = request.missing(self.required_fields(definition, request))
        if not missing:
            return None
        message = _REQUIRED_MESSAGES.get((request.type or "", definition.name))
        if message and "data" not in missing:
            return missing_fields_error(missing, message=message)
        return missing_fields_error(missing)

    def check_target(self, definition: ActionDefinition, request: ToolRequest) -> Optional[ToolResponse]:
        if request.type == "asset" and request.container:
            if self.repositories.containers.find(request.container) is None:
                return not_found_error("Asset container", request.container)
        return None

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    def _container_details(self, container: AssetContainer) -> Dict[str, Any]:
        assets = self.repositories.assets.query(container.handle)
        folders = {a.folder for a in assets if a.folder}
        return {
            **container.to_dict(),
            "asset_count": len(assets),
            "folder_count": len(folders),
        }

    def _list_containers(self, *, request: ToolRequest) -> ToolResponse:
        containers = self.repositories.containers.all()
        if request.include_details:
            items = [self._container_details(c) for c in containers]
        else:
            items = [{"handle": c.handle, "title": c.to_dict()["title"], "disk": c.disk} for c in containers]
        return success_response(containers=items, total=len(items))

    def _get_container(self, *, request: ToolRequest) -> ToolResponse:
        container = self.repositories.containers.find(request.handle)
        if container is None:
            return not_found_error("Asset container", request.handle)
        return success_response(container=self._container_details(container))

    def _create_container(self, *, request: ToolRequest) -> ToolResponse:
        data: Dict[str, Any] = dict(request.data or {})
        handle = data.pop("handle", None) or request.handle
        if not handle:
            return missing_fields_error(["handle"], message="Container handle is required")
        if not is_valid_handle(handle):
            return validation_error(f"Invalid container handle: {handle}", field="handle")
        if self.repositories.containers.find(handle) is not None:
            return conflict_error(f"Container '{handle}' already exists", details={"handle": handle})

        settings = {k: v for k, v in data.items() if k in _CONTAINER_SETTINGS}
        container = AssetContainer(handle=handle, **settings)
        self.repositories.containers.save(container)
        logger.info("Created asset container %s", handle)

        return success_response(
            container={**container.to_dict(), "created": True},
            cache=self.invalidate(_CONTAINER_CACHE),
        )

    def _update_container(self, *, request: ToolRequest) -> ToolResponse:
        container = self.repositories.containers.find(request.handle)
        if container is None:
            return not_found_error("Asset container", request.handle)

        # Unknown settings are ignored
        settings = {k: v for k, v in (request.data or {}).items() if k in _CONTAINER_SETTINGS}
        container = replace(container, **settings)
        self.repositories.containers.save(container)

        return success_response(
            container={**container.to_dict(), "updated": True},
            updated_fields=sorted(settings),
            cache=self.invalidate(_CONTAINER_CACHE),
        )

    def _delete_container(self, *, request: ToolRequest) -> ToolResponse:
        handle = request.handle
        if self.repositories.containers.find(handle) is None:
            return not_found_error("Asset container", handle)

        asset_count = self.repositories.assets.count(handle)
        if asset_count > 0:
            return conflict_error(
                f"Cannot delete container '{handle}' - it contains {asset_count} assets",
                details={"handle": handle, "asset_count": asset_count},
            )

        self.repositories.containers.delete(handle)
        logger.info("Deleted asset container %s", handle)
        return success_response(
            container={"handle": handle, "deleted": True},
            cache=self.invalidate(_CONTAINER_CACHE),
        )

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def _list_assets(self, *, request: ToolRequest) -> ToolResponse:
        assets = self.repositories.assets.query(request.container, folder=request.folder)
        page, pagination = paginate(assets, request)
        return success_response(
            assets=[a.to_dict() for a in page],
            pagination=pagination,
            container=request.container,
            folder=request.folder,
        )

    def _get_asset(self, *, request: ToolRequest) -> ToolResponse:
        asset = self.repositories.assets.find(request.container, request.path)
        if asset is None:
            return _asset_error(request.container, request.path)
        return success_response(asset=asset.to_dict())

    def _update_asset(self, *, request: ToolRequest) -> ToolResponse:
        asset = self.repositories.assets.find(request.container, request.path)
        if asset is None:
            return _asset_error(request.container, request.path)

        asset.data.update(request.data or {})
        asset.last_modified = utc_now()
        self.repositories.assets.save(asset)

        return success_response(
            asset={**asset.to_dict(), "updated": True},
            cache=self.invalidate(_ASSET_CACHE),
        )

    def _delete_asset(self, *, request: ToolRequest) -> ToolResponse:
        asset = self.repositories.assets.find(request.container, request.path)
        if asset is None:
            return _asset_error(request.container, request.path)

        self.repositories.assets.delete(asset.container, asset.path)
        logger.info("Deleted asset %s", asset.id)
        return success_response(
            asset={"id": asset.id, "path": asset.path, "deleted": True},
            cache=self.invalidate(_ASSET_CACHE),
        )

    def _relocate(self, asset: Asset, new_path: str) -> Optional[ToolResponse]:
        if new_path == asset.path:
            return validation_error("Destination is the asset's current location", field="destination")
        if self.repositories.assets.find(asset.container, new_path) is not None:
            return conflict_error(
                f"Asset already exists: {asset.container}::{new_path}",
                details={"container": asset.container, "path": new_path},
            )
        return None

    @staticmethod
    def _in_folder(folder: str, basename: str) -> str:
        folder = folder.strip("/")
        return f"{folder}/{basename}" if folder else basename

    def _move_asset(self, *, request: ToolRequest) -> ToolResponse:
        asset = self.repositories.assets.find(request.container, request.path)
        if asset is None:
            return _asset_error(request.container, request.path)

        new_path = self._in_folder(request.destination, asset.basename)
        failure = self._relocate(asset, new_path)
        if failure is not None:
            return failure

        old_path = asset.path
        moved = replace(asset, path=new_path, last_modified=utc_now())
        self.repositories.assets.save(moved)
        self.repositories.assets.delete(asset.container, old_path)

        return success_response(
            asset={"id": moved.id, "old_path": old_path, "new_path": new_path, "moved": True},
            cache=self.invalidate(_ASSET_CACHE),
        )

    def _copy_asset(self, *, request: ToolRequest) -> ToolResponse:
        asset = self.repositories.assets.find(request.container, request.path)
        if asset is None:
            return _asset_error(request.container, request.path)

        new_path = self._in_folder(request.destination, asset.basename)
        failure = self._relocate(asset, new_path)
        if failure is not None:
            return failure

        copy = replace(asset, path=new_path, data=dict(asset.data), last_modified=utc_now())
        self.repositories.assets.save(copy)

        return success_response(
            original={"id": asset.id, "path": asset.path},
            copy={"id": copy.id, "path": copy.path, "copied": True},
            cache=self.invalidate(_ASSET_CACHE),
        )

    def _rename_asset(self, *, request: ToolRequest) -> ToolResponse:
        asset = self.repositories.assets.find(request.container, request.path)
        if asset is None:
            return _asset_error(request.container, request.path)

        new_name = request.new_name.strip()
        if "/" in new_name:
            return validation_error("New name must not contain a folder", field="new_name")
        if not PurePosixPath(new_name).suffix:
            new_name += PurePosixPath(asset.path).suffix

        new_path = self._in_folder(asset.folder, new_name)
        failure = self._relocate(asset, new_path)
        if failure is not None:
            return failure

        old_path = asset.path
        renamed = replace(asset, path=new_path, last_modified=utc_now())
        self.repositories.assets.save(renamed)
        self.repositories.assets.delete(asset.container, old_path)

        return success_response(
            asset={"id": renamed.id, "old_path": old_path, "new_path": new_path, "renamed": True},
            cache=self.invalidate(_ASSET_CACHE),
        )


def register_unified_assets_tool(
    mcp: FastMCP,
    config: ServerConfig,
    *,
    repositories: Repositories,
    cache: CacheInvalidator,
) -> AssetsTool:
    """Register the consolidated assets tool."""

    tool = AssetsTool(config, repositories, cache)

    @canonical_tool(
        mcp,
        canonical_name=tool.tool_name,
    )
    def assets(
        action: str,
        type: Optional[str] = None,
        handle: Optional[str] = None,
        container: Optional[str] = None,
        path: Optional[str] = None,
        destination: Optional[str] = None,
        new_name: Optional[str] = None,
        folder: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        include_details: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        dry_run: Optional[bool] = None,
        help_topic: Optional[str] = None,
    ) -> dict:
        """Manage asset containers and assets via `action` and `type`.

        Args:
            action: list, get, create, update, delete, move, copy, rename
                (or help, discover, examples).
            type: "container" or "asset".
            handle: Container handle for container actions.
            container: Container handle for asset actions.
            path: Asset path within the container.
            destination: Target folder for move/copy.
            new_name: New file name for rename (extension kept if omitted).
            folder: Folder filter for asset list.
            data: Container settings or asset metadata.
            include_details: Include counts in container list.
            limit: Page size for asset list.
            offset: Page offset for asset list.
            dry_run: Preview destructive actions without executing them.
            help_topic: Topic for the help action.
        """

        return tool.handle(
            tool_arguments(
                action=action,
                type=type,
                handle=handle,
                container=container,
                path=path,
                destination=destination,
                new_name=new_name,
                folder=folder,
                data=data,
                include_details=include_details,
                limit=limit,
                offset=offset,
                dry_run=dry_run,
                help_topic=help_topic,
            )
        )

    logger.debug("Registered unified assets tool")
    return tool


__all__ = [
    "AssetsTool",
    "register_unified_assets_tool",
]
