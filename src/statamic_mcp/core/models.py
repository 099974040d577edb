"""Content records returned by the repositories.

These mirror the host CMS's objects closely enough for the tools to shape
responses; storage semantics live behind the repository interfaces.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Site:
    handle: str
    name: str = ""
    url: str = "/"
    locale: str = "en_US"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "handle": self.handle,
            "name": self.name or self.handle.title(),
            "url": self.url,
            "locale": self.locale,
        }


@dataclass
class Collection:
    handle: str
    title: str = ""
    route: Optional[str] = None
    sites: List[str] = field(default_factory=lambda: ["default"])
    taxonomies: List[str] = field(default_factory=list)
    dated: bool = False
    blueprint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "handle": self.handle,
            "title": self.title or self.handle.replace("_", " ").title(),
            "route": self.route,
            "sites": list(self.sites),
            "taxonomies": list(self.taxonomies),
            "dated": self.dated,
            "blueprint": self.blueprint,
        }


@dataclass
class Taxonomy:
    handle: str
    title: str = ""
    sites: List[str] = field(default_factory=lambda: ["default"])
    collections: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "handle": self.handle,
            "title": self.title or self.handle.replace("_", " ").title(),
            "sites": list(self.sites),
            "collections": list(self.collections),
        }


@dataclass
class Navigation:
    handle: str
    title: str = ""
    max_depth: Optional[int] = None
    collections: List[str] = field(default_factory=list)
    tree: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "handle": self.handle,
            "title": self.title or self.handle.replace("_", " ").title(),
            "max_depth": self.max_depth,
            "collections": list(self.collections),
            "tree": list(self.tree),
        }


@dataclass
class Entry:
    id: str
    collection: str
    slug: str
    data: Dict[str, Any] = field(default_factory=dict)
    site: str = "default"
    published: bool = True
    date: Optional[str] = None
    last_modified: str = field(default_factory=utc_now)

    @property
    def title(self) -> str:
        return str(self.data.get("title") or self.slug)

    @property
    def url(self) -> str:
        return f"/{self.collection}/{self.slug}"

    @property
    def edit_url(self) -> str:
        return f"/cp/collections/{self.collection}/entries/{self.id}"

    def to_summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "published": self.published,
            "date": self.date,
            "last_modified": self.last_modified,
            "url": self.url,
            "edit_url": self.edit_url,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.to_summary(),
            "collection": self.collection,
            "site": self.site,
            "data": dict(self.data),
        }


@dataclass
class Term:
    taxonomy: str
    slug: str
    data: Dict[str, Any] = field(default_factory=dict)
    site: str = "default"
    last_modified: str = field(default_factory=utc_now)

    @property
    def id(self) -> str:
        return f"{self.taxonomy}::{self.slug}"

    @property
    def title(self) -> str:
        return str(self.data.get("title") or self.slug)

    def to_dict(self, entries_count: Optional[int] = None) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "taxonomy": self.taxonomy,
            "site": self.site,
            "url": f"/{self.taxonomy}/{self.slug}",
            "last_modified": self.last_modified,
            "data": dict(self.data),
        }
        if entries_count is not None:
            result["entries_count"] = entries_count
        return result


@dataclass
class GlobalSet:
    handle: str
    title: str = ""
    sites: List[str] = field(default_factory=lambda: ["default"])
    values: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def values_for(self, site: str) -> Dict[str, Any]:
        return dict(self.values.get(site, {}))

    def to_dict(self, site: Optional[str] = None) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "handle": self.handle,
            "title": self.title or self.handle.replace("_", " ").title(),
            "sites": list(self.sites),
        }
        if site is not None:
            result["site"] = site
            result["data"] = self.values_for(site)
        return result


@dataclass
class AssetContainer:
    handle: str
    title: str = ""
    disk: str = "public"
    allow_uploads: bool = True
    allow_downloads: bool = True
    allow_renaming: bool = True
    allow_moving: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "handle": self.handle,
            "title": self.title or self.handle.replace("_", " ").title(),
            "disk": self.disk,
            "allow_uploads": self.allow_uploads,
            "allow_downloads": self.allow_downloads,
            "allow_renaming": self.allow_renaming,
            "allow_moving": self.allow_moving,
        }


@dataclass
class Asset:
    container: str
    path: str
    size: int = 0
    mime_type: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    last_modified: str = field(default_factory=utc_now)

    @property
    def id(self) -> str:
        return f"{self.container}::{self.path}"

    @property
    def basename(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def folder(self) -> str:
        parent = str(PurePosixPath(self.path).parent)
        return "" if parent == "." else parent

    def to_dict(self) -> Dict[str, Any]:
        pure = PurePosixPath(self.path)
        return {
            "id": self.id,
            "container": self.container,
            "path": self.path,
            "basename": self.basename,
            "filename": pure.stem,
            "extension": pure.suffix.lstrip("."),
            "folder": self.folder,
            "size": self.size,
            "mime_type": self.mime_type,
            "last_modified": self.last_modified,
            "data": dict(self.data),
        }


@dataclass
class Blueprint:
    handle: str
    namespace: str = "collections"
    title: str = ""
    fields: List[Dict[str, Any]] = field(default_factory=list)
    hidden: bool = False

    @property
    def key(self) -> str:
        return f"{self.namespace}.{self.handle}"

    def field_handles(self) -> List[str]:
        return [f.get("handle", "") for f in self.fields]

    def to_dict(self, include_fields: bool = False) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "handle": self.handle,
            "namespace": self.namespace,
            "title": self.title or self.handle.replace("_", " ").title(),
            "hidden": self.hidden,
            "field_count": len(self.fields),
        }
        if include_fields:
            result["fields"] = [dict(f) for f in self.fields]
        return result


@dataclass
class Role:
    handle: str
    title: str = ""
    permissions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "handle": self.handle,
            "title": self.title or self.handle.replace("_", " ").title(),
            "permissions": list(self.permissions),
        }


@dataclass
class UserGroup:
    handle: str
    title: str = ""
    roles: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "handle": self.handle,
            "title": self.title or self.handle.replace("_", " ").title(),
            "roles": list(self.roles),
        }


@dataclass
class User:
    id: str
    email: str
    name: str = ""
    super: bool = False
    roles: List[str] = field(default_factory=list)
    groups: List[str] = field(default_factory=list)
    permissions: List[str] = field(default_factory=list)
    status: str = "active"
    data: Dict[str, Any] = field(default_factory=dict)
    password_hash: Optional[str] = None
    last_modified: str = field(default_factory=utc_now)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_dict(self) -> Dict[str, Any]:
        # Never expose the password hash
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "super": self.super,
            "roles": list(self.roles),
            "groups": list(self.groups),
            "status": self.status,
            "has_password": self.password_hash is not None,
            "last_modified": self.last_modified,
            "data": dict(self.data),
        }


def hash_password(password: str, *, salt: Optional[str] = None, iterations: int = 120_000) -> str:
    """Hash a password as ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``."""
    salt = salt or secrets.token_hex(8)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return f"pbkdf2_sha256${iterations}${salt}${digest.hex()}"
