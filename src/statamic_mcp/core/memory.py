"""
In-memory content store implementing every repository interface.

Used as the default data layer for the server and as the fake in tests.
Records are copied on the way in and out so callers never mutate stored
state without going through ``save``. A store may be seeded from a JSON
file (``STATAMIC_MCP_CONTENT_PATH``) shaped like::

    {
        "sites": [{"handle": "default", "name": "English", "url": "/"}],
        "collections": [{"handle": "articles", "title": "Articles"}],
        "entries": [{"id": "1", "collection": "articles", "slug": "hello",
                     "data": {"title": "Hello"}}],
        "users": [{"id": "u1", "email": "admin@example.com", "super": true}]
    }
"""

import copy
import dataclasses
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Tuple, Type, TypeVar

from statamic_mcp.core.models import (
    Asset,
    AssetContainer,
    Blueprint,
    Collection,
    Entry,
    GlobalSet,
    Navigation,
    Role,
    Site,
    Taxonomy,
    Term,
    User,
    UserGroup,
    hash_password,
)
from statamic_mcp.core.repositories import Repositories

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MemoryHandleRepository(Generic[T]):
    """Handle-keyed records kept in insertion order."""

    def __init__(self, records: Optional[List[T]] = None, key: Callable[[T], str] = lambda r: r.handle):  # type: ignore[attr-defined]
        self._key = key
        self._records: Dict[str, T] = {}
        for record in records or []:
            self.save(record)

    def all(self) -> List[T]:
        return [copy.deepcopy(r) for r in self._records.values()]

    def find(self, handle: str) -> Optional[T]:
        record = self._records.get(handle)
        return copy.deepcopy(record) if record is not None else None

    def save(self, record: T) -> T:
        self._records[self._key(record)] = copy.deepcopy(record)
        return record

    def delete(self, handle: str) -> bool:
        return self._records.pop(handle, None) is not None


class MemoryEntryRepository:
    def __init__(self, entries: Optional[List[Entry]] = None):
        self._entries: Dict[str, Entry] = {}
        for entry in entries or []:
            self.save(entry)

    def query(
        self,
        collection: str,
        *,
        site: Optional[str] = None,
        include_unpublished: bool = True,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Entry]:
        results = []
        for entry in self._entries.values():
            if entry.collection != collection:
                continue
            if site is not None and entry.site != site:
                continue
            if not include_unpublished and not entry.published:
                continue
            if filters and not _matches(entry, filters):
                continue
            results.append(copy.deepcopy(entry))
        return results

    def find(self, entry_id: str) -> Optional[Entry]:
        entry = self._entries.get(entry_id)
        return copy.deepcopy(entry) if entry is not None else None

    def find_by_slug(self, collection: str, slug: str, site: Optional[str] = None) -> Optional[Entry]:
        for entry in self._entries.values():
            if entry.collection == collection and entry.slug == slug:
                if site is None or entry.site == site:
                    return copy.deepcopy(entry)
        return None

    def save(self, entry: Entry) -> Entry:
        self._entries[entry.id] = copy.deepcopy(entry)
        return entry

    def delete(self, entry_id: str) -> bool:
        return self._entries.pop(entry_id, None) is not None

    def count(self, collection: str) -> int:
        return sum(1 for e in self._entries.values() if e.collection == collection)

    def count_using_term(self, taxonomy: str, slug: str) -> int:
        count = 0
        for entry in self._entries.values():
            value = entry.data.get(taxonomy)
            if value == slug or (isinstance(value, list) and slug in value):
                count += 1
        return count


_ENTRY_ATTRIBUTES = ("id", "slug", "site", "published", "date", "collection")


def _matches(entry: Entry, filters: Mapping[str, Any]) -> bool:
    for field_name, expected in filters.items():
        if field_name in _ENTRY_ATTRIBUTES:
            actual = getattr(entry, field_name)
        else:
            actual = entry.data.get(field_name)
        if isinstance(actual, list) and not isinstance(expected, list):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True


class MemoryTermRepository:
    def __init__(self, terms: Optional[List[Term]] = None):
        self._terms: Dict[Tuple[str, str], Term] = {}
        for term in terms or []:
            self.save(term)

    def query(self, taxonomy: str, *, site: Optional[str] = None) -> List[Term]:
        return [
            copy.deepcopy(t)
            for (tax, _), t in self._terms.items()
            if tax == taxonomy and (site is None or t.site == site)
        ]

    def find(self, taxonomy: str, slug: str) -> Optional[Term]:
        term = self._terms.get((taxonomy, slug))
        return copy.deepcopy(term) if term is not None else None

    def save(self, term: Term) -> Term:
        self._terms[(term.taxonomy, term.slug)] = copy.deepcopy(term)
        return term

    def delete(self, taxonomy: str, slug: str) -> bool:
        return self._terms.pop((taxonomy, slug), None) is not None

    def count(self, taxonomy: str) -> int:
        return sum(1 for (tax, _) in self._terms if tax == taxonomy)


class MemoryAssetRepository:
    def __init__(self, assets: Optional[List[Asset]] = None):
        self._assets: Dict[Tuple[str, str], Asset] = {}
        for asset in assets or []:
            self.save(asset)

    def query(self, container: str, *, folder: Optional[str] = None) -> List[Asset]:
        return [
            copy.deepcopy(a)
            for (c, _), a in sorted(self._assets.items())
            if c == container and (folder is None or a.folder == folder.strip("/"))
        ]

    def find(self, container: str, path: str) -> Optional[Asset]:
        asset = self._assets.get((container, path))
        return copy.deepcopy(asset) if asset is not None else None

    def save(self, asset: Asset) -> Asset:
        self._assets[(asset.container, asset.path)] = copy.deepcopy(asset)
        return asset

    def delete(self, container: str, path: str) -> bool:
        return self._assets.pop((container, path), None) is not None

    def count(self, container: str) -> int:
        return sum(1 for (c, _) in self._assets if c == container)


class MemoryBlueprintRepository:
    def __init__(self, blueprints: Optional[List[Blueprint]] = None):
        self._blueprints: Dict[Tuple[str, str], Blueprint] = {}
        for blueprint in blueprints or []:
            self.save(blueprint)

    def all(self, namespace: Optional[str] = None) -> List[Blueprint]:
        return [
            copy.deepcopy(b)
            for (ns, _), b in self._blueprints.items()
            if namespace is None or ns == namespace
        ]

    def find(self, handle: str, namespace: Optional[str] = None) -> Optional[Blueprint]:
        for (ns, h), blueprint in self._blueprints.items():
            if h == handle and (namespace is None or ns == namespace):
                return copy.deepcopy(blueprint)
        return None

    def save(self, blueprint: Blueprint) -> Blueprint:
        self._blueprints[(blueprint.namespace, blueprint.handle)] = copy.deepcopy(blueprint)
        return blueprint

    def delete(self, handle: str, namespace: str) -> bool:
        return self._blueprints.pop((namespace, handle), None) is not None

    def namespaces(self) -> List[str]:
        seen: List[str] = []
        for ns, _ in self._blueprints:
            if ns not in seen:
                seen.append(ns)
        return seen


class MemoryUserRepository:
    def __init__(self, users: Optional[List[User]] = None):
        self._users: Dict[str, User] = {}
        for user in users or []:
            self.save(user)

    def all(self) -> List[User]:
        return [copy.deepcopy(u) for u in self._users.values()]

    def find(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return copy.deepcopy(user) if user is not None else None

    def find_by_email(self, email: str) -> Optional[User]:
        wanted = email.strip().lower()
        for user in self._users.values():
            if user.email.lower() == wanted:
                return copy.deepcopy(user)
        return None

    def save(self, user: User) -> User:
        self._users[user.id] = copy.deepcopy(user)
        return user

    def delete(self, user_id: str) -> bool:
        return self._users.pop(user_id, None) is not None


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def _build(record_type: Type[T], raw: Mapping[str, Any]) -> T:
    """Instantiate a dataclass from a mapping, ignoring unknown keys."""
    names = {f.name for f in dataclasses.fields(record_type)}  # type: ignore[arg-type]
    return record_type(**{k: v for k, v in raw.items() if k in names})


def _build_user(raw: Mapping[str, Any]) -> User:
    user = _build(User, raw)
    if raw.get("password") and not user.password_hash:
        user.password_hash = hash_password(str(raw["password"]))
    return user


def build_memory_repositories(
    seed: Optional[Mapping[str, Any]] = None,
    *,
    sites: Optional[List[str]] = None,
) -> Repositories:
    """Create a fully in-memory ``Repositories`` bundle.

    Args:
        seed: Mapping of record lists keyed by resource (see module docstring)
        sites: Site handles to create when the seed defines none
    """
    seed = seed or {}

    def records(name: str, record_type: Type[T]) -> List[T]:
        return [_build(record_type, raw) for raw in seed.get(name, [])]

    site_records = records("sites", Site) or [Site(handle=h) for h in (sites or ["default"])]

    return Repositories(
        sites=MemoryHandleRepository(site_records),
        collections=MemoryHandleRepository(records("collections", Collection)),
        taxonomies=MemoryHandleRepository(records("taxonomies", Taxonomy)),
        navigations=MemoryHandleRepository(records("navigations", Navigation)),
        global_sets=MemoryHandleRepository(records("global_sets", GlobalSet)),
        containers=MemoryHandleRepository(records("asset_containers", AssetContainer)),
        roles=MemoryHandleRepository(records("roles", Role)),
        groups=MemoryHandleRepository(records("groups", UserGroup)),
        entries=MemoryEntryRepository(records("entries", Entry)),
        terms=MemoryTermRepository(records("terms", Term)),
        assets=MemoryAssetRepository(records("assets", Asset)),
        blueprints=MemoryBlueprintRepository(records("blueprints", Blueprint)),
        users=MemoryUserRepository([_build_user(raw) for raw in seed.get("users", [])]),
    )


def load_seed(path: Path) -> Dict[str, Any]:
    """Read a JSON seed file.

    Raises:
        FileNotFoundError: If ``path`` does not exist
        ValueError: If the file is not a JSON object
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Content seed must be a JSON object: {path}")
    logger.info("Loaded content seed from %s", path)
    return data
