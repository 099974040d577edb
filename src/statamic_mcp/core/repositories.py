"""
Repository interfaces for the host CMS's data layer.

Tool handlers depend only on these protocols, injected through a
``Repositories`` bundle, never on a process-wide facade. Expected misses
are explicit return values (``None`` from ``find``), so handlers report
not-found and conflict cases as envelopes and only genuinely unexpected
failures raise.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, TypeVar

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
)

T = TypeVar("T")


class HandleRepository(Protocol[T]):
    """Records addressed by a unique handle."""

    def all(self) -> List[T]: ...

    def find(self, handle: str) -> Optional[T]: ...

    def save(self, record: T) -> T: ...

    def delete(self, handle: str) -> bool: ...


class EntryRepository(Protocol):
    def query(
        self,
        collection: str,
        *,
        site: Optional[str] = None,
        include_unpublished: bool = True,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Entry]: ...

    def find(self, entry_id: str) -> Optional[Entry]: ...

    def find_by_slug(self, collection: str, slug: str, site: Optional[str] = None) -> Optional[Entry]: ...

    def save(self, entry: Entry) -> Entry: ...

    def delete(self, entry_id: str) -> bool: ...

    def count(self, collection: str) -> int: ...

    def count_using_term(self, taxonomy: str, slug: str) -> int: ...


class TermRepository(Protocol):
    def query(self, taxonomy: str, *, site: Optional[str] = None) -> List[Term]: ...

    def find(self, taxonomy: str, slug: str) -> Optional[Term]: ...

    def save(self, term: Term) -> Term: ...

    def delete(self, taxonomy: str, slug: str) -> bool: ...

    def count(self, taxonomy: str) -> int: ...


class AssetRepository(Protocol):
    def query(self, container: str, *, folder: Optional[str] = None) -> List[Asset]: ...

    def find(self, container: str, path: str) -> Optional[Asset]: ...

    def save(self, asset: Asset) -> Asset: ...

    def delete(self, container: str, path: str) -> bool: ...

    def count(self, container: str) -> int: ...


class BlueprintRepository(Protocol):
    def all(self, namespace: Optional[str] = None) -> List[Blueprint]: ...

    def find(self, handle: str, namespace: Optional[str] = None) -> Optional[Blueprint]: ...

    def save(self, blueprint: Blueprint) -> Blueprint: ...

    def delete(self, handle: str, namespace: str) -> bool: ...

    def namespaces(self) -> List[str]: ...


class UserRepository(Protocol):
    def all(self) -> List[User]: ...

    def find(self, user_id: str) -> Optional[User]: ...

    def find_by_email(self, email: str) -> Optional[User]: ...

    def save(self, user: User) -> User: ...

    def delete(self, user_id: str) -> bool: ...


@dataclass
class Repositories:
    """Every data collaborator a tool may need."""

    sites: HandleRepository[Site]
    collections: HandleRepository[Collection]
    taxonomies: HandleRepository[Taxonomy]
    navigations: HandleRepository[Navigation]
    global_sets: HandleRepository[GlobalSet]
    containers: HandleRepository[AssetContainer]
    roles: HandleRepository[Role]
    groups: HandleRepository[UserGroup]
    entries: EntryRepository
    terms: TermRepository
    assets: AssetRepository
    blueprints: BlueprintRepository
    users: UserRepository

    def site_handles(self) -> List[str]:
        return [site.handle for site in self.sites.all()]
