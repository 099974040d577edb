"""
Root pytest configuration and shared fixtures.

Provides a seeded in-memory content store, a default server config, and
helpers for invoking tools in direct or hosted context.
"""

import copy
import json
import logging
from typing import Any, Dict, Optional, Union

import pytest
from mcp.types import TextContent

from statamic_mcp.config import TOOL_DOMAINS, ServerConfig, ToolConfig
from statamic_mcp.core.cache import CacheInvalidator
from statamic_mcp.core.context import WEB_CONTEXT, sync_request_context
from statamic_mcp.core.memory import build_memory_repositories
from statamic_mcp.core.permissions import Principal, principal_from_user
from statamic_mcp.core.repositories import Repositories

# Response contract version from responses.py
RESPONSE_CONTRACT_VERSION = "response-v1"

SEED: Dict[str, Any] = {
    "sites": [
        {"handle": "default", "name": "English", "url": "/", "locale": "en_US"},
        {"handle": "fr", "name": "French", "url": "/fr/", "locale": "fr_FR"},
    ],
    "collections": [
        {"handle": "blog", "title": "Blog", "route": "/blog/{slug}", "taxonomies": ["tags"], "dated": True},
        {"handle": "pages", "title": "Pages", "route": "/{slug}"},
    ],
    "taxonomies": [{"handle": "tags", "title": "Tags", "collections": ["blog"]}],
    "navigations": [{"handle": "main", "title": "Main Navigation", "max_depth": 2}],
    "global_sets": [
        {
            "handle": "settings",
            "title": "Site Settings",
            "sites": ["default", "fr"],
            "values": {"default": {"site_name": "Example", "tagline": "Hello"}},
        }
    ],
    "asset_containers": [
        {"handle": "images", "title": "Images"},
        {"handle": "documents", "title": "Documents"},
    ],
    "assets": [
        {"container": "images", "path": "photos/cat.jpg", "size": 2048, "mime_type": "image/jpeg"},
        {"container": "images", "path": "logo.png", "size": 512, "mime_type": "image/png"},
    ],
    "entries": [
        {
            "id": "e1",
            "collection": "blog",
            "slug": "hello-world",
            "data": {"title": "Hello World", "tags": ["news"]},
        },
        {
            "id": "e2",
            "collection": "blog",
            "slug": "draft-post",
            "published": False,
            "data": {"title": "Draft Post"},
        },
        {"id": "p1", "collection": "pages", "slug": "about", "data": {"title": "About"}},
    ],
    "terms": [
        {"taxonomy": "tags", "slug": "news", "data": {"title": "News"}},
        {"taxonomy": "tags", "slug": "unused", "data": {"title": "Unused"}},
    ],
    "blueprints": [
        {
            "handle": "blog",
            "namespace": "collections",
            "title": "Blog Post",
            "fields": [
                {"handle": "title", "field": {"type": "text", "display": "Title"}},
                {"handle": "content", "field": {"type": "markdown", "display": "Content"}},
            ],
        }
    ],
    "roles": [
        {
            "handle": "editor",
            "title": "Editor",
            "permissions": ["access mcp", "view blog entries", "edit blog entries"],
        },
        {"handle": "viewer", "title": "Viewer", "permissions": ["view blog entries"]},
    ],
    "groups": [{"handle": "staff", "title": "Staff", "roles": ["editor"]}],
    "users": [
        {"id": "u-admin", "email": "admin@example.com", "name": "Admin", "super": True, "password": "secret123"},
        {"id": "u-editor", "email": "editor@example.com", "name": "Editor", "roles": ["editor"]},
        {"id": "u-viewer", "email": "viewer@example.com", "name": "Viewer", "roles": ["viewer"]},
        {"id": "u-staff", "email": "staff@example.com", "name": "Staff", "groups": ["staff"]},
    ],
}


def extract_response_dict(result: Union[Dict[str, Any], TextContent]) -> Dict[str, Any]:
    """Extract dict from tool result, handling both dict and TextContent.

    Tools wrapped with the canonical_tool decorator return TextContent with
    minified JSON. This helper extracts the dict for test assertions.

    Raises:
        TypeError: If result is neither dict nor TextContent
    """
    if isinstance(result, dict):
        return result
    if isinstance(result, TextContent):
        return json.loads(result.text)
    raise TypeError(f"Expected dict or TextContent, got {type(result).__name__}")


@pytest.fixture(autouse=True)
def reset_package_logging():
    """Undo handlers and levels installed by ServerConfig.setup_logging."""
    yield
    package_logger = logging.getLogger("statamic_mcp")
    for handler in list(package_logger.handlers):
        if getattr(handler, "_statamic_mcp_handler", False):
            package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def seed() -> Dict[str, Any]:
    return copy.deepcopy(SEED)


@pytest.fixture
def repositories(seed) -> Repositories:
    return build_memory_repositories(seed)


@pytest.fixture
def cache() -> CacheInvalidator:
    return CacheInvalidator()


@pytest.fixture
def config() -> ServerConfig:
    """Default config with rate limiting off so tests are order-independent."""
    cfg = ServerConfig()
    cfg.rate_limit.enabled = False
    return cfg


@pytest.fixture
def web_config(config) -> ServerConfig:
    """Config with every tool reachable over the web."""
    config.tools = {domain: ToolConfig(web_enabled=True) for domain in TOOL_DOMAINS}
    return config


@pytest.fixture
def principal_for(repositories):
    """Build the effective principal for a seeded user email."""

    def _build(email: str) -> Principal:
        user = repositories.users.find_by_email(email)
        assert user is not None, email
        principal = principal_from_user(user, repositories.roles, repositories.groups)
        assert principal is not None, email
        return principal

    return _build


@pytest.fixture
def as_web_user(principal_for):
    """Context manager factory: run calls in hosted context as ``email``."""

    def _enter(email: Optional[str] = None):
        principal = principal_for(email) if email else None
        return sync_request_context(execution_context=WEB_CONTEXT, principal=principal)

    return _enter
