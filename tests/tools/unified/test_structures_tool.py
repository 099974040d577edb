"""Tests for the unified structures tool."""

import pytest

from statamic_mcp.tools.unified.structures import STRUCTURE_KINDS, StructuresTool


@pytest.fixture
def structures(config, repositories, cache):
    return StructuresTool(config, repositories, cache)


class TestTyping:
    def test_type_required(self, structures):
        response = structures.run({"action": "list"})
        assert response.errors == [
            "Action 'list' requires type to be one of: collection, taxonomy, navigation, globalset, site"
        ]

    def test_sites_are_read_only(self, structures):
        response = structures.run({"action": "create", "type": "site", "data": {"handle": "de"}})
        assert response.errors == [
            "Action 'create' requires type to be one of: collection, taxonomy, navigation, globalset"
        ]

    def test_handle_required(self, structures):
        response = structures.run({"action": "get", "type": "taxonomy"})
        assert response.errors == ["Handle is required for get action"]

    def test_data_required_for_configure(self, structures):
        response = structures.run({"action": "configure", "type": "collection", "handle": "blog"})
        assert response.errors == ["Data is required for configure action"]

    def test_every_writable_kind_has_a_factory(self):
        assert set(STRUCTURE_KINDS) == {"collection", "taxonomy", "navigation", "globalset"}


class TestCollections:
    def test_list_includes_entry_counts(self, structures):
        response = structures.run({"action": "list", "type": "collection"})
        counts = {c["handle"]: c["entries_count"] for c in response.data["collections"]}
        assert counts == {"blog": 2, "pages": 1}
        assert response.data["type"] == "collection"
        assert response.data["pagination"]["total"] == 2

    def test_list_without_details(self, structures):
        response = structures.run({"action": "list", "type": "collection", "include_details": False})
        assert response.data["collections"][0] == {"handle": "blog", "title": "Blog"}

    def test_get(self, structures):
        response = structures.run({"action": "get", "type": "collection", "handle": "blog"})
        collection = response.data["collection"]
        assert collection["taxonomies"] == ["tags"]
        assert collection["dated"] is True

    def test_get_missing(self, structures):
        response = structures.run({"action": "get", "type": "collection", "handle": "events"})
        assert response.errors == ["Collection not found: events"]

    def test_create_defaults_sites(self, structures, repositories):
        response = structures.run(
            {"action": "create", "type": "collection", "data": {"handle": "events", "title": "Events"}}
        )
        assert response.data["collection"]["created"] is True
        assert response.data["cache"]["segments"] == ["stache", "static"]
        assert repositories.collections.find("events").sites == ["default"]

    def test_create_requires_handle(self, structures):
        response = structures.run({"action": "create", "type": "collection", "data": {"title": "Events"}})
        assert response.errors == ["Collection handle is required"]

    def test_create_invalid_handle(self, structures):
        response = structures.run({"action": "create", "type": "collection", "handle": "My Events"})
        assert response.errors == ["Invalid collection handle: My Events"]

    def test_create_duplicate(self, structures):
        response = structures.run({"action": "create", "type": "collection", "handle": "blog"})
        assert response.errors == ["Collection 'blog' already exists"]
        assert response.data["error_code"] == "CONFLICT"

    def test_update_warns_on_ignored_settings(self, structures, repositories):
        response = structures.run(
            {
                "action": "update",
                "type": "collection",
                "handle": "pages",
                "data": {"title": "Site Pages", "taxonomies": ["tags"]},
            }
        )
        assert response.data["collection"]["updated"] is True
        assert response.meta["warnings"] == ["Ignored settings: taxonomies"]
        stored = repositories.collections.find("pages")
        assert stored.title == "Site Pages"
        assert stored.taxonomies == []

    def test_update_without_editable_settings(self, structures):
        response = structures.run(
            {"action": "update", "type": "collection", "handle": "pages", "data": {"colour": "red"}}
        )
        assert response.data["details"] == {"field": "data"}

    def test_configure_relationships(self, structures, repositories):
        response = structures.run(
            {"action": "configure", "type": "collection", "handle": "pages", "data": {"taxonomies": ["tags"]}}
        )
        assert response.data["configured"] is True
        assert response.data["collection"]["config"]["taxonomies"] == ["tags"]
        assert repositories.collections.find("pages").taxonomies == ["tags"]

    def test_configure_rejects_unknown_site(self, structures):
        response = structures.run(
            {"action": "configure", "type": "collection", "handle": "pages", "data": {"sites": ["de"]}}
        )
        assert response.errors == ["Invalid site handle: de"]

    def test_delete_non_empty_refused(self, structures, repositories):
        response = structures.run({"action": "delete", "type": "collection", "handle": "blog"})
        assert response.errors == ["Cannot delete collection 'blog' - it contains 2 entries"]
        assert repositories.collections.find("blog") is not None

    def test_delete_empty(self, structures, repositories):
        structures.run({"action": "create", "type": "collection", "handle": "events"})
        response = structures.run({"action": "delete", "type": "collection", "handle": "events"})
        assert response.data["collection"] == {"handle": "events", "deleted": True}
        assert repositories.collections.find("events") is None


class TestOtherKinds:
    def test_taxonomy_term_counts(self, structures):
        response = structures.run({"action": "get", "type": "taxonomy", "handle": "tags"})
        assert response.data["taxonomy"]["terms_count"] == 2

    def test_taxonomy_with_terms_cannot_be_deleted(self, structures):
        response = structures.run({"action": "delete", "type": "taxonomy", "handle": "tags"})
        assert response.errors == ["Cannot delete taxonomy 'tags' - it contains 2 terms"]

    def test_navigation_delete_unprotected(self, structures, repositories):
        response = structures.run({"action": "delete", "type": "navigation", "handle": "main"})
        assert response.success is True
        assert repositories.navigations.find("main") is None

    def test_navigation_update_max_depth(self, structures, repositories):
        structures.run({"action": "update", "type": "navigation", "handle": "main", "data": {"max_depth": 3}})
        assert repositories.navigations.find("main").max_depth == 3

    def test_create_global_set(self, structures, repositories):
        response = structures.run(
            {"action": "create", "type": "globalset", "data": {"handle": "footer", "title": "Footer"}}
        )
        assert response.data["globalset"]["handle"] == "footer"
        assert repositories.global_sets.find("footer").sites == ["default"]


class TestSites:
    def test_list(self, structures):
        response = structures.run({"action": "list", "type": "site"})
        assert [s["handle"] for s in response.data["sites"]] == ["default", "fr"]
        assert response.data["default"] == "default"
        assert response.data["multisite"] is True

    def test_get(self, structures):
        response = structures.run({"action": "get", "type": "site", "handle": "fr"})
        assert response.data["site"]["locale"] == "fr_FR"
        assert response.data["site"]["default"] is False

    def test_get_missing(self, structures):
        response = structures.run({"action": "get", "type": "site", "handle": "de"})
        assert response.errors == ["Site not found: de"]
