"""Tests for the unified terms tool."""

import pytest

from statamic_mcp.tools.unified.terms import TermsTool


@pytest.fixture
def terms(config, repositories, cache):
    return TermsTool(config, repositories, cache)


class TestTargetChecks:
    def test_taxonomy_required(self, terms):
        response = terms.run({"action": "list"})
        assert response.errors == ["Taxonomy handle is required for term operations"]

    def test_unknown_taxonomy(self, terms):
        response = terms.run({"action": "list", "taxonomy": "categories"})
        assert response.errors == ["Taxonomy not found: categories"]

    def test_identifier_required(self, terms):
        response = terms.run({"action": "get", "taxonomy": "tags"})
        assert response.errors == ["Term ID or slug is required for get action"]


class TestTerms:
    def test_list(self, terms):
        response = terms.run({"action": "list", "taxonomy": "tags"})
        assert [t["slug"] for t in response.data["terms"]] == ["news", "unused"]
        assert response.data["pagination"]["total"] == 2

    def test_get_by_slug_counts_usage(self, terms):
        response = terms.run({"action": "get", "taxonomy": "tags", "slug": "news"})
        assert response.data["term"]["id"] == "tags::news"
        assert response.data["term"]["entries_count"] == 1

    def test_get_by_compound_id(self, terms):
        response = terms.run({"action": "get", "taxonomy": "tags", "id": "tags::unused"})
        assert response.data["term"]["slug"] == "unused"

    def test_get_missing(self, terms):
        response = terms.run({"action": "get", "taxonomy": "tags", "slug": "ghost"})
        assert response.errors == ["Term not found: ghost"]

    def test_create_derives_slug(self, terms, repositories):
        response = terms.run({"action": "create", "taxonomy": "tags", "data": {"title": "Release Notes"}})
        assert response.data["term"]["slug"] == "release-notes"
        assert response.data["cache"]["cleared"] is True
        assert repositories.terms.find("tags", "release-notes") is not None

    def test_create_duplicate(self, terms):
        response = terms.run({"action": "create", "taxonomy": "tags", "data": {"title": "News"}})
        assert response.errors == ["Term already exists: news"]
        assert response.data["error_code"] == "CONFLICT"

    def test_update_requires_data(self, terms):
        response = terms.run({"action": "update", "taxonomy": "tags", "slug": "news"})
        assert response.errors == ["Data is required for update action"]

    def test_update(self, terms, repositories):
        terms.run({"action": "update", "taxonomy": "tags", "slug": "news", "data": {"color": "red"}})
        stored = repositories.terms.find("tags", "news")
        assert stored.data == {"title": "News", "color": "red"}

    def test_delete_in_use_conflicts(self, terms, repositories):
        """Terms referenced by entries cannot be deleted."""
        response = terms.run({"action": "delete", "taxonomy": "tags", "slug": "news"})
        assert response.errors == ["Cannot delete term: 1 entries are using this term"]
        assert repositories.terms.find("tags", "news") is not None

    def test_delete_unused(self, terms, repositories):
        response = terms.run({"action": "delete", "taxonomy": "tags", "slug": "unused"})
        assert response.data["deleted"] is True
        assert repositories.terms.find("tags", "unused") is None


class TestHosted:
    def test_term_permissions_follow_taxonomy(self, web_config, repositories, cache, as_web_user):
        tool = TermsTool(web_config, repositories, cache)
        with as_web_user("editor@example.com"):
            response = tool.run({"action": "list", "taxonomy": "tags"})
        assert response.errors == ["Permission denied: Cannot list terms"]
        assert response.data["details"] == {"required_permissions": ["view tags terms"]}
