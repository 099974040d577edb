"""Tests for the unified blueprints tool and its field helpers."""

import pytest

from statamic_mcp.tools.unified.blueprints import (
    FIELD_TEMPLATES,
    BlueprintsTool,
    normalize_fields,
    validate_fields,
)


@pytest.fixture
def blueprints(config, repositories, cache):
    return BlueprintsTool(config, repositories, cache)


class TestFieldHelpers:
    def test_normalize_flat_field(self):
        assert normalize_fields([{"handle": "title", "type": "text"}]) == [
            {"handle": "title", "field": {"type": "text"}}
        ]

    def test_normalize_nested_field_unchanged(self):
        fields = [{"handle": "title", "field": {"type": "text"}}]
        assert normalize_fields(fields) == fields

    def test_validate_reports_problems(self):
        result = validate_fields(
            [
                {"handle": "", "field": {"type": "text"}},
                {"handle": "body", "field": {}},
                {"handle": "hero", "field": {"type": "hologram"}},
                {"handle": "hero", "field": {"type": "text"}},
            ]
        )
        assert result["valid"] is False
        assert result["errors"] == [
            "Field 0 missing handle",
            "Field 'body' missing type",
            "Duplicate field handle 'hero'",
        ]
        assert result["warnings"] == ["Field 'hero' uses unknown type 'hologram'"]

    def test_templates_are_valid(self):
        for fields in FIELD_TEMPLATES.values():
            assert validate_fields(fields)["valid"] is True


class TestBlueprints:
    def test_list(self, blueprints):
        response = blueprints.run({"action": "list"})
        assert response.data["total"] == 1
        assert response.data["blueprints"][0]["field_count"] == 2

    def test_list_without_details(self, blueprints):
        response = blueprints.run({"action": "list", "include_details": False})
        assert response.data["blueprints"] == [
            {"handle": "blog", "namespace": "collections", "title": "Blog Post"}
        ]

    def test_get_requires_handle(self, blueprints):
        response = blueprints.run({"action": "get"})
        assert response.errors == ["Handle is required for get action"]

    def test_get_includes_fields(self, blueprints):
        response = blueprints.run({"action": "get", "handle": "blog"})
        assert [f["handle"] for f in response.data["blueprint"]["fields"]] == ["title", "content"]

    def test_get_wrong_namespace(self, blueprints):
        response = blueprints.run({"action": "get", "handle": "blog", "namespace": "taxonomies"})
        assert response.errors == ["Blueprint not found: blog"]

    def test_create(self, blueprints, repositories, cache):
        response = blueprints.run(
            {"action": "create", "handle": "event", "fields": [{"handle": "venue", "type": "text"}]}
        )
        assert response.data["created"] is True
        assert response.data["cache"]["segments"] == ["stache", "static", "views"]
        assert repositories.blueprints.find("event").fields == [{"handle": "venue", "field": {"type": "text"}}]

    def test_create_duplicate(self, blueprints):
        response = blueprints.run({"action": "create", "handle": "blog"})
        assert response.errors == ["Blueprint already exists: blog in collections"]

    def test_create_invalid_handle(self, blueprints):
        response = blueprints.run({"action": "create", "handle": "Blog Post"})
        assert response.errors == ["Invalid blueprint handle: Blog Post"]

    def test_generate_from_template(self, blueprints):
        response = blueprints.run({"action": "generate", "handle": "product_page", "template": "product"})
        blueprint = response.data["blueprint"]
        assert blueprint["title"] == "Product Page"
        assert any(f["handle"] == "sku" for f in blueprint["fields"])
        assert response.data["generated"] is True

    def test_generate_unknown_template(self, blueprints):
        response = blueprints.run({"action": "generate", "handle": "x", "template": "wiki"})
        assert response.errors == ["Unknown template: wiki"]

    def test_generated_fields_are_independent(self, blueprints, repositories):
        blueprints.run({"action": "generate", "handle": "one", "template": "basic"})
        stored = repositories.blueprints.find("one")
        stored.fields[0]["field"]["type"] = "changed"
        assert FIELD_TEMPLATES["basic"][0]["field"]["type"] == "text"

    def test_update_replaces_fields(self, blueprints, repositories):
        response = blueprints.run(
            {"action": "update", "handle": "blog", "title": "Article", "fields": [{"handle": "body", "type": "bard"}]}
        )
        assert response.data["updated"] is True
        stored = repositories.blueprints.find("blog")
        assert stored.title == "Article"
        assert stored.field_handles() == ["body"]

    def test_delete_requires_confirmation(self, blueprints, repositories):
        response = blueprints.run({"action": "delete", "handle": "blog"})
        assert response.errors == ["Deletion requires explicit confirmation (set confirm to true)"]
        assert response.data["error_code"] == "CONFIRMATION_REQUIRED"
        assert repositories.blueprints.find("blog") is not None

    def test_delete_confirmed(self, blueprints, repositories):
        response = blueprints.run({"action": "delete", "handle": "blog", "confirm": True})
        assert response.data["deleted"] is True
        assert repositories.blueprints.find("blog") is None

    def test_scan(self, blueprints):
        response = blueprints.run({"action": "scan"})
        assert list(response.data["namespaces"]) == ["collections"]
        assert response.data["total"] == 1

    def test_types(self, blueprints):
        response = blueprints.run({"action": "types"})
        assert response.data["types"]["collections.blog"] == [
            {"handle": "title", "type": "text", "required": False},
            {"handle": "content", "type": "markdown", "required": False},
        ]

    def test_validate(self, blueprints):
        response = blueprints.run({"action": "validate", "handle": "blog"})
        assert response.data["validation"] == {"valid": True, "errors": [], "warnings": []}
