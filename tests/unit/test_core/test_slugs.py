"""Tests for slug and handle helpers."""

import pytest

from statamic_mcp.core.slugs import is_valid_handle, sanitize_handle, slugify


class TestSlugify:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Hello, World!", "hello-world"),
            ("  Café au lait ", "cafe-au-lait"),
            ("Already-a-slug", "already-a-slug"),
            ("---", ""),
        ],
    )
    def test_slugify(self, text, expected):
        assert slugify(text) == expected

    def test_custom_separator(self):
        assert slugify("Site Settings", separator="_") == "site_settings"


class TestHandles:
    def test_sanitize_handle(self):
        assert sanitize_handle(" Blog Posts! ") == "blogposts"

    def test_valid_handle(self):
        assert is_valid_handle("blog_posts")
        assert is_valid_handle("main-nav")

    def test_invalid_handle(self):
        assert not is_valid_handle("")
        assert not is_valid_handle("Blog")
        assert not is_valid_handle("blog posts")
