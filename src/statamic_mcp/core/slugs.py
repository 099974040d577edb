"""Slug and handle normalization."""

import re
import unicodedata

_NON_SLUG = re.compile(r"[^a-z0-9]+")
_NON_HANDLE = re.compile(r"[^a-z0-9_-]")


def slugify(text: str, separator: str = "-") -> str:
    """Lowercase ASCII slug: ``"Hello, World!"`` -> ``"hello-world"``."""
    normalized = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return _NON_SLUG.sub(separator, normalized.lower()).strip(separator)


def sanitize_handle(handle: str) -> str:
    """Lowercase and strip everything outside ``[a-z0-9_-]``."""
    return _NON_HANDLE.sub("", handle.strip().lower())


def is_valid_handle(handle: str) -> bool:
    return bool(handle) and sanitize_handle(handle) == handle
