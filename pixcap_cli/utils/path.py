"""
Utilities for handling site URLs, slugs and output directory names.
"""

import re
from pathlib import Path
from typing import Optional
from urllib.parse import parse_qs, urljoin, urlparse

from pathvalidate import sanitize_filename

_ITEM_PATH_REGEX = re.compile(r"/item/(?P<slug>[^/?#]+)")


def to_path(href: str, base_url: str) -> str:
    """Resolves an href against the page URL and returns only its path."""
    return urlparse(urljoin(base_url, href)).path


def slug_from_path(path: str) -> str:
    """Returns the last path segment, e.g. '/pack/foo' -> 'foo'."""
    return path.rstrip("/").split("/")[-1]


def slug_from_query(href: str) -> Optional[str]:
    """Extracts the 'slug' query parameter from a 'design/create?slug=' link."""
    values = parse_qs(urlparse(href).query).get("slug")
    return values[0] if values and values[0] else None


def parse_item_reference(value: str) -> Optional[str]:
    """
    Accepts a bare slug, an '/item/<slug>' path or a full item URL and returns
    the slug, or None if it cannot safely be used in a file name.
    """
    match = _ITEM_PATH_REGEX.search(value)
    slug = match.group("slug") if match else value.strip().strip("/")
    return slug if is_safe_slug(slug) else None


def is_safe_slug(slug: str) -> bool:
    """
    True when `slug` can be used verbatim as part of a file name: non-empty,
    not a relative path component, and unchanged by filename sanitization.
    """
    if not slug or slug == "." or ".." in slug:
        return False
    return sanitize_filename(slug, platform="universal") == slug


def collection_dir_name(slug: str) -> str:
    """Returns a filesystem-safe directory name for a pack slug."""
    name = sanitize_filename(slug, platform="auto")
    return name if name.strip(".") else "unknown-pack"


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)
