"""
Browser Layer.

This package drives the PixCap web app through Playwright: it owns the browser
session, walks the catalog, extracts references from rendered pages and
resolves item slugs into signed download URLs.
"""

from .crawler import CatalogCrawler, Paginator
from .resolver import AssetResolver
from .session import BrowserSession

__all__ = ["AssetResolver", "BrowserSession", "CatalogCrawler", "Paginator"]
