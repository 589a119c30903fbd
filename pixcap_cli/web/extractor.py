"""
Extracts pack and item references from rendered catalog pages.

Every heuristic is a plain function from parsed markup to an ordered list of
references, so the strategies can be composed, unioned and tested without a
browser.
"""

import json
import logging
import re
from collections.abc import Callable, Iterable
from typing import Any

from bs4 import BeautifulSoup, Tag
from rich.markup import escape

from pixcap_cli.models.refs import CollectionRef, ItemRef
from pixcap_cli.utils.path import is_safe_slug, slug_from_query, to_path

log = logging.getLogger(__name__)

HrefStrategy = Callable[[BeautifulSoup], list[str]]
SlugStrategy = Callable[[BeautifulSoup], list[str]]

_ITEM_MARKER = "/item/"
_NUXT_STATE_REGEX = re.compile(r"window\.__NUXT__\s*=\s*")
_IMG_SRC_SLUG_REGEX = re.compile(r"/([^/]+)-3d-icon")
_IMG_ALT_SLUG_REGEX = re.compile(r"([a-z0-9-]+)-3d-icon")

PACK_TITLE_SELECTOR = 'h1, .title, [class*="title"]'


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v))


def _item_hrefs(elements: Iterable[Tag]) -> list[str]:
    """Collects the hrefs of elements that point at an item page."""
    hrefs = []
    for el in elements:
        href = el.get("href")
        if isinstance(href, str) and _ITEM_MARKER in href:
            hrefs.append(href)
    return hrefs


# --- Pack listing ---


def extract_collection_refs(html: str, page_url: str) -> list[CollectionRef]:
    """Returns the packs linked from a catalog listing page, unique by path."""
    soup = parse_html(html)
    paths = _unique(
        to_path(a["href"], page_url) for a in soup.select('a[href^="/pack/"]')
    )
    return [CollectionRef.from_path(path) for path in paths]


def extract_pack_name(html: str) -> str:
    """Reads the pack's display name from its title element."""
    title = parse_html(html).select_one(PACK_TITLE_SELECTOR)
    return title.get_text(strip=True) if title else ""


# --- Collection-level item extraction (unioned) ---


def direct_item_links(soup: BeautifulSoup) -> list[str]:
    return _item_hrefs(soup.select('a[href*="/item/"]'))


def component_item_links(soup: BeautifulSoup) -> list[str]:
    hrefs = []
    for component in soup.select("[data-v-24e913ac]"):
        hrefs.extend(_item_hrefs(component.select("a")))
    return hrefs


def card_item_links(soup: BeautifulSoup) -> list[str]:
    hrefs = []
    cards = soup.select(
        '.card, .thumbnail, .asset-card, [class*="card"], [class*="item"]'
    )
    for card in cards:
        hrefs.extend(_item_hrefs(card.select("a")))
    return hrefs


def library_tag_links(soup: BeautifulSoup) -> list[str]:
    return _item_hrefs(soup.select('.library--info-tag, [class*="library"]'))


ITEM_LINK_STRATEGIES: tuple[HrefStrategy, ...] = (
    direct_item_links,
    component_item_links,
    card_item_links,
    library_tag_links,
)


def extract_item_paths(
    html: str,
    page_url: str,
    strategies: Iterable[HrefStrategy] = ITEM_LINK_STRATEGIES,
) -> list[str]:
    """
    Runs every strategy and unions their hrefs, normalized to paths, in order
    of first discovery.
    """
    soup = parse_html(html)
    found: list[str] = []
    for strategy in strategies:
        hrefs = strategy(soup)
        log.debug(f"Strategy '{strategy.__name__}' found {len(hrefs)} item links.")
        found.extend(to_path(href, page_url) for href in hrefs)
    return _unique(found)


def extract_item_refs(
    html: str, page_url: str, collection: CollectionRef
) -> list[ItemRef]:
    """Returns the items linked from a pack page."""
    refs = [
        ItemRef.from_path(path, collection)
        for path in extract_item_paths(html, page_url)
    ]
    return [ref for ref in refs if _accept_slug(ref.slug)]


def _accept_slug(slug: str) -> bool:
    if is_safe_slug(slug):
        return True
    log.warning(f"[yellow]Ignoring item with unusable slug:[/] {escape(repr(slug))}")
    return False


# --- Item-level slug extraction (ordered fallback) ---


def _find_embedded_state(soup: BeautifulSoup) -> dict[str, Any] | None:
    """
    Locates the 'window.__NUXT__ = {...}' assignment in a script body and
    parses it strictly as JSON. Anything that is not plain JSON is rejected.
    """
    for script in soup.find_all("script"):
        text = script.string or script.get_text()
        if not text or "window.__NUXT__" not in text:
            continue
        match = _NUXT_STATE_REGEX.search(text)
        if not match:
            continue
        try:
            state, _ = json.JSONDecoder().raw_decode(text, match.end())
        except json.JSONDecodeError as e:
            log.debug(f"Embedded page state is not valid JSON, ignoring it: {e}")
            return None
        return state if isinstance(state, dict) else None
    return None


def slugs_from_embedded_state(soup: BeautifulSoup) -> list[str]:
    state = _find_embedded_state(soup)
    if not state:
        return []
    pack = ((state.get("state") or {}).get("pack") or {}).get("pack") or {}
    items = pack.get("items") or []
    slugs = []
    for item in items:
        if isinstance(item, dict):
            value = item.get("slug") or item.get("id")
            if value:
                slugs.append(str(value))
    return slugs


def slugs_from_create_links(soup: BeautifulSoup) -> list[str]:
    slugs = []
    for link in soup.select('a[href*="design/create?slug="]'):
        if slug := slug_from_query(link["href"]):
            slugs.append(slug)
    return slugs


def slugs_from_data_attributes(soup: BeautifulSoup) -> list[str]:
    return [
        el.get("data-slug") or el.get("data-icon-slug")
        for el in soup.select("[data-slug], [data-icon-slug]")
    ]


def slugs_from_images(soup: BeautifulSoup) -> list[str]:
    slugs = []
    for img in soup.select('img[src*="icon"], img[alt*="icon"]'):
        src_match = _IMG_SRC_SLUG_REGEX.search(img.get("src") or "")
        alt_match = _IMG_ALT_SLUG_REGEX.search(img.get("alt") or "")
        if src_match:
            slugs.append(src_match.group(1))
        elif alt_match:
            slugs.append(alt_match.group(1))
    return slugs


SLUG_FALLBACK_STRATEGIES: tuple[SlugStrategy, ...] = (
    slugs_from_embedded_state,
    slugs_from_create_links,
    slugs_from_data_attributes,
    slugs_from_images,
)


def extract_item_slugs(
    html: str, strategies: Iterable[SlugStrategy] = SLUG_FALLBACK_STRATEGIES
) -> list[str]:
    """
    Returns the slugs of the first strategy that finds any usable ones. Slugs
    that are not safe as file name parts are dropped.
    """
    soup = parse_html(html)
    for strategy in strategies:
        slugs = [slug for slug in _unique(strategy(soup)) if _accept_slug(slug)]
        if slugs:
            log.debug(f"Found {len(slugs)} slugs via '{strategy.__name__}'.")
            return slugs
    return []
