"""
Walks paginated catalog pages and collects the references found on each page.
"""

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

from bs4 import Tag
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from pixcap_cli.exceptions import NavigationError
from pixcap_cli.models.refs import CollectionRef

from .extractor import extract_collection_refs, parse_html

log = logging.getLogger(__name__)

T = TypeVar("T")

PAGINATION_SELECTOR = '.pagination, [class*="pagination"]'
NEXT_IN_PAGINATION_SELECTOR = '[class*="next"], [aria-label*="next"]'
NEXT_BUTTON_SELECTOR = ", ".join(
    f"{container} {control}:not([disabled]):not(.disabled)"
    for container in (".pagination", '[class*="pagination"]')
    for control in ('[class*="next"]', '[aria-label*="next"]')
)


def _is_enabled(control: Tag) -> bool:
    classes = control.get("class") or []
    return not control.has_attr("disabled") and "disabled" not in classes


def has_enabled_next(html: str) -> bool:
    """
    True when any pagination container on the page holds a 'next' control that
    is not disabled.
    """
    return any(
        _is_enabled(control)
        for pagination in parse_html(html).select(PAGINATION_SELECTOR)
        for control in pagination.select(NEXT_IN_PAGINATION_SELECTOR)
    )


async def open_page(page: Page, url: str, timeout_s: float) -> None:
    """Navigates and waits for the network to settle."""
    try:
        await page.goto(url, wait_until="networkidle", timeout=timeout_s * 1000)
    except PlaywrightError as e:
        raise NavigationError(f"Failed to load {url}: {e}") from e


class Paginator(Generic[T]):
    """
    Extracts references from the current page, then keeps clicking the enabled
    'next' control and extracting again until the listing runs out.

    References are unioned by `key` in discovery order. Whatever was collected
    before a failed navigation is kept.
    """

    def __init__(
        self,
        extract: Callable[[str, str], list[T]],
        key: Callable[[T], str],
        navigation_timeout: float = 60.0,
        max_pages: int = 50,
    ):
        self.extract = extract
        self.key = key
        self.navigation_timeout = navigation_timeout
        self.max_pages = max_pages

    async def collect(self, page: Page) -> list[T]:
        """Collects references from the already loaded page and all pages after it."""
        found: dict[str, T] = {}
        current_page = 1
        html = await self._merge_current(page, found, current_page)

        while True:
            if current_page >= self.max_pages:
                log.warning(
                    f"[yellow]Stopped paginating after {self.max_pages} pages.[/yellow]"
                )
                break
            if not has_enabled_next(html):
                log.debug("No more pagination found.")
                break
            if not await self._go_next(page):
                break
            current_page += 1
            try:
                html = await self._merge_current(page, found, current_page)
            except NavigationError as e:
                log.warning(f"[yellow]Stopped paginating:[/] {e}")
                break

        return list(found.values())

    async def _merge_current(
        self, page: Page, found: dict[str, T], page_number: int
    ) -> str:
        try:
            html = await page.content()
        except PlaywrightError as e:
            raise NavigationError(f"Could not read page {page_number}: {e}") from e
        refs = self.extract(html, page.url)
        log.debug(f"Found {len(refs)} references on page {page_number}.")
        for ref in refs:
            found.setdefault(self.key(ref), ref)
        return html

    async def _go_next(self, page: Page) -> bool:
        """Clicks 'next' and waits for the navigation; False ends the traversal."""
        next_button = await page.query_selector(NEXT_BUTTON_SELECTOR)
        if next_button is None:
            log.info("Failed to find the next page button.")
            return False
        try:
            async with page.expect_navigation(
                wait_until="networkidle", timeout=self.navigation_timeout * 1000
            ):
                await next_button.click()
        except PlaywrightTimeoutError as e:
            log.warning(f"[yellow]Timed out waiting for the next page:[/] {e}")
            return False
        except PlaywrightError as e:
            log.warning(f"[yellow]Navigation error while paginating:[/] {e}")
            return False
        return True


class CatalogCrawler:
    """Collects every pack reference from the paginated catalog listing."""

    def __init__(self, navigation_timeout: float = 60.0, max_pages: int = 50):
        self.navigation_timeout = navigation_timeout
        self.paginator: Paginator[CollectionRef] = Paginator(
            extract_collection_refs,
            key=lambda ref: ref.path,
            navigation_timeout=navigation_timeout,
            max_pages=max_pages,
        )

    async def crawl(self, page: Page, start_url: str) -> list[CollectionRef]:
        """
        Loads the catalog start page and returns its packs in discovery order.

        Raises:
            NavigationError: If the start page itself cannot be loaded.
        """
        await open_page(page, start_url, self.navigation_timeout)
        packs = await self.paginator.collect(page)
        log.info(f"Found [bold]{len(packs)}[/bold] unique packs.")
        return packs
