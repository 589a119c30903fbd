import asyncio

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from pixcap_cli.exceptions import NavigationError
from pixcap_cli.web.crawler import NEXT_BUTTON_SELECTOR, CatalogCrawler, has_enabled_next

from .conftest import FakePage, catalog_html

START = "https://pixcap.com/3d-icon-packs"


def paged_catalog(pages: list[list[str]]) -> FakePage:
    """A catalog whose page N links to page N+1 until the last one."""
    urls = [START] + [f"{START}?page={n}" for n in range(2, len(pages) + 1)]
    page = FakePage()
    for index, (url, paths) in enumerate(zip(urls, pages)):
        is_last = index == len(pages) - 1
        page.html[url] = catalog_html(paths, next_enabled=not is_last)
        if not is_last:
            page.next_targets[url] = urls[index + 1]
    return page


def test_three_pages_yield_every_pack_in_order():
    page = paged_catalog(
        [
            ["/pack/a", "/pack/b"],
            ["/pack/c", "/pack/d", "/pack/e"],
            ["/pack/f"],
        ]
    )
    crawler = CatalogCrawler(navigation_timeout=1, max_pages=10)

    packs = asyncio.run(crawler.crawl(page, START))

    assert [p.path for p in packs] == [
        "/pack/a", "/pack/b", "/pack/c", "/pack/d", "/pack/e", "/pack/f"
    ]
    assert page.calls.count(f"goto:{START}") == 1


def test_packs_repeated_across_pages_are_kept_once():
    page = paged_catalog([["/pack/a", "/pack/b"], ["/pack/b", "/pack/c"]])

    packs = asyncio.run(CatalogCrawler(navigation_timeout=1).crawl(page, START))

    assert [p.slug for p in packs] == ["a", "b", "c"]


def test_always_enabled_next_stops_at_max_pages():
    page = FakePage()
    second = f"{START}?page=2"
    page.html[START] = catalog_html(["/pack/a"], next_enabled=True)
    page.html[second] = catalog_html(["/pack/b"], next_enabled=True)
    page.next_targets[START] = second
    page.next_targets[second] = START

    crawler = CatalogCrawler(navigation_timeout=1, max_pages=3)
    packs = asyncio.run(crawler.crawl(page, START))

    assert [p.slug for p in packs] == ["a", "b"]
    assert len([c for c in page.calls if c.startswith("click:")]) == 2


def test_navigation_timeout_keeps_partial_results():
    page = paged_catalog([["/pack/a", "/pack/b"], ["/pack/c"]])
    page.navigation_error = PlaywrightTimeoutError("Timeout 1000ms exceeded.")

    packs = asyncio.run(CatalogCrawler(navigation_timeout=1).crawl(page, START))

    assert [p.slug for p in packs] == ["a", "b"]


def test_missing_next_handle_ends_traversal():
    page = FakePage(html={START: catalog_html(["/pack/a"], next_enabled=True)})

    packs = asyncio.run(CatalogCrawler(navigation_timeout=1).crawl(page, START))

    assert [p.slug for p in packs] == ["a"]


def test_unreachable_start_page_raises():
    page = FakePage()
    page.goto_errors[START] = PlaywrightTimeoutError("Timeout 1000ms exceeded.")

    with pytest.raises(NavigationError):
        asyncio.run(CatalogCrawler(navigation_timeout=1).crawl(page, START))


@pytest.mark.parametrize(
    "html, expected",
    [
        (catalog_html([], next_enabled=True), True),
        (catalog_html([], next_enabled=False), False),
        (
            '<ul class="pagination"><li class="next disabled">Next</li></ul>',
            False,
        ),
        ('<ul class="pagination"><a aria-label="next page">›</a></ul>', True),
        (catalog_html(["/pack/a"]), False),
        (
            '<div class="pagination-info">Page 1 of 3</div>'
            '<nav class="pagination"><a class="next" href="?page=2">›</a></nav>',
            True,
        ),
        (
            '<ul class="pagination-top"><li class="next disabled">›</li></ul>'
            '<ul class="pagination-bottom"><li class="next">›</li></ul>',
            True,
        ),
    ],
)
def test_has_enabled_next(html, expected):
    assert has_enabled_next(html) is expected


def test_next_button_selector_skips_disabled_controls():
    for alternative in NEXT_BUTTON_SELECTOR.split(", "):
        assert alternative.endswith(":not([disabled]):not(.disabled)")
