"""
Resolves an item slug into a signed download URL.

Navigating to '/design/create?slug=<slug>' makes the web app redirect to
'/design/<identifier>' and call the loadProject endpoint, whose JSON response
carries the signed URL. The response is observed through a page listener that
must be registered before the navigation starts, otherwise the response can
arrive before anyone is listening.
"""

import asyncio
import logging
import re
from contextlib import suppress
from typing import Any
from urllib.parse import quote, urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Response
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from pixcap_cli.exceptions import NavigationError, NoMatchError, ResolutionTimeoutError
from pixcap_cli.models.refs import ItemRef, ResolutionResult

from .extractor import parse_html

log = logging.getLogger(__name__)

RESOLUTION_ENDPOINT = "/api/v1/assetmanager/presigned/loadProject/"
_DESIGN_PATH_REGEX = re.compile(r"^/design/(?P<identifier>[0-9a-f][0-9a-f-]*)/?$", re.I)
_UUID_REGEX = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.I
)

FETCH_JSON_JS = """
async (url) => {
  try {
    const response = await fetch(url, { credentials: 'include' });
    if (!response.ok) {
      return { error: `HTTP error! status: ${response.status}` };
    }
    return await response.json();
  } catch (error) {
    return { error: error.toString() };
  }
}
"""


def identifier_from_endpoint_url(url: str) -> str:
    """Trailing path segment of a loadProject URL, query string stripped."""
    return urlparse(url).path.rstrip("/").split("/")[-1]


def identifier_from_design_url(url: str) -> str | None:
    """Identifier embedded in a post-redirect '/design/<identifier>' URL."""
    match = _DESIGN_PATH_REGEX.match(urlparse(url).path)
    return match.group("identifier") if match else None


def identifier_from_document(html: str) -> str | None:
    """Looks for a UUID in meta tag contents, then in inline script bodies."""
    soup = parse_html(html)
    for meta in soup.select('meta[content*="-"]'):
        if match := _UUID_REGEX.search(meta.get("content", "")):
            return match.group(0)
    for script in soup.find_all("script"):
        text = script.string or script.get_text()
        if text and (match := _UUID_REGEX.search(text)):
            return match.group(0)
    return None


def result_from_payload(
    identifier: str, payload: Any
) -> ResolutionResult | None:
    """Builds a result when the JSON payload carries a non-null presignedUrl."""
    if not isinstance(payload, dict):
        return None
    signed_url = payload.get("presignedUrl")
    if not signed_url:
        return None
    return ResolutionResult(
        identifier=identifier,
        signed_url=signed_url,
        content_type=payload.get("contentType"),
    )


class ResolutionListener:
    """
    Page 'response' handler that captures the first loadProject response
    carrying a signed URL. Exposes the capture as an awaitable future.
    """

    def __init__(self, slug: str):
        self.slug = slug
        self.captured: asyncio.Future[ResolutionResult] = (
            asyncio.get_running_loop().create_future()
        )

    async def __call__(self, response: Response) -> None:
        url = response.url
        if RESOLUTION_ENDPOINT not in url or self.captured.done():
            return
        log.debug(f"Intercepted resolution response: {url}")
        try:
            payload = await response.json()
        except Exception as e:
            log.debug(f"Could not parse resolution response as JSON: {e}")
            return
        result = result_from_payload(identifier_from_endpoint_url(url), payload)
        if result and not self.captured.done():
            self.captured.set_result(result)
            log.debug(f"Captured signed URL for '{self.slug}' ({result.identifier}).")

    def result(self) -> ResolutionResult | None:
        """The captured result, or None if nothing has been captured yet."""
        if self.captured.done() and not self.captured.cancelled():
            return self.captured.result()
        return None


class AssetResolver:
    """Turns item slugs into signed download URLs, one item at a time."""

    def __init__(
        self,
        base_url: str,
        lang: str = "en",
        navigation_timeout: float = 60.0,
        resolution_timeout: float = 15.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.lang = lang
        self.navigation_timeout = navigation_timeout
        self.resolution_timeout = resolution_timeout

    def trigger_url(self, slug: str) -> str:
        return f"{self.base_url}/design/create?slug={quote(slug, safe='')}"

    def endpoint_url(self, identifier: str) -> str:
        return f"{self.base_url}{RESOLUTION_ENDPOINT}{identifier}?lang={self.lang}"

    async def resolve(self, page: Page, item: ItemRef) -> ResolutionResult:
        """
        Resolves one item. The response listener is registered before the
        trigger navigation and removed before returning, whatever the outcome.

        Raises:
            ResolutionTimeoutError: The trigger navigation timed out.
            NoMatchError: No identifier or signed URL could be discovered.
            NavigationError: The trigger navigation failed for another reason.
        """
        listener = ResolutionListener(item.slug)
        page.on("response", listener)
        try:
            await self._navigate(page, item)
            return await self._await_resolution(page, item, listener)
        finally:
            page.remove_listener("response", listener)
            if not listener.captured.done():
                listener.captured.cancel()

    async def _navigate(self, page: Page, item: ItemRef) -> None:
        url = self.trigger_url(item.slug)
        log.debug(f"Navigating to: {url}")
        try:
            await page.goto(
                url, wait_until="networkidle", timeout=self.navigation_timeout * 1000
            )
        except PlaywrightTimeoutError as e:
            raise ResolutionTimeoutError(item.slug, "navigation timed out") from e
        except PlaywrightError as e:
            raise NavigationError(f"Failed to open {url}: {e}") from e

    async def _await_resolution(
        self, page: Page, item: ItemRef, listener: ResolutionListener
    ) -> ResolutionResult:
        """Waits for the listener or the redirect, then falls back to fetching."""
        redirect = asyncio.ensure_future(
            page.wait_for_url(
                lambda url: identifier_from_design_url(url) is not None,
                timeout=self.resolution_timeout * 1000,
            )
        )
        try:
            await asyncio.wait(
                {listener.captured, redirect},
                timeout=self.resolution_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if not redirect.done():
                redirect.cancel()
            with suppress(asyncio.CancelledError, PlaywrightError):
                await redirect

        if captured := listener.result():
            return captured

        try:
            return await self._resolve_from_page(page, item)
        except NoMatchError:
            # The response handler may still have fired while the fallback ran.
            if captured := listener.result():
                log.debug(f"Using the signed URL captured late for '{item.slug}'.")
                return captured
            raise

    async def _resolve_from_page(self, page: Page, item: ItemRef) -> ResolutionResult:
        """Finds the identifier in the page URL or document and fetches its signed URL."""
        identifier = identifier_from_design_url(page.url)
        if identifier:
            log.debug(f"Extracted identifier from URL: {identifier}")
            return await self._fetch_resolution(page, item, identifier)

        log.debug(f"No identifier in '{page.url}', scanning page content.")
        try:
            html = await page.content()
        except PlaywrightError as e:
            raise NoMatchError(item.slug, f"could not read page content: {e}") from e
        identifier = identifier_from_document(html)
        if identifier:
            log.debug(f"Found identifier in page content: {identifier}")
            return await self._fetch_resolution(page, item, identifier)

        raise NoMatchError(item.slug, "no identifier found after redirect")

    async def _fetch_resolution(
        self, page: Page, item: ItemRef, identifier: str
    ) -> ResolutionResult:
        """Calls the loadProject endpoint from inside the page's origin."""
        url = self.endpoint_url(identifier)
        log.debug(f"Accessing resolution endpoint: {url}")
        try:
            payload = await page.evaluate(FETCH_JSON_JS, url)
        except PlaywrightError as e:
            raise NoMatchError(item.slug, f"resolution fetch failed: {e}") from e

        result = result_from_payload(identifier, payload)
        if result is None:
            error = payload.get("error") if isinstance(payload, dict) else None
            raise NoMatchError(item.slug, error or "no signed URL in response")
        return result
