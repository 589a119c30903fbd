"""
Provides the single authenticated browser page the whole run works with.

Cookies are restored from a JSON bundle before the first navigation. When the
site still shows a login link, the user is asked to log in manually in the
visible browser window and the fresh cookies are saved for the next run.
"""

import json
import logging
from pathlib import Path
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, Playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from pixcap_cli.exceptions import SessionError

log = logging.getLogger(__name__)

LOGIN_LINK_SELECTOR = '[href="/login"]'
LOGGED_IN_SELECTOR = ".dashboard, .user-profile, .user-menu"
INTERACTIVE_LOGIN_TIMEOUT_S = 300

_SAME_SITE_VALUES = {"Strict", "Lax", "None"}


def load_cookie_bundle(path: Path) -> list[dict[str, Any]]:
    """
    Reads a cookie bundle saved by a previous login. Returns an empty list
    when the file is missing or unreadable.
    """
    if not path.is_file():
        log.info("No cookies file found. Run 'pixcap-cli login' first or log in interactively.")
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        log.error(f"[red]Error loading cookies:[/red] {e}")
        return []
    if not isinstance(data, list):
        log.error("[red]Cookie file does not contain a list of cookies.[/red]")
        return []
    return [c for c in data if isinstance(c, dict)]


def to_playwright_cookie(cookie: dict[str, Any]) -> dict[str, Any] | None:
    """Converts a stored cookie into the shape `BrowserContext.add_cookies` accepts."""
    if not cookie.get("name") or "value" not in cookie or not cookie.get("domain"):
        return None
    converted: dict[str, Any] = {
        "name": cookie["name"],
        "value": str(cookie["value"]),
        "domain": cookie["domain"],
        "path": cookie.get("path") or "/",
        "httpOnly": bool(cookie.get("httpOnly", False)),
        "secure": bool(cookie.get("secure", False)),
    }
    expires = cookie.get("expires")
    if isinstance(expires, (int, float)) and expires > 0:
        converted["expires"] = float(expires)
    if cookie.get("sameSite") in _SAME_SITE_VALUES:
        converted["sameSite"] = cookie["sameSite"]
    return converted


def save_cookie_bundle(path: Path, cookies: list[dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cookies, indent=2), encoding="utf-8")
    log.info(f"[green]✓ Saved session cookies to {path}[/green]")


class BrowserSession:
    """
    Async context manager owning the Playwright browser for one run.

    Usage:
        async with BrowserSession(base_url, cookies_path) as session:
            await session.ensure_logged_in()
            ...
    """

    def __init__(
        self,
        base_url: str,
        cookies_path: Path,
        headless: bool = False,
        navigation_timeout: float = 60.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.cookies_path = cookies_path
        self.headless = headless
        self.navigation_timeout = navigation_timeout
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self.page: Page | None = None

    async def __aenter__(self) -> "BrowserSession":
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless, args=["--start-maximized"]
            )
            self._context = await self._browser.new_context(no_viewport=True)
            cookies = [
                c
                for c in map(to_playwright_cookie, load_cookie_bundle(self.cookies_path))
                if c
            ]
            if cookies:
                await self._context.add_cookies(cookies)
                log.info(f"Set {len(cookies)} session cookies from file.")
            self.page = await self._context.new_page()
            self.page.set_default_navigation_timeout(self.navigation_timeout * 1000)
        except PlaywrightError as e:
            await self.close()
            raise SessionError(f"Could not start the browser: {e}") from e
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    async def close(self) -> None:
        """Releases the browser; safe to call more than once."""
        if self._browser:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                log.debug(f"Error while closing browser: {e}")
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        log.debug("Browser session closed.")

    async def is_logged_in(self) -> bool:
        """The site shows a '/login' link only to anonymous visitors."""
        page = self._require_page()
        await page.goto(
            self.base_url, wait_until="networkidle", timeout=self.navigation_timeout * 1000
        )
        logged_in = await page.query_selector(LOGIN_LINK_SELECTOR) is None
        log.info(f"Login status: {'Logged in' if logged_in else 'Not logged in'}")
        return logged_in

    async def ensure_logged_in(self, interactive: bool = True) -> None:
        """
        Falls back to a manual login in the browser window when the restored
        cookies are missing or expired.

        Raises:
            SessionError: If login is required but not possible.
        """
        try:
            if await self.is_logged_in():
                return
            if not interactive:
                raise SessionError("Not logged in and interactive login is disabled.")
            await self.interactive_login()
        except PlaywrightError as e:
            raise SessionError(f"Could not establish a logged-in session: {e}") from e

    async def interactive_login(self) -> None:
        """Opens the login page and waits for the user to finish logging in."""
        page = self._require_page()
        await page.goto(f"{self.base_url}/login", wait_until="networkidle")
        log.info(
            "[bold cyan]Please log in manually in the browser window...[/bold cyan]"
        )
        await page.wait_for_selector(
            LOGGED_IN_SELECTOR, timeout=INTERACTIVE_LOGIN_TIMEOUT_S * 1000
        )
        log.info("Login detected, extracting cookies...")
        save_cookie_bundle(self.cookies_path, await self._context.cookies())

    def _require_page(self) -> Page:
        if self.page is None:
            raise SessionError("Browser session has not been started.")
        return self.page
