"""
Shared fixtures and in-memory stand-ins for the Playwright page API.
"""

import asyncio
import inspect
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from pixcap_cli.exceptions import DownloadError
from pixcap_cli.models.config import HarvestConfig
from pixcap_cli.models.refs import CollectionRef

BASE_URL = "https://pixcap.com"


class FakeResponse:
    def __init__(self, url: str, payload=None, error: Exception | None = None):
        self.url = url
        self._payload = payload
        self._error = error

    async def json(self):
        if self._error:
            raise self._error
        return self._payload


class FakeElementHandle:
    def __init__(self, page: "FakePage", target: str):
        self.page = page
        self.target = target

    async def click(self):
        self.page.calls.append(f"click:{self.target}")
        self.page.url = self.target


class FakePage:
    """
    Records every call and serves HTML by URL.

    - `html`: url -> markup returned by `content()`
    - `redirects`: url -> url the page ends up on after `goto`
    - `responses`: url -> responses emitted to 'response' listeners during `goto`
    - `late_responses`: url -> responses emitted `response_delay` seconds after
      `goto` has returned
    - `evaluate_responses`: url -> responses emitted while `evaluate(script, url)` runs
    - `fetch_results`: url -> payload returned by `evaluate(script, url)`
    - `next_targets`: url -> url the pagination 'next' button leads to
    - `goto_errors`: url -> exception raised by `goto`
    """

    def __init__(self, html=None, redirects=None, responses=None, fetch_results=None):
        self.url = "about:blank"
        self.html: dict[str, str] = dict(html or {})
        self.redirects: dict[str, str] = dict(redirects or {})
        self.responses: dict[str, list[FakeResponse]] = dict(responses or {})
        self.fetch_results: dict[str, object] = dict(fetch_results or {})
        self.next_targets: dict[str, str] = {}
        self.goto_errors: dict[str, Exception] = {}
        self.late_responses: dict[str, list[FakeResponse]] = {}
        self.evaluate_responses: dict[str, list[FakeResponse]] = {}
        self.response_delay = 0.01
        self._pending: list[asyncio.Future] = []
        self.navigation_error: Exception | None = None
        self.handlers: dict[str, list] = {}
        self.calls: list[str] = []

    def on(self, event, handler):
        self.calls.append(f"on:{event}")
        self.handlers.setdefault(event, []).append(handler)

    def remove_listener(self, event, handler):
        self.calls.append(f"off:{event}")
        self.handlers.get(event, []).remove(handler)

    async def emit(self, event, payload):
        for handler in list(self.handlers.get(event, [])):
            result = handler(payload)
            if inspect.isawaitable(result):
                await result

    async def goto(self, url, wait_until=None, timeout=None):
        self.calls.append(f"goto:{url}")
        if url in self.goto_errors:
            raise self.goto_errors[url]
        self.url = url
        for response in self.responses.get(url, []):
            await self.emit("response", response)
        self.url = self.redirects.get(url, url)
        if url in self.late_responses:
            self._pending.append(
                asyncio.ensure_future(self._emit_later(self.late_responses[url]))
            )

    async def _emit_later(self, responses):
        await asyncio.sleep(self.response_delay)
        for response in responses:
            await self.emit("response", response)

    async def content(self):
        return self.html.get(self.url, "<html><body></body></html>")

    async def wait_for_url(self, predicate, timeout=None):
        if predicate(self.url):
            return
        await asyncio.sleep((timeout or 0) / 1000)
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")

    async def evaluate(self, script, arg=None):
        self.calls.append(f"evaluate:{arg}")
        for response in self.evaluate_responses.get(arg, []):
            await self.emit("response", response)
        return self.fetch_results.get(arg, {"error": "HTTP error! status: 404"})

    async def query_selector(self, selector):
        target = self.next_targets.get(self.url)
        return FakeElementHandle(self, target) if target else None

    @asynccontextmanager
    async def expect_navigation(self, wait_until=None, timeout=None):
        yield
        if self.navigation_error:
            raise self.navigation_error


class FakeDownloader:
    """Writes fixed bytes instead of fetching, or fails on demand."""

    def __init__(self, body: bytes = b"glTF-binary", fail: bool = False):
        self.body = body
        self.fail = fail
        self.calls: list[tuple[str, Path]] = []

    async def download_file(self, url: str, destination_path: Path) -> int:
        self.calls.append((url, destination_path))
        if self.fail:
            raise DownloadError(f"Failed to download '{destination_path.name}': 403")
        destination_path.write_bytes(self.body)
        return len(self.body)


def catalog_html(paths: list[str], next_enabled: bool | None = None) -> str:
    """A listing page with pack links and an optional pagination control."""
    links = "".join(f'<a class="pack-card" href="{p}">{p}</a>' for p in paths)
    nav = ""
    if next_enabled is not None:
        disabled = "" if next_enabled else " disabled"
        nav = (
            '<nav class="pagination">'
            f'<button class="pagination__next"{disabled}>Next</button></nav>'
        )
    return f"<html><body><main>{links}</main>{nav}</body></html>"


@pytest.fixture
def base_url() -> str:
    return BASE_URL


@pytest.fixture
def collection() -> CollectionRef:
    return CollectionRef.from_path("/pack/3d-icon-set-buildings-houses", "Buildings")


@pytest.fixture
def output_root(tmp_path) -> Path:
    root = tmp_path / "downloads"
    root.mkdir()
    return root


@pytest.fixture
def config(tmp_path, output_root) -> HarvestConfig:
    return HarvestConfig(
        base_url=BASE_URL,
        output_dir=str(output_root),
        cookies_file=str(tmp_path / "cookies.json"),
        navigation_timeout=1,
        resolution_timeout=0.05,
        max_pages=10,
        config_path=str(tmp_path),
    )
