"""
The main orchestrator: crawls the catalog, discovers each pack's items,
resolves them and stores the downloaded models, one item at a time.
"""

import dataclasses
import logging
from pathlib import Path

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from rich.markup import escape

from pixcap_cli.exceptions import (
    DownloadError,
    NavigationError,
    PersistenceError,
    PixcapCliError,
    ResolutionError,
)
from pixcap_cli.models.config import HarvestConfig
from pixcap_cli.models.refs import AssetFile, CollectionRef, ItemRef
from pixcap_cli.models.stats import RunStats
from pixcap_cli.storage.asset_store import AssetStore
from pixcap_cli.storage.catalog import ItemCatalog
from pixcap_cli.utils.diagnostics import dump_page_html
from pixcap_cli.utils.path import is_safe_slug
from pixcap_cli.web.crawler import CatalogCrawler, Paginator, open_page
from pixcap_cli.web.extractor import (
    extract_item_refs,
    extract_item_slugs,
    extract_pack_name,
)
from pixcap_cli.web.resolver import AssetResolver

log = logging.getLogger(__name__)

EXTENSION_CONTENT_TYPES = {"glb": "model/gltf-binary", "gltf": "model/gltf+json"}


class HarvestPipeline:
    """
    Drives crawl -> extract -> resolve -> store over a single browser page.

    A failure is contained to the item or pack it happened in; the loop always
    moves on to the next one.
    """

    def __init__(
        self,
        config: HarvestConfig,
        crawler: CatalogCrawler,
        resolver: AssetResolver,
        store: AssetStore,
        catalog: ItemCatalog | None = None,
    ):
        self.config = config
        self.crawler = crawler
        self.resolver = resolver
        self.store = store
        self.catalog = catalog
        self.stats = RunStats(dry_run=config.dry_run)

    @property
    def output_root(self) -> Path:
        return self.store.output_root

    async def run(self, page: Page) -> RunStats:
        """Processes every pack reachable from the catalog start page."""
        try:
            packs = await self.crawler.crawl(page, self.config.catalog_url)
        except NavigationError as e:
            log.error(f"[red]✗ Could not load the catalog:[/] {escape(str(e))}")
            return self.stats

        self.stats.packs_found = len(packs)
        if not packs:
            log.warning("[yellow]No packs found on the catalog page.[/yellow]")
            if self.config.dump_diagnostics:
                await dump_page_html(page, self.output_root, "catalog-page")
            return self.stats

        if self.catalog:
            self.catalog.save_packs(packs)

        for index, pack in enumerate(packs, 1):
            log.info(
                f"\n[bold cyan]▶ Pack {index}/{len(packs)}:[/] {escape(pack.path)}"
            )
            try:
                await self.process_collection(page, pack)
            except (PixcapCliError, PlaywrightError) as e:
                self.stats.packs_failed += 1
                log.error(
                    f"[red]✗ Error processing pack {escape(pack.path)}:[/] "
                    f"{escape(str(e))}"
                )

        return self.stats

    async def process_collection(self, page: Page, pack: CollectionRef) -> None:
        """Discovers a pack's items and processes each of them in order."""
        items = await self.discover_items(page, pack)
        if items:
            self.stats.packs_processed.add(pack.slug)
        for index, item in enumerate(items, 1):
            log.info(f"Processing item {index}/{len(items)}: [dim]{escape(item.slug)}[/dim]")
            await self.process_item(page, item)

    async def discover_items(self, page: Page, pack: CollectionRef) -> list[ItemRef]:
        """
        Opens the pack page and collects item links across its pages. Falls
        back to slug extraction from the first page when no links are found.

        Raises:
            NavigationError: If the pack page cannot be loaded.
        """
        await open_page(
            page, f"{self.config.base_url}{pack.path}", self.config.navigation_timeout
        )
        first_page_html = await page.content()
        pack = dataclasses.replace(pack, name=extract_pack_name(first_page_html))
        log.info(f"Pack name: [bold]{escape(pack.display_name)}[/bold]")

        paginator: Paginator[ItemRef] = Paginator(
            lambda html, url: extract_item_refs(html, url, pack),
            key=lambda item: item.path,
            navigation_timeout=self.config.navigation_timeout,
            max_pages=self.config.max_pages,
        )
        items = await paginator.collect(page)

        if not items:
            slugs = extract_item_slugs(first_page_html)
            items = [ItemRef.from_slug(slug, pack) for slug in slugs]

        if not items:
            log.warning(
                f"[yellow]No items found in pack '{escape(pack.display_name)}'.[/yellow]"
            )
            if self.config.dump_diagnostics:
                await dump_page_html(page, self.output_root, f"pack-{pack.slug}")
        else:
            log.info(f"Found {len(items)} total unique items in pack.")
        return items

    async def process_item(self, page: Page, item: ItemRef) -> AssetFile | None:
        """
        Resolves and stores a single item unless a previous run already has it.
        Returns the stored file, or None when the item was skipped or failed.
        """
        self.stats.items_found += 1
        if self.catalog:
            self.catalog.add_item(item)
        try:
            return await self._process_item(page, item)
        finally:
            if self.catalog:
                self.catalog.save_items()

    async def _process_item(self, page: Page, item: ItemRef) -> AssetFile | None:
        if self.store.already_has(item):
            self.stats.items_skipped_exists += 1
            log.info(
                f"  [yellow]○ Skipping:[/] [dim]{escape(item.slug)}[/dim] (already downloaded)"
            )
            return None

        if self.config.dry_run:
            log.info(
                f"  [cyan]→ (Dry Run)[/] Would save to "
                f"[dim]{escape(str(self.store.collection_dir(item.collection)))}[/dim]"
            )
            return None

        try:
            result = await self.resolver.resolve(page, item)
        except (ResolutionError, NavigationError) as e:
            self.stats.items_failed_resolution += 1
            log.error(f"  [red]✗ Failed:[/] {escape(item.slug)} ({escape(str(e))})")
            return None

        log.debug(
            f"Resolved '{item.slug}' to {result.identifier} "
            f"(content type: {result.content_type or 'unknown'})"
        )
        expected_type = EXTENSION_CONTENT_TYPES.get(self.store.extension)
        content_type = (result.content_type or "").split(";")[0].strip().lower()
        if content_type and expected_type and content_type != expected_type:
            log.warning(
                f"  [yellow]⚠ Content type '{escape(result.content_type)}' for "
                f"{escape(item.slug)} does not match '.{self.store.extension}'[/yellow]"
            )

        try:
            asset = await self.store.store(item, result)
        except (DownloadError, PersistenceError) as e:
            self.stats.items_failed_download += 1
            log.error(f"  [red]✗ Failed:[/] {escape(item.slug)} ({escape(str(e))})")
            return None

        self.stats.items_downloaded += 1
        self.stats.total_size_downloaded += asset.size
        return asset

    async def fetch_items(
        self, page: Page, slugs: list[str], collection: CollectionRef
    ) -> RunStats:
        """Processes explicitly given item slugs without crawling the catalog."""
        unique_slugs = list(dict.fromkeys(slugs))
        if len(unique_slugs) < len(slugs):
            log.info(f"Removed {len(slugs) - len(unique_slugs)} duplicate items.")
        for slug in unique_slugs:
            if not is_safe_slug(slug):
                log.warning(f"[yellow]Ignoring unusable item slug:[/] {escape(slug)}")
                continue
            log.info(f"\n[bold cyan]▶ Item:[/] {escape(slug)}")
            await self.process_item(page, ItemRef.from_slug(slug, collection))
        return self.stats
