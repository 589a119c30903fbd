"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from pixcap_cli import __version__
from pixcap_cli.core.pipeline import HarvestPipeline
from pixcap_cli.exceptions import PixcapCliError
from pixcap_cli.media.downloader import Downloader, close_connection_pool
from pixcap_cli.models.config import HarvestConfig
from pixcap_cli.models.refs import CollectionRef
from pixcap_cli.models.stats import RunStats
from pixcap_cli.storage.asset_store import AssetStore
from pixcap_cli.storage.catalog import ItemCatalog
from pixcap_cli.storage.config_manager import ConfigManager
from pixcap_cli.storage.mapping import MappingIndex
from pixcap_cli.utils.path import parse_item_reference
from pixcap_cli.web.crawler import CatalogCrawler
from pixcap_cli.web.resolver import AssetResolver
from pixcap_cli.web.session import BrowserSession

from .formatters import format_error_with_suggestions, print_config, print_summary_panel

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("pixcap_cli")

app = typer.Typer(
    name="pixcap-cli",
    help=(
        "Discovers PixCap 3D icon packs and downloads their .glb models. Use"
        " 'pixcap-cli <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "pixcap-cli"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the effective configuration."
    ),
):
    """PixCap 3D icon harvester"""
    if version:
        console.print(f"[bold]pixcap-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("pixcap_cli").setLevel(log_level)

    if show_config:
        try:
            config_data = ConfigManager(CONFIG_FILE).get_config_as_dict()
        except PixcapCliError as e:
            console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
            raise typer.Exit(code=1) from e
        print_config(CONFIG_FILE, config_data)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    output_dir: str | None = typer.Option(
        None, "-o", "--output", help="Directory where packs are downloaded."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration without asking."
    ),
):
    """Write a default configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {"output_dir": output_dir} if output_dir else {}
    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except PixcapCliError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Next: [cyan]pixcap-cli login[/cyan], then [cyan]pixcap-cli crawl[/cyan]")


def _load_config(cli_options: dict) -> HarvestConfig:
    try:
        return ConfigManager(CONFIG_FILE).load_config(
            {key: value for key, value in cli_options.items() if value is not None}
        )
    except PixcapCliError as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1) from e


@app.command()
def login(
    headless: bool = typer.Option(
        False, "--headless/--headed", help="Run the browser without a window."
    ),
):
    """Log in through a browser window and save the session cookies."""
    config = _load_config({"headless": headless})

    async def _login_async():
        async with BrowserSession(
            config.base_url,
            Path(config.cookies_file).expanduser(),
            headless=config.headless,
            navigation_timeout=config.navigation_timeout,
        ) as session:
            await session.interactive_login()

    try:
        asyncio.run(_login_async())
    except PixcapCliError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    console.print("[green]✓ You can now run [cyan]pixcap-cli crawl[/cyan].[/green]")


def build_pipeline(config: HarvestConfig) -> HarvestPipeline:
    """Wires the crawler, resolver and store for one run."""
    output_root = Path(config.output_dir).expanduser()
    store = AssetStore(
        output_root,
        MappingIndex(output_root / config.mapping_file),
        Downloader(timeout_s=config.download_timeout),
        extension=config.extension,
    )
    return HarvestPipeline(
        config,
        CatalogCrawler(
            navigation_timeout=config.navigation_timeout, max_pages=config.max_pages
        ),
        AssetResolver(
            config.base_url,
            lang=config.lang,
            navigation_timeout=config.navigation_timeout,
            resolution_timeout=config.resolution_timeout,
        ),
        store,
        ItemCatalog(output_root),
    )


def _run_session(config: HarvestConfig, slugs: list[str] | None, collection: str):
    """Runs the pipeline inside a browser session and prints the summary."""

    async def _run_async() -> RunStats:
        pipeline = build_pipeline(config)
        try:
            async with BrowserSession(
                config.base_url,
                Path(config.cookies_file).expanduser(),
                headless=config.headless,
                navigation_timeout=config.navigation_timeout,
            ) as session:
                await session.ensure_logged_in()
                if slugs is None:
                    return await pipeline.run(session.page)
                return await pipeline.fetch_items(
                    session.page, slugs, CollectionRef.from_path(f"/pack/{collection}")
                )
        finally:
            await close_connection_pool()

    mode = "dry run" if config.dry_run else "harvest"
    console.print(f"[bold cyan]📦 Starting {mode} session...[/bold cyan]")
    start_time = time.monotonic()
    try:
        stats = asyncio.run(_run_async())
    except PixcapCliError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    print_summary_panel(stats, time.monotonic() - start_time)


@app.command()
def crawl(
    output_dir: str | None = typer.Option(
        None, "-o", "--output", help="Directory where packs are downloaded."
    ),
    catalog_path: str | None = typer.Option(
        None, "--catalog", help="Catalog listing path, e.g. '/3d-icon-packs'."
    ),
    max_pages: int | None = typer.Option(
        None, "--max-pages", help="Stop paginating after this many pages."
    ),
    headless: bool | None = typer.Option(
        None, "--headless/--headed", help="Run the browser without a window."
    ),
    dump_diagnostics: bool | None = typer.Option(
        None,
        "--dump-html/--no-dump-html",
        help="Save page HTML when a page yields no references.",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Discover packs and items without downloading."
    ),
):
    """Crawl the catalog and download every pack's models."""
    config = _load_config(
        {
            "output_dir": output_dir,
            "catalog_path": catalog_path,
            "max_pages": max_pages,
            "headless": headless,
            "dump_diagnostics": dump_diagnostics,
            "dry_run": dry_run,
        }
    )
    _run_session(config, None, "")


@app.command()
def fetch(
    items: list[str] = typer.Argument(  # noqa: B008
        ...,
        help="Item slugs, '/item/<slug>' paths or full item URLs.",
        metavar="<SLUG|ITEM_URL>...",
    ),
    collection: str = typer.Option(
        "direct", "-c", "--collection", help="Sub-directory to store the models in."
    ),
    output_dir: str | None = typer.Option(
        None, "-o", "--output", help="Directory where models are downloaded."
    ),
    headless: bool | None = typer.Option(
        None, "--headless/--headed", help="Run the browser without a window."
    ),
):
    """Download specific items without crawling the catalog."""
    config = _load_config({"output_dir": output_dir, "headless": headless})
    slugs = []
    for value in items:
        slug = parse_item_reference(value)
        if slug is None:
            log.warning(f"[yellow]Ignoring unusable item reference:[/] {escape(value)}")
        else:
            slugs.append(slug)
    if not slugs:
        console.print("[bold red]Error: No valid item references given.[/bold red]")
        raise typer.Exit(code=1)
    _run_session(config, slugs, collection)
