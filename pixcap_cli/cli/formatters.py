"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pixcap_cli.exceptions import (
    ConfigurationError,
    NavigationError,
    PersistenceError,
    ResolutionError,
    SessionError,
)
from pixcap_cli.models.stats import RunStats
from pixcap_cli.utils.formatting import format_duration, format_size

# First matching class wins, so subclasses go before their bases.
ERROR_SUGGESTIONS: list[tuple[type[BaseException], list[str]]] = [
    (
        SessionError,
        [
            "• Make sure Chromium is installed: `playwright install chromium`.",
            "• Your cookies may have expired. Run `pixcap-cli login` again.",
        ],
    ),
    (
        ConfigurationError,
        [
            "• Check the values in your configuration file.",
            "• Run `pixcap-cli init --force` to write a fresh default configuration.",
        ],
    ),
    (
        NavigationError,
        [
            "• The site may be slow or unavailable. Try again later.",
            "• Increase `navigation_timeout` in the configuration file.",
        ],
    ),
    (
        ResolutionError,
        [
            "• The item may have been removed or may need a logged-in session.",
            "• Increase `resolution_timeout` if the editor loads slowly.",
        ],
    ),
    (
        PersistenceError,
        ["• Check that the output directory is writable and not full."],
    ),
    (
        TimeoutError,
        [
            "• A page or download timed out, which may indicate network throttling.",
            "• Check your internet connection.",
        ],
    ),
]
DEFAULT_SUGGESTIONS = ["• Run the command with -vv for detailed logs."]


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    suggestions = next(
        (hints for error_class, hints in ERROR_SUGGESTIONS if isinstance(error, error_class)),
        DEFAULT_SUGGESTIONS,
    )

    error_text = Text()
    error_text.append(f"{type(error).__name__}: ", style="bold red")
    error_text.append(str(error))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the effective configuration."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in sorted(config_data.items()))
    console.print(
        Panel(
            content,
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_summary_panel(stats: RunStats, duration_s: float):
    """Displays the final summary of a harvest session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    if stats.packs_found:
        stats_table.add_row("Packs:", f"{stats.packs_found}")
    stats_table.add_row("Items Found:", f"{stats.items_found}")
    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{stats.items_downloaded}[/bold green]"
    )
    if stats.items_skipped_exists > 0:
        stats_table.add_row(
            "○ Skipped:", f"[yellow]{stats.items_skipped_exists} (exists)[/yellow]"
        )

    failures = []
    if stats.items_failed_resolution > 0:
        failures.append(f"[red]{stats.items_failed_resolution} (resolve)[/red]")
    if stats.items_failed_download > 0:
        failures.append(f"[red]{stats.items_failed_download} (download)[/red]")
    if failures:
        stats_table.add_row("✗ Failed:", " + ".join(failures))
    if stats.packs_failed > 0:
        stats_table.add_row("✗ Packs Failed:", f"[bold red]{stats.packs_failed}[/bold red]")

    stats_table.add_row("", "")  # Spacer
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_size_downloaded)}[/cyan]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if stats.dry_run:
        title = "🔍 [bold]Dry Run Summary[/bold]"
        border_color = "yellow"
    else:
        title = "📦 [bold]Harvest Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()
