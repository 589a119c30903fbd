"""
Writes raw page HTML next to the output when extraction comes back empty.
"""

import logging
from pathlib import Path

from pathvalidate import sanitize_filename

from .path import create_dir

log = logging.getLogger(__name__)


async def dump_page_html(page, output_root: Path, name: str) -> Path | None:
    """Saves the rendered HTML of `page` to '<output_root>/_debug/<name>.html'."""
    debug_dir = output_root / "_debug"
    target = debug_dir / f"{sanitize_filename(name, platform='auto')}.html"
    try:
        html = await page.content()
        create_dir(debug_dir)
        target.write_text(html, encoding="utf-8")
    except Exception as e:
        log.warning(f"[yellow]Could not write diagnostic dump '{target.name}':[/] {e}")
        return None
    log.info(f"[dim]Saved page HTML to {target} for inspection[/dim]")
    return target
