"""
Keeps a record of every pack and item discovered, saved alongside the downloads.
"""

import logging
from pathlib import Path

from pixcap_cli.models.refs import CollectionRef, ItemRef

from .mapping import write_json_atomic

log = logging.getLogger(__name__)

PACKS_FILE = "all-packs.json"
ITEMS_FILE = "all-items.json"


class ItemCatalog:
    """Discovery record written to 'all-packs.json' and 'all-items.json'."""

    def __init__(self, output_root: Path):
        self.packs_path = output_root / PACKS_FILE
        self.items_path = output_root / ITEMS_FILE
        self.items: dict[str, dict[str, str]] = {}

    def save_packs(self, packs: list[CollectionRef]) -> None:
        try:
            write_json_atomic(self.packs_path, [pack.path for pack in packs])
        except OSError as e:
            log.warning(f"[yellow]Could not save pack list:[/] {e}")
            return
        log.info(f"Saved all pack URLs to [dim]{self.packs_path}[/dim]")

    def add_item(self, item: ItemRef) -> None:
        self.items[item.slug] = {
            "itemUrl": item.path,
            "packName": item.collection.display_name,
            "packUrl": item.collection.path,
        }

    def save_items(self) -> None:
        try:
            write_json_atomic(self.items_path, self.items)
        except OSError as e:
            log.warning(f"[yellow]Could not save item list:[/] {e}")
            return
        log.debug(f"Saved {len(self.items)} items to {self.items_path}")
