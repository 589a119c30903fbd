"""
Manages the JSON file that maps item slugs to their server-side identifiers.
"""

import asyncio
import json
import logging
import os
from pathlib import Path

from pixcap_cli.exceptions import PersistenceError

log = logging.getLogger(__name__)


def write_json_atomic(path: Path, data) -> None:
    """Writes JSON to a sibling temp file and renames it over `path`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(path.name + ".tmp")
    with open(temp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    os.replace(temp_path, path)


class MappingIndex:
    """
    An append-only slug -> identifier record mirrored to disk after every change.

    An unreadable or corrupt file is treated as an empty mapping rather than an
    error, so a damaged file never stops a run.
    """

    def __init__(self, mapping_path: Path):
        self.path = mapping_path
        self._entries: dict[str, str] = self._read_sync()

    def _read_sync(self) -> dict[str, str]:
        if not self.path.is_file():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log.warning(
                f"[yellow]Mapping file '{self.path.name}' is unreadable, "
                f"starting from an empty mapping:[/] {e}"
            )
            return {}
        if not isinstance(data, dict):
            log.warning(
                f"[yellow]Mapping file '{self.path.name}' is not a JSON object, "
                "starting from an empty mapping.[/yellow]"
            )
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _record_sync(self, slug: str, identifier: str) -> None:
        """Read-modify-write of the mapping file with one new entry."""
        entries = self._read_sync()
        entries.update(self._entries)
        entries[slug] = identifier
        try:
            write_json_atomic(self.path, entries)
        except OSError as e:
            raise PersistenceError(
                f"Could not write mapping file '{self.path}': {e}"
            ) from e
        self._entries = entries

    async def record(self, slug: str, identifier: str) -> None:
        """Adds or overwrites the entry for `slug` and persists the mapping."""
        await asyncio.to_thread(self._record_sync, slug, identifier)

    def get(self, slug: str) -> str | None:
        return self._entries.get(slug)

    def as_dict(self) -> dict[str, str]:
        return dict(self._entries)

    def __contains__(self, slug: object) -> bool:
        return slug in self._entries

    def __len__(self) -> int:
        return len(self._entries)
