"""
Writes downloaded assets to '<output>/<pack>/<slug>__<identifier>.<ext>' and
records each slug's identifier once the file is in place.
"""

import asyncio
import logging
import os
from pathlib import Path

from rich.markup import escape

from pixcap_cli.exceptions import PersistenceError
from pixcap_cli.media.downloader import Downloader
from pixcap_cli.models.refs import AssetFile, CollectionRef, ItemRef, ResolutionResult
from pixcap_cli.utils.path import collection_dir_name, create_dir, is_safe_slug

from .mapping import MappingIndex

log = logging.getLogger(__name__)

SLUG_SEPARATOR = "__"


class AssetStore:
    """
    Owns the output directory. The presence of a '<slug>__*.<ext>' file is the
    only record that an item was downloaded.
    """

    def __init__(
        self,
        output_root: Path,
        mapping: MappingIndex,
        downloader: Downloader,
        extension: str = "glb",
    ):
        self.output_root = output_root
        self.mapping = mapping
        self.downloader = downloader
        self.extension = extension

    def collection_dir(self, collection: CollectionRef) -> Path:
        return self.output_root / collection_dir_name(collection.slug)

    def asset_path(self, item: ItemRef, identifier: str) -> Path:
        """
        Raises:
            PersistenceError: If the slug or identifier would escape the pack
                directory or is not a valid file name.
        """
        filename = f"{item.slug}{SLUG_SEPARATOR}{identifier}.{self.extension}"
        if not is_safe_slug(item.slug) or not is_safe_slug(filename):
            raise PersistenceError(
                f"Refusing unsafe file name for {item.slug!r}: {filename!r}"
            )
        return self.collection_dir(item.collection) / filename

    def already_has(self, item: ItemRef) -> bool:
        """
        True if a previous run stored this slug. Matches on the '<slug>__'
        prefix, so any identifier counts.
        """
        directory = self.collection_dir(item.collection)
        if not directory.is_dir():
            return False
        prefix = f"{item.slug}{SLUG_SEPARATOR}"
        suffix = f".{self.extension}"
        return any(
            name.startswith(prefix) and name.endswith(suffix)
            for name in os.listdir(directory)
        )

    async def store(self, item: ItemRef, result: ResolutionResult) -> AssetFile:
        """
        Fetches the signed URL and records the slug's identifier.

        Raises:
            DownloadError: If the fetch fails. Nothing is written in that case.
            PersistenceError: If the file name is unsafe or the mapping file
                cannot be updated.
        """
        destination = self.asset_path(item, result.identifier)
        await asyncio.to_thread(create_dir, destination.parent)

        log.debug(f"Downloading '{item.slug}' from: {result.signed_url}")
        size = await self.downloader.download_file(result.signed_url, destination)
        await self.mapping.record(item.slug, result.identifier)

        log.info(
            f"  [green]✓ Downloaded:[/] [dim]{escape(destination.name)}[/dim]"
        )
        return AssetFile(
            slug=item.slug,
            identifier=result.identifier,
            path=destination,
            size=size,
        )
