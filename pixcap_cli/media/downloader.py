"""
Handles the low-level downloading of signed asset URLs over HTTP.
Files are streamed to a temporary name and only renamed into place once complete.
"""

import asyncio
import logging
import os
from pathlib import Path

import aiofiles
import aiohttp

from pixcap_cli.exceptions import DownloadError

log = logging.getLogger(__name__)

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool() -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession for downloads.

    This function ensures that only one connection pool is created for the
    lifetime of the application run.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=4,
            ttl_dns_cache=600,  # 10 minutes
            keepalive_timeout=30,
            enable_cleanup_closed=True,
        )
        _connection_pool = aiohttp.ClientSession(
            connector=connector,
            headers={"Accept-Encoding": "gzip, deflate"},
        )
        log.debug("Created download connection pool.")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared downloader connection pool closed.")


class Downloader:
    """A single-attempt file downloader with a bounded total timeout."""

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(self, timeout_s: float = 30.0):
        self.timeout = aiohttp.ClientTimeout(total=timeout_s)

    async def download_file(self, url: str, destination_path: Path) -> int:
        """
        Downloads `url` to `destination_path` and returns the number of bytes written.

        Nothing is left at `destination_path` unless the whole body arrived.

        Raises:
            DownloadError: On network errors, timeouts or non-2xx responses.
        """
        temp_path = destination_path.with_name(destination_path.name + ".part")
        try:
            session = await get_connection_pool()
            async with session.get(
                url, timeout=self.timeout, allow_redirects=True
            ) as response:
                response.raise_for_status()
                bytes_downloaded = 0
                async with aiofiles.open(temp_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                        await f.write(chunk)
                        bytes_downloaded += len(chunk)
            os.replace(temp_path, destination_path)
            return bytes_downloaded
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise DownloadError(
                f"Failed to download '{destination_path.name}': {e}"
            ) from e
        finally:
            if temp_path.exists():
                try:
                    os.remove(temp_path)
                except OSError:
                    pass
