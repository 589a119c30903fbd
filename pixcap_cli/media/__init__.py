"""
Media Layer.

This package handles fetching binary assets from signed URLs.
"""

from .downloader import Downloader, close_connection_pool

__all__ = ["Downloader", "close_connection_pool"]
