"""
Data Models Layer.

This package contains the Pydantic configuration model and the plain data
structures passed between the crawl, resolve and store stages.
"""

from .config import HarvestConfig
from .refs import AssetFile, CollectionRef, ItemRef, ResolutionResult
from .stats import RunStats

__all__ = [
    "AssetFile",
    "CollectionRef",
    "HarvestConfig",
    "ItemRef",
    "ResolutionResult",
    "RunStats",
]
