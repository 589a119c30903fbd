"""
Storage Layer.

This package handles all data persistence: the configuration file, the
downloaded asset files, the slug mapping and the discovery record.
"""

from .asset_store import AssetStore
from .catalog import ItemCatalog
from .config_manager import ConfigManager
from .mapping import MappingIndex

__all__ = ["AssetStore", "ConfigManager", "ItemCatalog", "MappingIndex"]
