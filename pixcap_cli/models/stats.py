"""
Dataclass for tracking the counters of a harvest run.
"""

from dataclasses import dataclass, field


@dataclass
class RunStats:
    """Tracks statistics for a harvest session."""

    packs_found: int = 0
    packs_failed: int = 0
    items_found: int = 0
    items_downloaded: int = 0
    items_skipped_exists: int = 0
    items_failed_resolution: int = 0
    items_failed_download: int = 0
    total_size_downloaded: int = 0
    dry_run: bool = False
    packs_processed: set[str] = field(default_factory=set)

    @property
    def items_failed(self) -> int:
        return self.items_failed_resolution + self.items_failed_download
