"""
Plain data structures describing what is discovered, resolved and stored.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CollectionRef:
    """A catalog pack, e.g. '/pack/3d-icon-set-buildings-houses'."""

    path: str
    slug: str
    name: str = ""

    @classmethod
    def from_path(cls, path: str, name: str = "") -> "CollectionRef":
        return cls(path=path, slug=path.rstrip("/").split("/")[-1], name=name)

    @property
    def display_name(self) -> str:
        return self.name or self.slug


@dataclass(frozen=True)
class ItemRef:
    """A downloadable asset's page, owned by the pack it was found in."""

    path: str
    slug: str
    collection: CollectionRef

    @classmethod
    def from_path(cls, path: str, collection: CollectionRef) -> "ItemRef":
        return cls(
            path=path, slug=path.rstrip("/").split("/")[-1], collection=collection
        )

    @classmethod
    def from_slug(cls, slug: str, collection: CollectionRef) -> "ItemRef":
        return cls(path=f"/item/{slug}", slug=slug, collection=collection)


@dataclass(frozen=True)
class ResolutionResult:
    """The signed download URL captured for one item. Never persisted."""

    identifier: str
    signed_url: str
    content_type: str | None = None


@dataclass(frozen=True)
class AssetFile:
    """A binary written to disk for a slug."""

    slug: str
    identifier: str
    path: Path
    size: int
