"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

DEFAULT_BASE_URL = "https://pixcap.com"
DEFAULT_CATALOG_PATH = "/3d-icon-packs"
DEFAULT_MAPPING_FILE = "slug-uuid-mapping.json"


class HarvestConfig(BaseModel):
    """A validated configuration model for the application."""

    # Site
    base_url: str = DEFAULT_BASE_URL
    catalog_path: str = DEFAULT_CATALOG_PATH
    lang: str = "en"

    # Output
    output_dir: str = "downloads"
    mapping_file: str = DEFAULT_MAPPING_FILE
    extension: str = "glb"

    # Session
    cookies_file: str = ""
    headless: bool = False

    # Timeouts (seconds)
    navigation_timeout: float = 60.0
    resolution_timeout: float = 15.0
    download_timeout: float = 30.0

    # Behaviour
    max_pages: int = 50
    dump_diagnostics: bool = False
    dry_run: bool = False

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensures the site root is an absolute http(s) URL without a trailing slash."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Base URL must be an absolute http(s) URL, got: {v!r}")
        return v.rstrip("/")

    @field_validator("catalog_path")
    @classmethod
    def validate_catalog_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("Catalog path must start with '/'.")
        return v

    @field_validator("extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Strips a leading dot and rejects anything but a plain extension."""
        v = v.lstrip(".")
        if not v.isalnum():
            raise ValueError(f"Extension must be alphanumeric, got: {v!r}")
        return v.lower()

    @field_validator("navigation_timeout", "resolution_timeout", "download_timeout")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive.")
        return v

    @field_validator("max_pages")
    @classmethod
    def validate_max_pages(cls, v: int) -> int:
        """Bounds pagination so an always-enabled 'next' control cannot loop forever."""
        if v < 1 or v > 1000:
            raise ValueError("Max pages must be between 1 and 1000.")
        return v

    @property
    def catalog_url(self) -> str:
        return f"{self.base_url}{self.catalog_path}"

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "dry_run"}
        return {key for key in cls.model_fields if key not in internal_fields}
