"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class PixcapCliError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(PixcapCliError):
    """Raised for issues related to configuration loading or validation."""


class SessionError(PixcapCliError):
    """Raised when no browsing session can be acquired at all."""


class NavigationError(PixcapCliError):
    """Raised when a page load or navigation wait fails."""


class ResolutionError(PixcapCliError):
    """Base class for failures to turn an item slug into a signed download URL."""

    def __init__(self, slug: str, reason: str):
        super().__init__(f"Could not resolve '{slug}': {reason}")
        self.slug = slug
        self.reason = reason


class ResolutionTimeoutError(ResolutionError):
    """Raised when navigating to the resolution trigger page timed out."""


class NoMatchError(ResolutionError):
    """
    Raised when navigation completed but no identifier or signed URL could be
    discovered by any resolution path.
    """


class DownloadError(PixcapCliError):
    """Raised when fetching a signed URL fails or returns a non-2xx status."""


class PersistenceError(PixcapCliError):
    """Raised when the slug mapping file cannot be written."""
