"""Exception taxonomy.

Capture-level failures raised by the archive client are caught by the
domain pipeline and recorded against the capture; they never abort the
domain or its siblings.  Degraded extraction is not an error and has no
exception class: it is logged and flagged on the returned records.
"""

from __future__ import annotations


class DropscanError(Exception):
    """Base class for every error raised by this package."""


class ArchiveError(DropscanError):
    """Base class for archive index / fetch failures."""


class RateLimitedError(ArchiveError):
    """The archive kept answering HTTP 429 after all retries."""

    def __init__(self, url: str, retries: int) -> None:
        super().__init__(f"Rate limit exceeded after {retries} retries for {url}")
        self.url = url
        self.retries = retries


class ArchiveTimeoutError(ArchiveError):
    """A single archive request exceeded the configured timeout."""

    def __init__(self, url: str, timeout: float) -> None:
        super().__init__(f"Request timeout after {timeout:g}s for {url}")
        self.url = url
        self.timeout = timeout


class IndexUnavailableError(ArchiveError):
    """The capture index answered with an unusable response."""


class FetchFailedError(ArchiveError):
    """A capture could not be fetched by any strategy."""
