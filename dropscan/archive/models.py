"""Data models for the archive client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class Capture:
    """One capture listed by the archive index."""

    timestamp: str
    original_url: str
    status_code: Optional[int] = None

    @property
    def key(self) -> Tuple[str, str]:
        """Identity of the capture, also used as the fetch-cache key."""
        return (self.timestamp, self.original_url)


@dataclass(frozen=True)
class FetchedPage:
    """The HTML of a capture after any wrapper page has been stripped.

    ``unwrapped`` is ``False`` only when the archive served a wrapper page and
    every extraction strategy failed, in which case ``html`` is the wrapper
    itself.
    """

    capture: Capture
    html: str
    byte_length: int
    resolved_url: str
    unwrapped: bool = True


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of :meth:`~dropscan.archive.client.ArchiveClient.probe`."""

    target: str
    captures_found: int
    first_timestamp: Optional[str] = None
    first_original_url: Optional[str] = None
    first_html_length: Optional[int] = None
    first_resolved_url: Optional[str] = None
