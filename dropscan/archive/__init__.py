"""Archive package — capture index queries and capture fetching."""

from dropscan.archive.client import ArchiveClient, normalize_target
from dropscan.archive.models import Capture, FetchedPage, ProbeResult

__all__ = ["ArchiveClient", "normalize_target", "Capture", "FetchedPage", "ProbeResult"]
