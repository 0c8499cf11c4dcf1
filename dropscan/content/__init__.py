"""Content package — HTML to structured signals."""

from dropscan.content.extractor import extract_signals, is_same_site, parse
from dropscan.content.models import ExtractedSignals, Heading, Link

__all__ = ["extract_signals", "is_same_site", "parse", "ExtractedSignals", "Heading", "Link"]
