"""Data models for content extraction."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Heading:
    level: str
    text: str


@dataclass
class Link:
    """An ``<a href>`` found on a page."""

    href: str
    text: str
    rel: str = ""
    is_external: bool = False


@dataclass
class ExtractedSignals:
    """Structured signals derived from one capture's HTML.

    ``title``, the meta tags and ``headings`` are kept as the page wrote them
    for topic analysis.  ``text``, anchor text and ``keyword_tags`` have the
    analysed domain removed so it never matches itself as a keyword.
    ``degraded`` is set when the regex fallback produced the signals instead
    of the HTML parser.
    """

    text: str
    title: str = ""
    meta_description: str = ""
    meta_keywords: str = ""
    headings: List[Heading] = field(default_factory=list)
    links: List[Link] = field(default_factory=list)
    content_words: List[str] = field(default_factory=list)
    degraded: bool = False
    # title and meta tags with the domain removed; None means use them as written
    keyword_tags: Optional[str] = None

    def corpus(self) -> str:
        """Visible text plus title and meta tags, lowercased, for keyword search."""
        tags = self.keyword_tags
        if tags is None:
            tags = " ".join(p for p in (self.title, self.meta_description, self.meta_keywords) if p)
        return " ".join(p.lower() for p in (self.text, tags) if p)
