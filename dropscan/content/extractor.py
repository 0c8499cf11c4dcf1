"""Signal extraction: turns capture HTML into :class:`ExtractedSignals`."""

from __future__ import annotations

import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from dropscan.content.models import ExtractedSignals, Heading, Link

logger = logging.getLogger(__name__)

_STRIP_TAGS = ["script", "style", "noscript", "iframe", "embed", "object"]
_SKIP_HREF_PREFIXES = ("javascript:", "mailto:", "tel:")
_CONTENT_WORD_LIMIT = 500
_NON_WORD_RE = re.compile(r"[^0-9a-zа-яё]")
_WS_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def parse(html: str) -> BeautifulSoup:
    """Parse *html* into a document tree."""
    return BeautifulSoup(html, "html.parser")


def _strip_www(host: str) -> str:
    return host[4:] if host.startswith("www.") else host


def is_same_site(href: str, domain: Optional[str]) -> bool:
    """Return ``True`` if *href* points back at *domain*.

    Relative and root-relative hrefs always count as same-site.
    """
    parsed = urlparse(href)
    if not parsed.scheme and not parsed.netloc:
        return True
    if not domain:
        return False
    target = _strip_www(domain.lower())
    host = _strip_www((parsed.hostname or "").lower())
    if host == target or host.endswith("." + target):
        return True
    return target in href.lower()


def _domain_pattern(domain: Optional[str]) -> Optional[re.Pattern]:
    if not domain:
        return None
    return re.compile(re.escape(domain), re.IGNORECASE)


def _scrub(value: str, pattern: Optional[re.Pattern]) -> str:
    if pattern is not None:
        value = pattern.sub("", value)
    return _WS_RE.sub(" ", value).strip()


def _keyword_tags(pattern: Optional[re.Pattern], *tags: str) -> str:
    return " ".join(v for v in (_scrub(t, pattern) for t in tags) if v)


def _content_words(raw_text: str) -> List[str]:
    """First 500 tokens longer than three characters, lowercased and cleaned."""
    tokens = [t for t in raw_text.split() if len(t) > 3][:_CONTENT_WORD_LIMIT]
    words = [_NON_WORD_RE.sub("", t.lower()) for t in tokens]
    return [w for w in words if w]


def _keep_href(href: str) -> bool:
    return bool(href) and href != "#" and not href.lower().startswith(_SKIP_HREF_PREFIXES)


# ---------------------------------------------------------------------------
# Regex fallback
# ---------------------------------------------------------------------------

_TITLE_RE = re.compile(r"<title[^>]*>([^<]*)</title>", re.IGNORECASE)
_META_TEMPLATE = r"<meta[^>]+name=[\"']{name}[\"'][^>]+content=[\"']([^\"']*)[\"']"
_ANCHOR_RE = re.compile(
    r"<a\b([^>]*)href=[\"']([^\"']+)[\"']([^>]*)>(.*?)</a>", re.IGNORECASE | re.DOTALL
)
_REL_RE = re.compile(r"rel=[\"']([^\"']*)[\"']", re.IGNORECASE)
_BLOCK_RE = re.compile(r"<(script|style)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")


def _regex_meta(html: str, name: str) -> str:
    match = re.search(_META_TEMPLATE.format(name=name), html, re.IGNORECASE)
    return match.group(1) if match else ""


def _regex_fallback(html: str, domain: Optional[str]) -> ExtractedSignals:
    """Lower-fidelity extraction used when the HTML parser fails."""
    pattern = _domain_pattern(domain)
    no_blocks = _BLOCK_RE.sub(" ", html)
    raw_text = _TAG_RE.sub(" ", no_blocks)

    links: List[Link] = []
    for before, href, after, inner in _ANCHOR_RE.findall(no_blocks):
        href = href.strip()
        if not _keep_href(href):
            continue
        rel_match = _REL_RE.search(before + after)
        links.append(
            Link(
                href=href,
                text=_scrub(_TAG_RE.sub(" ", inner), pattern),
                rel=rel_match.group(1).lower() if rel_match else "",
                is_external=not is_same_site(href, domain),
            )
        )

    title_match = _TITLE_RE.search(html)
    title = _scrub(title_match.group(1), None) if title_match else ""
    description = _scrub(_regex_meta(html, "description"), None)
    keywords = _scrub(_regex_meta(html, "keywords"), None)
    return ExtractedSignals(
        text=_scrub(raw_text, pattern).lower(),
        title=title,
        meta_description=description,
        meta_keywords=keywords,
        links=links,
        content_words=_content_words(_scrub(raw_text, pattern)),
        degraded=True,
        keyword_tags=_keyword_tags(pattern, title, description, keywords),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_signals(html: str, domain_to_ignore: Optional[str] = None) -> ExtractedSignals:
    """Extract text, meta tags, headings and links from *html*.

    Every occurrence of *domain_to_ignore* is removed from the body text,
    anchor text and the keyword copy of the title and meta tags, and links
    that point at it are marked same-site, so a domain never matches its own
    name as a keyword.  Title, meta tags and headings themselves are kept as
    written.  Falls back to a regex tag stripper when parsing fails.
    """
    try:
        soup = parse(html)
    except Exception as exc:  # noqa: BLE001
        logger.warning("HTML parsing failed (%s); using regex extraction", exc)
        return _regex_fallback(html, domain_to_ignore)

    pattern = _domain_pattern(domain_to_ignore)

    for tag in soup(_STRIP_TAGS):
        tag.decompose()

    title_tag = soup.find("title")
    title = title_tag.get_text() if title_tag else ""

    def _meta(name: str) -> str:
        tag = soup.find("meta", attrs={"name": name})
        content = tag.get("content") if tag else None
        return content if isinstance(content, str) else ""

    headings = [
        Heading(level=el.name, text=_scrub(el.get_text(" "), None))
        for el in soup.find_all(["h1", "h2", "h3"])
    ]
    headings = [h for h in headings if h.text]

    links: List[Link] = []
    for anchor in soup.find_all("a", href=True):
        href = str(anchor.get("href") or "").strip()
        if not _keep_href(href):
            continue
        rel = anchor.get("rel") or ""
        if isinstance(rel, list):
            rel = " ".join(rel)
        links.append(
            Link(
                href=href,
                text=_scrub(anchor.get_text(" "), pattern),
                rel=rel.lower(),
                is_external=not is_same_site(href, domain_to_ignore),
            )
        )

    container = soup.body or soup
    raw_text = _scrub(container.get_text(" "), pattern)

    title = _scrub(title, None)
    description = _scrub(_meta("description"), None)
    keywords = _scrub(_meta("keywords"), None)
    return ExtractedSignals(
        text=raw_text.lower(),
        title=title,
        meta_description=description,
        meta_keywords=keywords,
        headings=headings,
        links=links,
        content_words=_content_words(raw_text),
        keyword_tags=_keyword_tags(pattern, title, description, keywords),
    )
