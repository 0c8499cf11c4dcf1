"""Detection and unwrapping of archive wrapper pages.

The archive sometimes answers a capture request with a "wrapper" page: its own
navigation chrome plus a frame pointing at the original document.  Spam and
topic signals must be computed on the original document, so a wrapper is run
through an ordered chain of named strategies.  Each strategy returns candidate
HTML or ``None`` ("try next"); the first acceptable candidate wins.  When the
chain is exhausted the caller keeps the wrapper HTML.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from bs4 import BeautifulSoup

from dropscan.errors import ArchiveError

logger = logging.getLogger(__name__)

_WRAPPER_MARKER = "Wayback Machine"
_WRAPPER_HINTS = ("playback", "wm-ipp", "web.archive.org/web")

# Candidates at or below this size are treated as empty shells.
MIN_CONTENT_LENGTH = 100

# Signature of the fetch helper strategies use: url -> html or None.
Fetcher = Callable[[str], Optional[str]]


def is_wrapper_html(html: str) -> bool:
    """Return ``True`` if *html* looks like an archive wrapper page."""
    if not html:
        return False
    return _WRAPPER_MARKER in html and any(hint in html for hint in _WRAPPER_HINTS)


def is_usable_content(html: Optional[str]) -> bool:
    """A candidate is usable if it has real length and is not another wrapper."""
    return bool(html) and len(html) > MIN_CONTENT_LENGTH and not is_wrapper_html(html)


@dataclass
class UnwrapContext:
    """Inputs shared by every strategy in the chain."""

    wrapper_html: str
    raw_url: str
    archive_origin: str
    fetch: Fetcher


@dataclass(frozen=True)
class UnwrapStrategy:
    name: str
    run: Callable[[UnwrapContext], Optional[str]]


@dataclass(frozen=True)
class UnwrapOutcome:
    html: str
    url: Optional[str]
    strategy: Optional[str]

    @property
    def unwrapped(self) -> bool:
        return self.strategy is not None


def _absolute(src: str, origin: str) -> str:
    if src.startswith("http"):
        return src
    if src.startswith("//"):
        return "https:" + src
    return origin.rstrip("/") + "/" + src.lstrip("/")


def _frame_sources(ctx: UnwrapContext, selectors: List[str]) -> List[str]:
    soup = BeautifulSoup(ctx.wrapper_html, "html.parser")
    sources: List[str] = []
    for selector in selectors:
        for element in soup.select(selector):
            src = element.get("src")
            if src:
                url = _absolute(src, ctx.archive_origin)
                if url not in sources:
                    sources.append(url)
    return sources


def _first_usable(ctx: UnwrapContext, urls: List[str]) -> Optional[tuple]:
    for url in urls:
        html = ctx.fetch(url)
        if is_usable_content(html):
            return html, url
    return None


def _playback_frame(ctx: UnwrapContext) -> Optional[tuple]:
    return _first_usable(ctx, _frame_sources(ctx, ["iframe#playback"]))


def _raw_variant(ctx: UnwrapContext) -> Optional[tuple]:
    return _first_usable(ctx, [ctx.raw_url])


def _frame_selectors(ctx: UnwrapContext) -> Optional[tuple]:
    return _first_usable(
        ctx, _frame_sources(ctx, ["#wm-ipp-base + iframe", 'iframe[src*="/web/"]'])
    )


DEFAULT_STRATEGIES: List[UnwrapStrategy] = [
    UnwrapStrategy("playback-frame", _playback_frame),
    UnwrapStrategy("raw-variant", _raw_variant),
    UnwrapStrategy("frame-selectors", _frame_selectors),
]


def unwrap(ctx: UnwrapContext, strategies: Optional[List[UnwrapStrategy]] = None) -> UnwrapOutcome:
    """Run *strategies* in order and return the first usable original page.

    Falls back to the wrapper HTML itself when nothing works; this function
    never raises for archive errors.
    """
    for strategy in strategies if strategies is not None else DEFAULT_STRATEGIES:
        try:
            found = strategy.run(ctx)
        except (ArchiveError, ValueError) as exc:
            logger.warning("Unwrap strategy %s failed: %s", strategy.name, exc)
            continue
        if found:
            html, url = found
            logger.debug("Unwrap strategy %s succeeded (%d chars)", strategy.name, len(html))
            return UnwrapOutcome(html=html, url=url, strategy=strategy.name)
        logger.debug("Unwrap strategy %s found nothing", strategy.name)

    logger.warning(
        "Could not extract original page from wrapper (%d chars); keeping wrapper HTML",
        len(ctx.wrapper_html),
    )
    return UnwrapOutcome(html=ctx.wrapper_html, url=None, strategy=None)
