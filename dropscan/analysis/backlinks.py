"""Outbound link quality analysis for archived captures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from dropscan.content.extractor import is_same_site
from dropscan.content.models import ExtractedSignals, Link

_TOP_DOMAINS = 10


@dataclass(frozen=True)
class LinkAssessment:
    href: str
    text: str
    quality_score: int
    is_nofollow: bool
    is_sponsored: bool
    is_ugc: bool
    spam_keywords: Tuple[str, ...] = ()

    @property
    def is_spam_anchor(self) -> bool:
        return bool(self.spam_keywords)


@dataclass
class BacklinkSummary:
    """Link statistics for a single capture."""

    timestamp: Optional[str] = None
    total_links: int = 0
    internal_links: int = 0
    external_links: int = 0
    unique_external_domains: int = 0
    nofollow_count: int = 0
    nofollow_percentage: float = 0.0
    spam_anchor_count: int = 0
    spam_anchor_percentage: float = 0.0
    average_quality_score: float = 0.0
    top_external_domains: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SpamAnchorPoint:
    timestamp: Optional[str]
    percentage: float
    count: int


@dataclass
class BacklinkHistory:
    """Per-capture summaries averaged across a domain's captures."""

    snapshots_analyzed: int = 0
    average_external_links: float = 0.0
    average_quality_score: Optional[float] = None
    spam_anchor_trend: List[SpamAnchorPoint] = field(default_factory=list)
    analyses: List[BacklinkSummary] = field(default_factory=list)


def link_quality(link: Link) -> int:
    """Score an external link 0-100; attributes and anchor text subtract."""
    rel = link.rel.lower()
    anchor_length = len(link.text)
    score = 100
    if "nofollow" in rel:
        score -= 30
    if "sponsored" in rel:
        score -= 20
    if "ugc" in rel:
        score -= 10
    if anchor_length == 0:
        score -= 15
    if anchor_length > 100:
        score -= 10
    if anchor_length < 3:
        score -= 5
    return max(0, min(100, score))


def anchor_spam_keywords(text: str, spam_keywords: Iterable[str]) -> Tuple[str, ...]:
    if not text:
        return ()
    lowered = text.lower()
    hits = []
    for keyword in spam_keywords:
        needle = keyword.strip().lower()
        if needle and needle in lowered and needle not in hits:
            hits.append(needle)
    return tuple(hits)


def assess_link(link: Link, spam_keywords: Iterable[str]) -> LinkAssessment:
    rel = link.rel.lower()
    return LinkAssessment(
        href=link.href,
        text=link.text,
        quality_score=link_quality(link),
        is_nofollow="nofollow" in rel,
        is_sponsored="sponsored" in rel,
        is_ugc="ugc" in rel,
        spam_keywords=anchor_spam_keywords(link.text, spam_keywords),
    )


def _percentage(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole else 0.0


def analyze_backlinks(
    signals: ExtractedSignals,
    domain: Optional[str],
    spam_keywords: Sequence[str] = (),
    timestamp: Optional[str] = None,
) -> BacklinkSummary:
    """Summarise the outbound links of one capture.

    Links back to *domain* (or relative ones) are internal; every other link
    is external and scored with :func:`link_quality`.
    """
    internal = 0
    external: List[LinkAssessment] = []
    domains: List[str] = []

    for link in signals.links:
        if is_same_site(link.href, domain):
            internal += 1
            continue
        external.append(assess_link(link, spam_keywords))
        host = urlparse(link.href).hostname
        if host and host not in domains:
            domains.append(host)

    spam_anchors = sum(1 for a in external if a.is_spam_anchor)
    nofollow = sum(1 for a in external if a.is_nofollow)
    average = sum(a.quality_score for a in external) / len(external) if external else 0.0

    return BacklinkSummary(
        timestamp=timestamp,
        total_links=len(signals.links),
        internal_links=internal,
        external_links=len(external),
        unique_external_domains=len(domains),
        nofollow_count=nofollow,
        nofollow_percentage=_percentage(nofollow, len(external)),
        spam_anchor_count=spam_anchors,
        spam_anchor_percentage=_percentage(spam_anchors, len(external)),
        average_quality_score=round(average, 1),
        top_external_domains=domains[:_TOP_DOMAINS],
    )


def summarize_backlink_history(summaries: Sequence[BacklinkSummary]) -> BacklinkHistory:
    """Average per-capture summaries (unweighted by link count)."""
    if not summaries:
        return BacklinkHistory()

    count = len(summaries)
    return BacklinkHistory(
        snapshots_analyzed=count,
        average_external_links=round(sum(s.external_links for s in summaries) / count, 1),
        average_quality_score=round(sum(s.average_quality_score for s in summaries) / count, 1),
        spam_anchor_trend=[
            SpamAnchorPoint(s.timestamp, s.spam_anchor_percentage, s.spam_anchor_count)
            for s in summaries
        ],
        analyses=list(summaries),
    )
