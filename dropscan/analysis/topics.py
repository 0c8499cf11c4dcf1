"""Topic stability across a domain's capture history.

Adjacent captures are compared with Jaccard indexes over title words,
headings, meta-description words and the top content words.  Red flags are
raised from the latest capture against everything before it.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from dropscan.content.models import ExtractedSignals

SUSPICIOUS_KEYWORDS = ("casino", "poker", "viagra", "loan", "payday", "free money", "get rich")

MIN_TITLE_LENGTH = 10
MIN_DESCRIPTION_LENGTH = 50
TOPIC_SHIFT_THRESHOLD = 30
UNSTABLE_PAIR_THRESHOLD = 40


@dataclass(frozen=True)
class RedFlag:
    type: str
    severity: str
    message: str
    detail: Optional[str] = None


@dataclass(frozen=True)
class TopicSnapshotSummary:
    timestamp: str
    title: str
    keywords: List[str]


@dataclass
class TopicResult:
    snapshots_analyzed: int = 0
    stability_score: Optional[int] = None
    red_flags: List[RedFlag] = field(default_factory=list)
    main_topics: List[str] = field(default_factory=list)
    topic_history: List[TopicSnapshotSummary] = field(default_factory=list)
    latest_title: str = ""
    latest_headings: List[str] = field(default_factory=list)
    latest_meta_description: str = ""


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------

def top_keywords(words: Iterable[str], limit: int = 10) -> List[str]:
    """Most frequent words longer than three characters."""
    counts = Counter(w for w in words if w and len(w) > 3)
    return [word for word, _ in counts.most_common(limit)]


def _round(value: float) -> int:
    """Round half up, so 62.5 becomes 63."""
    return int(math.floor(value + 0.5))


def _jaccard(first: Iterable[str], second: Iterable[str]) -> float:
    a, b = set(first), set(second)
    union = a | b
    return len(a & b) / len(union) * 100 if union else 0.0


def _text_words(text: str) -> List[str]:
    return [w for w in text.lower().split() if len(w) > 2]


def topic_similarity(first: ExtractedSignals, second: ExtractedSignals) -> int:
    """Similarity 0-100 between two captures, averaged over the comparable parts."""
    scores: List[float] = []

    if first.title and second.title:
        scores.append(_jaccard(_text_words(first.title), _text_words(second.title)))

    if first.headings and second.headings:
        scores.append(
            _jaccard(
                [h.text.lower() for h in first.headings],
                [h.text.lower() for h in second.headings],
            )
        )

    if first.meta_description and second.meta_description:
        scores.append(
            _jaccard(_text_words(first.meta_description), _text_words(second.meta_description))
        )

    if first.content_words and second.content_words:
        scores.append(
            _jaccard(top_keywords(first.content_words, 20), top_keywords(second.content_words, 20))
        )

    return _round(sum(scores) / len(scores)) if scores else 0


# ---------------------------------------------------------------------------
# Red flags
# ---------------------------------------------------------------------------

def detect_red_flags(latest: ExtractedSignals, history: Sequence[ExtractedSignals]) -> List[RedFlag]:
    """Flags for *latest* given the captures that precede it in *history*."""
    flags: List[RedFlag] = []

    if len(latest.title) < MIN_TITLE_LENGTH:
        flags.append(RedFlag("missing_title", "medium", "Missing or very short title tag"))

    visible = " ".join(
        [latest.title, latest.meta_description, *(h.text for h in latest.headings)]
    ).lower()
    for keyword in SUSPICIOUS_KEYWORDS:
        if keyword in visible:
            flags.append(
                RedFlag(
                    "suspicious_keyword",
                    "high",
                    f"Suspicious keyword found: {keyword}",
                    detail=keyword,
                )
            )

    if history:
        similarity = topic_similarity(history[-1], latest)
        if similarity < TOPIC_SHIFT_THRESHOLD:
            flags.append(
                RedFlag(
                    "major_topic_shift",
                    "high",
                    f"Major topic shift detected (similarity: {similarity}%)",
                    detail=str(similarity),
                )
            )

    if len(history) > 2:
        shifts = sum(
            1
            for previous, current in zip(history, history[1:])
            if topic_similarity(previous, current) < UNSTABLE_PAIR_THRESHOLD
        )
        if shifts > len(history) / 2:
            flags.append(
                RedFlag(
                    "unstable_topics",
                    "high",
                    f"Unstable topic history: {shifts} major shifts detected",
                    detail=str(shifts),
                )
            )

    if len(latest.meta_description) < MIN_DESCRIPTION_LENGTH:
        flags.append(RedFlag("missing_meta", "low", "Missing or very short meta description"))

    return flags


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def analyze_topics(snapshots: Sequence[Tuple[str, ExtractedSignals]]) -> TopicResult:
    """Analyse ``(timestamp, signals)`` pairs given in chronological order."""
    if not snapshots:
        return TopicResult()

    signals = [s for _, s in snapshots]
    pairs = [topic_similarity(a, b) for a, b in zip(signals, signals[1:])]
    stability = _round(sum(pairs) / len(pairs)) if pairs else 100

    latest = signals[-1]
    return TopicResult(
        snapshots_analyzed=len(snapshots),
        stability_score=stability,
        red_flags=detect_red_flags(latest, signals[:-1]),
        main_topics=top_keywords(latest.content_words, 10),
        topic_history=[
            TopicSnapshotSummary(ts, s.title, top_keywords(s.content_words, 5))
            for ts, s in snapshots
        ],
        latest_title=latest.title,
        latest_headings=[h.text for h in latest.headings],
        latest_meta_description=latest.meta_description,
    )
