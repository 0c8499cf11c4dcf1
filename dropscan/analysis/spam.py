"""Spam keyword scoring.

Two separate notions of "spam" live here:

* a single capture is spam when *any* stop word occurs in it
  (:attr:`SpamResult.is_spam`);
* a domain is classified CLEAN / SUSPICIOUS / SPAM from the highest capture
  score (:func:`classify_max_score`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from dropscan.content.models import ExtractedSignals


MAX_SCORE = 10.0
SUSPICIOUS_THRESHOLD = 5.0
SPAM_THRESHOLD = 8.0


@dataclass(frozen=True)
class SpamFinding:
    word: str
    count: int


@dataclass(frozen=True)
class SpamResult:
    found: List[SpamFinding]
    score: float

    @property
    def is_spam(self) -> bool:
        return any(f.count > 0 for f in self.found)

    @property
    def total_occurrences(self) -> int:
        return sum(f.count for f in self.found)


@dataclass(frozen=True)
class CaptureError:
    timestamp: str
    original_url: str
    error: str


@dataclass
class SpamSummary:
    """Domain-level aggregate of per-capture spam results."""

    spam_snapshots: int = 0
    max_spam_score: float = 0.0
    avg_spam_score: float = 0.0
    stop_words_found: List[SpamFinding] = field(default_factory=list)
    first_spam_date: Optional[str] = None
    snapshot_errors: List[CaptureError] = field(default_factory=list)

    @property
    def spam_detected(self) -> bool:
        return self.spam_snapshots > 0


def score_text(text: str, stop_words: Iterable[str]) -> SpamResult:
    """Count stop-word occurrences in *text* and derive a 0-10 score.

    Matching is a case-insensitive substring search.  Each unique word found
    is worth 2 points; more than 5 total occurrences add 2 more and more than
    10 force the maximum.
    """
    if not text:
        return SpamResult(found=[], score=0.0)

    haystack = text.lower()
    found: List[SpamFinding] = []
    seen: set[str] = set()
    for word in stop_words:
        needle = word.strip().lower()
        if not needle or needle in seen:
            continue
        seen.add(needle)
        count = haystack.count(needle)
        if count > 0:
            found.append(SpamFinding(word=needle, count=count))

    score = 0.0
    if found:
        score = min(MAX_SCORE, len(found) * 2.0)
        total = sum(f.count for f in found)
        if total > 10:
            score = MAX_SCORE
        elif total > 5:
            score = min(MAX_SCORE, score + 2.0)

    return SpamResult(found=found, score=round(score, 1))


def analyze_capture_spam(signals: ExtractedSignals, stop_words: Iterable[str]) -> SpamResult:
    """Score one capture's text and meta tags."""
    return score_text(signals.corpus(), stop_words)


def classify_max_score(max_score: float) -> str:
    """Domain-level label for the highest capture score."""
    if max_score >= SPAM_THRESHOLD:
        return "SPAM"
    if max_score >= SUSPICIOUS_THRESHOLD:
        return "SUSPICIOUS"
    return "CLEAN"


class SpamAccumulator:
    """Folds per-capture results into a :class:`SpamSummary`."""

    def __init__(self) -> None:
        self._spam_snapshots = 0
        self._spam_score_total = 0.0
        self._max_score = 0.0
        self._words: Dict[str, int] = {}
        self._first_spam: Optional[str] = None
        self._errors: List[CaptureError] = []

    @property
    def max_score(self) -> float:
        return self._max_score

    def add(self, timestamp: str, result: SpamResult) -> None:
        self._max_score = max(self._max_score, result.score)
        if not result.is_spam:
            return
        self._spam_snapshots += 1
        self._spam_score_total += result.score
        for finding in result.found:
            self._words[finding.word] = self._words.get(finding.word, 0) + finding.count
        if self._first_spam is None:
            self._first_spam = timestamp

    def add_error(self, error: CaptureError) -> None:
        self._errors.append(error)

    def summary(self) -> SpamSummary:
        avg = self._spam_score_total / self._spam_snapshots if self._spam_snapshots else 0.0
        words = sorted(
            (SpamFinding(word=w, count=c) for w, c in self._words.items()),
            key=lambda f: f.count,
            reverse=True,
        )
        return SpamSummary(
            spam_snapshots=self._spam_snapshots,
            max_spam_score=round(self._max_score, 1),
            avg_spam_score=round(avg, 1),
            stop_words_found=words,
            first_spam_date=self._first_spam,
            snapshot_errors=list(self._errors),
        )


def summarize_spam(
    results: Iterable[Tuple[str, SpamResult]],
    errors: Iterable[CaptureError] = (),
) -> SpamSummary:
    """Build a :class:`SpamSummary` from ``(timestamp, result)`` pairs."""
    accumulator = SpamAccumulator()
    for timestamp, result in results:
        accumulator.add(timestamp, result)
    for error in errors:
        accumulator.add_error(error)
    return accumulator.summary()
