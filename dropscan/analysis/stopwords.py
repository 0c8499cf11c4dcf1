"""Built-in spam stop words and helpers to merge them with custom lists."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Union

DEFAULT_STOP_WORDS: List[str] = [
    # Gambling
    "casino", "poker", "roulette", "blackjack", "betting", "gambling", "lottery",
    # Adult
    "viagra", "cialis", "porn", "xxx", "adult", "escort",
    # Scams and loans
    "get rich", "make money fast", "work from home", "earn $", "free money",
    "credit card", "loan", "debt", "payday",
    # Phishing
    "verify account", "confirm identity", "suspended account", "click here",
    # Pharmacy
    "buy online", "no prescription", "cheap", "discount",
    # Weight loss
    "lose weight", "miracle", "guaranteed",
    # Aggressive marketing
    "download now", "limited time", "act now",
]

_SPLIT_RE = re.compile(r"[,\n]")


def _dedupe(words: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    result: List[str] = []
    for word in words:
        normalized = word.strip().lower()
        if normalized and normalized not in seen:
            seen.add(normalized)
            result.append(normalized)
    return result


def parse_stop_words(text: Optional[str]) -> List[str]:
    """Split comma- or newline-separated *text* into lowercase stop words."""
    if not text:
        return []
    return _dedupe(_SPLIT_RE.split(text))


def combine_stop_words(custom: Union[str, Iterable[str], None] = None) -> List[str]:
    """Return the default stop words followed by *custom* ones, de-duplicated."""
    if isinstance(custom, str):
        extra = parse_stop_words(custom)
    else:
        extra = list(custom or [])
    return _dedupe([*DEFAULT_STOP_WORDS, *extra])
