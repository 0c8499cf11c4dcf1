"""Combine engine outputs into one weighted risk score and a recommendation."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional

from dropscan.analysis.backlinks import BacklinkHistory
from dropscan.analysis.metrics import DomainMetrics
from dropscan.analysis.topics import RedFlag, TopicResult

SPAM_WEIGHT = 0.35
BACKLINK_WEIGHT = 0.25
METRICS_WEIGHT = 0.25
TOPIC_WEIGHT = 0.15

RED_FLAG_POINTS = {"high": 15, "medium": 8, "low": 3}
MAX_RED_FLAG_PENALTY = 30
UNKNOWN_RISK = 50


@dataclass(frozen=True)
class RiskFactor:
    name: str
    value: float
    weight: float


@dataclass
class RiskAssessment:
    overall_risk_score: int
    risk_level: str
    recommendation: str
    reason: str
    red_flag_penalty: int = 0
    factors: List[RiskFactor] = field(default_factory=list)


def _finite(value: Optional[float]) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


def red_flag_penalty(flags: List[RedFlag]) -> int:
    """Sum of severity points, capped at 30."""
    total = sum(RED_FLAG_POINTS.get(flag.severity, RED_FLAG_POINTS["low"]) for flag in flags)
    return min(MAX_RED_FLAG_PENALTY, total)


def _recommend(spam_risk: Optional[float], penalty: int, score: int) -> tuple:
    if spam_risk is not None and spam_risk >= 80:
        return "AVOID", "Very high spam score detected"
    if spam_risk is not None and spam_risk >= 50:
        return "AVOID", "High spam content detected"
    if penalty >= 20:
        return "AVOID", "Multiple high-severity red flags detected"
    if score >= 70:
        return "AVOID", f"High overall risk score ({score})"
    if score >= 55:
        return "CAUTION", f"Elevated risk score ({score})"
    if score >= 40:
        return "REVIEW", f"Moderate risk ({score}) - review carefully"
    if score >= 25:
        return "REVIEW", f"Low-moderate risk ({score})"
    return "BUY", f"Low risk score ({score})"


def _risk_level(score: int, recommendation: str) -> str:
    if score >= 70 or recommendation == "AVOID":
        return "HIGH"
    if score >= 40 or recommendation == "CAUTION":
        return "MEDIUM"
    return "LOW"


def aggregate_risk(
    spam_max_score: Optional[float],
    backlinks: Optional[BacklinkHistory],
    metrics: Optional[DomainMetrics],
    topics: Optional[TopicResult],
) -> RiskAssessment:
    """Weighted risk 0-100 plus a BUY / REVIEW / CAUTION / AVOID recommendation.

    Each factor is included only when its source value is a finite number.
    Topic red flags add a capped penalty on top of the weighted mean.
    """
    factors: List[RiskFactor] = []

    spam_risk: Optional[float] = None
    if _finite(spam_max_score):
        spam_risk = _clamp(spam_max_score * 10)
        factors.append(RiskFactor("Spam Content", spam_risk, SPAM_WEIGHT))

    if backlinks is not None and _finite(backlinks.average_quality_score):
        factors.append(
            RiskFactor("Backlink Quality", _clamp(100 - backlinks.average_quality_score), BACKLINK_WEIGHT)
        )

    if metrics is not None and _finite(metrics.overall_quality_score):
        factors.append(
            RiskFactor("Domain Metrics", _clamp(100 - metrics.overall_quality_score), METRICS_WEIGHT)
        )

    if topics is not None and _finite(topics.stability_score):
        factors.append(RiskFactor("Topic Stability", _clamp(100 - topics.stability_score), TOPIC_WEIGHT))

    penalty = red_flag_penalty(topics.red_flags if topics is not None else [])

    total_weight = sum(f.weight for f in factors)
    if total_weight > 0:
        raw = sum(f.value * f.weight for f in factors) / total_weight + penalty
    elif spam_risk is not None:
        raw = spam_risk + penalty
    else:
        raw = float("nan")

    if not math.isfinite(raw):
        raw = UNKNOWN_RISK + penalty
    score = _round(_clamp(raw))

    recommendation, reason = _recommend(spam_risk, penalty, score)
    return RiskAssessment(
        overall_risk_score=score,
        risk_level=_risk_level(score, recommendation),
        recommendation=recommendation,
        reason=reason,
        red_flag_penalty=penalty,
        factors=factors,
    )
