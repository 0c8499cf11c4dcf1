"""Status and result records shared by the orchestrator, API and CLI."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from dropscan.analysis.backlinks import BacklinkHistory
from dropscan.analysis.metrics import DomainMetrics
from dropscan.analysis.risk import RiskAssessment
from dropscan.analysis.spam import SpamSummary
from dropscan.analysis.topics import TopicResult


class Status(str, Enum):
    QUEUED = "QUEUED"
    FETCHING_SNAPSHOTS = "FETCHING_SNAPSHOTS"
    ANALYZING = "ANALYZING"
    ANALYZING_BACKLINKS = "ANALYZING_BACKLINKS"
    ANALYZING_TOPICS = "ANALYZING_TOPICS"
    ANALYZING_METRICS = "ANALYZING_METRICS"
    COMPLETE = "COMPLETE"
    NO_SNAPSHOTS = "NO_SNAPSHOTS"
    UNAVAILABLE = "UNAVAILABLE"
    CLEAN = "CLEAN"
    SUSPICIOUS = "SUSPICIOUS"
    SPAM = "SPAM"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        Status.COMPLETE,
        Status.NO_SNAPSHOTS,
        Status.UNAVAILABLE,
        Status.CLEAN,
        Status.SUSPICIOUS,
        Status.SPAM,
    }
)


class AnalysisMode(str, Enum):
    SPAM = "spam"
    COMPLETE = "complete"


@dataclass
class DomainStatus:
    """Live progress of one domain.  Only the owning worker mutates it."""

    domain: str
    status: Status = Status.QUEUED
    last_message: str = "Queued"
    snapshots_found: int = 0
    snapshots_analyzed: int = 0
    failed_snapshots: int = 0
    max_spam_score: Optional[float] = None
    error: Optional[str] = None
    updated_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass(frozen=True)
class AnalysisResult:
    domain: str
    mode: AnalysisMode
    status: Status
    snapshots_found: int = 0
    snapshots_analyzed: int = 0
    failed_snapshots: int = 0
    spam: Optional[SpamSummary] = None
    backlinks: Optional[BacklinkHistory] = None
    topics: Optional[TopicResult] = None
    metrics: Optional[DomainMetrics] = None
    risk: Optional[RiskAssessment] = None
    last_message: str = ""
    error: Optional[str] = None
    analyzed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value
        data["status"] = self.status.value
        return data


@dataclass(frozen=True)
class SessionEvent:
    """One item on a session's outbound channel: ``status`` or ``result``."""

    kind: str
    payload: Union[DomainStatus, AnalysisResult]

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.kind, **self.payload.to_dict()}
