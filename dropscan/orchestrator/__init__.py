"""Orchestrator package — runs the per-domain pipeline across many domains."""

from dropscan.orchestrator.models import (
    TERMINAL_STATUSES,
    AnalysisMode,
    AnalysisResult,
    DomainStatus,
    SessionEvent,
    Status,
)
from dropscan.orchestrator.pipeline import DomainPipeline
from dropscan.orchestrator.runner import DomainOrchestrator, clean_domains
from dropscan.orchestrator.session import Session

__all__ = [
    "TERMINAL_STATUSES",
    "AnalysisMode",
    "AnalysisResult",
    "DomainStatus",
    "SessionEvent",
    "Status",
    "DomainPipeline",
    "DomainOrchestrator",
    "clean_domains",
    "Session",
]
