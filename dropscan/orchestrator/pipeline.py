"""Per-domain analysis pipeline.

All work for one domain is sequential: list captures, then fetch and score
them one after another with a pause between fetches.  Complete mode goes on
to the backlink, topic and metrics engines and ends with a risk assessment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from dropscan.analysis.backlinks import analyze_backlinks, summarize_backlink_history
from dropscan.analysis.metrics import MetricsAggregator
from dropscan.analysis.risk import aggregate_risk
from dropscan.analysis.spam import CaptureError, SpamAccumulator, analyze_capture_spam, classify_max_score
from dropscan.analysis.topics import analyze_topics
from dropscan.archive.client import ArchiveClient, normalize_target
from dropscan.archive.models import Capture
from dropscan.config import Settings, settings as default_settings
from dropscan.content.extractor import extract_signals
from dropscan.content.models import ExtractedSignals
from dropscan.errors import ArchiveError
from dropscan.orchestrator.models import AnalysisMode, AnalysisResult, Status
from dropscan.orchestrator.session import Session

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Analysis cancelled"


@dataclass
class _Scan:
    """What the capture loop produced for one domain."""

    captures: List[Capture]
    accumulator: SpamAccumulator = field(default_factory=SpamAccumulator)
    pages: List[Tuple[str, ExtractedSignals]] = field(default_factory=list)
    failed: int = 0
    cancelled: bool = False

    @property
    def analyzed(self) -> int:
        return len(self.pages)


def _host(domain: str) -> str:
    return normalize_target(domain).split("/", 1)[0]


class DomainPipeline:
    def __init__(
        self,
        client: ArchiveClient,
        metrics: Optional[MetricsAggregator] = None,
        config: Optional[Settings] = None,
    ) -> None:
        self.client = client
        self.metrics = metrics
        self.settings = config or default_settings

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run_spam(
        self,
        session: Session,
        domain: str,
        stop_words: Sequence[str],
        max_snapshots: int,
    ) -> AnalysisResult:
        scan, early = self._scan(session, domain, stop_words, max_snapshots, AnalysisMode.SPAM)
        if early is not None:
            return early

        summary = scan.accumulator.summary()
        status = Status(classify_max_score(summary.max_spam_score))
        message = (
            f"Analyzed {scan.analyzed}/{len(scan.captures)} snapshots, "
            f"max spam score {summary.max_spam_score:g}"
        )
        if scan.failed:
            message += f" ({scan.failed} failed)"
        session.update(domain, status=status, last_message=message)
        logger.info("%s: %s (%s)", domain, status.value, message)

        return AnalysisResult(
            domain=domain,
            mode=AnalysisMode.SPAM,
            status=status,
            snapshots_found=len(scan.captures),
            snapshots_analyzed=scan.analyzed,
            failed_snapshots=scan.failed,
            spam=summary,
            last_message=message,
        )

    def run_complete(
        self,
        session: Session,
        domain: str,
        stop_words: Sequence[str],
        max_snapshots: int,
    ) -> AnalysisResult:
        scan, early = self._scan(session, domain, stop_words, max_snapshots, AnalysisMode.COMPLETE)
        if early is not None:
            return early

        summary = scan.accumulator.summary()

        session.update(domain, status=Status.ANALYZING_BACKLINKS, last_message="Analyzing backlinks")
        backlinks = summarize_backlink_history(
            [
                analyze_backlinks(signals, _host(domain), stop_words, timestamp=timestamp)
                for timestamp, signals in scan.pages
            ]
        )
        if session.cancelled:
            return self._cancelled(session, domain, AnalysisMode.COMPLETE, scan)

        session.update(domain, status=Status.ANALYZING_TOPICS, last_message="Analyzing topic stability")
        topics = analyze_topics(sorted(scan.pages, key=lambda pair: pair[0]))
        if session.cancelled:
            return self._cancelled(session, domain, AnalysisMode.COMPLETE, scan)

        metrics = None
        if self.metrics is not None:
            session.update(domain, status=Status.ANALYZING_METRICS, last_message="Collecting domain metrics")
            metrics = self.metrics.get_metrics(_host(domain), backlinks)

        risk = aggregate_risk(summary.max_spam_score, backlinks, metrics, topics)
        message = (
            f"Analysis complete. Risk: {risk.risk_level}, "
            f"Recommendation: {risk.recommendation}. {risk.reason}"
        )
        session.update(domain, status=Status.COMPLETE, last_message=message)
        logger.info("%s: %s", domain, message)

        return AnalysisResult(
            domain=domain,
            mode=AnalysisMode.COMPLETE,
            status=Status.COMPLETE,
            snapshots_found=len(scan.captures),
            snapshots_analyzed=scan.analyzed,
            failed_snapshots=scan.failed,
            spam=summary,
            backlinks=backlinks,
            topics=topics,
            metrics=metrics,
            risk=risk,
            last_message=message,
        )

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _scan(
        self,
        session: Session,
        domain: str,
        stop_words: Sequence[str],
        max_snapshots: int,
        mode: AnalysisMode,
    ) -> Tuple[Optional[_Scan], Optional[AnalysisResult]]:
        """Run the capture loop.

        Returns ``(scan, None)`` when at least one capture was analysed, or
        ``(scan_or_None, terminal_result)`` when the domain ended early.
        """
        session.update(domain, status=Status.FETCHING_SNAPSHOTS, last_message="Fetching snapshot list")
        try:
            captures = self.client.list_captures(domain, limit=max_snapshots)
        except ArchiveError as exc:
            logger.warning("Capture index failed for %s: %s", domain, exc)
            message = f"Capture index unavailable: {exc}"
            session.update(domain, status=Status.UNAVAILABLE, last_message=message, error=str(exc))
            return None, AnalysisResult(
                domain=domain, mode=mode, status=Status.UNAVAILABLE, last_message=message, error=str(exc)
            )

        if not captures:
            message = "No snapshots found in archive"
            session.update(domain, status=Status.NO_SNAPSHOTS, last_message=message)
            logger.info("%s: no captures", domain)
            return None, AnalysisResult(domain=domain, mode=mode, status=Status.NO_SNAPSHOTS, last_message=message)

        logger.info("%s: %d captures found", domain, len(captures))
        session.update(
            domain,
            status=Status.ANALYZING,
            snapshots_found=len(captures),
            last_message=f"Found {len(captures)} snapshots",
        )

        scan = _Scan(captures=captures)
        for index, capture in enumerate(captures):
            if index and session.wait_cancelled(self.settings.capture_delay):
                scan.cancelled = True
                break
            if session.cancelled:
                scan.cancelled = True
                break
            self._scan_capture(session, domain, capture, stop_words, scan, index)

        if scan.cancelled:
            return scan, self._cancelled(session, domain, mode, scan)

        if not scan.analyzed:
            message = f"All {len(captures)} snapshots failed to load"
            session.update(domain, status=Status.UNAVAILABLE, last_message=message)
            return scan, AnalysisResult(
                domain=domain,
                mode=mode,
                status=Status.UNAVAILABLE,
                snapshots_found=len(captures),
                failed_snapshots=scan.failed,
                spam=scan.accumulator.summary(),
                last_message=message,
            )
        return scan, None

    def _scan_capture(
        self,
        session: Session,
        domain: str,
        capture: Capture,
        stop_words: Sequence[str],
        scan: _Scan,
        index: int,
    ) -> None:
        position = f"{index + 1}/{len(scan.captures)}"
        try:
            page = self.client.fetch_page(capture)
        except ArchiveError as exc:
            logger.warning("Skipping capture %s of %s: %s", capture.timestamp, domain, exc)
            scan.failed += 1
            scan.accumulator.add_error(CaptureError(capture.timestamp, capture.original_url, str(exc)))
            session.update(
                domain,
                failed_snapshots=scan.failed,
                last_message=f"Snapshot {position} failed: {exc}",
            )
            return

        signals = extract_signals(page.html, _host(domain))
        result = analyze_capture_spam(signals, stop_words)
        scan.accumulator.add(capture.timestamp, result)
        scan.pages.append((capture.timestamp, signals))
        session.update(
            domain,
            snapshots_analyzed=scan.analyzed,
            max_spam_score=round(scan.accumulator.max_score, 1),
            last_message=f"Analyzed snapshot {position} ({capture.timestamp})",
        )

    def _cancelled(self, session: Session, domain: str, mode: AnalysisMode, scan: Optional[_Scan]) -> AnalysisResult:
        session.update(domain, status=Status.UNAVAILABLE, last_message=CANCELLED_MESSAGE)
        return AnalysisResult(
            domain=domain,
            mode=mode,
            status=Status.UNAVAILABLE,
            snapshots_found=len(scan.captures) if scan else 0,
            snapshots_analyzed=scan.analyzed if scan else 0,
            failed_snapshots=scan.failed if scan else 0,
            last_message=CANCELLED_MESSAGE,
        )
