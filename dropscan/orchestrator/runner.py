"""Bounded-concurrency orchestration of many domains.

Each analysis request becomes a :class:`Session`.  Domains are submitted in
input order to a ``ThreadPoolExecutor`` sized to the requested concurrency,
so at most that many domains are in flight at once and the rest wait FIFO.
A coordinator thread waits for every worker and then publishes the results.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional, Union

from dropscan.analysis.metrics import MetricsAggregator
from dropscan.analysis.stopwords import combine_stop_words
from dropscan.archive.client import ArchiveClient
from dropscan.config import Settings, settings as default_settings
from dropscan.orchestrator.models import AnalysisMode, AnalysisResult, Status
from dropscan.orchestrator.pipeline import CANCELLED_MESSAGE, DomainPipeline
from dropscan.orchestrator.session import Session

logger = logging.getLogger(__name__)


def clean_domains(domains: Iterable[str]) -> List[str]:
    """Trim, drop empty entries and repeated domains, keep input order."""
    seen = set()
    cleaned: List[str] = []
    for raw in domains:
        domain = (raw or "").strip()
        key = domain.lower()
        if not domain or key in seen:
            continue
        seen.add(key)
        cleaned.append(domain)
    return cleaned


class DomainOrchestrator:
    """Starts analysis sessions and keeps track of them until reaped."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        client: Optional[ArchiveClient] = None,
        metrics: Optional[MetricsAggregator] = None,
    ) -> None:
        self.settings = config or default_settings
        self._owns_client = client is None
        self._owns_metrics = metrics is None
        self.client = client or ArchiveClient(self.settings)
        self.metrics = metrics or MetricsAggregator(self.settings)
        self.pipeline = DomainPipeline(self.client, self.metrics, self.settings)
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Starting work
    # ------------------------------------------------------------------

    def start_spam_analysis(
        self,
        domains: Iterable[str],
        stop_words: Union[str, Iterable[str], None] = None,
        max_snapshots: Optional[int] = None,
        max_concurrency: Optional[int] = None,
    ) -> Session:
        return self._start(
            AnalysisMode.SPAM,
            domains,
            stop_words,
            max_snapshots,
            max_concurrency or self.settings.spam_concurrency,
        )

    def start_complete_analysis(
        self,
        domains: Iterable[str],
        stop_words: Union[str, Iterable[str], None] = None,
        max_snapshots: Optional[int] = None,
        max_concurrency: Optional[int] = None,
    ) -> Session:
        return self._start(
            AnalysisMode.COMPLETE,
            domains,
            stop_words,
            max_snapshots,
            max_concurrency or self.settings.complete_concurrency,
        )

    def _start(
        self,
        mode: AnalysisMode,
        domains: Iterable[str],
        stop_words: Union[str, Iterable[str], None],
        max_snapshots: Optional[int],
        max_concurrency: int,
    ) -> Session:
        session = Session(mode, clean_domains(domains))
        words = combine_stop_words(stop_words)
        limit = max_snapshots or self.settings.max_snapshots
        workers = max(1, int(max_concurrency))

        with self._lock:
            self._sessions[session.id] = session

        logger.info(
            "Session %s: %s analysis of %d domains (concurrency %d)",
            session.id, mode.value, len(session.domains), workers,
        )

        run = self.pipeline.run_spam if mode is AnalysisMode.SPAM else self.pipeline.run_complete
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"dropscan-{mode.value}")
        futures = [
            executor.submit(self._run_domain, session, domain, run, words, limit)
            for domain in session.domains
        ]
        threading.Thread(
            target=self._coordinate,
            args=(session, executor, futures),
            name=f"dropscan-session-{session.id[:8]}",
            daemon=True,
        ).start()
        return session

    def _run_domain(
        self,
        session: Session,
        domain: str,
        run: Callable[..., AnalysisResult],
        stop_words: List[str],
        max_snapshots: int,
    ) -> None:
        if session.cancelled:
            session.update(domain, status=Status.UNAVAILABLE, last_message=CANCELLED_MESSAGE)
            result = AnalysisResult(
                domain=domain, mode=session.mode, status=Status.UNAVAILABLE, last_message=CANCELLED_MESSAGE
            )
        else:
            try:
                result = run(session, domain, stop_words, max_snapshots)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Analysis of %s failed", domain)
                message = f"Analysis failed: {exc}"
                session.update(domain, status=Status.UNAVAILABLE, last_message=message, error=str(exc))
                result = AnalysisResult(
                    domain=domain,
                    mode=session.mode,
                    status=Status.UNAVAILABLE,
                    last_message=message,
                    error=str(exc),
                )
        session.set_result(result)

    def _coordinate(self, session: Session, executor: ThreadPoolExecutor, futures: List[Future]) -> None:
        try:
            for future in futures:
                future.result()
        finally:
            executor.shutdown(wait=True)
            session.finish()
            logger.info("Session %s finished", session.id)

    # ------------------------------------------------------------------
    # Session registry
    # ------------------------------------------------------------------

    def get_session(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def close_session(self, session_id: str) -> bool:
        """Cancel and forget a session; ``False`` if it is unknown."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.cancel()
        return True

    def reap_idle_sessions(self, now: Optional[float] = None) -> int:
        """Drop finished sessions idle longer than ``session_idle_timeout``."""
        now = time.time() if now is None else now
        cutoff = now - self.settings.session_idle_timeout
        with self._lock:
            stale = [
                sid for sid, s in self._sessions.items() if s.finished and s.last_activity < cutoff
            ]
            for sid in stale:
                del self._sessions[sid]
        if stale:
            logger.info("Reaped %d idle sessions", len(stale))
        return len(stale)

    def close(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.cancel()
        if self._owns_client:
            self.client.close()
        if self._owns_metrics:
            self.metrics.close()
