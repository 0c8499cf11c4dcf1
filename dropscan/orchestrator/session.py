"""A running multi-domain analysis and its outbound event feed."""

from __future__ import annotations

import copy
import threading
import time
import uuid
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from dropscan.orchestrator.models import AnalysisMode, AnalysisResult, DomainStatus, SessionEvent


class Session:
    """Status map, results and event history for one analysis request.

    Workers call :meth:`update` for their own domain and :meth:`set_result`
    once they finish.  The coordinator calls :meth:`finish` after every
    worker has returned, which publishes the results in input order and
    closes the feed.

    Published events are kept in order, so every subscriber reads the whole
    feed from the start no matter when it connects.
    """

    def __init__(self, mode: AnalysisMode, domains: Sequence[str], session_id: Optional[str] = None) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.mode = mode
        self.domains: List[str] = list(domains)
        self.created_at = time.time()
        self._statuses: Dict[str, DomainStatus] = {d: DomainStatus(domain=d) for d in self.domains}
        self._results: Dict[str, AnalysisResult] = {}
        self._history: List[SessionEvent] = []
        self._closed = False
        self._cancel = threading.Event()
        self._finished = threading.Event()
        self._lock = threading.Lock()
        self._published = threading.Condition(self._lock)
        self._last_activity = self.created_at

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    def update(self, domain: str, **fields) -> DomainStatus:
        """Apply *fields* to *domain*'s status and publish a copy."""
        with self._published:
            entry = self._statuses[domain]
            for name, value in fields.items():
                setattr(entry, name, value)
            entry.updated_at = time.time()
            snapshot = copy.copy(entry)
            self._last_activity = entry.updated_at
            self._history.append(SessionEvent("status", snapshot))
            self._published.notify_all()
        return snapshot

    def set_result(self, result: AnalysisResult) -> None:
        with self._lock:
            self._results.setdefault(result.domain, result)
            self._last_activity = time.time()

    def wait_cancelled(self, timeout: float) -> bool:
        """Sleep up to *timeout* seconds; ``True`` if cancelled meanwhile."""
        if timeout <= 0:
            return self._cancel.is_set()
        return self._cancel.wait(timeout)

    def finish(self) -> None:
        with self._published:
            if self._closed:
                return
            for domain in self.domains:
                if domain in self._results:
                    self._history.append(SessionEvent("result", self._results[domain]))
            self._closed = True
            self._last_activity = time.time()
            self._published.notify_all()
        self._finished.set()

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    def read(self, cursor: int, timeout: Optional[float] = None) -> Tuple[List[SessionEvent], bool]:
        """Events published after position *cursor* and whether the feed is closed.

        Blocks up to *timeout* seconds (forever when ``None``) until there is
        something new; an empty list means the wait timed out.
        """
        with self._published:
            self._published.wait_for(lambda: len(self._history) > cursor or self._closed, timeout)
            return self._history[cursor:], self._closed

    def events(self) -> Iterator[SessionEvent]:
        """Yield status events, then one result per domain, then stop.

        Closing the generator before the feed ends cancels the session.
        """
        cursor = 0
        completed = False
        try:
            while True:
                batch, closed = self.read(cursor)
                cursor += len(batch)
                yield from batch
                if closed:
                    completed = True
                    return
        finally:
            if not completed:
                self.cancel()

    def snapshot(self) -> List[DomainStatus]:
        """Copies of every domain status in input order."""
        with self._lock:
            return [copy.copy(self._statuses[d]) for d in self.domains]

    def status(self, domain: str) -> DomainStatus:
        with self._lock:
            return copy.copy(self._statuses[domain])

    def results(self) -> List[AnalysisResult]:
        with self._lock:
            return [self._results[d] for d in self.domains if d in self._results]

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._finished.wait(timeout)

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    @property
    def last_activity(self) -> float:
        with self._lock:
            return self._last_activity

    def to_dict(self) -> dict:
        return {
            "session_id": self.id,
            "mode": self.mode.value,
            "finished": self.finished,
            "cancelled": self.cancelled,
            "domains": [s.to_dict() for s in self.snapshot()],
            "results": [r.to_dict() for r in self.results()],
        }
