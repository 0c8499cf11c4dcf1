"""Domain analysis endpoints with Server-Sent Events (SSE) streaming.

Routes
------
POST   /analysis/spam          Start a spam-only analysis session
POST   /analysis/complete      Start a complete (risk) analysis session
GET    /analysis/{id}          Current status snapshot of a session
GET    /analysis/{id}/events   Live SSE stream of status / result events
DELETE /analysis/{id}          Cancel and forget a session

SSE event format
----------------
Each event is a JSON-encoded object on the ``data:`` line::

    data: {"event": "status", "domain": "example.com", "status": "ANALYZING", ...}

    data: {"event": "result", "domain": "example.com", "status": "CLEAN", ...}

    data: {"event": "done", "session_id": "..."}
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, List, Optional, Union

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from dropscan.orchestrator import DomainOrchestrator, Session, clean_domains

logger = logging.getLogger(__name__)

router = APIRouter()

# Seconds between disconnect checks while the feed is quiet.
POLL_INTERVAL = 1.0


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class AnalysisRequest(BaseModel):
    domains: List[str]
    # comma/newline separated string or a list; merged with the defaults
    stop_words: Optional[Union[str, List[str]]] = None
    max_snapshots: Optional[int] = Field(default=None, ge=1, le=100)
    max_concurrency: Optional[int] = Field(default=None, ge=1, le=10)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _sse(payload: dict[str, Any]) -> str:
    """Format a payload dict as a single SSE ``data:`` line."""
    return f"data: {json.dumps(payload)}\n\n"


def _orchestrator(request: Request) -> DomainOrchestrator:
    return request.app.state.orchestrator


def _session_or_404(request: Request, session_id: str) -> Session:
    session = _orchestrator(request).get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id!r} not found")
    return session


def _start(request: Request, body: AnalysisRequest, complete: bool) -> dict[str, Any]:
    if not clean_domains(body.domains):
        raise HTTPException(status_code=400, detail="No domains provided")

    orchestrator = _orchestrator(request)
    orchestrator.reap_idle_sessions()
    start = orchestrator.start_complete_analysis if complete else orchestrator.start_spam_analysis
    session = start(
        body.domains,
        stop_words=body.stop_words,
        max_snapshots=body.max_snapshots,
        max_concurrency=body.max_concurrency,
    )
    return {"session_id": session.id, "mode": session.mode.value, "domains": session.domains}


async def _stream(request: Request, session: Session) -> AsyncIterator[str]:
    """Replay the session feed as SSE, then follow it until it closes.

    The feed is read in a worker thread with a short timeout so a client
    disconnect is noticed between polls; leaving early cancels the session.
    """
    loop = asyncio.get_event_loop()
    cursor = 0
    completed = False
    try:
        while True:
            batch, closed = await loop.run_in_executor(None, session.read, cursor, POLL_INTERVAL)
            cursor += len(batch)
            for event in batch:
                yield _sse(event.to_dict())
            if closed:
                completed = True
                yield _sse({"event": "done", "session_id": session.id})
                return
            if await request.is_disconnected():
                logger.info("Client left the event stream of session %s", session.id)
                return
    finally:
        if not completed:
            session.cancel()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("/spam", status_code=202)
def start_spam(body: AnalysisRequest, request: Request) -> dict[str, Any]:
    return _start(request, body, complete=False)


@router.post("/complete", status_code=202)
def start_complete(body: AnalysisRequest, request: Request) -> dict[str, Any]:
    return _start(request, body, complete=True)


@router.get("/{session_id}")
def get_analysis(session_id: str, request: Request) -> dict[str, Any]:
    return _session_or_404(request, session_id).to_dict()


@router.get("/{session_id}/events")
def stream_events(session_id: str, request: Request) -> StreamingResponse:
    """Stream the session as SSE until every domain has a result."""
    session = _session_or_404(request, session_id)
    return StreamingResponse(
        _stream(request, session),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@router.delete("/{session_id}", status_code=204)
def delete_analysis(session_id: str, request: Request) -> None:
    if not _orchestrator(request).close_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id!r} not found")
