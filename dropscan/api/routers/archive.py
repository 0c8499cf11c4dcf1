"""Archive and reference endpoints.

Routes
------
GET /archive/probe?target=...   List captures for a target and fetch the first
GET /stop-words                 The built-in stop-word list
GET /healthz                    Liveness check
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request

from dropscan.analysis.stopwords import DEFAULT_STOP_WORDS
from dropscan.errors import ArchiveError

router = APIRouter()


@router.get("/archive/probe")
def probe_archive(
    request: Request,
    target: str = Query(..., min_length=1),
    limit: int = Query(5, ge=1, le=50),
) -> dict[str, Any]:
    client = request.app.state.orchestrator.client
    try:
        result = client.probe(target, limit=limit)
    except ArchiveError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return asdict(result)


@router.get("/stop-words")
def stop_words() -> dict[str, Any]:
    return {"stop_words": list(DEFAULT_STOP_WORDS), "count": len(DEFAULT_STOP_WORDS)}


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}
