"""FastAPI application factory.

Lifespan
--------
On startup the app creates a single :class:`DomainOrchestrator` (shared
across all requests via ``request.app.state.orchestrator``).  On shutdown
it cancels every open session and closes the HTTP clients.

Routers
-------
    /analysis  — start, inspect, stream and cancel analysis sessions
    /          — archive probe, stop-word list and health check
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dropscan.orchestrator import DomainOrchestrator

from dropscan.api.routers import analysis as analysis_router
from dropscan.api.routers import archive as archive_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the orchestrator on startup and close it on shutdown."""
    orchestrator = DomainOrchestrator()
    app.state.orchestrator = orchestrator
    try:
        yield
    finally:
        app.state.orchestrator.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="Dropscan API",
        description=(
            "Expired-domain due diligence over archived captures: spam "
            "scoring, backlink quality, topic stability, domain metrics and "
            "a BUY / REVIEW / CAUTION / AVOID recommendation, with live "
            "progress via Server-Sent Events."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(analysis_router.router, prefix="/analysis", tags=["analysis"])
    app.include_router(archive_router.router, tags=["archive"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn dropscan.api.app:app --reload
app = create_app()
