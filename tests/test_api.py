"""Tests for the HTTP layer.

The app's orchestrator is swapped for one backed by an in-memory archive so
no request leaves the process.
"""

from __future__ import annotations

import asyncio
import json
from typing import Generator, List

import pytest
from fastapi.testclient import TestClient

from dropscan.analysis.metrics import DomainMetrics
from dropscan.analysis.stopwords import DEFAULT_STOP_WORDS
from dropscan.api.app import create_app
from dropscan.api.routers import analysis as analysis_router
from dropscan.archive.models import Capture, FetchedPage, ProbeResult
from dropscan.config import Settings
from dropscan.errors import IndexUnavailableError
from dropscan.orchestrator import AnalysisMode, DomainOrchestrator, Session, Status


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_PAGE = (
    "<html><head><title>Garden Supplies Shop</title>"
    '<meta name="description" content="Quality garden tools, seeds and compost for home gardeners.">'
    "</head><body><h1>Garden tools</h1><p>Poker night at the garden club.</p>"
    '<a href="https://partner.org/">Partner site</a></body></html>'
)


class _Archive:
    def list_captures(self, domain: str, limit: int = 10) -> List[Capture]:
        if domain == "down.com":
            raise IndexUnavailableError("Capture index returned HTTP 503")
        if domain == "empty.com":
            return []
        return [Capture("20150101000000", f"http://{domain}/", 200)]

    def fetch_page(self, capture: Capture) -> FetchedPage:
        return FetchedPage(capture, _PAGE, len(_PAGE), capture.original_url, True)

    def probe(self, target: str, limit: int = 5) -> ProbeResult:
        if target == "down.com":
            raise IndexUnavailableError("Capture index returned HTTP 503")
        return ProbeResult(
            target=target,
            captures_found=1,
            first_timestamp="20150101000000",
            first_original_url=f"http://{target}/",
            first_html_length=len(_PAGE),
            first_resolved_url=f"http://{target}/",
        )

    def close(self) -> None:
        pass


class _Metrics:
    def get_metrics(self, domain, backlinks=None) -> DomainMetrics:
        return DomainMetrics(domain=domain, domain_authority=50, trust_flow=30, overall_quality_score=40)

    def close(self) -> None:
        pass


class _GoneRequest:
    """A request whose client has already disconnected."""

    async def is_disconnected(self) -> bool:
        return True


def _parse_sse(content: bytes) -> list[dict]:
    """Parse raw SSE response bytes into a list of event dicts."""
    events = []
    for line in content.decode().splitlines():
        line = line.strip()
        if line.startswith("data: "):
            events.append(json.loads(line[len("data: "):]))
    return events


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    """TestClient whose orchestrator uses the in-memory archive."""
    app = create_app()
    config = Settings(capture_delay=0.0)

    with TestClient(app, raise_server_exceptions=True) as c:
        c.app.state.orchestrator.close()
        c.app.state.orchestrator = DomainOrchestrator(config, client=_Archive(), metrics=_Metrics())
        yield c


def _start(client: TestClient, mode: str, domains: list) -> str:
    resp = client.post(f"/analysis/{mode}", json={"domains": domains})
    assert resp.status_code == 202
    return resp.json()["session_id"]


# ---------------------------------------------------------------------------
# Reference endpoints
# ---------------------------------------------------------------------------

class TestReference:
    def test_healthz(self, client: TestClient) -> None:
        resp = client.get("/healthz")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_stop_words(self, client: TestClient) -> None:
        data = client.get("/stop-words").json()
        assert data["stop_words"] == DEFAULT_STOP_WORDS
        assert data["count"] == len(DEFAULT_STOP_WORDS)

    def test_probe(self, client: TestClient) -> None:
        resp = client.get("/archive/probe", params={"target": "garden.com"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["captures_found"] == 1
        assert data["first_timestamp"] == "20150101000000"

    def test_probe_archive_error_is_502(self, client: TestClient) -> None:
        resp = client.get("/archive/probe", params={"target": "down.com"})
        assert resp.status_code == 502
        assert "503" in resp.json()["detail"]

    def test_probe_requires_target(self, client: TestClient) -> None:
        assert client.get("/archive/probe").status_code == 422


# ---------------------------------------------------------------------------
# Analysis sessions
# ---------------------------------------------------------------------------

class TestSpamSession:
    def test_start_returns_session(self, client: TestClient) -> None:
        resp = client.post("/analysis/spam", json={"domains": [" garden.com ", "", "empty.com"]})
        assert resp.status_code == 202
        data = resp.json()
        assert data["mode"] == "spam"
        assert data["domains"] == ["garden.com", "empty.com"]
        assert data["session_id"]

    def test_event_stream(self, client: TestClient) -> None:
        session_id = _start(client, "spam", ["garden.com", "empty.com", "down.com"])

        resp = client.get(f"/analysis/{session_id}/events")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert resp.headers["cache-control"] == "no-cache"

        events = _parse_sse(resp.content)
        assert events[-1] == {"event": "done", "session_id": session_id}
        results = [e for e in events if e["event"] == "result"]
        assert [r["domain"] for r in results] == ["garden.com", "empty.com", "down.com"]
        assert [r["status"] for r in results] == ["CLEAN", "NO_SNAPSHOTS", "UNAVAILABLE"]
        assert results[0]["spam"]["max_spam_score"] == 2.0
        assert any(e["event"] == "status" for e in events)

    def test_second_stream_replays_finished_session(self, client: TestClient) -> None:
        session_id = _start(client, "spam", ["garden.com", "empty.com"])
        first = _parse_sse(client.get(f"/analysis/{session_id}/events").content)
        second = _parse_sse(client.get(f"/analysis/{session_id}/events").content)

        assert second == first
        assert second[-1] == {"event": "done", "session_id": session_id}

    def test_client_disconnect_cancels_session(self) -> None:
        session = Session(AnalysisMode.SPAM, ["garden.com"])
        session.update("garden.com", status=Status.FETCHING_SNAPSHOTS, last_message="Fetching snapshot list")

        async def _collect() -> list:
            return [chunk async for chunk in analysis_router._stream(_GoneRequest(), session)]

        chunks = asyncio.run(_collect())

        assert len(chunks) == 1
        assert "FETCHING_SNAPSHOTS" in chunks[0]
        assert session.cancelled is True

    def test_snapshot_endpoint(self, client: TestClient) -> None:
        session_id = _start(client, "spam", ["empty.com"])
        client.app.state.orchestrator.get_session(session_id).wait(timeout=10)

        data = client.get(f"/analysis/{session_id}").json()
        assert data["session_id"] == session_id
        assert data["finished"] is True
        assert data["domains"][0]["domain"] == "empty.com"
        assert data["domains"][0]["status"] == "NO_SNAPSHOTS"
        assert data["results"][0]["status"] == "NO_SNAPSHOTS"

    def test_delete_session(self, client: TestClient) -> None:
        session_id = _start(client, "spam", ["empty.com"])
        assert client.delete(f"/analysis/{session_id}").status_code == 204
        assert client.get(f"/analysis/{session_id}").status_code == 404


class TestCompleteSession:
    def test_result_carries_risk(self, client: TestClient) -> None:
        session_id = _start(client, "complete", ["garden.com"])
        events = _parse_sse(client.get(f"/analysis/{session_id}/events").content)

        result = next(e for e in events if e["event"] == "result")
        assert result["status"] == "COMPLETE"
        assert result["mode"] == "complete"
        assert result["risk"]["recommendation"] in {"BUY", "REVIEW", "CAUTION", "AVOID"}
        assert result["metrics"]["overall_quality_score"] == 40
        statuses = [e["status"] for e in events if e["event"] == "status"]
        assert "ANALYZING_BACKLINKS" in statuses


class TestValidation:
    @pytest.mark.parametrize("path", ["/analysis/nope", "/analysis/nope/events"])
    def test_unknown_session_is_404(self, client: TestClient, path: str) -> None:
        assert client.get(path).status_code == 404

    def test_delete_unknown_session_is_404(self, client: TestClient) -> None:
        assert client.delete("/analysis/nope").status_code == 404

    def test_no_domains_is_400(self, client: TestClient) -> None:
        resp = client.post("/analysis/spam", json={"domains": ["", "  "]})
        assert resp.status_code == 400

    def test_missing_domains_is_422(self, client: TestClient) -> None:
        assert client.post("/analysis/spam", json={}).status_code == 422

    def test_bad_concurrency_is_422(self, client: TestClient) -> None:
        resp = client.post("/analysis/complete", json={"domains": ["a.com"], "max_concurrency": 0})
        assert resp.status_code == 422

    def test_stop_words_accept_string_or_list(self, client: TestClient) -> None:
        for stop_words in ("garden, club", ["garden", "club"]):
            resp = client.post(
                "/analysis/spam", json={"domains": ["garden.com"], "stop_words": stop_words}
            )
            assert resp.status_code == 202
