"""Tests for the archive client (capture index + capture fetching).

Mocking strategy:
- ``respx`` patches ``httpx`` at the transport layer so no real network calls
  are made.
- ``time.sleep`` inside the client module is patched so 429 backoff does not
  slow the suite down; the patched mock also records the backoff delays.
"""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest
import respx

from dropscan.archive.client import ArchiveClient, normalize_target
from dropscan.archive.models import Capture
from dropscan.archive.unwrap import (
    UnwrapContext,
    UnwrapStrategy,
    is_usable_content,
    is_wrapper_html,
    unwrap,
)
from dropscan.config import Settings
from dropscan.errors import (
    ArchiveTimeoutError,
    FetchFailedError,
    IndexUnavailableError,
    RateLimitedError,
)


# ---------------------------------------------------------------------------
# Fixtures / constants
# ---------------------------------------------------------------------------

_CDX = "https://archive.test/cdx"
_WEB = "https://archive.test/web"
_TS = "20200101000000"
_ORIGINAL = "http://example.com/"
_RAW_URL = f"{_WEB}/{_TS}id_/{_ORIGINAL}"
_WRAPPER_URL = f"{_WEB}/{_TS}/{_ORIGINAL}"
_FRAME_URL = f"{_WEB}/{_TS}if_/{_ORIGINAL}"

_ORIGINAL_HTML = """\
<html>
<head><title>Example Garden Supplies</title></head>
<body>
  <h1>Garden tools and seeds</h1>
  <p>We sell quality garden tools, seeds and compost for home gardeners.</p>
</body>
</html>
"""

_WRAPPER_HTML = f"""\
<html>
<head><title>Wayback Machine</title></head>
<body>
  <div id="wm-ipp-base">Wayback Machine toolbar</div>
  <iframe id="playback" src="/web/{_TS}if_/{_ORIGINAL}"></iframe>
</body>
</html>
"""

_BARE_WRAPPER_HTML = """\
<html><head><title>Wayback Machine</title></head>
<body><div id="wm-ipp-base">Wayback Machine toolbar, playback unavailable</div></body></html>
"""


@pytest.fixture()
def config() -> Settings:
    return Settings(
        archive_cdx_url=_CDX,
        archive_web_url=_WEB,
        capture_delay=0.0,
        backoff_base=2.0,
        index_max_retries=3,
        fetch_max_retries=1,
    )


@pytest.fixture()
def client(config: Settings):
    with ArchiveClient(config) as c:
        yield c


def _capture() -> Capture:
    return Capture(timestamp=_TS, original_url=_ORIGINAL, status_code=200)


# ---------------------------------------------------------------------------
# normalize_target
# ---------------------------------------------------------------------------

class TestNormalizeTarget:
    def test_strips_scheme_and_trailing_slash(self) -> None:
        assert normalize_target("https://example.com/") == "example.com"

    def test_keeps_path(self) -> None:
        assert normalize_target("http://example.com/blog/") == "example.com/blog"

    def test_trims_whitespace(self) -> None:
        assert normalize_target("  example.com  ") == "example.com"

    def test_bare_domain_unchanged(self) -> None:
        assert normalize_target("example.com") == "example.com"


# ---------------------------------------------------------------------------
# list_captures
# ---------------------------------------------------------------------------

class TestListCaptures:
    def test_parses_rows_and_skips_header(self, client: ArchiveClient) -> None:
        body = [
            ["timestamp", "original", "statuscode", "mime", "length"],
            ["20100101000000", "http://example.com/", "200", "text/html", "1234"],
            ["20110101000000", "http://example.com/", "200", "text/html", "2345"],
        ]
        with respx.mock:
            route = respx.get(_CDX).mock(return_value=httpx.Response(200, json=body))
            captures = client.list_captures("https://example.com/", limit=10)

        assert [c.timestamp for c in captures] == ["20100101000000", "20110101000000"]
        assert captures[0].original_url == "http://example.com/"
        assert captures[0].status_code == 200

        params = route.calls.last.request.url.params
        assert params["url"] == "example.com"
        assert params["output"] == "json"
        assert params["filter"] == "statuscode:200"
        assert params["limit"] == "10"

    def test_drops_rows_missing_fields(self, client: ArchiveClient) -> None:
        body = [
            ["timestamp", "original"],
            ["", "http://example.com/"],
            ["20100101000000", ""],
            ["20120101000000", "http://example.com/"],
        ]
        with respx.mock:
            respx.get(_CDX).mock(return_value=httpx.Response(200, json=body))
            captures = client.list_captures("example.com")

        assert len(captures) == 1
        assert captures[0].timestamp == "20120101000000"

    def test_truncates_to_limit(self, client: ArchiveClient) -> None:
        body = [["timestamp", "original"]] + [
            [f"2010010{i}000000", "http://example.com/"] for i in range(1, 8)
        ]
        with respx.mock:
            respx.get(_CDX).mock(return_value=httpx.Response(200, json=body))
            captures = client.list_captures("example.com", limit=3)

        assert len(captures) == 3
        assert captures[0].timestamp == "20100101000000"

    def test_empty_body_returns_empty_list(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_CDX).mock(return_value=httpx.Response(200, text=""))
            assert client.list_captures("example.com") == []

    def test_header_only_returns_empty_list(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_CDX).mock(return_value=httpx.Response(200, json=[["timestamp", "original"]]))
            assert client.list_captures("example.com") == []

    def test_retries_after_rate_limit(self, client: ArchiveClient) -> None:
        body = [["timestamp", "original"], ["20100101000000", "http://example.com/"]]
        with respx.mock:
            respx.get(_CDX).mock(
                side_effect=[httpx.Response(429), httpx.Response(200, json=body)]
            )
            with patch("dropscan.archive.client.time.sleep") as mock_sleep:
                captures = client.list_captures("example.com")

        assert len(captures) == 1
        mock_sleep.assert_called_once_with(2.0)

    def test_rate_limited_after_three_retries(self, client: ArchiveClient) -> None:
        with respx.mock:
            route = respx.get(_CDX).mock(return_value=httpx.Response(429))
            with patch("dropscan.archive.client.time.sleep") as mock_sleep:
                with pytest.raises(RateLimitedError) as excinfo:
                    client.list_captures("example.com")

        assert route.call_count == 4
        assert [c.args[0] for c in mock_sleep.call_args_list] == [2.0, 4.0, 8.0]
        assert excinfo.value.retries == 3

    def test_timeout_raises_archive_timeout(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_CDX).mock(side_effect=httpx.ReadTimeout("slow"))
            with pytest.raises(ArchiveTimeoutError):
                client.list_captures("example.com")

    def test_server_error_raises_index_unavailable(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_CDX).mock(return_value=httpx.Response(503))
            with pytest.raises(IndexUnavailableError):
                client.list_captures("example.com")

    def test_connection_error_raises_index_unavailable(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_CDX).mock(side_effect=httpx.ConnectError("refused"))
            with pytest.raises(IndexUnavailableError):
                client.list_captures("example.com")

    def test_redirect_loop_raises_index_unavailable(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_CDX).mock(side_effect=httpx.TooManyRedirects("loop"))
            with pytest.raises(IndexUnavailableError):
                client.list_captures("example.com")

    def test_invalid_json_raises_index_unavailable(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_CDX).mock(return_value=httpx.Response(200, text="<html>oops</html>"))
            with pytest.raises(IndexUnavailableError):
                client.list_captures("example.com")


# ---------------------------------------------------------------------------
# fetch_page
# ---------------------------------------------------------------------------

class TestFetchPage:
    def test_raw_variant_used_when_clean(self, client: ArchiveClient) -> None:
        html = _ORIGINAL_HTML.replace("Garden", "Café")
        with respx.mock:
            respx.get(_RAW_URL).mock(return_value=httpx.Response(200, text=html))
            page = client.fetch_page(_capture())

        assert page.html == html
        assert page.resolved_url == _RAW_URL
        assert page.unwrapped is True
        assert page.byte_length == len(html.encode("utf-8"))
        assert page.byte_length > len(html)

    def test_falls_through_to_wrapper_url(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_RAW_URL).mock(return_value=httpx.Response(404))
            respx.get(_WRAPPER_URL).mock(return_value=httpx.Response(200, text=_ORIGINAL_HTML))
            page = client.fetch_page(_capture())

        assert page.html == _ORIGINAL_HTML
        assert page.resolved_url == _WRAPPER_URL

    def test_wrapper_unwrapped_via_playback_frame(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_RAW_URL).mock(return_value=httpx.Response(404))
            respx.get(_WRAPPER_URL).mock(return_value=httpx.Response(200, text=_WRAPPER_HTML))
            frame = respx.get(_FRAME_URL).mock(return_value=httpx.Response(200, text=_ORIGINAL_HTML))
            page = client.fetch_page(_capture())

        assert frame.called
        assert page.html == _ORIGINAL_HTML
        assert page.resolved_url == _FRAME_URL
        assert page.unwrapped is True

    def test_wrapper_kept_when_no_strategy_succeeds(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_RAW_URL).mock(return_value=httpx.Response(404))
            respx.get(_WRAPPER_URL).mock(return_value=httpx.Response(200, text=_BARE_WRAPPER_HTML))
            page = client.fetch_page(_capture())

        assert page.html == _BARE_WRAPPER_HTML
        assert page.unwrapped is False
        assert page.resolved_url == _WRAPPER_URL

    def test_both_urls_failing_raises_fetch_failed(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_RAW_URL).mock(return_value=httpx.Response(500))
            respx.get(_WRAPPER_URL).mock(return_value=httpx.Response(502))
            with pytest.raises(FetchFailedError):
                client.fetch_page(_capture())

    def test_raw_redirect_loop_falls_through_to_wrapper_url(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_RAW_URL).mock(side_effect=httpx.TooManyRedirects("loop"))
            respx.get(_WRAPPER_URL).mock(return_value=httpx.Response(200, text=_ORIGINAL_HTML))
            page = client.fetch_page(_capture())

        assert page.html == _ORIGINAL_HTML
        assert page.resolved_url == _WRAPPER_URL

    def test_redirect_loop_on_both_urls_raises_fetch_failed(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_RAW_URL).mock(side_effect=httpx.TooManyRedirects("loop"))
            respx.get(_WRAPPER_URL).mock(side_effect=httpx.TooManyRedirects("loop"))
            with pytest.raises(FetchFailedError):
                client.fetch_page(_capture())

    def test_redirect_loop_in_unwrap_candidate_tries_next(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_RAW_URL).mock(return_value=httpx.Response(404))
            respx.get(_WRAPPER_URL).mock(return_value=httpx.Response(200, text=_WRAPPER_HTML))
            respx.get(_FRAME_URL).mock(side_effect=httpx.TooManyRedirects("loop"))
            page = client.fetch_page(_capture())

        assert page.html == _WRAPPER_HTML
        assert page.unwrapped is False

    def test_rate_limited_after_one_retry(self, client: ArchiveClient) -> None:
        with respx.mock:
            raw = respx.get(_RAW_URL).mock(return_value=httpx.Response(429))
            with patch("dropscan.archive.client.time.sleep") as mock_sleep:
                with pytest.raises(RateLimitedError):
                    client.fetch_page(_capture())

        assert raw.call_count == 2
        mock_sleep.assert_called_once_with(2.0)

    def test_timeout_raises_archive_timeout(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_RAW_URL).mock(side_effect=httpx.ConnectTimeout("slow"))
            with pytest.raises(ArchiveTimeoutError):
                client.fetch_page(_capture())

    def test_second_fetch_served_from_cache(self, client: ArchiveClient) -> None:
        with respx.mock:
            raw = respx.get(_RAW_URL).mock(return_value=httpx.Response(200, text=_ORIGINAL_HTML))
            first = client.fetch_page(_capture())
            second = client.fetch_page(_capture())

        assert raw.call_count == 1
        assert second is first
        assert client.cached(_capture()) is first

    def test_failed_fetch_is_not_cached(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_RAW_URL).mock(return_value=httpx.Response(500))
            respx.get(_WRAPPER_URL).mock(return_value=httpx.Response(500))
            with pytest.raises(FetchFailedError):
                client.fetch_page(_capture())

        assert client.cached(_capture()) is None


# ---------------------------------------------------------------------------
# probe
# ---------------------------------------------------------------------------

class TestProbe:
    def test_reports_first_capture(self, client: ArchiveClient) -> None:
        body = [["timestamp", "original"], [_TS, _ORIGINAL], ["20210101000000", _ORIGINAL]]
        with respx.mock:
            respx.get(_CDX).mock(return_value=httpx.Response(200, json=body))
            respx.get(_RAW_URL).mock(return_value=httpx.Response(200, text=_ORIGINAL_HTML))
            result = client.probe("example.com")

        assert result.captures_found == 2
        assert result.first_timestamp == _TS
        assert result.first_original_url == _ORIGINAL
        assert result.first_html_length == len(_ORIGINAL_HTML.encode("utf-8"))
        assert result.first_resolved_url == _RAW_URL

    def test_no_captures(self, client: ArchiveClient) -> None:
        with respx.mock:
            respx.get(_CDX).mock(return_value=httpx.Response(200, text=""))
            result = client.probe("example.com")

        assert result.captures_found == 0
        assert result.first_timestamp is None


# ---------------------------------------------------------------------------
# Wrapper detection / unwrap chain
# ---------------------------------------------------------------------------

class TestWrapperDetection:
    def test_detects_wrapper(self) -> None:
        assert is_wrapper_html(_WRAPPER_HTML) is True

    def test_marker_without_hint_is_not_wrapper(self) -> None:
        assert is_wrapper_html("<p>I love the Wayback Machine</p>") is False

    def test_original_page_is_not_wrapper(self) -> None:
        assert is_wrapper_html(_ORIGINAL_HTML) is False

    def test_short_candidate_not_usable(self) -> None:
        assert is_usable_content("<p>tiny</p>") is False
        assert is_usable_content(_ORIGINAL_HTML) is True


class TestUnwrapChain:
    def _ctx(self, fetch) -> UnwrapContext:
        return UnwrapContext(
            wrapper_html=_WRAPPER_HTML,
            raw_url=_RAW_URL,
            archive_origin="https://archive.test",
            fetch=fetch,
        )

    def test_strategies_run_in_order(self) -> None:
        calls = []

        def _make(name, result):
            def _run(ctx):
                calls.append(name)
                return result
            return UnwrapStrategy(name, _run)

        outcome = unwrap(
            self._ctx(lambda url: None),
            [_make("first", None), _make("second", ("<html>ok</html>", "u")), _make("third", None)],
        )

        assert calls == ["first", "second"]
        assert outcome.strategy == "second"
        assert outcome.unwrapped is True

    def test_strategy_error_means_try_next(self) -> None:
        def _boom(ctx):
            raise RateLimitedError("https://archive.test/x", 1)

        outcome = unwrap(
            self._ctx(lambda url: None),
            [UnwrapStrategy("boom", _boom), UnwrapStrategy("ok", lambda ctx: (_ORIGINAL_HTML, "u"))],
        )

        assert outcome.strategy == "ok"
        assert outcome.html == _ORIGINAL_HTML

    def test_raw_variant_strategy(self) -> None:
        fetched = []

        def _fetch(url):
            fetched.append(url)
            return _ORIGINAL_HTML if url == _RAW_URL else None

        outcome = unwrap(self._ctx(_fetch))

        assert outcome.strategy == "raw-variant"
        assert fetched[0] == _FRAME_URL
        assert _RAW_URL in fetched

    def test_exhausted_chain_keeps_wrapper(self) -> None:
        outcome = unwrap(self._ctx(lambda url: None))

        assert outcome.html == _WRAPPER_HTML
        assert outcome.strategy is None
        assert outcome.unwrapped is False
