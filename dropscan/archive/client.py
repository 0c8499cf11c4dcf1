"""HTTP client for the web archive: capture index queries and capture fetching."""

from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

import httpx

from dropscan.archive.models import Capture, FetchedPage, ProbeResult
from dropscan.archive.unwrap import UnwrapContext, is_wrapper_html, unwrap
from dropscan.config import Settings, settings as default_settings
from dropscan.errors import (
    ArchiveTimeoutError,
    FetchFailedError,
    IndexUnavailableError,
    RateLimitedError,
)

logger = logging.getLogger(__name__)

_ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
_INDEX_FIELDS = "timestamp,original,statuscode,mime,length"


def normalize_target(target: str) -> str:
    """Strip the scheme and a trailing slash so the index sees ``host/path``."""
    normalized = target.strip()
    if normalized.startswith(("http://", "https://")):
        parsed = urlparse(normalized)
        if parsed.hostname:
            normalized = parsed.hostname + parsed.path
        else:
            normalized = normalized.split("://", 1)[1]
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


def _parse_index_rows(data: object) -> List[Capture]:
    """Turn the index's JSON array-of-arrays into :class:`Capture` records.

    The first row is a header when its first cell is the literal field name.
    """
    if not isinstance(data, list) or not data:
        return []

    rows = data
    first = data[0]
    if isinstance(first, list) and first and str(first[0]).lower() == "timestamp":
        rows = data[1:]

    captures: List[Capture] = []
    for row in rows:
        if not isinstance(row, list) or len(row) < 2:
            continue
        timestamp = str(row[0] or "")
        original_url = str(row[1] or "")
        if not timestamp or not original_url:
            continue
        status_code: Optional[int] = None
        if len(row) > 2 and row[2]:
            try:
                status_code = int(row[2])
            except (TypeError, ValueError):
                status_code = None
        captures.append(Capture(timestamp, original_url, status_code))
    return captures


class ArchiveClient:
    """Resilient client for the archive's capture index and playback service.

    Successfully fetched pages are cached per instance, keyed by
    ``(timestamp, original_url)``.  Entries are written once and never
    evicted, so concurrent workers can share one client.
    """

    def __init__(self, config: Optional[Settings] = None, http: Optional[httpx.Client] = None) -> None:
        self._settings = config or default_settings
        self._owns_http = http is None
        self._http = http or httpx.Client(
            headers={"User-Agent": self._settings.user_agent, "Accept": _ACCEPT_HTML},
            timeout=self._settings.request_timeout,
            follow_redirects=True,
        )
        parsed = urlparse(self._settings.archive_web_url)
        self._archive_origin = f"{parsed.scheme}://{parsed.netloc}"
        self._web_base = self._settings.archive_web_url.rstrip("/")
        self._cache: Dict[Tuple[str, str], FetchedPage] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "ArchiveClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # URL helpers
    # ------------------------------------------------------------------

    def wrapper_url(self, capture: Capture) -> str:
        return f"{self._web_base}/{capture.timestamp}/{capture.original_url}"

    def raw_url(self, capture: Capture) -> str:
        return f"{self._web_base}/{capture.timestamp}id_/{capture.original_url}"

    def cached(self, capture: Capture) -> Optional[FetchedPage]:
        return self._cache.get(capture.key)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, url: str, max_retries: int, params: Optional[dict] = None) -> httpx.Response:
        """GET *url*, retrying HTTP 429 with exponential backoff.

        Raises:
            ArchiveTimeoutError: The request exceeded the client timeout.
            RateLimitedError: Still rate limited after *max_retries* retries.
            httpx.RequestError: Any other transport failure, such as a redirect loop.
        """
        attempt = 0
        while True:
            try:
                response = self._http.get(url, params=params)
            except httpx.TimeoutException as exc:
                raise ArchiveTimeoutError(url, self._settings.request_timeout) from exc

            if response.status_code != 429:
                return response
            if attempt >= max_retries:
                raise RateLimitedError(url, max_retries)

            delay = self._settings.backoff_delay(attempt)
            logger.warning(
                "Rate limited (429) on %s; waiting %.1fs before retry %d/%d",
                url, delay, attempt + 1, max_retries,
            )
            time.sleep(delay)
            attempt += 1

    def _fetch_candidate(self, url: str) -> Optional[str]:
        """Fetch helper for unwrap strategies: HTML on HTTP 200, else ``None``."""
        try:
            response = self._request(url, self._settings.fetch_max_retries)
        except httpx.RequestError as exc:
            logger.warning("Fetching %s failed: %s", url, exc)
            return None
        if response.status_code != 200:
            logger.debug("%s returned HTTP %d", url, response.status_code)
            return None
        return response.text

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def list_captures(self, domain: str, limit: int = 10) -> List[Capture]:
        """Return up to *limit* HTTP-200 captures of *domain* in index order.

        Raises:
            RateLimitedError: The index kept answering 429.
            ArchiveTimeoutError: The index request timed out.
            IndexUnavailableError: Any other non-200 or unreadable response.
        """
        target = normalize_target(domain)
        params = {
            "url": target,
            "output": "json",
            "fl": _INDEX_FIELDS,
            "filter": "statuscode:200",
            "limit": str(limit),
        }
        url = self._settings.archive_cdx_url
        try:
            response = self._request(url, self._settings.index_max_retries, params=params)
        except httpx.RequestError as exc:
            raise IndexUnavailableError(f"Capture index request failed: {exc}") from exc

        if response.status_code != 200:
            raise IndexUnavailableError(f"Capture index returned HTTP {response.status_code}")

        if not response.text.strip():
            return []
        try:
            data = response.json()
        except ValueError as exc:
            raise IndexUnavailableError(f"Capture index returned invalid JSON: {exc}") from exc

        captures = _parse_index_rows(data)[:limit]
        logger.info("Found %d capture(s) for %s", len(captures), target)
        return captures

    def fetch_page(self, capture: Capture) -> FetchedPage:
        """Return the original HTML of *capture*, unwrapping archive chrome.

        Raises:
            RateLimitedError: A request stayed rate limited after its retry.
            ArchiveTimeoutError: A request timed out.
            FetchFailedError: Neither the raw nor the wrapper URL could be fetched.
        """
        cached = self._cache.get(capture.key)
        if cached is not None:
            return cached

        raw_url = self.raw_url(capture)
        wrapper_url = self.wrapper_url(capture)
        retries = self._settings.fetch_max_retries

        # Raw variant first: no navigation chrome when it works.
        try:
            response: Optional[httpx.Response] = self._request(raw_url, retries)
        except httpx.RequestError as exc:
            logger.warning("Raw capture fetch failed (%s); trying wrapper URL", exc)
            response = None

        if response is not None and response.status_code == 200:
            html = response.text
            if not is_wrapper_html(html):
                logger.debug("Raw URL returned %d chars for %s", len(html), raw_url)
                return self._store(capture, html, raw_url, unwrapped=True)
            logger.debug("Raw URL served a wrapper page; trying wrapper URL")
        elif response is not None:
            logger.debug("Raw URL returned HTTP %d; trying wrapper URL", response.status_code)

        try:
            response = self._request(wrapper_url, retries)
        except httpx.RequestError as exc:
            raise FetchFailedError(f"Failed to fetch capture {wrapper_url}: {exc}") from exc
        if response.status_code != 200:
            raise FetchFailedError(
                f"Failed to fetch capture (HTTP {response.status_code}) for {wrapper_url}"
            )

        html = response.text
        if not is_wrapper_html(html):
            return self._store(capture, html, wrapper_url, unwrapped=True)

        logger.info("Detected archive wrapper (%d chars) for %s; extracting original", len(html), wrapper_url)
        outcome = unwrap(
            UnwrapContext(
                wrapper_html=html,
                raw_url=raw_url,
                archive_origin=self._archive_origin,
                fetch=self._fetch_candidate,
            )
        )
        return self._store(
            capture,
            outcome.html,
            outcome.url or wrapper_url,
            unwrapped=outcome.unwrapped,
        )

    def probe(self, target: str, limit: int = 5) -> ProbeResult:
        """List captures of *target* and fetch the first one.

        A quick end-to-end connectivity check against the archive.
        """
        captures = self.list_captures(target, limit)
        if not captures:
            return ProbeResult(target=target, captures_found=0)
        first = captures[0]
        page = self.fetch_page(first)
        return ProbeResult(
            target=target,
            captures_found=len(captures),
            first_timestamp=first.timestamp,
            first_original_url=first.original_url,
            first_html_length=page.byte_length,
            first_resolved_url=page.resolved_url,
        )

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _store(self, capture: Capture, html: str, resolved_url: str, unwrapped: bool) -> FetchedPage:
        page = FetchedPage(
            capture=capture,
            html=html,
            byte_length=len(html.encode("utf-8")),
            resolved_url=resolved_url,
            unwrapped=unwrapped,
        )
        # First successful fetch wins; a racing writer gets the stored entry.
        return self._cache.setdefault(capture.key, page)
