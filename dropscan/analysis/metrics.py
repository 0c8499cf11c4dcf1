"""Domain quality metrics: an external rank lookup plus heuristic estimates.

Only the rank comes from an outside service, and that lookup is best effort.
Authority, trust flow and citation flow are estimated from the domain
extension and, when available, the backlink quality of the archived pages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import httpx

from dropscan.analysis.backlinks import BacklinkHistory
from dropscan.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_STRONG_EXTENSIONS = {"com", "org", "net", "edu", "gov"}
_TRUSTED_EXTENSIONS = {"org", "edu", "gov"}
_COMMERCIAL_EXTENSIONS = {"com", "net"}


@dataclass
class DomainMetrics:
    domain: str
    domain_rating: Optional[float] = None
    rank_absolute: Optional[int] = None
    domain_authority: Optional[int] = None
    trust_flow: Optional[int] = None
    citation_flow: Optional[int] = None
    spam_score: int = 0
    overall_quality_score: Optional[int] = None
    sources: Dict[str, str] = field(default_factory=dict)
    fetched_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def _extension(domain: str) -> str:
    return domain.rsplit(".", 1)[-1].lower() if "." in domain else ""


def _backlink_quality(backlinks: Optional[BacklinkHistory]) -> Optional[float]:
    if backlinks is None or not backlinks.average_quality_score:
        return None
    return backlinks.average_quality_score


def estimate_authority(domain: str, https_ok: bool, backlinks: Optional[BacklinkHistory]) -> int:
    """Authority estimate 0-100 from extension, HTTPS support and link quality."""
    score = 40 if _extension(domain) in _STRONG_EXTENSIONS else 30
    if https_ok:
        score += 10
    quality = _backlink_quality(backlinks)
    if quality is not None:
        score += min(19, int(quality // 5))
    return min(100, score)


def estimate_flow(domain: str, backlinks: Optional[BacklinkHistory]) -> Tuple[int, int]:
    """Return ``(trust_flow, citation_flow)`` estimates."""
    trust_flow, citation_flow = 15, 15
    quality = _backlink_quality(backlinks)
    if quality is not None:
        trust_flow = min(50, int(quality // 2))
        citation_flow = min(50, int(quality // 2) + 5)

    extension = _extension(domain)
    if extension in _TRUSTED_EXTENSIONS:
        trust_flow += 10
        citation_flow += 5
    elif extension in _COMMERCIAL_EXTENSIONS:
        trust_flow += 5
        citation_flow += 3

    return min(100, trust_flow), min(100, citation_flow)


def compute_spam_score(metrics: DomainMetrics) -> int:
    """Composite 0-100 spam risk from weak rating / authority / trust flow."""
    score = 0
    if metrics.domain_rating is not None:
        if metrics.domain_rating < 20:
            score += 30
        elif metrics.domain_rating < 40:
            score += 15

    if metrics.domain_authority is not None:
        if metrics.domain_authority < 20:
            score += 25
        elif metrics.domain_authority < 40:
            score += 12

    if metrics.trust_flow is not None:
        if metrics.trust_flow < 10:
            score += 20
        elif metrics.trust_flow < 20:
            score += 10

    if metrics.citation_flow is not None and metrics.trust_flow is not None:
        if metrics.citation_flow / (metrics.trust_flow or 1) > 3:
            score += 15

    return min(100, score)


def compute_quality_score(metrics: DomainMetrics) -> Optional[int]:
    """Mean of whichever sub-metrics are known; ``None`` if none are."""
    parts: List[float] = []
    if metrics.domain_rating is not None:
        # rating is on a 0-50 scale
        parts.append(min(100.0, metrics.domain_rating * 2))
    if metrics.domain_authority is not None:
        parts.append(metrics.domain_authority)
    if metrics.trust_flow is not None:
        parts.append(metrics.trust_flow)
    if not parts:
        return None
    return int(sum(parts) / len(parts) + 0.5)


class MetricsAggregator:
    """Collects :class:`DomainMetrics` for a domain."""

    def __init__(self, config: Optional[Settings] = None, http: Optional[httpx.Client] = None) -> None:
        self._settings = config or default_settings
        self._owns_http = http is None
        self._http = http or httpx.Client(
            headers={"User-Agent": self._settings.user_agent},
            timeout=self._settings.rank_lookup_timeout,
            follow_redirects=True,
        )

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def lookup_rank(self, domain: str) -> Tuple[Optional[float], Optional[int]]:
        """Return ``(rating, absolute_rank)`` or ``(None, None)`` on any failure."""
        headers = {"API-OPR": self._settings.opr_api_key} if self._settings.opr_api_key else {}
        try:
            response = self._http.get(
                self._settings.rank_lookup_url,
                params={"domains[]": domain},
                headers=headers,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Rank lookup failed for %s: %s", domain, exc)
            return None, None

        if not isinstance(data, dict) or data.get("status_code") != 200 or not data.get("response"):
            return None, None
        row = data["response"][0]
        decimal = row.get("page_rank_decimal")
        absolute = row.get("rank")
        try:
            # page_rank_decimal is 0-10; stored on a 0-50 scale
            rating = float(decimal) * 5 if decimal not in (None, "") else None
            rank = int(absolute) if absolute not in (None, "") else None
        except (TypeError, ValueError):
            return None, None
        return rating, rank

    def probe_https(self, domain: str) -> bool:
        if not self._settings.https_probe_enabled:
            return False
        try:
            response = self._http.head(
                f"https://{domain}", timeout=self._settings.https_probe_timeout
            )
        except httpx.HTTPError as exc:
            logger.debug("HTTPS probe failed for %s: %s", domain, exc)
            return False
        return response.is_success

    def get_metrics(self, domain: str, backlinks: Optional[BacklinkHistory] = None) -> DomainMetrics:
        metrics = DomainMetrics(domain=domain)

        rating, absolute = self.lookup_rank(domain)
        if rating is not None:
            metrics.domain_rating = rating
            metrics.rank_absolute = absolute
            metrics.sources["domain_rating"] = "OpenPageRank"

        metrics.domain_authority = estimate_authority(domain, self.probe_https(domain), backlinks)
        metrics.sources["domain_authority"] = "Estimated"

        metrics.trust_flow, metrics.citation_flow = estimate_flow(domain, backlinks)
        metrics.sources["trust_flow"] = "Estimated"

        metrics.spam_score = compute_spam_score(metrics)
        metrics.overall_quality_score = compute_quality_score(metrics)
        return metrics
