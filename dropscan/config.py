"""Centralised settings for Dropscan.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Archive endpoints
    # ------------------------------------------------------------------
    archive_cdx_url: str = field(
        default_factory=lambda: os.environ.get(
            "ARCHIVE_CDX_URL", "https://web.archive.org/cdx/search/cdx"
        )
    )
    archive_web_url: str = field(
        default_factory=lambda: os.environ.get(
            "ARCHIVE_WEB_URL", "https://web.archive.org/web"
        )
    )
    user_agent: str = field(
        default_factory=lambda: os.environ.get("ARCHIVE_USER_AGENT", "Dropscan/1.0")
    )

    # ------------------------------------------------------------------
    # Network behaviour
    # ------------------------------------------------------------------
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "120.0"))
    )
    index_max_retries: int = field(
        default_factory=lambda: int(os.environ.get("INDEX_MAX_RETRIES", "3"))
    )
    fetch_max_retries: int = field(
        default_factory=lambda: int(os.environ.get("FETCH_MAX_RETRIES", "1"))
    )
    backoff_base: float = field(
        default_factory=lambda: float(os.environ.get("BACKOFF_BASE", "2.0"))
    )
    capture_delay: float = field(
        default_factory=lambda: float(os.environ.get("CAPTURE_DELAY", "3.0"))
    )

    # ------------------------------------------------------------------
    # Orchestrator
    # ------------------------------------------------------------------
    spam_concurrency: int = field(
        default_factory=lambda: int(os.environ.get("SPAM_CONCURRENCY", "3"))
    )
    complete_concurrency: int = field(
        default_factory=lambda: int(os.environ.get("COMPLETE_CONCURRENCY", "2"))
    )
    max_snapshots: int = field(
        default_factory=lambda: int(os.environ.get("MAX_SNAPSHOTS", "10"))
    )
    session_idle_timeout: float = field(
        default_factory=lambda: float(os.environ.get("SESSION_IDLE_TIMEOUT", "300"))
    )

    # ------------------------------------------------------------------
    # Domain metrics
    # ------------------------------------------------------------------
    rank_lookup_url: str = field(
        default_factory=lambda: os.environ.get(
            "RANK_LOOKUP_URL", "https://openpagerank.com/api/v1.0/getPageRank"
        )
    )
    opr_api_key: str = field(default_factory=lambda: os.environ.get("OPR_API_KEY", ""))
    rank_lookup_timeout: float = field(
        default_factory=lambda: float(os.environ.get("RANK_LOOKUP_TIMEOUT", "10.0"))
    )
    https_probe_enabled: bool = field(
        default_factory=lambda: _env_bool("HTTPS_PROBE_ENABLED", "true")
    )
    https_probe_timeout: float = field(
        default_factory=lambda: float(os.environ.get("HTTPS_PROBE_TIMEOUT", "5.0"))
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO"))

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before retry number *attempt* (0-based)."""
        return (2 ** attempt) * self.backoff_base


# Module-level singleton — import this everywhere:
#   from dropscan.config import settings
settings = Settings()
