"""Utilities for rendering analysis progress and results in the CLI."""

from __future__ import annotations

from typing import List, Sequence

from dropscan.orchestrator.models import AnalysisResult, DomainStatus


def _cell(value: object) -> str:
    return "-" if value is None else str(value)


def render_status(status: DomainStatus) -> str:
    """One progress line for a status event."""
    return f"  [{status.status.value:<19}] {status.domain}: {status.last_message}"


def render_table(headers: Sequence[str], rows: Sequence[Sequence[object]]) -> str:
    """Render rows as a left-aligned plain-text table."""
    cells = [[_cell(v) for v in row] for row in rows]
    widths = [len(h) for h in headers]
    for row in cells:
        for i, value in enumerate(row):
            widths[i] = max(widths[i], len(value))

    def _line(values: Sequence[str]) -> str:
        return "  ".join(v.ljust(widths[i]) for i, v in enumerate(values)).rstrip()

    lines = [_line(headers), _line(["-" * w for w in widths])]
    lines.extend(_line(row) for row in cells)
    return "\n".join(lines)


def render_spam_results(results: List[AnalysisResult]) -> str:
    rows = []
    for r in results:
        spam = r.spam
        rows.append(
            [
                r.domain,
                r.status.value,
                f"{r.snapshots_analyzed}/{r.snapshots_found}",
                r.failed_snapshots,
                spam.max_spam_score if spam else None,
                spam.avg_spam_score if spam else None,
                ", ".join(f"{f.word}({f.count})" for f in spam.stop_words_found[:5]) if spam else None,
            ]
        )
    return render_table(
        ["DOMAIN", "STATUS", "ANALYZED", "FAILED", "MAX", "AVG", "STOP WORDS"], rows
    )


def render_complete_results(results: List[AnalysisResult]) -> str:
    rows = []
    for r in results:
        risk = r.risk
        rows.append(
            [
                r.domain,
                r.status.value,
                f"{r.snapshots_analyzed}/{r.snapshots_found}",
                risk.overall_risk_score if risk else None,
                risk.risk_level if risk else None,
                risk.recommendation if risk else None,
                risk.reason if risk else r.last_message,
            ]
        )
    return render_table(
        ["DOMAIN", "STATUS", "ANALYZED", "RISK", "LEVEL", "RECOMMENDATION", "REASON"], rows
    )
