"""Dropscan CLI — entry-point for archive lookups and domain analysis.

Usage:
    python cli/main.py --help

Commands:
    captures    list archived captures of a domain
    fetch       fetch one capture and show its extracted signals
    probe       list captures and fetch the first one
    spam        spam-only analysis of one or more domains
    analyze     complete risk analysis of one or more domains
    stop-words  print the built-in stop-word list
    serve       run the HTTP API
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from dropscan.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import json
import logging
from typing import List, Optional

import typer

from dropscan.analysis.stopwords import DEFAULT_STOP_WORDS
from dropscan.archive import ArchiveClient, Capture
from dropscan.config import settings
from dropscan.content import extract_signals
from dropscan.errors import ArchiveError
from dropscan.orchestrator import DomainOrchestrator, Session

from cli.rendering import render_complete_results, render_spam_results, render_status, render_table

app = typer.Typer(
    name="dropscan",
    help="Dropscan: expired-domain due diligence over archived captures.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )


# ---------------------------------------------------------------------------
# Archive commands
# ---------------------------------------------------------------------------
@app.command("captures")
def captures(
    domain: str = typer.Argument(..., help="Domain or URL to look up."),
    limit: int = typer.Option(settings.max_snapshots, help="Maximum captures to list."),
) -> None:
    """List archived captures of a domain."""
    with ArchiveClient() as client:
        try:
            rows = client.list_captures(domain, limit=limit)
        except ArchiveError as exc:
            typer.echo(f"[captures] {exc}", err=True)
            raise typer.Exit(1)

    if not rows:
        typer.echo(f"[captures] No captures found for {domain!r}.")
        return
    typer.echo(f"[captures] {len(rows)} captures for {domain!r}:")
    for capture in rows:
        typer.echo(f"  {capture.timestamp}  {capture.original_url}")


@app.command("fetch")
def fetch(
    timestamp: str = typer.Option(..., help="Capture timestamp (YYYYMMDDhhmmss)."),
    url: str = typer.Option(..., help="Original URL of the capture."),
    html: bool = typer.Option(False, "--html", help="Print the raw HTML instead of signals."),
) -> None:
    """Fetch one capture and show what the extractor sees."""
    with ArchiveClient() as client:
        try:
            page = client.fetch_page(Capture(timestamp=timestamp, original_url=url))
        except ArchiveError as exc:
            typer.echo(f"[fetch] {exc}", err=True)
            raise typer.Exit(1)

    if html:
        typer.echo(page.html)
        return

    signals = extract_signals(page.html)
    typer.echo(f"[fetch] Resolved : {page.resolved_url}")
    typer.echo(f"[fetch] Bytes    : {page.byte_length}")
    typer.echo(f"[fetch] Unwrapped: {'yes' if page.unwrapped else 'no (wrapper kept)'}")
    typer.echo(f"[fetch] Title    : {signals.title or '(none)'}")
    typer.echo(f"[fetch] Headings : {len(signals.headings)}")
    typer.echo(f"[fetch] Links    : {len(signals.links)}")
    typer.echo(f"[fetch] Words    : {len(signals.content_words)}")


@app.command("probe")
def probe(
    target: str = typer.Argument(..., help="Domain or URL to probe."),
    limit: int = typer.Option(5, help="Maximum captures to list."),
) -> None:
    """List captures for a target and fetch the first one."""
    with ArchiveClient() as client:
        try:
            result = client.probe(target, limit=limit)
        except ArchiveError as exc:
            typer.echo(f"[probe] {exc}", err=True)
            raise typer.Exit(1)

    typer.echo(f"[probe] Target   : {result.target}")
    typer.echo(f"[probe] Captures : {result.captures_found}")
    if result.first_timestamp:
        typer.echo(f"[probe] First    : {result.first_timestamp}  {result.first_original_url}")
        typer.echo(f"[probe] HTML     : {result.first_html_length} chars from {result.first_resolved_url}")


# ---------------------------------------------------------------------------
# Analysis commands
# ---------------------------------------------------------------------------
def _follow(session: Session, quiet: bool) -> None:
    for event in session.events():
        if event.kind == "status" and not quiet:
            typer.echo(render_status(event.payload))


def _emit_json(session: Session) -> None:
    typer.echo(json.dumps([r.to_dict() for r in session.results()], indent=2))


@app.command("spam")
def spam(
    domains: List[str] = typer.Argument(..., help="Domains to analyse."),
    stop_words: Optional[str] = typer.Option(
        None, "--stop-words", help="Extra stop words, comma or newline separated."
    ),
    max_snapshots: int = typer.Option(settings.max_snapshots, help="Captures per domain."),
    concurrency: int = typer.Option(settings.spam_concurrency, help="Domains analysed at once."),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON."),
) -> None:
    """Spam-only analysis of one or more domains."""
    orchestrator = DomainOrchestrator()
    try:
        session = orchestrator.start_spam_analysis(
            domains, stop_words=stop_words, max_snapshots=max_snapshots, max_concurrency=concurrency
        )
        _follow(session, quiet=as_json)
    finally:
        orchestrator.close()

    if as_json:
        _emit_json(session)
    else:
        typer.echo("")
        typer.echo(render_spam_results(session.results()))


@app.command("analyze")
def analyze(
    domains: List[str] = typer.Argument(..., help="Domains to analyse."),
    stop_words: Optional[str] = typer.Option(
        None, "--stop-words", help="Extra stop words, comma or newline separated."
    ),
    max_snapshots: int = typer.Option(settings.max_snapshots, help="Captures per domain."),
    concurrency: int = typer.Option(settings.complete_concurrency, help="Domains analysed at once."),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON."),
) -> None:
    """Complete risk analysis: spam, backlinks, topics, metrics and a recommendation."""
    orchestrator = DomainOrchestrator()
    try:
        session = orchestrator.start_complete_analysis(
            domains, stop_words=stop_words, max_snapshots=max_snapshots, max_concurrency=concurrency
        )
        _follow(session, quiet=as_json)
    finally:
        orchestrator.close()

    if as_json:
        _emit_json(session)
    else:
        typer.echo("")
        typer.echo(render_complete_results(session.results()))


@app.command("stop-words")
def stop_words_cmd() -> None:
    """Print the built-in stop-word list."""
    typer.echo(render_table(["#", "STOP WORD"], [[i + 1, w] for i, w in enumerate(DEFAULT_STOP_WORDS)]))


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(8000, help="Bind port."),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("dropscan.api.app:app", host=host, port=port)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
