# pricewatch/cli/runner.py

"""Headless CLI commands built on the async scan orchestrator."""

import json
import logging
import sqlite3
import sys
from typing import Any

from rich.console import Console
from rich.table import Table

from pricewatch.errors import PipelineError, ValidationError
from pricewatch.models.report import Report
from pricewatch.services.scan_orchestrator import ScanOrchestrator, ScanResult
from pricewatch.storage.database import connect
from pricewatch.storage.report_store import CompetitorRegistry, ReportStore
from pricewatch.storage.snapshot_store import SqliteSnapshotStore

logger = logging.getLogger("pricewatch.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID = 2

_IMPACT_STYLES: dict[str, str] = {
    "Low": "green",
    "High": "yellow",
    "Critical": "bold red",
}


def _dump_json(payload: Any) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def build_orchestrator(conn: sqlite3.Connection) -> ScanOrchestrator:
    """Wire the orchestrator to SQLite stores sharing *conn*."""
    return ScanOrchestrator(
        competitors=CompetitorRegistry(conn=conn),
        snapshot_store=SqliteSnapshotStore(conn=conn),
        report_sink=ReportStore(conn=conn),
    )


def run_track(user_id: str, name: str, url: str) -> int:
    """Set the competitor tracked by *user_id*."""
    conn = connect()
    try:
        competitor = CompetitorRegistry(conn=conn).set_competitor(
            user_id, name, url,
        )
    except ValidationError as exc:
        _err.print(f"[red]{exc}[/red]")
        return EXIT_INVALID
    finally:
        conn.close()
    _err.print(
        f"[green]✓ Tracking {competitor.name}[/green] "
        f"[dim]{competitor.url}[/dim]"
    )
    return EXIT_OK


def _print_scan(result: ScanResult) -> None:
    """Render a scan result as Rich tables to stdout."""
    console = Console()
    meta = result.scan_meta

    summary = Table(title="Scan Result", title_style="bold cyan", show_header=False)
    summary.add_column("Field", style="bold")
    summary.add_column("Value")
    impact_style = _IMPACT_STYLES.get(result.impact, "")
    summary.add_row("Classification", result.classification)
    summary.add_row("Impact", f"[{impact_style}]{result.impact}[/{impact_style}]")
    summary.add_row("Confidence", f"{result.confidence}%")
    summary.add_row("Insight", result.insight)
    summary.add_row("Data source", meta.data_source)
    summary.add_row("Pricing page", meta.pricing_page_url or "—")
    summary.add_row("Duration", f"{meta.duration_ms}ms")
    console.print(summary)

    if result.delta is None:
        return

    changes = Table(title="Changes", show_lines=True, title_style="bold cyan")
    changes.add_column("Tier", style="bold")
    changes.add_column("Change", style="magenta")
    changes.add_column("Old", justify="right")
    changes.add_column("New", justify="right", style="green")
    changes.add_column("%", justify="right")
    for change in result.delta.changes:
        row = change.to_dict()
        old = row.get("old_price")
        new = row.get("current_price")
        pct = row.get("percent_change")
        changes.add_row(
            change.tier,
            change.type,
            f"${old:,.2f}" if old is not None else "—",
            f"${new:,.2f}" if new is not None else "—",
            f"{pct:.2f}" if pct is not None else "—",
        )
    console.print(changes)


async def cli_scan(user_id: str, output_format: str) -> int:
    """Run one scan and return an exit code (0=ok, 1=fail, 2=invalid)."""
    conn = connect()
    orchestrator = build_orchestrator(conn)
    _err.print(f"[bold]Scanning competitor for[/bold] {user_id}")
    try:
        result = await orchestrator.run_scan(user_id)
    except ValidationError as exc:
        _err.print(f"[red]{exc}[/red]")
        _err.print("[dim]Set one with: main.py track NAME URL[/dim]")
        return EXIT_INVALID
    except PipelineError as exc:
        _err.print(f"[red]Scan failed: {exc}[/red]")
        return EXIT_FAILURE
    finally:
        conn.close()

    meta = result.scan_meta
    if meta.data_source == "synthetic":
        _err.print("[yellow]⚠ Every source failed; showing synthetic demo data[/yellow]")
    _err.print(
        f"[green]✓ {meta.tiers_found} tiers via {meta.data_source}"
        f" in {meta.duration_ms}ms[/green]"
    )

    if output_format == "table":
        _print_scan(result)
    else:
        _dump_json(result.to_dict())
    return EXIT_OK


def _print_reports(reports: list[Report]) -> None:
    table = Table(title="Scan History", show_lines=True, title_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Scanned", style="dim")
    table.add_column("Classification", style="bold")
    table.add_column("Changes", justify="right")
    table.add_column("Insight", max_width=60)
    for idx, report in enumerate(reports, 1):
        table.add_row(
            str(idx),
            report.last_scan_time,
            report.classification,
            str(len(report.delta.changes)),
            report.insight,
        )
    Console().print(table)


def run_report(user_id: str, output_format: str, limit: int) -> int:
    """Print the stored scan history for *user_id*, newest first."""
    conn = connect()
    try:
        reports = ReportStore(conn=conn).list_reports(user_id, limit=limit)
    finally:
        conn.close()

    if not reports:
        _err.print("[yellow]No reports yet. Run a scan first.[/yellow]")
        return EXIT_FAILURE

    if output_format == "table":
        _print_reports(reports)
    else:
        _dump_json([r.to_dict() for r in reports])
    return EXIT_OK


async def run_health_check(user_id: str, url: str | None = None) -> int:
    """Probe every fetch strategy against the tracked (or given) URL."""
    from pricewatch.services.health_checker import HealthChecker

    if url is None:
        conn = connect()
        try:
            competitor = CompetitorRegistry(conn=conn).get_for_user(user_id)
        finally:
            conn.close()
        if competitor is None:
            _err.print("[red]No competitor configured; pass --url[/red]")
            return EXIT_INVALID
        url = competitor.url

    _err.print(f"[bold]Running fetch health check against[/bold] {url}")
    checker = HealthChecker()
    results = await checker.check_all(url)

    table = Table(
        title="Fetch Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Strategy", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    any_ok = False
    for r in results:
        if r.status == "ok":
            status = "[green]✅ OK[/green]"
            any_ok = any_ok or r.fetch_probe
        elif r.status == "slow":
            status = "[yellow]⚠️  SLOW[/yellow]"
            any_ok = any_ok or r.fetch_probe
        elif r.status == "skipped":
            status = "[dim]– SKIPPED[/dim]"
        else:
            status = "[red]❌ DOWN[/red]"

        latency = (
            f"{r.latency_ms:.0f}ms"
            if r.latency_ms > 0
            else "—"
        )
        table.add_row(r.name, status, latency, r.message)

    Console().print(table)
    return EXIT_OK if any_ok else EXIT_FAILURE
