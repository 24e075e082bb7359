"""lemrecon CLI.

Commands:
- init: Initialize database schema
- kp: Parse/format a chainage value
- coverage: Check a segment against recorded coverage
- compare: Claimed vs observed comparison for a field log
- flag-all: Open disputes for every disputable row of a field log
- alerts: Duplicate-charge alerts across field logs
- disputes report: Print the dispute report
- disputes send: Send open disputes to the contractor
- ready: Mark field logs ready for billing
- finalize: Invoice a batch of field logs
- resume: Complete an interrupted finalize
- archive: List invoiced field logs
- web serve: Run the HTTP API
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime

import typer
from rich.console import Console
from rich.table import Table

from lemrecon.billing import BillingService, archived_entries
from lemrecon.chainage import analyze, format_kp, parse_kp
from lemrecon.config import get_config
from lemrecon.core.logging import bind_actor, configure_logging
from lemrecon.db.connection import close_db, get_engine, get_session_factory
from lemrecon.db.models import Base
from lemrecon.db.store import SQLRecordStore
from lemrecon.disputes import DisputeService, render_dispute_report
from lemrecon.exceptions import LemReconError, PartialFinalizeError
from lemrecon.models import ComparisonStatus, DisputeStatus, Segment
from lemrecon.notifications import build_notifier
from lemrecon.reconciliation import RateBook, ReconciliationService
from lemrecon.reports import ReportService

app = typer.Typer(
    name="lemrecon",
    help="lemrecon - chainage coverage and field log reconciliation",
    no_args_is_help=True,
)
disputes_cli = typer.Typer(help="Dispute tooling")
app.add_typer(disputes_cli, name="disputes")

web_cli = typer.Typer(help="HTTP API")
app.add_typer(web_cli, name="web")

console = Console()

_state = {"actor": "admin"}

STATUS_STYLES = {
    ComparisonStatus.MATCH: "green",
    ComparisonStatus.OVER: "red",
    ComparisonStatus.NOT_FOUND: "yellow",
    ComparisonStatus.NOT_BILLED: "dim",
}


def _store() -> SQLRecordStore:
    return SQLRecordStore(get_session_factory())


def _reconciliation(store: SQLRecordStore) -> ReconciliationService:
    config = get_config()
    rate_book = RateBook(
        store,
        ttl_seconds=config.cache.rate_ttl_seconds,
        default_labour=config.reconciliation.default_labour_rate,
        default_equipment=config.reconciliation.default_equipment_rate,
    )
    return ReconciliationService(
        store,
        rate_book,
        config.org_id,
        tolerance=config.reconciliation.hours_match_tolerance,
        max_daily_hours=config.reconciliation.max_daily_hours,
    )


def _run(coro):
    """Run a command coroutine, report lemrecon errors, always dispose the engine."""

    async def _wrapped():
        try:
            return await coro
        finally:
            await close_db()

    try:
        return asyncio.run(_wrapped())
    except PartialFinalizeError as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        console.print(f"  Resume with: lemrecon resume {e.invoice_id}")
        raise typer.Exit(2) from None
    except LemReconError as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(1) from None


@app.callback()
def main(actor: str = typer.Option("admin", "--actor", envvar="LEMRECON_ACTOR", help="Operator name")):
    configure_logging()
    bind_actor(actor)
    _state["actor"] = actor


def _actor() -> str:
    return _state["actor"]


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        engine = get_engine()
        async with engine.begin() as conn:
            if drop:
                console.print("[yellow]Dropping existing tables...[/yellow]")
                await conn.run_sync(Base.metadata.drop_all)
            console.print("[green]Creating tables...[/green]")
            await conn.run_sync(Base.metadata.create_all)

    _run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def kp(text: str = typer.Argument(..., help='Chainage, e.g. "5+250" or "12"')):
    """Parse a chainage value and show its canonical form."""
    metres = parse_kp(text)
    if metres is None:
        console.print(f"[red]✗[/red] Unreadable chainage: {text!r}")
        raise typer.Exit(1)
    console.print(f"{text} -> {metres} m ({format_kp(metres)})")


@app.command()
def coverage(
    activity: str = typer.Argument(..., help="Activity type, e.g. Grading"),
    start: str = typer.Argument(..., help="Start chainage"),
    end: str = typer.Argument(..., help="End chainage"),
    on: str = typer.Option(None, "--date", help="Report date (YYYY-MM-DD), default today"),
):
    """Check a segment for overlaps and gaps against recorded coverage."""
    start_m, end_m = parse_kp(start), parse_kp(end)
    if start_m is None or end_m is None:
        console.print(f"[red]✗[/red] Unreadable chainage: {start!r}-{end!r}")
        raise typer.Exit(1)
    report_date = datetime.strptime(on, "%Y-%m-%d").date() if on else date.today()
    candidate = Segment(
        activity_type=activity,
        start_m=start_m,
        end_m=end_m,
        date=report_date,
        start_label=start,
        end_label=end,
    )

    async def _check():
        service = ReportService(_store(), _actor(), get_config().coverage.tolerance_m)
        history = [s for s in await service.history(activity) if s.date != report_date]
        return analyze(candidate, history, service.tolerance_m)

    status = _run(_check())
    for overlap in status.overlaps:
        src = overlap.range
        console.print(
            f"[red]overlap[/red] {overlap.metres} m ({format_kp(overlap.start_m)}-"
            f"{format_kp(overlap.end_m)}) with report from {src.source_date}: "
            f"{src.source_start_label}-{src.source_end_label}"
        )
    for gap in status.gaps:
        console.print(
            f"[yellow]gap[/yellow] {gap.metres} m ({format_kp(gap.start_m)}-{format_kp(gap.end_m)})"
        )
    if not status.has_overlap and not status.has_gap:
        console.print("[green]✓[/green] No overlaps or gaps")
    if status.suggested_start_label:
        console.print(f"Suggested next start: {status.suggested_start_label}", style="dim")


@app.command()
def compare(field_log_id: str = typer.Argument(..., help="Field log record id")):
    """Show claimed vs observed hours for a field log."""

    async def _compare():
        return await _reconciliation(_store()).compare(field_log_id)

    comparison = _run(_compare())
    for title, rows in (("Labour", comparison.labour), ("Equipment", comparison.equipment)):
        table = Table(title=f"{title} - {comparison.field_log.field_log_id}")
        table.add_column("Item", style="cyan")
        table.add_column("Claimed", justify="right")
        table.add_column("Observed", justify="right")
        table.add_column("Variance", justify="right")
        table.add_column("Cost", justify="right")
        table.add_column("Status")
        for row in rows:
            style = STATUS_STYLES[row.status]
            table.add_row(
                row.key,
                f"{row.claimed_hours:g}",
                f"{row.observed_hours:g}",
                f"{row.variance:+g}",
                f"${row.variance_cost}",
                f"[{style}]{row.status.value}[/{style}]",
            )
        console.print(table)
    console.print(
        f"Over-claimed: {comparison.over_claimed_hours:g} hrs, "
        f"exposure ${comparison.cost_exposure}"
    )


@app.command(name="flag-all")
def flag_all(
    field_log_id: str = typer.Argument(..., help="Field log record id"),
    notes: str = typer.Option(None, "--notes"),
):
    """Open a dispute for every over-claimed or unobserved item."""

    async def _flag():
        store = _store()
        comparison = await _reconciliation(store).compare(field_log_id)
        return await DisputeService(store, _actor()).flag_all(comparison, notes=notes)

    created = _run(_flag())
    for d in created:
        console.print(f"  [yellow]⚑[/yellow] {d.item_name}: +{d.variance_hours} hrs (${d.variance_cost})")
    console.print(f"[bold green]✓[/bold green] {len(created)} disputes opened")


@app.command()
def alerts():
    """Duplicate-charge alerts across all field logs."""

    async def _alerts():
        return await _reconciliation(_store()).charge_alerts()

    found = _run(_alerts())
    if not found:
        console.print("[green]✓[/green] No duplicate charges")
        return
    table = Table(title="Duplicate charge alerts")
    table.add_column("Date")
    table.add_column("Severity")
    table.add_column("Type", style="cyan")
    table.add_column("Subject")
    table.add_column("Details")
    for alert in found:
        color = "red" if alert.severity == "high" else "yellow"
        table.add_row(
            alert.date.isoformat(),
            f"[{color}]{alert.severity}[/{color}]",
            alert.alert_type,
            alert.subject,
            alert.details,
        )
    console.print(table)


@disputes_cli.command("report")
def disputes_report(status: str = typer.Option(None, "--status")):
    """Print the dispute report."""

    async def _report():
        return await DisputeService(_store(), _actor()).list_disputes()

    disputes = _run(_report())
    console.print(
        render_dispute_report(
            disputes,
            status_filter=DisputeStatus(status) if status else None,
            project_name=get_config().notifications.project_name,
        ),
        markup=False,
    )


@disputes_cli.command("send")
def disputes_send(
    recipient: str = typer.Option(None, "--to", help="Contractor email"),
    dispute_id: str = typer.Option(None, "--id", help="Send a single dispute"),
):
    """Send open disputes to the contractor."""

    async def _send():
        notifier = build_notifier(get_config().notifications)
        service = DisputeService(_store(), _actor(), notifier=notifier)
        return await service.send_to_contractor(dispute_id, recipient=recipient)

    result = _run(_send())
    delivered = "[green]delivered[/green]" if result.delivered else "[yellow]not delivered[/yellow]"
    console.print(f"[bold]{result.count}[/bold] disputes marked sent ({delivered})")


@app.command()
def ready(ids: list[str] = typer.Argument(..., help="Field log record ids")):
    """Mark field logs ready for billing."""

    async def _ready():
        return await BillingService(_store(), _actor()).mark_ready_for_billing(ids)

    entries = _run(_ready())
    console.print(f"[bold green]✓[/bold green] {len(entries)} field logs ready for billing")


@app.command()
def finalize(
    ids: list[str] = typer.Argument(..., help="Field log record ids"),
    invoice: str = typer.Option(..., "--invoice", help="Invoice number"),
    notes: str = typer.Option(None, "--notes"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Invoice a batch of field logs after confirming the grand total."""
    total = _run(BillingService(_store(), _actor()).confirmation_total(ids))
    console.print(f"[bold]{len(ids)}[/bold] field logs, grand total [bold]${total}[/bold]")
    if not yes and not typer.confirm(f"Finalize as Invoice #{invoice}?"):
        raise typer.Exit(1)

    service = BillingService(_store(), _actor())
    result = _run(service.finalize_batch(ids, invoice, notes=notes, expected_total=total))
    console.print(
        f"[bold green]✓[/bold green] Invoice #{result.invoice_number} finalized: "
        f"${result.total_amount}"
    )


@app.command()
def resume(invoice_id: str = typer.Argument(..., help="Pending invoice id")):
    """Complete an interrupted finalize."""
    result = _run(BillingService(_store(), _actor()).resume_finalize(invoice_id))
    console.print(f"[bold green]✓[/bold green] Invoice #{result.invoice_number} {result.status.value}")


@app.command()
def archive(
    invoice: str = typer.Option(None, "--invoice", help="Invoice number contains"),
    third_party: bool = typer.Option(None, "--third-party/--own", help="Third-party filter"),
):
    """List invoiced field logs."""
    entries = _run(archived_entries(_store(), invoice_search=invoice, third_party=third_party))
    table = Table(title="Archived field logs")
    table.add_column("Field log", style="cyan")
    table.add_column("Date")
    table.add_column("Invoice")
    table.add_column("Total", justify="right", style="green")
    for e in entries:
        table.add_row(e.field_log_id, e.date.isoformat(), e.invoice_number or "", f"${e.total_cost}")
    console.print(table)


@web_cli.command("serve")
def web_serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload"),
):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("lemrecon.web.app:app", host=host, port=port, reload=reload, workers=1)


if __name__ == "__main__":
    app()
