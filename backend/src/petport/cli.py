"""Command-line interface for PetPort scheduled jobs."""

import asyncio
from datetime import date, datetime
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from petport.logging_config import configure_logging, get_logger
from petport.storage.db import db

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="petport",
    help="PetPort - scheduled jobs and maintenance",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


def print_summary(title: str, summary: dict[str, Any]) -> None:
    """Print a job summary; list values are shown as counts plus an error table."""
    table = Table(title=title)
    table.add_column("Key", style="cyan")
    table.add_column("Value", justify="right")

    for key, value in summary.items():
        if isinstance(value, list):
            table.add_row(key, str(len(value)))
        else:
            table.add_row(key, str(value))

    console.print(table)

    details = summary.get("error_details") or []
    if details:
        errors = Table(title="Errors")
        errors.add_column("Item", style="yellow")
        errors.add_column("Error", style="red")
        for item in details:
            subject = item.get("referral_id") or item.get("user_id") or ""
            errors.add_row(str(subject), item.get("error", ""))
        console.print(errors)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


NowOption = Annotated[
    Optional[str],
    typer.Option("--now", help="Evaluate as of this ISO timestamp (default: current time)"),
]


@app.command("init-db")
def init_database() -> None:
    """Create all tables (development; production uses alembic)."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    db.create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "0.0.0.0",
    port: Annotated[int, typer.Option("--port", "-p", envvar="PORT", help="Bind port")] = 8000,
) -> None:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run("petport.api.main:app", host=host, port=port)


@app.command("approve-referrals")
def approve_referrals(now: NowOption = None) -> None:
    """Approve pending referral commissions past the tenure window."""
    from petport.referral.service import referral_service

    summary = referral_service.approve_pending(now=_parse_datetime(now))
    print_summary("Referral approval", summary)


@app.command("process-payouts")
def process_payouts() -> None:
    """Transfer approved commissions to referrers' Connect accounts."""
    from petport.referral.payouts import payout_service

    summary = payout_service.process_payouts()
    print_summary("Referral payouts", summary)
    if summary["errors"]:
        raise typer.Exit(1)


@app.command("send-scheduled-gifts")
def send_scheduled_gifts(
    on: Annotated[Optional[str], typer.Option("--date", help="Send date (YYYY-MM-DD, default: today)")] = None,
) -> None:
    """Deliver gifts scheduled for the given date."""
    from petport.gifts.service import gift_service

    today = date.fromisoformat(on) if on else None
    summary = asyncio.run(gift_service.send_scheduled_gifts(today=today))
    print_summary("Scheduled gifts", summary)


@app.command("gift-reminders")
def gift_reminders(now: NowOption = None) -> None:
    """Send gift renewal reminders and expire lapsed gifts."""
    from petport.gifts.service import gift_service

    summary = asyncio.run(gift_service.send_renewal_reminders(now=_parse_datetime(now)))
    print_summary("Gift reminders", summary)


@app.command("grace-reminders")
def grace_reminders(now: NowOption = None) -> None:
    """Remind subscribers whose grace period ends soon."""
    from petport.subscriptions.service import subscription_service

    summary = asyncio.run(subscription_service.send_grace_reminders(now=_parse_datetime(now)))
    print_summary("Grace period reminders", summary)


@app.command("suspend-expired-grace")
def suspend_expired_grace(now: NowOption = None) -> None:
    """Suspend subscribers whose grace period has ended."""
    from petport.subscriptions.service import subscription_service

    summary = subscription_service.suspend_expired_grace(now=_parse_datetime(now))
    print_summary("Grace period suspensions", summary)


@app.command("recover-gift")
def recover_gift(
    session_id: Annotated[str, typer.Argument(help="Stripe checkout session ID")],
) -> None:
    """Rebuild a gift membership from a paid checkout session."""
    from petport.errors import PetPortError
    from petport.gifts.service import gift_service

    try:
        result = asyncio.run(gift_service.recover_gift(session_id))
    except PetPortError as e:
        console.print(f"[bold red]✗[/bold red] Recovery failed: {e.message}")
        raise typer.Exit(1)

    if result.get("already_exists"):
        console.print(f"[yellow]Gift already recorded:[/yellow] {result['gift_code']}")
    else:
        console.print(f"[bold green]✓[/bold green] Gift recovered: [bold]{result['gift_code']}[/bold]")
    if result.get("scheduled"):
        console.print(f"  Scheduled for: {result['scheduled_send_date']}")


@app.command("cleanup-webhook-events")
def cleanup_webhook_events(
    days: Annotated[int, typer.Option("--days", help="Keep events newer than this many days")] = 30,
) -> None:
    """Delete processed webhook event records older than the retention window."""
    from petport.api.v1.webhooks import cleanup_old_events

    deleted = cleanup_old_events(days=days)
    console.print(f"[bold green]✓[/bold green] Deleted {deleted} webhook event record(s)")


if __name__ == "__main__":
    app()
