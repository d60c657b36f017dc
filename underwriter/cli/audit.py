"""Audit trail CLI commands."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from underwriter.core.listeners.audit import AuditRepository
from underwriter.db.database import get_db, init_db

console = Console()
app = typer.Typer()


@app.command("list")
def list_events(
    correlation_id: Optional[str] = typer.Option(
        None, "--correlation-id", "-c", help="Only events of one evaluation"
    ),
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum number of events"),
):
    """List recorded evaluation events."""
    init_db()
    with get_db() as db:
        events = AuditRepository(db).list_events(correlation_id=correlation_id, limit=limit)

        if not events:
            console.print(
                "[yellow]No audit events found.[/yellow] "
                "Set AUDIT_ENABLED=true to record evaluations."
            )
            return

        table = Table(title="Audit Events")
        table.add_column("Time", style="dim")
        table.add_column("Correlation ID", style="cyan")
        table.add_column("Event")
        table.add_column("Decision")
        table.add_column("Table")
        table.add_column("Rule", justify="right")
        table.add_column("Status")

        for event in events:
            table.add_row(
                event.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                event.correlation_id,
                event.event_type,
                event.decision or "",
                event.table_name or "",
                str(event.rule_id) if event.rule_id is not None else "",
                event.status or "",
            )

        console.print(table)
