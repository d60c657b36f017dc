"""Evaluation CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from underwriter.cli.decisions import open_model
from underwriter.config import get_settings
from underwriter.core.decisions.models import DecisionStatus, EvaluationResult
from underwriter.core.listeners import RuleStatistics, RuleStatisticsListener
from underwriter.core.service import DecisionService, build_listeners

console = Console()
app = typer.Typer()

STATUS_STYLES = {
    DecisionStatus.SUCCEEDED: "green",
    DecisionStatus.FAILED: "red",
    DecisionStatus.SKIPPED: "yellow",
}


def _format(value: Any) -> str:
    if isinstance(value, dict):
        return ", ".join(f"{k}={v}" for k, v in value.items())
    return "-" if value is None else str(value)


def print_result(result: EvaluationResult) -> None:
    """Render an evaluation result as a Rich table."""
    table = Table(title=f"Evaluation {result.correlation_id}")
    table.add_column("Decision", style="cyan")
    table.add_column("Status")
    table.add_column("Result")

    for outcome in result.outcomes:
        style = STATUS_STYLES[outcome.status]
        detail = _format(outcome.result) if outcome.error is None else outcome.error.message
        table.add_row(outcome.decision, f"[{style}]{outcome.status.value}[/{style}]", detail)

    console.print(table)
    if result.errors:
        console.print(f"[red]{len(result.errors)} error(s):[/red]")
        for error in result.errors:
            console.print(f"  [bold]{error.decision}[/bold] {error.kind.value}: {error.message}")


@app.command("run")
def run(
    input_file: Path = typer.Argument(..., help="JSON file with Driver/Vehicle input groups"),
    decision: Optional[str] = typer.Option(None, "--decision", "-d", help="Evaluate one decision only"),
    model_path: Optional[str] = typer.Option(None, "--model", "-m", help="Decision model YAML file"),
    stats: bool = typer.Option(False, "--stats", help="Print rule execution statistics"),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON"),
):
    """Evaluate an input file against the decision model."""
    if not input_file.exists():
        console.print(f"[red]Error:[/red] File not found: {input_file}")
        raise typer.Exit(1)
    try:
        payload = json.loads(input_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] Invalid JSON in {input_file}: {e}")
        raise typer.Exit(1)
    if not isinstance(payload, dict):
        console.print("[red]Error:[/red] Input must be a JSON object of input groups")
        raise typer.Exit(1)

    model = open_model(model_path)
    settings = get_settings()
    service = DecisionService(
        model,
        listeners=build_listeners(
            log_evaluations=settings.log_evaluations,
            audit_enabled=settings.audit_enabled,
        ),
    )
    if decision is not None and not service.has_decision(decision):
        console.print(f"[red]Error:[/red] Decision '{decision}' not found")
        raise typer.Exit(1)

    statistics = RuleStatistics()
    extra = [RuleStatisticsListener(statistics)] if stats else []
    result = service.evaluate(payload, decision=decision, listeners=extra)

    if as_json:
        console.print_json(result.model_dump_json())
    else:
        print_result(result)
    if stats:
        console.print(statistics.summary())

    if not result.succeeded:
        raise typer.Exit(1)
