"""Decision model CLI commands."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from underwriter.config import get_settings
from underwriter.core.decisions.errors import ModelDefinitionError
from underwriter.core.decisions.graph import DecisionModel
from underwriter.core.decisions.loader import load_model

console = Console()
app = typer.Typer()


def open_model(path: Optional[str]) -> DecisionModel:
    """Load the model at ``path`` or the configured one, exiting on errors."""
    model_path = path or get_settings().model_path
    try:
        return load_model(model_path)
    except (FileNotFoundError, ModelDefinitionError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command("list")
def list_decisions(
    model_path: Optional[str] = typer.Option(None, "--model", "-m", help="Decision model YAML file"),
):
    """List decisions in evaluation order."""
    model = open_model(model_path)

    table = Table(title=f"{model.name} decisions")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Decision", style="cyan")
    table.add_column("Kind")
    table.add_column("Requires")
    table.add_column("Tables", justify="right")

    for index, name in enumerate(model.graph.order, start=1):
        node = model.graph.get(name)
        table.add_row(
            str(index),
            node.name,
            node.kind.value,
            ", ".join(node.requires) or "[dim]-[/dim]",
            str(len(node.tables())),
        )

    console.print(table)
    console.print("\n[bold]Inputs:[/bold]")
    for key, field_type in model.inputs.items():
        console.print(f"  {key}: [green]{field_type.describe()}[/green]")


@app.command("show")
def show_decision(
    name: str = typer.Argument(..., help="Decision name"),
    model_path: Optional[str] = typer.Option(None, "--model", "-m", help="Decision model YAML file"),
):
    """Show the rule tables of one decision."""
    model = open_model(model_path)
    node = model.graph.get(name)
    if node is None:
        console.print(f"[red]Error:[/red] Decision '{name}' not found")
        console.print(f"Available: {', '.join(model.decision_names)}")
        raise typer.Exit(1)

    console.print(f"[bold cyan]{node.name}[/bold cyan] ({node.kind.value})")
    if node.requires:
        console.print(f"  Requires: {', '.join(node.requires)}")

    for decision_table in node.tables():
        table = Table(title=f"{decision_table.name} ({decision_table.hit_policy.value})")
        table.add_column("Rule", justify="right", style="dim")
        for col in decision_table.inputs:
            table.add_column(col.name)
        for col in decision_table.outputs:
            table.add_column(col.name, style="green")
        table.add_column("Annotation", style="dim")

        for rule in decision_table.rules:
            table.add_row(
                str(rule.rule_id),
                *[cond.describe() for cond in rule.conditions],
                *[str(value.to_python()) for value in rule.outputs],
                rule.annotation or "",
            )
        console.print(table)
