"""Main CLI entry point using Typer."""

import logging

import typer
from rich.console import Console

from underwriter.config import PRODUCT_NAME, PRODUCT_TAGLINE, PRODUCT_VERSION, get_settings

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Reduce noise from third-party libraries
logging.getLogger("sqlalchemy").setLevel(logging.WARNING)

console = Console()
app = typer.Typer(
    name="underwriter",
    help=f"{PRODUCT_NAME}: {PRODUCT_TAGLINE}",
    add_completion=False,
)


# Import and add subcommands
from underwriter.cli.decisions import app as decisions_app
from underwriter.cli.evaluate import app as evaluate_app
from underwriter.cli.audit import app as audit_app

app.add_typer(decisions_app, name="decisions", help="Inspect the decision model")
app.add_typer(evaluate_app, name="evaluate", help="Evaluate applicants against the model")
app.add_typer(audit_app, name="audit", help="Browse the evaluation audit trail")


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold #4F46E5]{PRODUCT_NAME}[/]")
    console.print(f"[bold]Version:[/] {PRODUCT_VERSION}")
    console.print(f"[bold]Tagline:[/] {PRODUCT_TAGLINE}")


if __name__ == "__main__":
    app()
