"""Validate a student roster file before running a coaching cycle."""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

from apps.coach.roster import load_roster
from edcoach.core.validation import ValidationFailure

app = typer.Typer(help="Check a roster JSON file for malformed student records.")
console = Console()


@app.command()
def validate(
    roster_path: Path = typer.Argument(..., exists=True, dir_okay=False),
) -> None:
    try:
        roster = load_roster(roster_path)
    except ValidationFailure as exc:
        console.print(f"[bold red]Unable to read roster:[/bold red] {exc}")
        raise typer.Exit(code=1)

    table = Table(title="Roster Validation", show_header=True)
    table.add_column("Severity", justify="center")
    table.add_column("Message")
    for issue in roster.errors:
        table.add_row("error", issue, style="bold red")
    console.print(table)
    console.print(f"{len(roster.students)} of {roster.total_count} record(s) valid")

    if roster.errors:
        raise typer.Exit(code=1)

    console.print("[green]Roster looks good![/green]")


if __name__ == "__main__":
    app()
