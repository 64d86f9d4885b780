"""CLI helpers for inspecting the coaching run history."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List

import typer
from rich.console import Console
from rich.table import Table

from apps.coach.history import SQLiteHistoryStore

ENV_REPO_ROOT = "EDCOACH_REPO_ROOT"
STORE_ENV_VAR = "EDCOACH_HISTORY_DB"


def _resolve_repo_root() -> Path:
    override = os.environ.get(ENV_REPO_ROOT)
    if override:
        return Path(override).expanduser().resolve()
    return Path(__file__).resolve().parents[1]


def _resolve_default_store(repo_root: Path | None = None) -> Path:
    env_store = os.environ.get(STORE_ENV_VAR)
    if env_store:
        return Path(env_store).expanduser().resolve()
    base_root = repo_root or _resolve_repo_root()
    return (base_root / "outputs" / "history.sqlite").resolve()


REPO_ROOT = _resolve_repo_root()
DEFAULT_STORE = _resolve_default_store(REPO_ROOT)

app = typer.Typer(help="Inspect runs and per-student outcomes recorded by edcoach-run.")
console = Console()


def _resolve_store(path: Path | None) -> SQLiteHistoryStore:
    resolved = path.expanduser().resolve() if path is not None else _resolve_default_store()
    if not resolved.exists():
        raise typer.BadParameter(f"History store not found at {resolved}")
    return SQLiteHistoryStore(resolved)


def _fallback_label(value: Any) -> str:
    return "fallback" if value else "model"


def _print_table(headers: list[str], rows: List[dict], keys: list[str]) -> None:
    table = Table(*headers)
    for row in rows:
        table.add_row(*["" if row.get(key) is None else str(row.get(key)) for key in keys])
    console.print(table)


def _store_option() -> Any:
    return typer.Option(
        None,
        "--store",
        show_default=False,
        help=f"SQLite history path (defaults to {STORE_ENV_VAR} or {DEFAULT_STORE}).",
    )


@app.command()
def runs(
    store: Path | None = _store_option(),
    limit: int = typer.Option(20, min=1, help="Number of most recent runs to show."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
) -> None:
    """List recent runs, newest first."""

    rows = _resolve_store(store).list_runs(limit=limit)
    if as_json:
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    if not rows:
        console.print("[yellow]No runs recorded.[/yellow]")
        return
    _print_table(
        ["Run", "Status", "Started", "Finished", "Valid", "Total"],
        rows,
        ["run_id", "status", "started_at", "finished_at", "valid_count", "total_count"],
    )


@app.command()
def students(
    run_id: str = typer.Argument(..., help="Run identifier from `runs`."),
    store: Path | None = _store_option(),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
) -> None:
    """Show per-student outcomes for one run, including whether the fallback was used."""

    rows = _resolve_store(store).entity_outcomes(run_id)
    if as_json:
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    if not rows:
        console.print(f"[yellow]No student outcomes for run {run_id}.[/yellow]")
        return
    display: List[Dict[str, Any]] = [
        {**row, "source": _fallback_label(row.get("used_fallback"))} for row in rows
    ]
    _print_table(
        ["Student", "Status", "Source", "Error", "Location"],
        display,
        ["student_id", "status", "source", "error", "location_ref"],
    )


@app.command()
def summary(
    run_id: str = typer.Argument(..., help="Run identifier from `runs`."),
    store: Path | None = _store_option(),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
) -> None:
    """Show the class summary outcome recorded for one run."""

    rows = _resolve_store(store).aggregate_outcomes(run_id)
    if as_json:
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    if not rows:
        console.print(f"[yellow]No class summary for run {run_id}.[/yellow]")
        return
    for row in rows:
        console.print(f"[bold]Status:[/bold] {row['status']} ({_fallback_label(row['used_fallback'])})")
        insights = row.get("insights") or {}
        if insights.get("classOverview"):
            console.print(insights["classOverview"])
        if row.get("error"):
            console.print(f"[red]{row['error']}[/red]")


if __name__ == "__main__":  # pragma: no cover
    app()
