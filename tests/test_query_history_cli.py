import importlib
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import scripts.query_history as query_history
from apps.coach.history import SQLiteHistoryStore

runner = CliRunner()


def _build_store(tmp_path: Path) -> Path:
    path = tmp_path / "history.sqlite"
    store = SQLiteHistoryStore(path)
    store.start_run("run-1", total_count=2, valid_count=2, invalid_count=0, errors=[])
    store.record_entity_outcome("run-1", "s-1", status="sent", used_fallback=True, insights={"nextStepGoal": "Read."})
    store.record_entity_outcome("run-1", "s-2", status="analysis_failed", error="boom")
    store.record_aggregate_outcome("run-1", status="sent", insights={"classOverview": "Steady week."})
    store.finish_run("run-1", "completed")
    return path


def test_default_store_follows_repo_root(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("EDCOACH_REPO_ROOT", str(tmp_path / "repo"))
    monkeypatch.delenv("EDCOACH_HISTORY_DB", raising=False)
    module = importlib.reload(query_history)
    assert module.DEFAULT_STORE == (tmp_path / "repo" / "outputs" / "history.sqlite").resolve()
    monkeypatch.delenv("EDCOACH_REPO_ROOT", raising=False)
    importlib.reload(query_history)


def test_store_env_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    custom = tmp_path / "alt" / "custom.sqlite"
    monkeypatch.setenv("EDCOACH_HISTORY_DB", str(custom))
    module = importlib.reload(query_history)
    assert module.DEFAULT_STORE == custom.resolve()
    monkeypatch.delenv("EDCOACH_HISTORY_DB", raising=False)
    importlib.reload(query_history)


def test_runs_json(tmp_path: Path) -> None:
    store = _build_store(tmp_path)

    result = runner.invoke(query_history.app, ["runs", "--store", str(store), "--json"])

    assert result.exit_code == 0
    [run] = json.loads(result.stdout)
    assert run["run_id"] == "run-1"
    assert run["status"] == "completed"


def test_students_json_and_table(tmp_path: Path) -> None:
    store = _build_store(tmp_path)

    as_json = runner.invoke(query_history.app, ["students", "run-1", "--store", str(store), "--json"])
    as_table = runner.invoke(query_history.app, ["students", "run-1", "--store", str(store)])

    assert as_json.exit_code == 0
    rows = json.loads(as_json.stdout)
    assert [row["used_fallback"] for row in rows] == [True, False]
    assert as_table.exit_code == 0
    assert "fallback" in as_table.stdout
    assert "analysis_failed" in as_table.stdout


def test_summary(tmp_path: Path) -> None:
    store = _build_store(tmp_path)

    result = runner.invoke(query_history.app, ["summary", "run-1", "--store", str(store)])

    assert result.exit_code == 0
    assert "Steady week." in result.stdout
    assert "model" in result.stdout


def test_missing_store_is_rejected(tmp_path: Path) -> None:
    result = runner.invoke(query_history.app, ["runs", "--store", str(tmp_path / "missing.sqlite")])

    assert result.exit_code != 0
