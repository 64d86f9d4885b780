from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from scripts import validate_roster
from tests.mocks.coach import raw_student, roster_payload

SAMPLE_ROSTER = Path(__file__).resolve().parents[1] / "data" / "students.sample.json"
runner = CliRunner()


def test_sample_roster_is_valid() -> None:
    result = runner.invoke(validate_roster.app, [str(SAMPLE_ROSTER)])

    assert result.exit_code == 0
    assert "Roster looks good" in result.stdout


def test_invalid_records_fail(tmp_path: Path) -> None:
    path = tmp_path / "students.json"
    path.write_text(json.dumps(roster_payload(2) + [raw_student(performanceTrend="sideways")]), encoding="utf-8")

    result = runner.invoke(validate_roster.app, [str(path)])

    assert result.exit_code == 1
    assert "2 of 3 record(s) valid" in result.stdout
    assert "performanceTrend" in result.stdout


def test_unreadable_roster_fails(tmp_path: Path) -> None:
    path = tmp_path / "students.json"
    path.write_text("[{", encoding="utf-8")

    result = runner.invoke(validate_roster.app, [str(path)])

    assert result.exit_code == 1
    assert "Unable to read roster" in result.stdout
