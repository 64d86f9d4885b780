import json
from pathlib import Path

import pytest

from apps.coach.models import PerformanceTrend
from apps.coach.roster import ROSTER_SHAPE_ERROR, load_roster, validate_batch, validate_student
from edcoach.core.validation import ValidationFailure
from tests.mocks.coach import raw_student


def test_valid_student_is_normalized() -> None:
    result = validate_student(raw_student(name="  Ava Thompson  ", teacherNotes=" note "), 0)

    assert result.valid
    student = result.data
    assert student.name == "Ava Thompson"
    assert student.teacher_notes == "note"
    assert student.performance_trend is PerformanceTrend.STABLE
    assert [grade.subject for grade in student.grades] == ["Math", "Science", "English"]


def test_validator_collects_every_field_error() -> None:
    record = raw_student(
        id="",
        email="not-an-email",
        participationScore=11,
        assignmentCompletionRate=-1,
        performanceTrend="sideways",
        lastAssessmentDate="yesterday",
    )

    result = validate_student(record, 0)

    assert not result.valid
    assert result.errors == [
        "id must be a non-empty string",
        "email must be a valid address",
        "participationScore must be a number between 1 and 10",
        "assignmentCompletionRate must be a number between 0 and 100",
        "performanceTrend must be improving, stable, or declining",
        "lastAssessmentDate must be a valid date string",
    ]


def test_grade_errors_are_indexed() -> None:
    record = raw_student(grades=[{"subject": "Math", "score": 101}, "oops", {"subject": " ", "score": 50}])

    result = validate_student(record, 0)

    assert result.errors == [
        "grades[0].score must be a number between 0 and 100",
        "grades[1] must be an object",
        "grades[2].subject must be a non-empty string",
    ]


@pytest.mark.parametrize("grades", [[], None, "Math: 90"])
def test_grades_must_be_a_non_empty_array(grades) -> None:
    result = validate_student(raw_student(grades=grades), 0)

    assert "grades must be a non-empty array" in result.errors


def test_booleans_are_not_numbers() -> None:
    result = validate_student(raw_student(participationScore=True), 0)

    assert result.errors == ["participationScore must be a number between 1 and 10"]


def test_participation_accepts_fractional_scores() -> None:
    result = validate_student(raw_student(participationScore=7.5), 0)

    assert result.valid
    assert result.data.participation_score == 7.5


@pytest.mark.parametrize(
    "value",
    [
        "2024-03-01",
        "2024-03-01T10:15:00Z",
        "2024-03-01T10:15:00+02:00",
        "2025/01/15",
        "01/15/2025",
        "January 15, 2025",
        "Jan 15, 2025",
    ],
)
def test_assessment_dates_accept_common_formats(value: str) -> None:
    assert validate_student(raw_student(lastAssessmentDate=value), 0).valid


@pytest.mark.parametrize("value", ["2025/13/45", "15 Smarch 2025", "  "])
def test_assessment_dates_reject_nonsense(value: str) -> None:
    result = validate_student(raw_student(lastAssessmentDate=value), 0)

    assert result.errors == ["lastAssessmentDate must be a valid date string"]


def test_teacher_notes_must_be_a_string() -> None:
    result = validate_student(raw_student(teacherNotes=None), 0)

    assert result.errors == ["teacherNotes must be a string"]


def test_batch_separates_valid_and_invalid_records() -> None:
    payload = [raw_student(id="s-1"), raw_student(id="s-2", email="broken"), 42]

    outcome = validate_batch(payload)

    assert [student.id for student in outcome.valid] == ["s-1"]
    assert outcome.errors == [
        "students[1]: email must be a valid address",
        "students[2]: students[2] must be an object",
    ]


def test_batch_rejects_non_array_payload() -> None:
    outcome = validate_batch({"students": []})

    assert outcome.valid == []
    assert outcome.errors == [ROSTER_SHAPE_ERROR]


def test_load_roster_reports_counts(tmp_path: Path) -> None:
    path = tmp_path / "students.json"
    path.write_text(json.dumps([raw_student(id="a"), raw_student(id="b", grades=[])]), encoding="utf-8")

    roster = load_roster(path)

    assert roster.total_count == 2
    assert [student.id for student in roster.students] == ["a"]
    assert roster.errors == ["students[1]: grades must be a non-empty array"]


def test_load_roster_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_roster(tmp_path / "missing.json")


def test_load_roster_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "students.json"
    path.write_text("[{", encoding="utf-8")

    with pytest.raises(ValidationFailure):
        load_roster(path)


def test_every_record_is_either_valid_or_reported() -> None:
    payload = [
        raw_student(id="a"),
        raw_student(id="b", name=" "),
        "not a record",
        raw_student(id="c", grades=[{"subject": "Math", "score": "A+"}]),
        raw_student(id="d"),
    ]

    outcome = validate_batch(payload)

    reported = {error.split(":", 1)[0] for error in outcome.errors}
    assert [student.id for student in outcome.valid] == ["a", "d"]
    assert reported == {"students[1]", "students[2]", "students[3]"}
    assert len(outcome.valid) + len(reported) == len(payload)
