"""Validate raw roster JSON into typed Student records."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, List

from edcoach.core.validation import ValidationResult, strict_validation

from .models import Grade, PerformanceTrend, Student

LOGGER = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
ROSTER_SHAPE_ERROR = "roster must be an array of student objects"
# Tried after ISO-8601.
DATE_FORMATS = ("%Y/%m/%d", "%m/%d/%Y", "%B %d, %Y", "%b %d, %Y")


@dataclass(slots=True)
class RosterValidation:
    """Students that passed validation plus every error raised by the rest."""

    valid: List[Student] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass(slots=True)
class RosterLoad:
    students: List[Student]
    errors: List[str]
    total_count: int


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid score
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _in_range(value: Any, low: float, high: float) -> bool:
    return _is_number(value) and low <= value <= high


def _clean_string(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _is_calendar_date(value: Any) -> bool:
    text = _clean_string(value)
    if not text:
        return False
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    for parser in (datetime.fromisoformat, date.fromisoformat):
        try:
            parser(text)
            return True
        except ValueError:
            continue
    for fmt in DATE_FORMATS:
        try:
            datetime.strptime(text, fmt)
            return True
        except ValueError:
            continue
    return False


def validate_grade(value: Any, index: int) -> ValidationResult:
    """Validate one entry of a student's ``grades`` array."""
    if not isinstance(value, dict):
        return ValidationResult.fail([f"grades[{index}] must be an object"])

    errors: List[str] = []
    subject = _clean_string(value.get("subject"))
    score = value.get("score")
    if not subject:
        errors.append(f"grades[{index}].subject must be a non-empty string")
    if not _in_range(score, 0, 100):
        errors.append(f"grades[{index}].score must be a number between 0 and 100")
    if errors:
        return ValidationResult.fail(errors)
    return ValidationResult.ok(Grade(subject=subject, score=score))


def validate_student(value: Any, index: int) -> ValidationResult:
    """Validate one roster entry, collecting every field error before rejecting it."""
    if not isinstance(value, dict):
        return ValidationResult.fail([f"students[{index}] must be an object"])

    errors: List[str] = []
    student_id = _clean_string(value.get("id"))
    name = _clean_string(value.get("name"))
    email = _clean_string(value.get("email"))
    grades_raw = value.get("grades")
    participation = value.get("participationScore")
    completion = value.get("assignmentCompletionRate")
    notes = value.get("teacherNotes")
    trend_raw = value.get("performanceTrend")
    assessed = value.get("lastAssessmentDate")

    if not student_id:
        errors.append("id must be a non-empty string")
    if not name:
        errors.append("name must be a non-empty string")
    if not email or not EMAIL_PATTERN.match(email):
        errors.append("email must be a valid address")

    grades: List[Grade] = []
    if not isinstance(grades_raw, list) or not grades_raw:
        errors.append("grades must be a non-empty array")
    else:
        for grade_index, grade in enumerate(grades_raw):
            result = validate_grade(grade, grade_index)
            if result.valid:
                grades.append(result.data)
            else:
                errors.extend(result.errors)

    if not _in_range(participation, 1, 10):
        errors.append("participationScore must be a number between 1 and 10")
    if not _in_range(completion, 0, 100):
        errors.append("assignmentCompletionRate must be a number between 0 and 100")
    if not isinstance(notes, str):
        errors.append("teacherNotes must be a string")
    if trend_raw not in PerformanceTrend.choices():
        errors.append("performanceTrend must be improving, stable, or declining")
    if not _is_calendar_date(assessed):
        errors.append("lastAssessmentDate must be a valid date string")

    if errors:
        return ValidationResult.fail(errors)

    return ValidationResult.ok(
        Student(
            id=student_id,
            name=name,
            email=email,
            grades=tuple(grades),
            participation_score=participation,
            assignment_completion_rate=completion,
            teacher_notes=notes.strip(),
            performance_trend=PerformanceTrend(trend_raw),
            last_assessment_date=assessed.strip(),
        )
    )


def validate_batch(data: Any) -> RosterValidation:
    """Split a raw roster payload into valid students and index-prefixed errors."""
    outcome = RosterValidation()
    if not isinstance(data, list):
        outcome.errors.append(ROSTER_SHAPE_ERROR)
        return outcome

    for index, value in enumerate(data):
        result = validate_student(value, index)
        if result.valid:
            outcome.valid.append(result.data)
            continue
        outcome.errors.extend(f"students[{index}]: {error}" for error in result.errors)
    return outcome


def load_roster(path: Path) -> RosterLoad:
    """Read a roster file; I/O and JSON decoding problems are fatal for the batch."""
    if not path.exists():
        raise FileNotFoundError(f"Roster file {path} is missing")
    result = strict_validation.validate_json_file(path)
    payload = result.data
    checked = validate_batch(payload)
    total = len(payload) if isinstance(payload, list) else 0
    if checked.errors:
        LOGGER.warning("Roster validation reported %d issue(s)", len(checked.errors))
    return RosterLoad(students=checked.valid, errors=checked.errors, total_count=total)


__all__ = [
    "EMAIL_PATTERN",
    "ROSTER_SHAPE_ERROR",
    "RosterLoad",
    "RosterValidation",
    "load_roster",
    "validate_batch",
    "validate_grade",
    "validate_student",
]
