"""Parse and validate coaching JSON returned by the language model.

The model is an untrusted text producer. Each parser walks the same ladder:
pull a ``{...}`` span out of the reply, decode it, make sure it is an object,
then check every field against the schema bounds. Field errors are collected
exhaustively so the audit log shows everything that was wrong with a reply,
and a failure never yields a partially-filled insight.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from edcoach.core.validation import ValidationResult

from .models import AttentionEntry, StudentInsights, TeacherInsights

DEFAULT_ITEM_CAP = 180


class InsightFailure(str, Enum):
    """Why a model reply was rejected."""

    NO_JSON_FOUND = "no_json_found"
    INVALID_JSON = "invalid_json"
    NOT_AN_OBJECT = "not_an_object"
    SCHEMA_VIOLATION = "schema_violation"


@dataclass(frozen=True, slots=True)
class ListBounds:
    minimum: int
    maximum: int
    item_cap: int = DEFAULT_ITEM_CAP


# Text caps and list cardinalities for both payloads.
STUDENT_TEXT_CAPS: Dict[str, int] = {
    "positiveObservation": 220,
    "nextStepGoal": 200,
    "encouragement": 200,
}
STUDENT_LIST_BOUNDS: Dict[str, ListBounds] = {
    "strengths": ListBounds(1, 3),
    "improvementAreas": ListBounds(1, 2),
    "strategies": ListBounds(2, 3),
}
TEACHER_OVERVIEW_CAP = 240
TEACHER_LIST_BOUNDS: Dict[str, ListBounds] = {
    "strengths": ListBounds(1, 4),
    "nextSteps": ListBounds(2, 4),
}
ATTENTION_NAME_CAP = 80
ATTENTION_REASON_CAP = 160


def safe_string(value: Any, max_len: int) -> Optional[str]:
    """Trimmed, length-capped text, or None when missing or blank."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    return trimmed[:max_len]


def normalize_string_list(value: Any, bounds: ListBounds, label: str) -> ValidationResult:
    """Clean a list of strings; too few survivors is an error, too many are cut."""
    if not isinstance(value, list):
        return ValidationResult.fail([f"{label} must be an array"])
    cleaned = [item for item in (safe_string(entry, bounds.item_cap) for entry in value) if item]
    if len(cleaned) < bounds.minimum:
        return ValidationResult.fail([f"{label} must include at least {bounds.minimum} item(s)"])
    return ValidationResult.ok(tuple(cleaned[: bounds.maximum]))


def extract_json_object(text: str) -> Optional[str]:
    """Return the span from the first ``{`` to the last ``}``.

    Wrapper prose around the payload is tolerated; braces inside that prose
    are not, and yield a span that fails to decode.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start : end + 1]


def decode_object(raw: Any) -> ValidationResult:
    """Extraction + decoding shared by both parsers."""
    text = raw if isinstance(raw, str) else ""
    candidate = extract_json_object(text)
    if candidate is None:
        return ValidationResult.fail(["No JSON object found in response"], reason=InsightFailure.NO_JSON_FOUND)
    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, RecursionError):
        return ValidationResult.fail(["Invalid JSON in response"], reason=InsightFailure.INVALID_JSON)
    if not isinstance(parsed, dict):
        return ValidationResult.fail(["Response JSON must be an object"], reason=InsightFailure.NOT_AN_OBJECT)
    return ValidationResult.ok(parsed)


def _required_text(record: Dict[str, Any], key: str, cap: int, errors: List[str]) -> Optional[str]:
    value = safe_string(record.get(key), cap)
    if value is None:
        errors.append(f"{key} must be a non-empty string")
    return value


def _required_list(
    record: Dict[str, Any], key: str, bounds: ListBounds, errors: List[str]
) -> Tuple[str, ...]:
    result = normalize_string_list(record.get(key), bounds, key)
    if not result.valid:
        errors.extend(result.errors)
        return ()
    return result.data


def _attention_entries(value: Any, errors: List[str]) -> Tuple[AttentionEntry, ...]:
    if not isinstance(value, list):
        errors.append("attentionNeeded must be an array")
        return ()
    entries: List[AttentionEntry] = []
    for index, item in enumerate(value):
        if not isinstance(item, dict):
            errors.append(f"attentionNeeded[{index}] must be an object")
            continue
        name = safe_string(item.get("name"), ATTENTION_NAME_CAP)
        reason = safe_string(item.get("reason"), ATTENTION_REASON_CAP)
        if not name or not reason:
            errors.append(f"attentionNeeded[{index}] must include name and reason")
            continue
        entries.append(AttentionEntry(name=name, reason=reason))
    return tuple(entries)


def parse_student_insights(raw: str) -> ValidationResult:
    """Validate a student coaching reply; ``data`` is a StudentInsights on success."""
    decoded = decode_object(raw)
    if not decoded.valid:
        return decoded
    record = decoded.data

    errors: List[str] = []
    positive = _required_text(record, "positiveObservation", STUDENT_TEXT_CAPS["positiveObservation"], errors)
    strengths = _required_list(record, "strengths", STUDENT_LIST_BOUNDS["strengths"], errors)
    improvement = _required_list(record, "improvementAreas", STUDENT_LIST_BOUNDS["improvementAreas"], errors)
    strategies = _required_list(record, "strategies", STUDENT_LIST_BOUNDS["strategies"], errors)
    goal = _required_text(record, "nextStepGoal", STUDENT_TEXT_CAPS["nextStepGoal"], errors)
    encouragement = _required_text(record, "encouragement", STUDENT_TEXT_CAPS["encouragement"], errors)

    if errors:
        return ValidationResult.fail(errors, reason=InsightFailure.SCHEMA_VIOLATION)

    return ValidationResult.ok(
        StudentInsights(
            positive_observation=positive,
            strengths=strengths,
            improvement_areas=improvement,
            strategies=strategies,
            next_step_goal=goal,
            encouragement=encouragement,
        )
    )


def parse_teacher_insights(raw: str) -> ValidationResult:
    """Validate a class summary reply; ``data`` is a TeacherInsights on success."""
    decoded = decode_object(raw)
    if not decoded.valid:
        return decoded
    record = decoded.data

    errors: List[str] = []
    overview = _required_text(record, "classOverview", TEACHER_OVERVIEW_CAP, errors)
    strengths = _required_list(record, "strengths", TEACHER_LIST_BOUNDS["strengths"], errors)
    attention = _attention_entries(record.get("attentionNeeded"), errors)
    next_steps = _required_list(record, "nextSteps", TEACHER_LIST_BOUNDS["nextSteps"], errors)

    if errors:
        return ValidationResult.fail(errors, reason=InsightFailure.SCHEMA_VIOLATION)

    return ValidationResult.ok(
        TeacherInsights(
            class_overview=overview,
            strengths=strengths,
            attention_needed=attention,
            next_steps=next_steps,
        )
    )


__all__ = [
    "ATTENTION_NAME_CAP",
    "ATTENTION_REASON_CAP",
    "InsightFailure",
    "ListBounds",
    "STUDENT_LIST_BOUNDS",
    "STUDENT_TEXT_CAPS",
    "TEACHER_LIST_BOUNDS",
    "TEACHER_OVERVIEW_CAP",
    "decode_object",
    "extract_json_object",
    "normalize_string_list",
    "parse_student_insights",
    "parse_teacher_insights",
    "safe_string",
]
