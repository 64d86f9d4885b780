"""Deterministic per-student analytics and the class roll-up."""

from __future__ import annotations

import math
from typing import Callable, List, Sequence, TypeVar

from .models import (
    ClassSummary,
    Grade,
    PerformanceTrend,
    RiskLevel,
    Student,
    StudentAnalysis,
    StudentMetrics,
)

T = TypeVar("T")

# Thresholds for the attention flag and the improvement-area observations.
ATTENTION_AVERAGE_THRESHOLD = 75.0
ATTENTION_COMPLETION_THRESHOLD = 80.0

HIGH_RISK_AVERAGE = 70.0
HIGH_RISK_PARTICIPATION = 4
HIGH_RISK_COMPLETION = 70.0
MEDIUM_RISK_AVERAGE = 80.0
MEDIUM_RISK_PARTICIPATION = 6
MEDIUM_RISK_COMPLETION = 85.0

STRONG_AVERAGE = 85.0
STRONG_PARTICIPATION = 8
STRONG_COMPLETION = 90.0

SUBJECT_WINDOW = 2
TOP_STUDENT_COUNT = 3


def round_score(value: float, digits: int = 2) -> float:
    """Round to ``digits`` decimals, halves away from zero."""
    factor = 10**digits
    scaled = value * factor
    rounded = math.floor(abs(scaled) + 0.5)
    return math.copysign(rounded, scaled) / factor if rounded else 0.0


def mean_score(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return round_score(sum(values) / len(values))


def _top_n(items: Sequence[T], n: int, key: Callable[[T], float]) -> List[T]:
    # sorted() stays stable with reverse=True, so ties keep their input order
    return sorted(items, key=key, reverse=True)[:n]


def _bottom_n(items: Sequence[T], n: int, key: Callable[[T], float]) -> List[T]:
    return sorted(items, key=key)[:n]


def determine_risk(metrics: StudentMetrics, trend: PerformanceTrend) -> RiskLevel:
    if (
        metrics.average_score < HIGH_RISK_AVERAGE
        or metrics.participation_score <= HIGH_RISK_PARTICIPATION
        or metrics.assignment_completion_rate < HIGH_RISK_COMPLETION
        or trend is PerformanceTrend.DECLINING
    ):
        return RiskLevel.HIGH
    if (
        metrics.average_score < MEDIUM_RISK_AVERAGE
        or metrics.participation_score <= MEDIUM_RISK_PARTICIPATION
        or metrics.assignment_completion_rate < MEDIUM_RISK_COMPLETION
    ):
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def analyze_student(student: Student) -> StudentAnalysis:
    """Turn a validated student into metrics, observations and a risk level."""
    average = mean_score([grade.score for grade in student.grades])
    score_of: Callable[[Grade], float] = lambda grade: grade.score
    highest = tuple(_top_n(student.grades, SUBJECT_WINDOW, score_of))
    lowest = tuple(_bottom_n(student.grades, SUBJECT_WINDOW, score_of))
    participation = student.participation_score
    completion = student.assignment_completion_rate
    trend = student.performance_trend

    metrics = StudentMetrics(
        average_score=average,
        highest_subjects=highest,
        lowest_subjects=lowest,
        participation_score=participation,
        assignment_completion_rate=completion,
        needs_attention=(
            average < ATTENTION_AVERAGE_THRESHOLD
            or completion < ATTENTION_COMPLETION_THRESHOLD
            or trend is PerformanceTrend.DECLINING
        ),
    )

    # Order matters: messages render in the order they are appended.
    strengths: List[str] = []
    if average >= STRONG_AVERAGE:
        strengths.append("Strong overall academic performance")
    if participation >= STRONG_PARTICIPATION:
        strengths.append("Consistent class participation")
    if completion >= STRONG_COMPLETION:
        strengths.append("High assignment completion rate")
    if trend is PerformanceTrend.IMPROVING:
        strengths.append("Recent performance trend is improving")

    improvement_areas: List[str] = []
    if average < ATTENTION_AVERAGE_THRESHOLD:
        improvement_areas.append("Overall grade average needs improvement")
    if participation <= MEDIUM_RISK_PARTICIPATION:
        improvement_areas.append("Increase class participation")
    if completion < MEDIUM_RISK_COMPLETION:
        improvement_areas.append("Improve assignment completion rate")
    if trend is PerformanceTrend.DECLINING:
        improvement_areas.append("Address recent performance decline")
    if lowest:
        subjects = ", ".join(grade.subject for grade in lowest)
        improvement_areas.append(f"Focus on weaker subjects: {subjects}")

    return StudentAnalysis(
        student=student,
        metrics=metrics,
        strengths=tuple(strengths),
        improvement_areas=tuple(improvement_areas),
        risk_level=determine_risk(metrics, trend),
    )


def summarize_class(analyses: Sequence[StudentAnalysis]) -> ClassSummary:
    """Fold existing analyses into a class summary without recomputing metrics."""
    class_average = mean_score([analysis.metrics.average_score for analysis in analyses])
    ranked = _top_n(analyses, TOP_STUDENT_COUNT, lambda analysis: analysis.metrics.average_score)
    attention = tuple(
        analysis.student.name
        for analysis in analyses
        if analysis.metrics.needs_attention or analysis.risk_level is RiskLevel.HIGH
    )

    notes: List[str] = []
    declining = sum(1 for analysis in analyses if analysis.student.performance_trend is PerformanceTrend.DECLINING)
    if declining:
        notes.append(f"{declining} student(s) show a declining trend.")
    strong_completion = sum(
        1 for analysis in analyses if analysis.metrics.assignment_completion_rate >= STRONG_COMPLETION
    )
    if strong_completion:
        notes.append(f"{strong_completion} student(s) have 90%+ assignment completion.")
    high_risk = sum(1 for analysis in analyses if analysis.risk_level is RiskLevel.HIGH)
    if high_risk:
        notes.append(f"{high_risk} student(s) are classified as high risk.")

    return ClassSummary(
        class_average=class_average,
        top_students=tuple(analysis.student.name for analysis in ranked),
        attention_needed=attention,
        notes=tuple(notes),
    )


__all__ = [
    "analyze_student",
    "determine_risk",
    "mean_score",
    "round_score",
    "summarize_class",
]
