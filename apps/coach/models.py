"""Domain records shared by the validator, analyzer and insight engine.

Every record is frozen; sequences are stored as tuples so an analysis can be
handed to the provider, the fallback builder and the history sink without
any of them being able to alter what the others see.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple


class PerformanceTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"

    @classmethod
    def choices(cls) -> Tuple[str, ...]:
        return tuple(member.value for member in cls)


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True, slots=True)
class Grade:
    subject: str
    score: float

    def as_dict(self) -> Dict[str, Any]:
        return {"subject": self.subject, "score": self.score}


@dataclass(frozen=True, slots=True)
class Student:
    """A validated student record; lives for one analysis cycle."""

    id: str
    name: str
    email: str
    grades: Tuple[Grade, ...]
    participation_score: float
    assignment_completion_rate: float
    teacher_notes: str
    performance_trend: PerformanceTrend
    last_assessment_date: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "grades": [grade.as_dict() for grade in self.grades],
            "participationScore": self.participation_score,
            "assignmentCompletionRate": self.assignment_completion_rate,
            "teacherNotes": self.teacher_notes,
            "performanceTrend": self.performance_trend.value,
            "lastAssessmentDate": self.last_assessment_date,
        }


@dataclass(frozen=True, slots=True)
class StudentMetrics:
    average_score: float
    highest_subjects: Tuple[Grade, ...]
    lowest_subjects: Tuple[Grade, ...]
    participation_score: float
    assignment_completion_rate: float
    needs_attention: bool

    def as_dict(self) -> Dict[str, Any]:
        return {
            "averageScore": self.average_score,
            "highestSubjects": [grade.as_dict() for grade in self.highest_subjects],
            "lowestSubjects": [grade.as_dict() for grade in self.lowest_subjects],
            "participationScore": self.participation_score,
            "assignmentCompletionRate": self.assignment_completion_rate,
            "needsAttention": self.needs_attention,
        }


@dataclass(frozen=True, slots=True)
class StudentAnalysis:
    student: Student
    metrics: StudentMetrics
    strengths: Tuple[str, ...]
    improvement_areas: Tuple[str, ...]
    risk_level: RiskLevel

    def as_dict(self) -> Dict[str, Any]:
        return {
            "student": self.student.as_dict(),
            "metrics": self.metrics.as_dict(),
            "strengths": list(self.strengths),
            "improvementAreas": list(self.improvement_areas),
            "riskLevel": self.risk_level.value,
        }


@dataclass(frozen=True, slots=True)
class ClassSummary:
    class_average: float
    top_students: Tuple[str, ...]
    attention_needed: Tuple[str, ...]
    notes: Tuple[str, ...]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "classAverage": self.class_average,
            "topStudents": list(self.top_students),
            "attentionNeeded": list(self.attention_needed),
            "notes": list(self.notes),
        }


@dataclass(frozen=True, slots=True)
class StudentInsights:
    """Coaching content for one student, from the model or the fallback."""

    positive_observation: str
    strengths: Tuple[str, ...]
    improvement_areas: Tuple[str, ...]
    strategies: Tuple[str, ...]
    next_step_goal: str
    encouragement: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "positiveObservation": self.positive_observation,
            "strengths": list(self.strengths),
            "improvementAreas": list(self.improvement_areas),
            "strategies": list(self.strategies),
            "nextStepGoal": self.next_step_goal,
            "encouragement": self.encouragement,
        }


@dataclass(frozen=True, slots=True)
class AttentionEntry:
    name: str
    reason: str

    def as_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "reason": self.reason}


@dataclass(frozen=True, slots=True)
class TeacherInsights:
    """Class-level summary for the teacher."""

    class_overview: str
    strengths: Tuple[str, ...]
    attention_needed: Tuple[AttentionEntry, ...]
    next_steps: Tuple[str, ...]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "classOverview": self.class_overview,
            "strengths": list(self.strengths),
            "attentionNeeded": [entry.as_dict() for entry in self.attention_needed],
            "nextSteps": list(self.next_steps),
        }


__all__ = [
    "AttentionEntry",
    "ClassSummary",
    "Grade",
    "PerformanceTrend",
    "RiskLevel",
    "Student",
    "StudentAnalysis",
    "StudentInsights",
    "StudentMetrics",
    "TeacherInsights",
]
