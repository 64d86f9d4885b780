"""Plain-text rendering of coaching insights.

The rendered text never says whether the content came from the model or the
fallback builder; that flag travels alongside in the pipeline and history.
"""

from __future__ import annotations

from typing import Iterable, List

from .models import StudentInsights, TeacherInsights

NO_ATTENTION_LINE = "- No students flagged for immediate attention."


def _bullets(items: Iterable[str]) -> List[str]:
    return [f"- {item}" for item in items]


def render_student_message(insights: StudentInsights) -> str:
    lines = [
        insights.positive_observation,
        "",
        "Strengths:",
        *_bullets(insights.strengths),
        "",
        "Focus areas:",
        *_bullets(insights.improvement_areas),
        "",
        "Try this:",
        *_bullets(insights.strategies),
        "",
        f"Next step goal: {insights.next_step_goal}",
        "",
        insights.encouragement,
    ]
    return "\n".join(lines)


def render_teacher_message(insights: TeacherInsights) -> str:
    attention = [f"- {entry.name}: {entry.reason}" for entry in insights.attention_needed]
    lines = [
        insights.class_overview,
        "",
        "Class strengths:",
        *_bullets(insights.strengths),
        "",
        "Students needing attention:",
        *(attention or [NO_ATTENTION_LINE]),
        "",
        "Next steps (next week):",
        *_bullets(insights.next_steps),
    ]
    return "\n".join(lines)


__all__ = ["NO_ATTENTION_LINE", "render_student_message", "render_teacher_message"]
