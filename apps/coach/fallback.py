"""Rule-based coaching content used whenever model output cannot be trusted.

Both builders are pure functions of the analysis (or class summary) plus the
optional teacher preferences. They never look at what the model returned, so
a rejected reply can never leak into a message.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from edcoach.core.config import TeacherPreferences

from .analyzer import round_score
from .insights import (
    ATTENTION_NAME_CAP,
    ATTENTION_REASON_CAP,
    STUDENT_LIST_BOUNDS,
    STUDENT_TEXT_CAPS,
    TEACHER_LIST_BOUNDS,
    TEACHER_OVERVIEW_CAP,
    ListBounds,
    safe_string,
)
from .models import AttentionEntry, ClassSummary, StudentAnalysis, StudentInsights, TeacherInsights

# Strategy ladder thresholds. The study-routine tip fires below 70 while the
# analyzer's improvement-area note fires below 75; the two are independent.
LOW_COMPLETION_THRESHOLD = 85.0
LOW_PARTICIPATION_THRESHOLD = 6
STUDY_ROUTINE_AVERAGE_THRESHOLD = 70.0

GENERIC_STRENGTH = "You're making steady progress across your classes."
GENERIC_IMPROVEMENT = "Keep building consistency with assignments and review routines."
DEADLINE_STRATEGY = "Use a checklist and finish assignments 24 hours before the deadline."
ENGAGEMENT_STRATEGY = "Prepare one question or comment before class and share it."
STUDY_ROUTINE_STRATEGY = "Set a 20-minute daily review block and summarize notes in your own words."
SUBJECT_STRATEGY_TEMPLATE = "Spend extra practice time on {subjects} with short, focused sessions."
FILLER_STRATEGY = "Ask for quick feedback from your teacher on one recent assignment."
GENERIC_GOAL = "Choose one focus area and practice it three times this week."
ENCOURAGEMENT = "Small steps add up. Keep going, and reach out if you need support."

TOP_PERFORMERS_TEMPLATE = "Top performers this cycle: {names}."
GENERIC_CLASS_STRENGTH = "Several students are maintaining steady performance."
ATTENTION_REASON = "Flagged for additional check-ins based on recent trends."
TEACHER_FILLER_STEPS = (
    "Plan one small-group session for students needing support.",
    "Highlight one success story to reinforce growth mindset.",
)
OVERVIEW_TEMPLATE = (
    "Class average is {average:.1f}. Overall trends are stable with a few students needing additional attention."
)
PREFERRED_TEACHER_STEPS = 2


class SynthesisInvariantViolation(AssertionError):
    """A fallback payload broke its own schema bounds. Always a bug."""


def _clip_all(items: Sequence[str], cap: int) -> List[str]:
    return [text for text in (safe_string(item, cap) for item in items) if text]


def _check_list(label: str, items: Sequence[str], bounds: ListBounds) -> None:
    if not bounds.minimum <= len(items) <= bounds.maximum:
        raise SynthesisInvariantViolation(
            f"fallback {label} has {len(items)} item(s); expected {bounds.minimum}-{bounds.maximum}"
        )
    for item in items:
        if not item or len(item) > bounds.item_cap:
            raise SynthesisInvariantViolation(f"fallback {label} item is empty or longer than {bounds.item_cap}")


def _check_text(label: str, value: str, cap: int) -> None:
    if not value or len(value) > cap:
        raise SynthesisInvariantViolation(f"fallback {label} is empty or longer than {cap}")


def _preferred_strategies(preferences: Optional[TeacherPreferences], cap: int) -> List[str]:
    if preferences is None:
        return []
    return _clip_all(preferences.preferred_strategies, cap)


def build_fallback_student_insights(
    analysis: StudentAnalysis,
    preferences: Optional[TeacherPreferences] = None,
) -> StudentInsights:
    """Deterministic student insights derived from the analysis alone."""
    strength_bounds = STUDENT_LIST_BOUNDS["strengths"]
    area_bounds = STUDENT_LIST_BOUNDS["improvementAreas"]
    strategy_bounds = STUDENT_LIST_BOUNDS["strategies"]
    metrics = analysis.metrics

    strengths = _clip_all(analysis.strengths, strength_bounds.item_cap) or [GENERIC_STRENGTH]
    improvement = _clip_all(analysis.improvement_areas, area_bounds.item_cap)[: area_bounds.maximum]
    if not improvement:
        improvement = [GENERIC_IMPROVEMENT]

    strategies: List[str] = []
    if metrics.assignment_completion_rate < LOW_COMPLETION_THRESHOLD:
        strategies.append(DEADLINE_STRATEGY)
    if metrics.participation_score <= LOW_PARTICIPATION_THRESHOLD:
        strategies.append(ENGAGEMENT_STRATEGY)
    if metrics.average_score < STUDY_ROUTINE_AVERAGE_THRESHOLD:
        strategies.append(STUDY_ROUTINE_STRATEGY)
    if metrics.lowest_subjects:
        subjects = ", ".join(grade.subject for grade in metrics.lowest_subjects)
        tip = safe_string(SUBJECT_STRATEGY_TEMPLATE.format(subjects=subjects), strategy_bounds.item_cap)
        if tip:
            strategies.append(tip)
    for preferred in _preferred_strategies(preferences, strategy_bounds.item_cap):
        if len(strategies) >= strategy_bounds.maximum:
            break
        strategies.append(preferred)
    while len(strategies) < strategy_bounds.minimum:
        strategies.append(FILLER_STRATEGY)

    goal = None
    if preferences is not None and preferences.class_goals:
        goal = safe_string(preferences.class_goals[0], STUDENT_TEXT_CAPS["nextStepGoal"])

    insights = StudentInsights(
        positive_observation=strengths[0][: STUDENT_TEXT_CAPS["positiveObservation"]],
        strengths=tuple(strengths[: strength_bounds.maximum]),
        improvement_areas=tuple(improvement),
        strategies=tuple(strategies[: strategy_bounds.maximum]),
        next_step_goal=goal or GENERIC_GOAL,
        encouragement=ENCOURAGEMENT,
    )
    _check_text("positiveObservation", insights.positive_observation, STUDENT_TEXT_CAPS["positiveObservation"])
    _check_list("strengths", insights.strengths, strength_bounds)
    _check_list("improvementAreas", insights.improvement_areas, area_bounds)
    _check_list("strategies", insights.strategies, strategy_bounds)
    _check_text("nextStepGoal", insights.next_step_goal, STUDENT_TEXT_CAPS["nextStepGoal"])
    _check_text("encouragement", insights.encouragement, STUDENT_TEXT_CAPS["encouragement"])
    return insights


def build_fallback_teacher_insights(
    summary: ClassSummary,
    preferences: Optional[TeacherPreferences] = None,
) -> TeacherInsights:
    """Deterministic class summary; attention reasons are generic by necessity."""
    strength_bounds = TEACHER_LIST_BOUNDS["strengths"]
    step_bounds = TEACHER_LIST_BOUNDS["nextSteps"]

    if summary.top_students:
        headline = TOP_PERFORMERS_TEMPLATE.format(names=", ".join(summary.top_students))
        strengths = [safe_string(headline, strength_bounds.item_cap) or GENERIC_CLASS_STRENGTH]
    else:
        strengths = [GENERIC_CLASS_STRENGTH]

    attention = tuple(
        AttentionEntry(name=name, reason=ATTENTION_REASON[:ATTENTION_REASON_CAP])
        for name in _clip_all(summary.attention_needed, ATTENTION_NAME_CAP)
    )

    next_steps = _preferred_strategies(preferences, step_bounds.item_cap)[:PREFERRED_TEACHER_STEPS]
    if len(next_steps) < step_bounds.minimum:
        next_steps.extend(TEACHER_FILLER_STEPS)

    overview = OVERVIEW_TEMPLATE.format(average=round_score(summary.class_average, 1))
    insights = TeacherInsights(
        class_overview=overview[:TEACHER_OVERVIEW_CAP],
        strengths=tuple(strengths),
        attention_needed=attention,
        next_steps=tuple(next_steps[: step_bounds.maximum]),
    )
    _check_text("classOverview", insights.class_overview, TEACHER_OVERVIEW_CAP)
    _check_list("strengths", insights.strengths, strength_bounds)
    _check_list("nextSteps", insights.next_steps, step_bounds)
    return insights


__all__ = [
    "ENCOURAGEMENT",
    "FILLER_STRATEGY",
    "GENERIC_GOAL",
    "STUDY_ROUTINE_AVERAGE_THRESHOLD",
    "SynthesisInvariantViolation",
    "build_fallback_student_insights",
    "build_fallback_teacher_insights",
]
