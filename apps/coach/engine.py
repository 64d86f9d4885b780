"""Per-entity insight state machine.

One run of the machine takes an analysis (or the class summary) from
``PENDING`` to ``RENDERED``::

    PENDING -> PROVIDER_CALLED -> VALIDATION_SUCCEEDED -> RENDERED
    PENDING -> PROVIDER_CALLED -> VALIDATION_FAILED -> FALLBACK_SYNTHESIZED -> RENDERED
    PENDING -> PROVIDER_CALL_FAILED -> FALLBACK_SYNTHESIZED -> RENDERED

Provider exceptions, timeouts and unusable replies all end in the fallback
branch. ``SynthesisInvariantViolation`` is the one error allowed out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from edcoach.core.config import TeacherPreferences
from edcoach.core.validation import ValidationResult

from .fallback import build_fallback_student_insights, build_fallback_teacher_insights
from .insights import InsightFailure, parse_student_insights, parse_teacher_insights
from .models import ClassSummary, StudentAnalysis
from .provider import InsightProvider, ProviderFailure, call_with_timeout
from .render import render_student_message, render_teacher_message

LOGGER = logging.getLogger(__name__)

OFFLINE_MESSAGE = "No insight provider configured"


class InsightState(str, Enum):
    PENDING = "pending"
    PROVIDER_CALLED = "provider_called"
    PROVIDER_CALL_FAILED = "provider_call_failed"
    VALIDATION_SUCCEEDED = "validation_succeeded"
    VALIDATION_FAILED = "validation_failed"
    FALLBACK_SYNTHESIZED = "fallback_synthesized"
    RENDERED = "rendered"


@dataclass(slots=True)
class InsightOutcome:
    """Final insight plus the path the machine took to get there."""

    insights: Any = None
    message: str = ""
    used_fallback: bool = False
    states: List[InsightState] = field(default_factory=lambda: [InsightState.PENDING])
    errors: List[str] = field(default_factory=list)
    failure: Optional[InsightFailure] = None

    @property
    def state(self) -> InsightState:
        return self.states[-1]

    def advance(self, state: InsightState) -> None:
        self.states.append(state)


def _run(
    label: str,
    call: Optional[Callable[[], str]],
    parse: Callable[[str], ValidationResult],
    fallback: Callable[[], Any],
    render: Callable[[Any], str],
    timeout: Optional[float],
) -> InsightOutcome:
    outcome = InsightOutcome()

    raw: Optional[str] = None
    try:
        if call is None:
            raise ProviderFailure(OFFLINE_MESSAGE)
        raw = call_with_timeout(call, timeout, label)
    except ProviderFailure as exc:
        LOGGER.warning("%s: provider call failed (%s); using fallback", label, exc)
        outcome.advance(InsightState.PROVIDER_CALL_FAILED)
        outcome.errors.append(str(exc))
    else:
        outcome.advance(InsightState.PROVIDER_CALLED)
        result = parse(raw)
        if result.valid:
            outcome.advance(InsightState.VALIDATION_SUCCEEDED)
            outcome.insights = result.data
        else:
            LOGGER.warning("%s: insight validation failed: %s", label, "; ".join(result.errors))
            outcome.advance(InsightState.VALIDATION_FAILED)
            outcome.errors.extend(result.errors)
            outcome.failure = result.reason

    if outcome.insights is None:
        outcome.insights = fallback()
        outcome.used_fallback = True
        outcome.advance(InsightState.FALLBACK_SYNTHESIZED)

    outcome.message = render(outcome.insights)
    outcome.advance(InsightState.RENDERED)
    return outcome


def generate_student_outcome(
    analysis: StudentAnalysis,
    provider: Optional[InsightProvider],
    preferences: Optional[TeacherPreferences] = None,
    timeout: Optional[float] = None,
) -> InsightOutcome:
    call = None
    if provider is not None:
        call = lambda: provider.generate_student_insights(analysis, preferences)  # noqa: E731
    return _run(
        f"student {analysis.student.id}",
        call,
        parse_student_insights,
        lambda: build_fallback_student_insights(analysis, preferences),
        render_student_message,
        timeout,
    )


def generate_teacher_outcome(
    summary: ClassSummary,
    provider: Optional[InsightProvider],
    preferences: Optional[TeacherPreferences] = None,
    timeout: Optional[float] = None,
) -> InsightOutcome:
    call = None
    if provider is not None:
        call = lambda: provider.generate_teacher_insights(summary, preferences)  # noqa: E731
    return _run(
        "teacher summary",
        call,
        parse_teacher_insights,
        lambda: build_fallback_teacher_insights(summary, preferences),
        render_teacher_message,
        timeout,
    )


def transitions(outcome: InsightOutcome) -> Tuple[str, ...]:
    """State names in order, for logs and history rows."""
    return tuple(state.value for state in outcome.states)


__all__ = [
    "InsightOutcome",
    "InsightState",
    "generate_student_outcome",
    "generate_teacher_outcome",
    "transitions",
]
