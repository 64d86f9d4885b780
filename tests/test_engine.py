import time

import pytest

from apps.coach import fallback
from apps.coach.engine import (
    OFFLINE_MESSAGE,
    InsightState,
    generate_student_outcome,
    generate_teacher_outcome,
    transitions,
)
from apps.coach.fallback import (
    SynthesisInvariantViolation,
    build_fallback_student_insights,
    build_fallback_teacher_insights,
)
from apps.coach.insights import InsightFailure
from apps.coach.analyzer import summarize_class
from tests.mocks.coach import VALID_STUDENT_REPLY, FakeInsightProvider, build_analysis


class SlowProvider(FakeInsightProvider):
    def generate_student_insights(self, analysis, preferences):
        time.sleep(0.5)
        return super().generate_student_insights(analysis, preferences)


def test_valid_reply_is_rendered() -> None:
    outcome = generate_student_outcome(build_analysis(), FakeInsightProvider())

    assert outcome.used_fallback is False
    assert outcome.state is InsightState.RENDERED
    assert transitions(outcome) == ("pending", "provider_called", "validation_succeeded", "rendered")
    assert outcome.message.startswith(VALID_STUDENT_REPLY["positiveObservation"])
    assert outcome.errors == []


def test_invalid_reply_falls_back_without_leaking_text() -> None:
    provider = FakeInsightProvider(student_reply='{"positiveObservation": "LEAKED OBSERVATION"}')
    analysis = build_analysis()

    outcome = generate_student_outcome(analysis, provider)

    assert outcome.used_fallback is True
    assert outcome.states == [
        InsightState.PENDING,
        InsightState.PROVIDER_CALLED,
        InsightState.VALIDATION_FAILED,
        InsightState.FALLBACK_SYNTHESIZED,
        InsightState.RENDERED,
    ]
    assert outcome.failure is InsightFailure.SCHEMA_VIOLATION
    assert outcome.insights == build_fallback_student_insights(analysis)
    assert "LEAKED OBSERVATION" not in outcome.message


def test_provider_exception_falls_back() -> None:
    provider = FakeInsightProvider(failing_students=["s-1"])

    outcome = generate_student_outcome(build_analysis(), provider)

    assert outcome.used_fallback is True
    assert transitions(outcome) == ("pending", "provider_call_failed", "fallback_synthesized", "rendered")
    assert outcome.errors == ["student s-1 failed: provider unavailable for s-1"]
    assert outcome.failure is None


def test_missing_provider_counts_as_a_call_failure() -> None:
    outcome = generate_student_outcome(build_analysis(), None)

    assert InsightState.PROVIDER_CALL_FAILED in outcome.states
    assert outcome.errors == [OFFLINE_MESSAGE]
    assert outcome.used_fallback is True


def test_slow_provider_times_out() -> None:
    started = time.monotonic()

    outcome = generate_student_outcome(build_analysis(), SlowProvider(), timeout=0.05)

    assert time.monotonic() - started < 0.4
    assert outcome.used_fallback is True
    assert "timed out" in outcome.errors[0]


def test_preferences_reach_the_fallback() -> None:
    from edcoach.core.config import TeacherPreferences

    preferences = TeacherPreferences(class_goals=["Finish the reading log."])

    outcome = generate_student_outcome(build_analysis(), None, preferences)

    assert outcome.insights.next_step_goal == "Finish the reading log."
    assert "Next step goal: Finish the reading log." in outcome.message


def test_teacher_outcome_paths() -> None:
    summary = summarize_class([build_analysis(id="a", name="Ava"), build_analysis(id="b", name="Ben")])

    ok = generate_teacher_outcome(summary, FakeInsightProvider())
    failed = generate_teacher_outcome(summary, FakeInsightProvider(fail_teacher=True))
    garbage = generate_teacher_outcome(summary, FakeInsightProvider(teacher_reply="{oops"))

    assert ok.used_fallback is False
    assert "Liam Chen" in ok.message
    assert failed.used_fallback is True
    assert failed.insights == build_fallback_teacher_insights(summary)
    assert garbage.failure is InsightFailure.NO_JSON_FOUND
    assert garbage.used_fallback is True


def test_invariant_violation_escapes(monkeypatch) -> None:
    monkeypatch.setattr(fallback, "ENCOURAGEMENT", "")

    with pytest.raises(SynthesisInvariantViolation):
        generate_student_outcome(build_analysis(), None)
