"""Language-model access for coaching insights.

Providers return raw text only; nothing here decides whether that text is
usable. Parsing and fallback live in :mod:`apps.coach.insights` and
:mod:`apps.coach.engine`.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from textwrap import dedent
from typing import Any, Callable, Dict, Optional, Protocol, TypeVar

from edcoach.core.config import TeacherPreferences

from .models import ClassSummary, StudentAnalysis

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TONE = "warm"
TONE_GUIDANCE: Dict[str, str] = {
    "warm": "Use a warm, encouraging, growth-mindset tone.",
    "neutral": "Use a calm, neutral, matter-of-fact tone.",
    "direct": "Use a direct, concise tone with clear action items.",
}


class ProviderFailure(RuntimeError):
    """The provider raised or did not answer before the deadline."""


class InsightProvider(Protocol):
    """Anything that can turn an analysis into (untrusted) insight text."""

    def generate_student_insights(
        self, analysis: StudentAnalysis, preferences: Optional[TeacherPreferences]
    ) -> str: ...

    def generate_teacher_insights(
        self, summary: ClassSummary, preferences: Optional[TeacherPreferences]
    ) -> str: ...


def call_with_timeout(func: Callable[[], T], timeout: Optional[float], label: str) -> T:
    """Run ``func`` on a daemon thread and give up after ``timeout`` seconds.

    A timed-out call is abandoned: its result is ignored and, being a daemon,
    its thread never holds the interpreter open at exit.
    """
    future: Future = Future()

    def _worker() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(func())
        except BaseException as exc:  # noqa: BLE001 - re-raised by future.result()
            future.set_exception(exc)

    threading.Thread(target=_worker, name="edcoach-provider", daemon=True).start()
    try:
        return future.result(timeout=timeout)
    except FutureTimeout as exc:
        raise ProviderFailure(f"{label} timed out after {timeout}s") from exc
    except Exception as exc:
        raise ProviderFailure(f"{label} failed: {exc}") from exc


STUDENT_PROMPT = dedent(
    """
    You are an educational coach writing for a student.
    {tone} Ground every statement in the analysis and teacher notes.

    Return ONLY valid JSON with these fields:
    {{
      "positiveObservation": string,
      "strengths": array of 1-3 strings,
      "improvementAreas": array of 1-2 strings,
      "strategies": array of 2-3 strings,
      "nextStepGoal": string,
      "encouragement": string
    }}
    Avoid raw scores, sensitive labels, or mention of JSON.

    Student analysis JSON:
    {analysis_json}

    Teacher preferences JSON:
    {preferences_json}

    Return ONLY the JSON object.
    """
).strip()

TEACHER_PROMPT = dedent(
    """
    You are an educational coach preparing a class summary for the teacher.
    Use a supportive, solution-oriented tone. {tone}

    Return ONLY valid JSON with these fields:
    {{
      "classOverview": string,
      "strengths": array of 1-4 strings,
      "attentionNeeded": array of {{"name": string, "reason": string}},
      "nextSteps": array of 2-4 strings
    }}
    Avoid raw scores or shaming language.

    Class summary JSON:
    {summary_json}

    Teacher preferences JSON:
    {preferences_json}

    Return ONLY the JSON object.
    """
).strip()


def _preferences_json(preferences: Optional[TeacherPreferences]) -> str:
    if preferences is None:
        return "None"
    return json.dumps(preferences.as_prompt_dict(), indent=2)


def _tone_sentence(preferences: Optional[TeacherPreferences]) -> str:
    tone = preferences.tone if preferences and preferences.tone else DEFAULT_TONE
    return TONE_GUIDANCE[tone]


def build_student_prompt(analysis: StudentAnalysis, preferences: Optional[TeacherPreferences]) -> str:
    return STUDENT_PROMPT.format(
        tone=_tone_sentence(preferences),
        analysis_json=json.dumps(analysis.as_dict(), indent=2),
        preferences_json=_preferences_json(preferences),
    )


def build_teacher_prompt(summary: ClassSummary, preferences: Optional[TeacherPreferences]) -> str:
    return TEACHER_PROMPT.format(
        tone=_tone_sentence(preferences),
        summary_json=json.dumps(summary.as_dict(), indent=2),
        preferences_json=_preferences_json(preferences),
    )


class DSPyInsightProvider:
    """Calls a DSPy LM handle with a single flattened prompt."""

    def __init__(self, lm: Any) -> None:
        self.lm = lm

    def generate_student_insights(
        self, analysis: StudentAnalysis, preferences: Optional[TeacherPreferences]
    ) -> str:
        LOGGER.debug("Generating student insights for %s", analysis.student.id)
        return self._call(build_student_prompt(analysis, preferences))

    def generate_teacher_insights(
        self, summary: ClassSummary, preferences: Optional[TeacherPreferences]
    ) -> str:
        LOGGER.debug("Generating teacher summary")
        return self._call(build_teacher_prompt(summary, preferences))

    def _call(self, prompt: str) -> str:
        raw = self.lm(prompt=prompt)
        return self._normalize_lm_output(raw)

    @staticmethod
    def _normalize_lm_output(raw: Any) -> str:
        if isinstance(raw, list):
            return "\n".join(str(part) for part in raw)
        return str(raw)


__all__ = [
    "DSPyInsightProvider",
    "InsightProvider",
    "ProviderFailure",
    "build_student_prompt",
    "build_teacher_prompt",
    "call_with_timeout",
]
