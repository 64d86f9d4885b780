"""Student coaching domain: roster checks, analytics and insight generation."""
from .analyzer import analyze_student, summarize_class
from .engine import InsightOutcome, InsightState, generate_student_outcome, generate_teacher_outcome
from .fallback import SynthesisInvariantViolation, build_fallback_student_insights, build_fallback_teacher_insights
from .history import HistoryRecorder, SQLiteHistoryStore
from .insights import InsightFailure, parse_student_insights, parse_teacher_insights
from .models import ClassSummary, Student, StudentAnalysis, StudentInsights, TeacherInsights
from .outbox import LocalOutbox
from .provider import DSPyInsightProvider, InsightProvider, ProviderFailure
from .render import render_student_message, render_teacher_message
from .roster import load_roster, validate_batch

__all__ = [
    "ClassSummary",
    "DSPyInsightProvider",
    "HistoryRecorder",
    "InsightFailure",
    "InsightOutcome",
    "InsightProvider",
    "InsightState",
    "LocalOutbox",
    "ProviderFailure",
    "SQLiteHistoryStore",
    "Student",
    "StudentAnalysis",
    "StudentInsights",
    "SynthesisInvariantViolation",
    "TeacherInsights",
    "analyze_student",
    "build_fallback_student_insights",
    "build_fallback_teacher_insights",
    "generate_student_outcome",
    "generate_teacher_outcome",
    "load_roster",
    "parse_student_insights",
    "parse_teacher_insights",
    "render_student_message",
    "render_teacher_message",
    "summarize_class",
    "validate_batch",
]
