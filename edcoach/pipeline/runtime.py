"""One analysis cycle: roster -> per-student insights -> class summary.

Students are processed strictly one after another so that at most one
provider call is in flight. A failure while handling one student is
recorded against that student and the loop moves on; the class summary is
built afterwards from every analysis that succeeded.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from apps.coach.analyzer import analyze_student, summarize_class
from apps.coach.engine import InsightOutcome, generate_student_outcome, generate_teacher_outcome, transitions
from apps.coach.fallback import SynthesisInvariantViolation
from apps.coach.history import HistoryRecorder, SQLiteHistoryStore
from apps.coach.memory import FileMemoryStore
from apps.coach.models import StudentAnalysis
from apps.coach.outbox import LocalOutbox, build_student_email, build_teacher_email
from apps.coach.provider import DSPyInsightProvider, InsightProvider
from apps.coach.roster import load_roster
from edcoach.core.provenance import ProvenanceEvent

from .context import PipelineContext

LOGGER_NAME = "edcoach.pipeline"
AGENT = "edcoach.pipeline"

STATUS_SENT = "sent"
STATUS_ANALYSIS_FAILED = "analysis_failed"
STATUS_INSIGHTS_FAILED = "insights_failed"
STATUS_SUMMARY_FAILED = "summary_failed"
RUN_COMPLETED = "completed"
RUN_NO_VALID_STUDENTS = "no_valid_students"
RUN_NO_SUCCESSFUL_ANALYSES = "no_successful_analyses"


@dataclass(slots=True)
class EntityResult:
    entity_id: str
    status: str
    used_fallback: bool = False
    location: Optional[str] = None
    error: Optional[str] = None


@dataclass(slots=True)
class CycleReport:
    run_id: str
    status: str = "running"
    total_count: int = 0
    valid_count: int = 0
    validation_errors: List[str] = field(default_factory=list)
    students: List[EntityResult] = field(default_factory=list)
    teacher: Optional[EntityResult] = None
    sink_errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def fallback_count(self) -> int:
        return sum(1 for result in self.students if result.used_fallback)


class CycleRunner:
    """Drives one cycle against explicit sinks."""

    def __init__(
        self,
        ctx: PipelineContext,
        *,
        provider: Optional[InsightProvider],
        recorder: Optional[HistoryRecorder],
        outbox: Optional[LocalOutbox],
        memory: Optional[FileMemoryStore],
        logger: logging.Logger | None = None,
    ) -> None:
        self.ctx = ctx
        self.provider = provider
        self.recorder = recorder
        self.outbox = outbox
        self.memory = memory
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.timeout = ctx.config.provider_timeout_seconds
        self.preferences = ctx.preferences

    def run(self) -> CycleReport:
        report = CycleReport(run_id=uuid.uuid4().hex)
        self.logger.info("Starting analysis cycle %s", report.run_id)

        roster = load_roster(self.ctx.config.roster_path)
        report.total_count = roster.total_count
        report.valid_count = len(roster.students)
        report.validation_errors = list(roster.errors)
        for error in roster.errors:
            self.logger.warning("Validation error: %s", error)
        self._log_stage(
            report,
            "roster",
            f"Loaded {report.valid_count} of {report.total_count} student record(s)",
            {"roster_path": str(self.ctx.config.roster_path), "errors": report.validation_errors},
        )
        self._sink(
            report,
            "history.start_run",
            lambda: self.recorder.start_run(
                report.run_id,
                total_count=report.total_count,
                valid_count=report.valid_count,
                invalid_count=report.total_count - report.valid_count,
                errors=report.validation_errors,
            ),
        )

        if not roster.students:
            self.logger.warning("No valid students available for analysis")
            return self._finish(report, RUN_NO_VALID_STUDENTS)

        analyses: List[StudentAnalysis] = []
        for student in roster.students:
            try:
                analysis = analyze_student(student)
            except Exception as exc:
                self.logger.error("Failed to analyze student %s: %s", student.id, exc)
                self._record_student(report, EntityResult(student.id, STATUS_ANALYSIS_FAILED, error=str(exc)))
                continue
            analyses.append(analysis)
            self._process_student(report, analysis)

        if not analyses:
            self.logger.warning("No successful analyses; skipping teacher summary")
            return self._finish(report, RUN_NO_SUCCESSFUL_ANALYSES)

        self._process_summary(report, analyses)
        return self._finish(report, RUN_COMPLETED)

    # ------------------------------------------------------------------

    def _process_student(self, report: CycleReport, analysis: StudentAnalysis) -> None:
        student = analysis.student
        outcome: Optional[InsightOutcome] = None
        try:
            outcome = generate_student_outcome(analysis, self.provider, self.preferences, self.timeout)
            email = build_student_email(student, outcome.message)
            location = self._sink(report, f"outbox.student.{student.id}", lambda: self._deliver(email))
            if self.memory is not None:
                insights = outcome.insights
                self._sink(report, f"memory.student.{student.id}", lambda: self.memory.remember_student(student, insights))
        except SynthesisInvariantViolation:
            raise
        except Exception as exc:
            self.logger.error("Failed to process student %s: %s", student.id, exc)
            self._record_student(
                report,
                EntityResult(student.id, STATUS_INSIGHTS_FAILED, error=str(exc)),
                analysis=analysis.as_dict(),
            )
            return

        result = EntityResult(
            student.id,
            STATUS_SENT,
            used_fallback=outcome.used_fallback,
            location=str(location) if location else None,
        )
        self._record_student(report, result, analysis=analysis.as_dict(), insights=outcome.insights.as_dict())
        self._log_stage(
            report,
            "student_insights",
            f"Insights delivered for {student.id}",
            {
                "student_id": student.id,
                "used_fallback": outcome.used_fallback,
                "states": list(transitions(outcome)),
                "errors": outcome.errors,
                "failure": outcome.failure.value if outcome.failure else None,
                "location": result.location,
            },
        )

    def _process_summary(self, report: CycleReport, analyses: List[StudentAnalysis]) -> None:
        summary = None
        try:
            summary = summarize_class(analyses)
            outcome = generate_teacher_outcome(summary, self.provider, self.preferences, self.timeout)
            email = build_teacher_email(self.ctx.config.outbox.teacher_email, outcome.message)
            location = self._sink(report, "outbox.teacher", lambda: self._deliver(email))
            if self.memory is not None:
                insights = outcome.insights
                self._sink(report, "memory.teacher", lambda: self.memory.remember_class(insights))
        except SynthesisInvariantViolation:
            raise
        except Exception as exc:
            self.logger.error("Failed to build teacher summary: %s", exc)
            report.teacher = EntityResult("teacher", STATUS_SUMMARY_FAILED, error=str(exc))
            self._sink(
                report,
                "history.aggregate",
                lambda: self.recorder.record_aggregate_outcome(
                    report.run_id,
                    status=STATUS_SUMMARY_FAILED,
                    summary=summary.as_dict() if summary else None,
                    error=str(exc),
                ),
            )
            return

        report.teacher = EntityResult(
            "teacher",
            STATUS_SENT,
            used_fallback=outcome.used_fallback,
            location=str(location) if location else None,
        )
        self._sink(
            report,
            "history.aggregate",
            lambda: self.recorder.record_aggregate_outcome(
                report.run_id,
                status=STATUS_SENT,
                used_fallback=outcome.used_fallback,
                summary=summary.as_dict(),
                insights=outcome.insights.as_dict(),
                location_ref=report.teacher.location,
            ),
        )
        self._log_stage(
            report,
            "teacher_summary",
            "Class summary delivered",
            {
                "used_fallback": outcome.used_fallback,
                "states": list(transitions(outcome)),
                "errors": outcome.errors,
                "class_average": summary.class_average,
                "location": report.teacher.location,
            },
        )

    def _deliver(self, email: Any) -> Any:
        if self.outbox is None:
            return None
        return self.outbox.deliver(email)

    def _record_student(
        self,
        report: CycleReport,
        result: EntityResult,
        *,
        analysis: Optional[Dict[str, Any]] = None,
        insights: Optional[Dict[str, Any]] = None,
    ) -> None:
        report.students.append(result)
        self._sink(
            report,
            f"history.student.{result.entity_id}",
            lambda: self.recorder.record_entity_outcome(
                report.run_id,
                result.entity_id,
                status=result.status,
                used_fallback=result.used_fallback,
                analysis=analysis,
                insights=insights,
                error=result.error,
                location_ref=result.location,
            ),
        )

    def _finish(self, report: CycleReport, status: str) -> CycleReport:
        report.status = status
        self._sink(report, "history.finish_run", lambda: self.recorder.finish_run(report.run_id, status))
        self._log_stage(
            report,
            "complete",
            f"Analysis cycle finished with status {status}",
            {
                "status": status,
                "students": len(report.students),
                "fallbacks": report.fallback_count,
                "sink_errors": len(report.sink_errors),
            },
        )
        self.logger.info("Analysis cycle %s finished: %s", report.run_id, status)
        return report

    def _sink(self, report: CycleReport, target: str, action: Callable[[], Any]) -> Any:
        """Run a side-effecting call whose failure must not reach the cycle."""
        if target.startswith("history.") and self.recorder is None:
            return None
        try:
            return action()
        except Exception as exc:
            self.logger.warning("Sink %s failed: %s", target, exc)
            report.sink_errors.append({"target": target, "error": str(exc)})
            return None

    def _log_stage(self, report: CycleReport, stage: str, message: str, payload: Dict[str, Any]) -> None:
        try:
            self.ctx.provenance.log(
                ProvenanceEvent(stage=stage, message=message, agent=AGENT, run_id=report.run_id, payload=payload)
            )
        except OSError as exc:
            self.logger.warning("Provenance log write failed: %s", exc)


def run_cycle(
    ctx: PipelineContext,
    *,
    provider: Optional[InsightProvider] = None,
    recorder: Optional[HistoryRecorder] = None,
    outbox: Optional[LocalOutbox] = None,
    memory: Optional[FileMemoryStore] = None,
) -> CycleReport:
    """Run one cycle. Sinks left as ``None`` are built from ``ctx.config``."""
    if provider is None and ctx.lm is not None and not ctx.offline:
        provider = DSPyInsightProvider(ctx.lm)
    if recorder is None:
        recorder = SQLiteHistoryStore(ctx.config.history.sqlite_path)
    if outbox is None:
        outbox = LocalOutbox(ctx.paths.outbox_dir, ctx.config.outbox.email_from)
    if memory is None and ctx.config.memory.enabled:
        memory = FileMemoryStore(ctx.config.memory.memory_dir, ctx.config.memory.history_limit)
    runner = CycleRunner(ctx, provider=provider, recorder=recorder, outbox=outbox, memory=memory)
    return runner.run()


__all__ = [
    "CycleReport",
    "CycleRunner",
    "EntityResult",
    "LOGGER_NAME",
    "run_cycle",
]
