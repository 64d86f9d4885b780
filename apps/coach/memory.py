"""Per-student and class-level memory carried between runs.

Memory is best effort. Loading degrades to empty records and saving only
logs when the disk misbehaves, so a broken memory dir never stops a run.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models import Student, StudentInsights, TeacherInsights

LOGGER = logging.getLogger(__name__)

STUDENT_LIST_LIMIT = 3
TEACHER_LIST_LIMIT = 4
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


class MemoryEntry(BaseModel):
    date: str
    note: str


class StudentMemory(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_id: str = Field(default="", alias="studentId")
    summary: str = ""
    strengths: List[str] = Field(default_factory=list)
    improvement_areas: List[str] = Field(default_factory=list, alias="improvementAreas")
    goals: List[str] = Field(default_factory=list)
    last_updated: str = Field(default="", alias="lastUpdated")
    history: List[MemoryEntry] = Field(default_factory=list)


class TeacherMemory(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: str = ""
    class_goals: List[str] = Field(default_factory=list, alias="classGoals")
    focus_areas: List[str] = Field(default_factory=list, alias="focusAreas")
    last_updated: str = Field(default="", alias="lastUpdated")
    history: List[MemoryEntry] = Field(default_factory=list)


def _timestamp(now: Optional[datetime]) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


def unique_list(items: Iterable[str], limit: int) -> List[str]:
    """Trimmed, de-duplicated, order-preserving, at most ``limit`` long."""
    result: List[str] = []
    for item in items:
        cleaned = item.strip()
        if not cleaned or cleaned in result:
            continue
        result.append(cleaned)
        if len(result) >= limit:
            break
    return result


def trim_history(entries: List[MemoryEntry], limit: int) -> List[MemoryEntry]:
    if limit <= 0:
        return []
    return entries[:limit]


def student_memory_path(memory_dir: Path, student_id: str) -> Path:
    safe_id = _UNSAFE_CHARS.sub("_", student_id).strip("._") or "student"
    return memory_dir / "students" / f"{safe_id}.json"


def teacher_memory_path(memory_dir: Path) -> Path:
    return memory_dir / "teacher.json"


def _read_json(path: Path) -> Optional[dict]:
    if not path.exists():
        return None
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        LOGGER.warning("Failed to read memory file %s: %s", path, exc)
        return None
    if not isinstance(payload, dict):
        LOGGER.warning("Memory file %s does not contain a JSON object", path)
        return None
    return payload


def load_student_memory(memory_dir: Path, student_id: str) -> StudentMemory:
    payload = _read_json(student_memory_path(memory_dir, student_id))
    if payload is None:
        return StudentMemory(student_id=student_id)
    try:
        memory = StudentMemory.model_validate(payload)
    except ValidationError as exc:
        LOGGER.warning("Discarding malformed memory for %s: %s", student_id, exc)
        return StudentMemory(student_id=student_id)
    return memory.model_copy(update={"student_id": student_id})


def load_teacher_memory(memory_dir: Path) -> TeacherMemory:
    payload = _read_json(teacher_memory_path(memory_dir))
    if payload is None:
        return TeacherMemory()
    try:
        return TeacherMemory.model_validate(payload)
    except ValidationError as exc:
        LOGGER.warning("Discarding malformed teacher memory: %s", exc)
        return TeacherMemory()


def _write(path: Path, memory: BaseModel) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(memory.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    except OSError as exc:
        LOGGER.warning("Failed to save memory file %s: %s", path, exc)


def save_student_memory(memory_dir: Path, memory: StudentMemory) -> None:
    _write(student_memory_path(memory_dir, memory.student_id), memory)


def save_teacher_memory(memory_dir: Path, memory: TeacherMemory) -> None:
    _write(teacher_memory_path(memory_dir), memory)


def update_student_memory(
    previous: StudentMemory,
    student: Student,
    insights: StudentInsights,
    history_limit: int,
    *,
    now: Optional[datetime] = None,
) -> StudentMemory:
    stamp = _timestamp(now)
    entry = MemoryEntry(
        date=stamp,
        note=f"Focus: {'; '.join(insights.improvement_areas)} | Goal: {insights.next_step_goal}",
    )
    return StudentMemory(
        student_id=student.id,
        summary=f"{insights.positive_observation} Goal: {insights.next_step_goal}",
        strengths=unique_list([insights.positive_observation, *insights.strengths], STUDENT_LIST_LIMIT),
        improvement_areas=unique_list(insights.improvement_areas, STUDENT_LIST_LIMIT),
        goals=unique_list([insights.next_step_goal, *previous.goals], STUDENT_LIST_LIMIT),
        last_updated=stamp,
        history=trim_history([entry, *previous.history], history_limit),
    )


def update_teacher_memory(
    previous: TeacherMemory,
    insights: TeacherInsights,
    history_limit: int,
    *,
    now: Optional[datetime] = None,
) -> TeacherMemory:
    stamp = _timestamp(now)
    entry = MemoryEntry(date=stamp, note=f"Next steps: {'; '.join(insights.next_steps)}")
    return TeacherMemory(
        summary=insights.class_overview,
        class_goals=unique_list(previous.class_goals, TEACHER_LIST_LIMIT),
        focus_areas=unique_list(previous.focus_areas, TEACHER_LIST_LIMIT),
        last_updated=stamp,
        history=trim_history([entry, *previous.history], history_limit),
    )


class FileMemoryStore:
    """Loads, updates and saves memory files under one directory."""

    def __init__(self, memory_dir: Path, history_limit: int) -> None:
        self.memory_dir = memory_dir
        self.history_limit = history_limit

    def remember_student(self, student: Student, insights: StudentInsights) -> StudentMemory:
        previous = load_student_memory(self.memory_dir, student.id)
        updated = update_student_memory(previous, student, insights, self.history_limit)
        save_student_memory(self.memory_dir, updated)
        return updated

    def remember_class(self, insights: TeacherInsights) -> TeacherMemory:
        previous = load_teacher_memory(self.memory_dir)
        updated = update_teacher_memory(previous, insights, self.history_limit)
        save_teacher_memory(self.memory_dir, updated)
        return updated


__all__ = [
    "FileMemoryStore",
    "MemoryEntry",
    "StudentMemory",
    "TeacherMemory",
    "load_student_memory",
    "load_teacher_memory",
    "save_student_memory",
    "save_teacher_memory",
    "student_memory_path",
    "teacher_memory_path",
    "unique_list",
    "update_student_memory",
    "update_teacher_memory",
]
