"""Shared context objects for the coaching pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from edcoach.core.config import PipelineConfig, TeacherPreferences
from edcoach.core.provenance import ProvenanceLogger


class PipelinePaths(BaseModel):
    """Canonical directories used during a pipeline run."""

    repo_root: Path
    output_dir: Path
    logs_dir: Path
    outbox_dir: Path

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("repo_root", "output_dir", "logs_dir", "outbox_dir", mode="before")
    @classmethod
    def _expand(cls, value: Path | str) -> Path:
        return Path(value).expanduser().resolve()

    def ensure_directories(self) -> None:
        """Create directories if they do not yet exist."""
        for path in (self.output_dir, self.logs_dir, self.outbox_dir):
            path.mkdir(parents=True, exist_ok=True)


class PipelineContext(BaseModel):
    """Aggregated runtime context for one or more analysis cycles."""

    config: PipelineConfig
    preferences: Optional[TeacherPreferences] = None
    paths: PipelinePaths
    env: Dict[str, str] = Field(default_factory=dict)
    provenance: ProvenanceLogger
    lm: Optional[Any] = None
    offline: bool = False

    model_config = ConfigDict(arbitrary_types_allowed=True)
