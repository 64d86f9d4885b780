"""
Typed configuration helpers for the coaching pipeline.

The pipeline YAML and the optional teacher rules JSON are both untrusted
inputs, so everything is funnelled through pydantic models before the
orchestrator sees it.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

LOGGER = logging.getLogger(__name__)


class TeacherPreferences(BaseModel):
    """Optional teacher customisation fed to both the prompt and the fallback."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    class_goals: List[str] = Field(default_factory=list, validation_alias="classGoals")
    focus_areas: List[str] = Field(default_factory=list, validation_alias="focusAreas")
    preferred_strategies: List[str] = Field(default_factory=list, validation_alias="preferredStrategies")
    tone: Optional[Literal["warm", "neutral", "direct"]] = None
    teacher_notes: Optional[str] = Field(default=None, validation_alias="teacherNotes")

    @field_validator("class_goals", "focus_areas", "preferred_strategies", mode="before")
    @classmethod
    def strip_items(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return []
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]

    @field_validator("tone", mode="before")
    @classmethod
    def drop_unknown_tone(cls, value: Any) -> Any:
        if value in ("warm", "neutral", "direct"):
            return value
        return None

    @field_validator("teacher_notes", mode="before")
    @classmethod
    def strip_notes(cls, value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return None
        return value.strip()

    def as_prompt_dict(self) -> Dict[str, Any]:
        """Camel-cased payload mirroring the teacher rules file."""
        return {
            "classGoals": list(self.class_goals),
            "focusAreas": list(self.focus_areas),
            "preferredStrategies": list(self.preferred_strategies),
            "tone": self.tone,
            "teacherNotes": self.teacher_notes,
        }


class RoleModelConfig(BaseModel):
    """Provider-specific configuration for the coaching LM."""

    model_config = ConfigDict(extra="allow")

    provider: Literal["openai"] = "openai"
    model: str
    temperature: float | None = Field(default=None, ge=0.0, le=1.0)
    max_tokens: int | None = Field(default=None, ge=64)
    api_key_env: str | None = None
    api_base: str | None = None
    api_base_env: str | None = None

    @property
    def extra_kwargs(self) -> Dict[str, Any]:
        return getattr(self, "model_extra", {})


class ModelConfig(BaseModel):
    """LLM defaults for the coach role."""

    model_config = ConfigDict(extra="ignore")

    coach: RoleModelConfig = Field(default_factory=lambda: RoleModelConfig(model="gpt-4o-mini"))
    default_temperature: float = Field(default=0.8, ge=0.0, le=1.0)
    default_max_tokens: int = Field(default=1024, ge=256)

    @model_validator(mode="before")
    @classmethod
    def coerce_flat_format(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        payload = dict(data)
        # Flat `openai_model` / `temperature` keys mirror the OPENAI_* env vars.
        if "coach" not in payload and "openai_model" in payload:
            payload["coach"] = {"provider": "openai", "model": payload.pop("openai_model")}
            if payload.get("openai_base_url"):
                payload["coach"]["api_base"] = payload.pop("openai_base_url")
        if "temperature" in payload:
            payload["default_temperature"] = payload.pop("temperature")
        if "max_tokens" in payload:
            payload["default_max_tokens"] = payload.pop("max_tokens")
        return payload

    @property
    def coach_model(self) -> str:
        return self.coach.model


class HistoryConfig(BaseModel):
    """Where the audit database lives."""

    sqlite_path: Path = Field(default=Path("outputs/history.sqlite"))

    @field_validator("sqlite_path", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Path:
        return Path(value).expanduser().resolve()


class OutboxConfig(BaseModel):
    """Local email simulation settings."""

    email_from: str = "Edu Assistant <noreply@local>"
    teacher_email: str = "teacher@example.com"
    output_dir: Optional[Path] = None

    @field_validator("output_dir", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Optional[Path]:
        if value in (None, ""):
            return None
        return Path(value).expanduser().resolve()


class MemoryConfig(BaseModel):
    """Long-term memory files for students and the teacher."""

    enabled: bool = False
    memory_dir: Path = Field(default=Path("outputs/memory"))
    history_limit: int = Field(default=5, ge=0, le=50)

    @field_validator("memory_dir", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Path:
        return Path(value).expanduser().resolve()


class PipelineConfig(BaseModel):
    """Top-level configuration for one analysis cycle."""

    roster_path: Path
    preferences_path: Optional[Path] = None
    provider_timeout_seconds: float = Field(default=30.0, gt=0.0, le=600.0)
    models: ModelConfig = Field(default_factory=ModelConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    outbox: OutboxConfig = Field(default_factory=OutboxConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)

    @model_validator(mode="before")
    @classmethod
    def ensure_roster_present(cls, values: Any) -> Any:
        if isinstance(values, dict) and not values.get("roster_path"):
            raise ValueError("Missing config key: roster_path")
        return values

    @field_validator("roster_path", "preferences_path", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Optional[Path]:
        if value in (None, ""):
            return None
        return Path(value).expanduser().resolve()


def read_yaml_file(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return a dictionary."""
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at root of {path}, received {type(data)}")
    return data


def _resolve_config_path(value: Any, base_dir: Path) -> str:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    else:
        path = path.resolve()
    return str(path)


def _absolutize_pipeline_paths(data: Dict[str, Any], base_dir: Path) -> None:
    for key in ("roster_path", "preferences_path"):
        if data.get(key):
            data[key] = _resolve_config_path(data[key], base_dir)

    sections = {"history": ("sqlite_path",), "outbox": ("output_dir",), "memory": ("memory_dir",)}
    for section, keys in sections.items():
        block = data.get(section)
        if not isinstance(block, dict):
            continue
        for key in keys:
            if block.get(key):
                block[key] = _resolve_config_path(block[key], base_dir)


def load_pipeline_config(path: Path, *, base_dir: Path | None = None) -> PipelineConfig:
    """Load the pipeline config used by the run CLI."""
    path = path.expanduser().resolve()
    data = read_yaml_file(path)
    _absolutize_pipeline_paths(data, base_dir=(base_dir or path.parent).resolve())
    try:
        return PipelineConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid pipeline config in {path}") from exc


def load_teacher_preferences(path: Path | None) -> TeacherPreferences | None:
    """
    Load teacher preference rules from a JSON file.

    Preferences are optional: a missing, unreadable or malformed file is
    logged and treated as "no preferences" so a run never fails because of
    them.
    """
    if path is None:
        return None
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        LOGGER.warning("Teacher rules file not found: %s", path)
        return None
    except (OSError, json.JSONDecodeError) as exc:
        LOGGER.error("Failed to load teacher rules from %s: %s", path, exc)
        return None

    if not isinstance(payload, dict):
        LOGGER.warning("Teacher rules file must be a JSON object: %s", path)
        return None

    preferences = TeacherPreferences.model_validate(payload)
    LOGGER.info("Teacher rules loaded from %s", path)
    return preferences
