from pathlib import Path

from apps.coach.roster import load_roster
from edcoach.core.config import load_pipeline_config, load_teacher_preferences

REPO_ROOT = Path(__file__).resolve().parents[1]


def test_pipeline_sample_loads() -> None:
    """Ensure the shipped pipeline YAML matches PipelineConfig."""

    config = load_pipeline_config(REPO_ROOT / "config" / "pipeline.yaml", base_dir=REPO_ROOT)

    assert config.roster_path == (REPO_ROOT / "data" / "students.sample.json").resolve()
    assert config.preferences_path == (REPO_ROOT / "config" / "teacher_rules.json").resolve()
    assert config.models.coach_model == "gpt-4o-mini"
    assert config.memory.enabled is False


def test_teacher_rules_sample_loads() -> None:
    preferences = load_teacher_preferences(REPO_ROOT / "config" / "teacher_rules.json")

    assert preferences is not None
    assert preferences.tone == "warm"
    assert len(preferences.preferred_strategies) == 2


def test_sample_roster_is_fully_valid() -> None:
    roster = load_roster(REPO_ROOT / "data" / "students.sample.json")

    assert roster.errors == []
    assert roster.total_count == len(roster.students) == 3
