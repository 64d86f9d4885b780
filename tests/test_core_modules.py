import json
import tempfile
import unittest
from pathlib import Path

from edcoach.core.config import (
    PipelineConfig,
    TeacherPreferences,
    load_pipeline_config,
    load_teacher_preferences,
)
from edcoach.core.provenance import ProvenanceEvent, ProvenanceLogger


class ConfigParsingTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)

    def _write(self, name: str, data: str) -> Path:
        path = self.root / name
        path.write_text(data, encoding="utf-8")
        return path

    def test_load_pipeline_config_resolves_relative_paths(self) -> None:
        path = self._write(
            "pipeline.yaml",
            """
roster_path: data/students.json
preferences_path: config/teacher_rules.json
history:
  sqlite_path: outputs/history.sqlite
memory:
  enabled: true
  memory_dir: outputs/memory
""",
        )
        config = load_pipeline_config(path)

        self.assertIsInstance(config, PipelineConfig)
        self.assertEqual(config.roster_path, (self.root / "data/students.json").resolve())
        self.assertEqual(config.history.sqlite_path, (self.root / "outputs/history.sqlite").resolve())
        self.assertTrue(config.memory.enabled)
        self.assertEqual(config.provider_timeout_seconds, 30.0)
        self.assertEqual(config.models.coach_model, "gpt-4o-mini")
        self.assertIsNone(config.outbox.output_dir)

    def test_base_dir_overrides_config_parent(self) -> None:
        path = self._write("pipeline.yaml", "roster_path: students.json\n")
        base = self.root / "repo"

        config = load_pipeline_config(path, base_dir=base)

        self.assertEqual(config.roster_path, (base / "students.json").resolve())

    def test_flat_model_fields_are_promoted(self) -> None:
        path = self._write(
            "pipeline.yaml",
            """
roster_path: students.json
models:
  openai_model: gpt-4.1-mini
  openai_base_url: https://proxy.example
  temperature: 0.2
""",
        )
        config = load_pipeline_config(path)

        self.assertEqual(config.models.coach.model, "gpt-4.1-mini")
        self.assertEqual(config.models.coach.api_base, "https://proxy.example")
        self.assertEqual(config.models.default_temperature, 0.2)

    def test_missing_roster_path_is_rejected(self) -> None:
        path = self._write("pipeline.yaml", "provider_timeout_seconds: 10\n")

        with self.assertRaises(ValueError) as ctx:
            load_pipeline_config(path)

        self.assertIn("Missing config key: roster_path", str(ctx.exception.__cause__))

    def test_non_positive_timeout_is_rejected(self) -> None:
        path = self._write("pipeline.yaml", "roster_path: students.json\nprovider_timeout_seconds: 0\n")

        with self.assertRaises(ValueError):
            load_pipeline_config(path)

    def test_non_mapping_yaml_is_rejected(self) -> None:
        path = self._write("pipeline.yaml", "- just\n- a list\n")

        with self.assertRaises(ValueError):
            load_pipeline_config(path)


class TeacherPreferencesTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)

    def test_load_rules_file(self) -> None:
        path = self.root / "rules.json"
        path.write_text(
            json.dumps(
                {
                    "classGoals": ["  Finish the unit project.  ", ""],
                    "preferredStrategies": "Use exit tickets.",
                    "tone": "direct",
                    "teacherNotes": " Short feedback please. ",
                    "unknown": True,
                }
            ),
            encoding="utf-8",
        )

        preferences = load_teacher_preferences(path)

        self.assertIsInstance(preferences, TeacherPreferences)
        self.assertEqual(preferences.class_goals, ["Finish the unit project."])
        self.assertEqual(preferences.preferred_strategies, ["Use exit tickets."])
        self.assertEqual(preferences.focus_areas, [])
        self.assertEqual(preferences.tone, "direct")
        self.assertEqual(preferences.teacher_notes, "Short feedback please.")

    def test_unknown_tone_is_dropped(self) -> None:
        self.assertIsNone(TeacherPreferences.model_validate({"tone": "sarcastic"}).tone)

    def test_missing_or_broken_rules_mean_no_preferences(self) -> None:
        broken = self.root / "broken.json"
        broken.write_text("{", encoding="utf-8")
        array = self.root / "array.json"
        array.write_text("[]", encoding="utf-8")

        with self.assertLogs("edcoach.core.config", level="WARNING"):
            self.assertIsNone(load_teacher_preferences(self.root / "missing.json"))
        self.assertIsNone(load_teacher_preferences(broken))
        self.assertIsNone(load_teacher_preferences(array))
        self.assertIsNone(load_teacher_preferences(None))

    def test_prompt_dict_uses_rules_file_keys(self) -> None:
        preferences = TeacherPreferences(focus_areas=["Reading"], tone="warm")

        self.assertEqual(
            preferences.as_prompt_dict(),
            {
                "classGoals": [],
                "focusAreas": ["Reading"],
                "preferredStrategies": [],
                "tone": "warm",
                "teacherNotes": None,
            },
        )


class ProvenanceLoggerTests(unittest.TestCase):
    def test_log_and_read_by_run(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            logger = ProvenanceLogger(Path(tmp) / "logs" / "provenance.jsonl")
            logger.log(ProvenanceEvent(stage="roster", message="loaded", run_id="run-1"))
            logger.extend(
                [
                    {"stage": "complete", "message": "done", "run_id": "run-1", "payload": {"status": "completed"}},
                    {"stage": "roster", "message": "loaded", "run_id": "run-2"},
                ]
            )

            events = logger.read(run_id="run-1")

            self.assertEqual([event.stage for event in events], ["roster", "complete"])
            self.assertEqual(events[1].payload, {"status": "completed"})
            self.assertEqual(len(logger.read()), 3)

    def test_read_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            logger = ProvenanceLogger(Path(tmp) / "provenance.jsonl")
            self.assertEqual(logger.read(), [])


if __name__ == "__main__":
    unittest.main()
