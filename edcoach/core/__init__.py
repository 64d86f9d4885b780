"""
Configuration, provenance and validation primitives for the coaching pipeline.

Nothing here imports DSPy; the LM runtime lives in ``dspy_runtime`` and is
loaded only by the bootstrap.
"""

from .config import PipelineConfig, TeacherPreferences, load_pipeline_config, load_teacher_preferences
from .provenance import ProvenanceEvent, ProvenanceLogger
from .validation import ValidationFailure, ValidationResult

__all__ = [
    "PipelineConfig",
    "ProvenanceEvent",
    "ProvenanceLogger",
    "TeacherPreferences",
    "ValidationFailure",
    "ValidationResult",
    "load_pipeline_config",
    "load_teacher_preferences",
]
