"""Pipeline bootstrap and cycle runner for the coaching assistant."""

from __future__ import annotations

from .bootstrap import bootstrap_pipeline
from .context import PipelineContext, PipelinePaths
from .runtime import CycleReport, EntityResult, run_cycle

__all__ = [
    "CycleReport",
    "EntityResult",
    "PipelineContext",
    "PipelinePaths",
    "bootstrap_pipeline",
    "run_cycle",
]
