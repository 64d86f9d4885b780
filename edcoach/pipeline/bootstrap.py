"""Bootstrap helpers for the coaching pipeline."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict

from dotenv import load_dotenv

from edcoach.core.config import PipelineConfig, load_pipeline_config, load_teacher_preferences
from edcoach.core.dspy_runtime import DSPyConfigurationError, configure_coach_model
from edcoach.core.provenance import ProvenanceEvent, ProvenanceLogger

from .context import PipelineContext, PipelinePaths

DEFAULT_CONFIG_PATH = Path("config/pipeline.yaml")
DEFAULT_OUTPUT_DIR = Path("outputs")
DISABLE_LLM_ENV = "EDCOACH_DISABLE_LLM"
LOGGER = logging.getLogger(__name__)


def _capture_env(keys: tuple[str, ...]) -> Dict[str, str]:
    """Return a filtered snapshot of environment variables for provenance."""
    snapshot: Dict[str, str] = {}
    for key in keys:
        value = os.getenv(key)
        if value is not None:
            snapshot[key] = value
    return snapshot


def _llm_disabled_by_env() -> bool:
    return os.getenv(DISABLE_LLM_ENV, "").strip().lower() in {"1", "true", "yes", "on"}


def bootstrap_pipeline(
    config_path: Path | None = None,
    *,
    repo_root: Path | None = None,
    output_dir: Path | None = None,
    roster_path: Path | None = None,
    preferences_path: Path | None = None,
    timeout_seconds: float | None = None,
    offline: bool = False,
    env_keys: tuple[str, ...] = ("OPENAI_BASE_URL", DISABLE_LLM_ENV),
) -> PipelineContext:
    """
    Load configuration, environment variables, and construct the pipeline context.

    Parameters
    ----------
    config_path:
        Path to the pipeline YAML. Defaults to ``config/pipeline.yaml``.
    repo_root:
        Root of the repository. Relative config paths resolve against it.
        Defaults to ``Path.cwd()``.
    output_dir:
        Directory for logs and the local outbox. Defaults to ``repo_root / 'outputs'``.
    roster_path / preferences_path:
        Override the roster and teacher rules files named in the config.
    timeout_seconds:
        Override ``provider_timeout_seconds``.
    offline:
        Skip LM configuration; every insight then comes from the fallback
        builder. ``EDCOACH_DISABLE_LLM=1`` has the same effect.
    env_keys:
        Environment variables to capture for provenance logging.
    """

    repo_root = (repo_root or Path.cwd()).resolve()
    load_dotenv(repo_root / ".env")
    config_path = (config_path or repo_root / DEFAULT_CONFIG_PATH).resolve()
    output_dir = (output_dir or (repo_root / DEFAULT_OUTPUT_DIR)).resolve()

    config: PipelineConfig = load_pipeline_config(config_path, base_dir=repo_root)

    updates: Dict[str, object] = {}
    if roster_path is not None:
        updates["roster_path"] = roster_path.expanduser().resolve()
    if preferences_path is not None:
        updates["preferences_path"] = preferences_path.expanduser().resolve()
    if timeout_seconds is not None:
        if timeout_seconds <= 0:
            raise ValueError("Provider timeout must be positive")
        updates["provider_timeout_seconds"] = timeout_seconds
    if updates:
        config = config.model_copy(update=updates)

    paths = PipelinePaths(
        repo_root=repo_root,
        output_dir=output_dir,
        logs_dir=output_dir / "logs",
        outbox_dir=config.outbox.output_dir or output_dir / "outbox",
    )
    paths.ensure_directories()
    provenance = ProvenanceLogger(paths.logs_dir / "provenance.jsonl")

    ctx = PipelineContext(
        config=config,
        preferences=load_teacher_preferences(config.preferences_path),
        paths=paths,
        env=_capture_env(env_keys),
        provenance=provenance,
        offline=offline or _llm_disabled_by_env(),
    )

    if ctx.offline:
        LOGGER.info("LLM disabled; insights will use the deterministic fallback.")
        ctx.provenance.log(
            ProvenanceEvent(
                stage="bootstrap",
                message="Running offline; LM not configured",
                agent="edcoach.pipeline",
            )
        )
        return ctx

    try:
        ctx.lm = configure_coach_model(config.models)
    except DSPyConfigurationError as exc:
        raise RuntimeError("Unable to configure the DSPy coach model") from exc

    ctx.provenance.log(
        ProvenanceEvent(
            stage="bootstrap",
            message="DSPy coach model configured",
            agent="edcoach.pipeline",
            payload={
                "coach_model": config.models.coach_model,
                "provider_timeout_seconds": config.provider_timeout_seconds,
                "preferences_loaded": ctx.preferences is not None,
            },
        )
    )
    return ctx


__all__ = ["DEFAULT_CONFIG_PATH", "DISABLE_LLM_ENV", "bootstrap_pipeline"]
