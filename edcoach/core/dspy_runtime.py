"""Helpers for configuring the DSPy language model behind the coach."""

from __future__ import annotations

import os
from typing import Any, Dict

import dspy

from edcoach.core.config import ModelConfig, RoleModelConfig


class DSPyConfigurationError(RuntimeError):
    """Raised when DSPy cannot be configured for the requested run."""


def _build_openai_lm(
    model_name: str,
    *,
    api_key: str,
    temperature: float,
    max_tokens: int,
    api_base: str | None = None,
    extra_kwargs: Dict[str, Any] | None = None,
) -> object:
    if "/" not in model_name:
        model_name = f"openai/{model_name}"
    kwargs: Dict[str, Any] = {
        "api_key": api_key,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    if api_base:
        kwargs["api_base"] = api_base
    if extra_kwargs:
        kwargs.update(extra_kwargs)
    return dspy.LM(model_name, **kwargs)


def _resolve_env(candidates: list[str | None]) -> str | None:
    for env_var in candidates:
        if env_var and (value := os.getenv(env_var)):
            return value
    return None


def _resolve_api_key(role_cfg: RoleModelConfig) -> str | None:
    return _resolve_env([role_cfg.api_key_env, "OPENAI_API_KEY_COACH", "OPENAI_API_KEY"])


def _resolve_api_base(role_cfg: RoleModelConfig) -> str | None:
    if role_cfg.api_base:
        return role_cfg.api_base
    return _resolve_env([role_cfg.api_base_env, "OPENAI_BASE_URL", "OPENAI_API_BASE"])


def configure_coach_model(model_cfg: ModelConfig, *, api_key: str | None = None) -> object:
    """Instantiate the DSPy LM used to write student and teacher insights."""

    role_cfg = model_cfg.coach
    if role_cfg.provider != "openai":
        raise DSPyConfigurationError(f"Unsupported provider '{role_cfg.provider}' for the coach model")

    resolved_key = api_key or _resolve_api_key(role_cfg)
    if not resolved_key:
        expected_env = role_cfg.api_key_env or "OPENAI_API_KEY"
        raise DSPyConfigurationError(f"Missing API key for the coach model; set {expected_env}.")

    temperature = role_cfg.temperature if role_cfg.temperature is not None else model_cfg.default_temperature
    max_tokens = role_cfg.max_tokens if role_cfg.max_tokens is not None else model_cfg.default_max_tokens

    lm = _build_openai_lm(
        role_cfg.model,
        api_key=resolved_key,
        temperature=temperature,
        max_tokens=max_tokens,
        api_base=_resolve_api_base(role_cfg),
        extra_kwargs=role_cfg.extra_kwargs,
    )
    dspy.settings.configure(lm=lm)
    return lm


__all__ = ["DSPyConfigurationError", "configure_coach_model"]
