"""Configuration data models for benchmark runs."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, PositiveFloat, PositiveInt, ValidationError

from ai_bench.errors import ConfigurationError

RUNS_DIRECTORY = "runs"
RESULTS_DIRECTORY = "results"

DEFAULT_CONCURRENCY = 10
DEFAULT_TEST_RUNS_PER_MODEL = 5
DEFAULT_TIMEOUT_SECONDS = 300
DEFAULT_BENCHMARK = "sample-text-benchmark"

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

Provider = Literal["openrouter", "openai", "vllm", "local", "anthropic"]


class LLMConfig(BaseModel):
    name: str | None = None  # display name, falls back to `model`
    provider: Provider = "openrouter"
    model: str
    base_url: str | None = None
    api_key_env: str | None = None
    max_tokens: int = 4096
    temperature: float = 0.0
    provider_options: dict[str, Any] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or self.model

    @property
    def resolved_api_key_env(self) -> str | None:
        """Environment variable holding this model's API key, if any."""
        if self.api_key_env:
            return self.api_key_env
        if self.provider == "openrouter":
            return "OPENROUTER_API_KEY"
        if self.provider == "anthropic":
            return "ANTHROPIC_API_KEY"
        if self.provider == "openai":
            return "OPENAI_API_KEY"
        return None  # vllm / local servers take a dummy key


class BenchmarkConfig(BaseModel):
    """Configuration for one benchmark invocation."""
    benchmark: str = DEFAULT_BENCHMARK
    models: list[LLMConfig] = Field(default_factory=list)
    judge: LLMConfig = Field(
        default_factory=lambda: LLMConfig(model="google/gemini-2.5-flash-lite")
    )
    runs: PositiveInt = DEFAULT_TEST_RUNS_PER_MODEL
    parallel: PositiveInt = DEFAULT_CONCURRENCY
    timeout_seconds: PositiveFloat = DEFAULT_TIMEOUT_SECONDS
    output_dir: str = RUNS_DIRECTORY
    results_dir: str = RESULTS_DIRECTORY
    summary_name: str | None = None


def load_config(path: str | Path) -> BenchmarkConfig:
    """Load benchmark config from YAML file."""
    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    return parse_config(data)


def parse_config(data: Mapping[str, Any]) -> BenchmarkConfig:
    """Validate raw config data; errors surface as ConfigurationError."""
    try:
        return BenchmarkConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid benchmark config: {e}") from e


def apply_overrides(config: BenchmarkConfig, overrides: Mapping[str, Any]) -> BenchmarkConfig:
    """Return `config` with every non-None override applied and revalidated."""
    update = {k: v for k, v in overrides.items() if v is not None}
    return parse_config({**config.model_dump(), **update})


def select_models(config: BenchmarkConfig, name: str | None) -> list[LLMConfig]:
    """Return the configured models, narrowed to one when `name` is given."""
    if not config.models:
        raise ConfigurationError("No models configured")
    if name is None:
        return list(config.models)
    for model in config.models:
        if name in (model.display_name, model.model):
            return [model]
    raise ConfigurationError(f"Model '{name}' not found in config")


def validate_environment(
    config: BenchmarkConfig,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Check that every API key the run needs is present.

    Returns the resolved keys by variable name. Raises ConfigurationError
    listing every problem found, so nothing is dispatched on a bad setup.
    """
    environ = os.environ if environ is None else environ
    problems: list[str] = []
    keys: dict[str, str] = {}

    for llm in [*config.models, config.judge]:
        var = llm.resolved_api_key_env
        if var is None or var in keys:
            continue
        value = environ.get(var, "")
        if not value:
            problems.append(f"{var} is required")
        elif llm.provider == "openrouter" and not value.startswith("sk-"):
            problems.append(f"{var} should start with 'sk-'")
        else:
            keys[var] = value

    if problems:
        raise ConfigurationError(
            "Environment configuration error: " + "; ".join(dict.fromkeys(problems))
        )
    return keys
