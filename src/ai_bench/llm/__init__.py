"""LLM clients used for models under test and for the judge."""

from __future__ import annotations

import os

from ai_bench.config import OPENROUTER_BASE_URL, LLMConfig
from ai_bench.errors import ConfigurationError

from .base import LLMClient, LLMResponse


def create_llm_client(llm_config: LLMConfig, timeout_seconds: float | None = None) -> LLMClient:
    """Create LLM client based on provider config."""
    provider = llm_config.provider
    key_env = llm_config.resolved_api_key_env
    api_key = os.environ.get(key_env) if key_env else None

    if provider == "anthropic":
        from .anthropic import AnthropicClient
        return AnthropicClient(
            model=llm_config.model, api_key=api_key, timeout=timeout_seconds,
        )

    if provider in ("openrouter", "openai", "vllm", "local"):
        from .openai_compat import OpenAICompatClient
        default_url = {
            "openrouter": OPENROUTER_BASE_URL,
            "openai": "https://api.openai.com/v1",
        }.get(provider, "http://localhost:8000/v1")
        return OpenAICompatClient(
            model=llm_config.model,
            base_url=llm_config.base_url or default_url,
            api_key=api_key or "dummy",
            timeout=timeout_seconds,
            extra_body=dict(llm_config.provider_options) or None,
        )

    raise ConfigurationError(f"Unknown LLM provider: {provider}")
