"""OpenAI-compatible LLM client for OpenRouter, vLLM, and other local servers.

Reasoning models may return `<think>` blocks inline; they are stripped from
the text. Reasoning token counts are read from `completion_tokens_details`
when the server reports them.
"""

from __future__ import annotations

import json
import re
from typing import Any

from openai import AsyncOpenAI

from ai_bench.errors import ExecutionError

from .base import LLMClient, LLMResponse


class OpenAICompatClient(LLMClient):
    """Async OpenAI-compatible chat completions client."""

    def __init__(
        self,
        model: str,
        base_url: str = "http://localhost:8000/v1",
        api_key: str = "dummy",
        timeout: float | None = None,
        extra_body: dict[str, Any] | None = None,
    ):
        self.model = model
        self.base_url = base_url
        self.extra_body = extra_body or {}
        client_kwargs: dict[str, Any] = {"base_url": base_url, "api_key": api_key}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self.client = AsyncOpenAI(**client_kwargs)

    async def generate(
        self,
        prompt: str,
        system: str = "",
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> LLMResponse:
        response = await self.client.chat.completions.create(
            **self._request_kwargs(prompt, system, max_tokens, temperature)
        )
        return self._to_response(response)

    async def generate_json(
        self,
        prompt: str,
        schema: dict[str, Any],
        schema_name: str = "response",
        system: str = "",
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> LLMResponse:
        kwargs = self._request_kwargs(prompt, system, max_tokens, temperature)
        kwargs["response_format"] = {
            "type": "json_schema",
            "json_schema": {"name": schema_name, "schema": schema},
        }
        response = await self.client.chat.completions.create(**kwargs)
        result = self._to_response(response)
        try:
            result.parsed = json.loads(result.text)
        except json.JSONDecodeError as e:
            raise ExecutionError(f"Structured response is not valid JSON: {e}") from e
        return result

    def _request_kwargs(
        self,
        prompt: str,
        system: str,
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if self.extra_body:
            kwargs["extra_body"] = self.extra_body
        return kwargs

    def _to_response(self, response: Any) -> LLMResponse:
        if not response.choices:
            raise ExecutionError("Response contained no choices")
        message = response.choices[0].message
        text = _strip_thinking(message.content or "")

        usage = response.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0
        details = getattr(usage, "completion_tokens_details", None) if usage else None
        reasoning_tokens = getattr(details, "reasoning_tokens", None) if details else None

        return LLMResponse(
            text=text,
            input_tokens=input_tokens or 0,
            output_tokens=output_tokens or 0,
            reasoning_tokens=reasoning_tokens,
            model=self.model,
            raw_response=response,
        )


def _strip_thinking(text: str) -> str:
    """Remove <think>...</think> blocks from model output."""
    return re.sub(r"<think>.*?</think>\s*", "", text, flags=re.DOTALL).strip()
