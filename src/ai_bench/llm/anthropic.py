"""Anthropic Claude LLM client.

Structured output is requested through a single forced tool whose input
schema is the target schema; the tool input is the decoded object.
"""

from __future__ import annotations

from typing import Any

import anthropic

from ai_bench.errors import ExecutionError

from .base import LLMClient, LLMResponse


class AnthropicClient(LLMClient):
    """Async Claude API client."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-6",
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        self.model = model
        client_kwargs: dict[str, Any] = {"api_key": api_key}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self.client = anthropic.AsyncAnthropic(**client_kwargs)

    async def generate(
        self,
        prompt: str,
        system: str = "",
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> LLMResponse:
        response = await self.client.messages.create(
            **self._request_kwargs(prompt, system, max_tokens, temperature)
        )
        text = "\n".join(
            block.text for block in response.content if block.type == "text"
        )
        return self._to_response(response, text=text)

    async def generate_json(
        self,
        prompt: str,
        schema: dict[str, Any],
        schema_name: str = "response",
        system: str = "",
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> LLMResponse:
        # Tool inputs must be objects; wrap anything else.
        wrapped = schema.get("type") != "object"
        input_schema = (
            {"type": "object", "properties": {"value": schema}, "required": ["value"]}
            if wrapped else schema
        )

        kwargs = self._request_kwargs(prompt, system, max_tokens, temperature)
        kwargs["tools"] = [{
            "name": schema_name,
            "description": "Return the answer as structured data.",
            "input_schema": input_schema,
        }]
        kwargs["tool_choice"] = {"type": "tool", "name": schema_name}
        response = await self.client.messages.create(**kwargs)

        tool_uses = [b for b in response.content if b.type == "tool_use"]
        if not tool_uses:
            raise ExecutionError("Model did not return structured output")
        parsed = tool_uses[0].input
        if wrapped:
            parsed = parsed.get("value")
        result = self._to_response(response)
        result.parsed = parsed
        return result

    def _request_kwargs(
        self,
        prompt: str,
        system: str,
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        return kwargs

    def _to_response(self, response: Any, text: str = "") -> LLMResponse:
        usage = response.usage
        return LLMResponse(
            text=text,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            model=response.model,
            raw_response=response,
        )
