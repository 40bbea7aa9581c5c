"""Abstract base class for LLM clients."""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ai_bench.errors import ExecutionError

JSON_INSTRUCTIONS = (
    "Respond with a single JSON value that matches this JSON schema. "
    "Do not include any other text.\n\n{schema}"
)


@dataclass
class LLMResponse:
    """Response from an LLM API call."""
    text: str = ""
    parsed: Any = None  # decoded object for structured calls
    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int | None = None
    model: str = ""
    raw_response: Any = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class LLMClient(ABC):
    """Abstract base for async LLM API clients."""

    model: str

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system: str = "",
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> LLMResponse:
        """Generate a text response from the LLM."""
        ...

    async def generate_json(
        self,
        prompt: str,
        schema: dict[str, Any],
        schema_name: str = "response",
        system: str = "",
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> LLMResponse:
        """Generate a JSON value conforming to `schema`.

        Providers with native structured output override this. The default
        asks for JSON in the prompt and decodes the reply.
        """
        instructions = JSON_INSTRUCTIONS.format(schema=json.dumps(schema, indent=2))
        response = await self.generate(
            prompt=f"{prompt}\n\n{instructions}",
            system=system,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        response.parsed = extract_json(response.text)
        return response


def extract_json(text: str) -> Any:
    """Decode the first JSON object or array found in `text`."""
    stripped = text.strip()
    fenced = re.search(r"```(?:json)?\s*(.*?)```", stripped, re.DOTALL)
    if fenced:
        stripped = fenced.group(1).strip()

    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    for match in re.finditer(r"[\[{]", stripped):
        try:
            value, _ = decoder.raw_decode(stripped[match.start():])
            return value
        except json.JSONDecodeError:
            continue
    raise ExecutionError(f"Response did not contain valid JSON: {text[:200]!r}")
