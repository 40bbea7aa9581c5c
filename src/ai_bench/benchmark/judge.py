"""Judge evaluation of free-text responses by a secondary LLM."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from .base import TokenUsage

if TYPE_CHECKING:
    from ai_bench.benchmark.base import TextTest
    from ai_bench.llm.base import LLMClient

logger = logging.getLogger(__name__)


JUDGE_PROMPT = """TASK: Evaluate if the model's response correctly answers the given prompt. YOU MUST RESPOND WITH A JSON OBJECT.

## Instructions
1. Consider accuracy, completeness, and relevance.
2. If an expected answer is provided, check if the response aligns with it (exact wording is not required).
3. Your response must be a valid JSON object. Nothing else is acceptable.

Respond with a JSON object containing:
- "success": boolean (true if the response is correct/acceptable, false otherwise)
- "reason": string (brief explanation of your judgment)

## Prompt Given To Model
{prompt}
{expected_section}
## Model's Response
{response}

GIVEN THE ABOVE, RESPOND WITH A VALID JSON OBJECT"""


class JudgeVerdict(BaseModel):
    success: bool
    reason: str


@dataclass
class JudgeResult:
    """Outcome of one judge evaluation."""
    success: bool
    reason: str
    token_usage: TokenUsage
    duration_ms: int = 0
    raw_output: Any = None


class JudgeEvaluator:
    """Scores a text response against the test prompt and expected answer."""

    def __init__(self, client: LLMClient, max_tokens: int = 1024):
        self.client = client
        self.max_tokens = max_tokens

    @property
    def model_name(self) -> str:
        return getattr(self.client, "model", "")

    def build_prompt(self, test: TextTest, response: str) -> str:
        expected_section = ""
        if test.expected_answer:
            expected_section = f"\n## Expected Answer (for reference)\n{test.expected_answer}\n"
        return JUDGE_PROMPT.format(
            prompt=test.prompt,
            expected_section=expected_section,
            response=response,
        )

    async def evaluate(self, test: TextTest, response: str) -> JudgeResult:
        """Judge `response`. Never raises: failures become a failed verdict."""
        start = time.monotonic()
        try:
            judge_response = await self.client.generate_json(
                prompt=self.build_prompt(test, response),
                schema=JudgeVerdict.model_json_schema(),
                schema_name="judge_verdict",
                max_tokens=self.max_tokens,
            )
            verdict = JudgeVerdict.model_validate(judge_response.parsed)
        except Exception as e:
            logger.warning("Judge evaluation failed for %s: %s", test.name, e)
            return JudgeResult(
                success=False,
                reason=f"Judge evaluation failed: {e}",
                token_usage=TokenUsage(),
                duration_ms=_elapsed_ms(start),
                raw_output=None,
            )

        return JudgeResult(
            success=verdict.success,
            reason=verdict.reason,
            token_usage=TokenUsage(
                input=judge_response.input_tokens,
                output=judge_response.output_tokens,
                reasoning=judge_response.reasoning_tokens,
                total=judge_response.total_tokens,
            ),
            duration_ms=_elapsed_ms(start),
            raw_output=verdict.model_dump(),
        )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
