"""Executes one work item against its model (and the judge, for text tests)."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from ai_bench.store import utc_timestamp

from .base import (
    BenchmarkDefinition,
    RunResult,
    StructuredOutputTest,
    TextTest,
    TokenUsage,
    validate_simple_response,
)

if TYPE_CHECKING:
    from ai_bench.llm.base import LLMResponse
    from ai_bench.matrix import WorkItem


class BenchmarkExecutor:
    """The `execute` callback handed to the Scheduler.

    Collaborator failures propagate; the Scheduler turns them into failed
    run results.
    """

    def __init__(self, definition: BenchmarkDefinition):
        self.definition = definition

    async def execute(self, item: WorkItem) -> RunResult:
        if isinstance(item.test, TextTest):
            return await self._execute_text_test(item, item.test)
        if isinstance(item.test, StructuredOutputTest):
            return await self._execute_structured_test(item, item.test)
        raise TypeError(f"Unsupported test type: {type(item.test).__name__}")

    async def _execute_text_test(self, item: WorkItem, test: TextTest) -> RunResult:
        start = time.monotonic()
        response = await item.model.client.generate(
            prompt=test.prompt,
            max_tokens=item.model.max_tokens,
            temperature=item.model.temperature,
        )
        duration_ms = int((time.monotonic() - start) * 1000)

        judge_result = await self.definition.judge.evaluate(test, response.text)

        token_usage = _token_usage(response)
        # Judge tokens count toward the run total
        token_usage = token_usage.model_copy(
            update={"total": token_usage.total + judge_result.token_usage.total}
        )

        return RunResult(
            test_name=test.name,
            model_name=item.model.name,
            run_index=item.run_index,
            timestamp=utc_timestamp(),
            type=test.type,
            prompt=test.prompt,
            expected_answer=test.expected_answer,
            success=judge_result.success,
            reason=judge_result.reason,
            duration_ms=duration_ms,
            token_usage=token_usage,
            raw_output=response.text,
            judge_output=judge_result.raw_output,
            judge_duration_ms=judge_result.duration_ms,
            judge_token_usage=judge_result.token_usage,
        )

    async def _execute_structured_test(
        self, item: WorkItem, test: StructuredOutputTest,
    ) -> RunResult:
        start = time.monotonic()
        response = await item.model.client.generate_json(
            prompt=test.prompt,
            schema=test.json_schema(),
            schema_name=_schema_name(test.name),
            max_tokens=item.model.max_tokens,
            temperature=item.model.temperature,
        )
        duration_ms = int((time.monotonic() - start) * 1000)

        validation_fn = test.validation or validate_simple_response
        validation = validation_fn(response.parsed, test.schema)

        return RunResult(
            test_name=test.name,
            model_name=item.model.name,
            run_index=item.run_index,
            timestamp=utc_timestamp(),
            type=test.type,
            prompt=test.prompt,
            success=validation.success,
            reason=validation.reason,
            duration_ms=duration_ms,
            token_usage=_token_usage(response),
            raw_output=response.parsed,
        )


def _token_usage(response: LLMResponse) -> TokenUsage:
    return TokenUsage(
        input=response.input_tokens,
        output=response.output_tokens,
        reasoning=response.reasoning_tokens,
        total=response.total_tokens,
    )


def _schema_name(test_name: str) -> str:
    return "".join(c if c.isalnum() or c in "_-" else "_" for c in test_name)[:64] or "response"
