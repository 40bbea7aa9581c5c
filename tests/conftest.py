"""Shared fakes and factories for the test suite."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from ai_bench.benchmark.base import (
    BenchmarkDefinition,
    BenchmarkModel,
    RunResult,
    TextTest,
    TokenUsage,
)
from ai_bench.benchmark.judge import JudgeEvaluator
from ai_bench.llm.base import LLMClient, LLMResponse


class FakeLLMClient(LLMClient):
    """Scripted client: fixed reply, optional delay, optional error."""

    def __init__(
        self,
        model: str = "fake-model",
        text: str = "4",
        parsed: Any = None,
        delay: float = 0.0,
        error: Exception | None = None,
        input_tokens: int = 10,
        output_tokens: int = 5,
        reasoning_tokens: int | None = None,
    ):
        self.model = model
        self.text = text
        self.parsed = parsed
        self.delay = delay
        self.error = error
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.reasoning_tokens = reasoning_tokens
        self.prompts: list[str] = []

    async def generate(self, prompt, system="", max_tokens=4096, temperature=0.0):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return LLMResponse(
            text=self.text,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            reasoning_tokens=self.reasoning_tokens,
            model=self.model,
        )

    async def generate_json(self, prompt, schema, schema_name="response", system="",
                            max_tokens=4096, temperature=0.0):
        if self.parsed is None:
            return await super().generate_json(
                prompt, schema, schema_name, system, max_tokens, temperature,
            )
        response = await self.generate(prompt, system, max_tokens, temperature)
        response.parsed = self.parsed
        return response


@pytest.fixture
def fake_client():
    return FakeLLMClient


@pytest.fixture
def make_model():
    def _make_model(name: str = "model-a", **client_kwargs) -> BenchmarkModel:
        return BenchmarkModel(name=name, client=FakeLLMClient(model=name, **client_kwargs))
    return _make_model


@pytest.fixture
def make_judge():
    def _make_judge(success: bool = True, reason: str = "Correct", **client_kwargs) -> JudgeEvaluator:
        client_kwargs.setdefault("parsed", {"success": success, "reason": reason})
        client_kwargs.setdefault("input_tokens", 20)
        client_kwargs.setdefault("output_tokens", 3)
        return JudgeEvaluator(FakeLLMClient(model="judge", **client_kwargs))
    return _make_judge


@pytest.fixture
def make_definition(make_judge):
    def _make_definition(tests=None, judge=None, name: str = "unit-bench") -> BenchmarkDefinition:
        if tests is None:
            tests = [TextTest(name="arithmetic", prompt="What is 2+2?", expected_answer="4")]
        return BenchmarkDefinition(name=name, judge=judge or make_judge(), tests=tests)
    return _make_definition


@pytest.fixture
def make_result():
    def _make_result(
        test_name: str = "arithmetic",
        model_name: str = "model-a",
        run_index: int = 0,
        success: bool = True,
        duration_ms: int = 100,
        input_tokens: int = 10,
        output_tokens: int = 5,
        timestamp: str = "2025-01-01T00:00:00.000Z",
        **kwargs,
    ) -> RunResult:
        token_usage = kwargs.pop("token_usage", None) or TokenUsage(
            input=input_tokens,
            output=output_tokens,
            total=input_tokens + output_tokens,
        )
        return RunResult(
            test_name=test_name,
            model_name=model_name,
            run_index=run_index,
            timestamp=timestamp,
            success=success,
            reason="ok" if success else "wrong",
            duration_ms=duration_ms,
            token_usage=token_usage,
            **kwargs,
        )
    return _make_result
