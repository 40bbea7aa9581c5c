"""Tests for executing single work items."""

import pytest

from ai_bench.benchmark.base import StructuredOutputTest, TextTest, ValidationResult
from ai_bench.benchmark.executor import BenchmarkExecutor
from ai_bench.benchmark.samples import TechStack
from ai_bench.matrix import WorkItem

VALID_STACK = {
    "backendFramework": "fastapi",
    "frontendFramework": "react",
    "database": "neon",
    "hostingProvider": "vercel",
    "stylingFramework": "tailwind",
}


@pytest.mark.asyncio
async def test_text_test_is_judged(make_model, make_definition):
    test = TextTest(name="arithmetic", prompt="What is 2+2?", expected_answer="4")
    definition = make_definition(tests=[test])
    item = WorkItem(model=make_model("m1", text="4"), test=test, run_index=1)

    result = await BenchmarkExecutor(definition).execute(item)

    assert result.success is True
    assert result.reason == "Correct"
    assert result.key == ("arithmetic", "m1", 1)
    assert result.type == "text"
    assert result.expected_answer == "4"
    assert result.raw_output == "4"
    assert result.judge_output == {"success": True, "reason": "Correct"}
    assert result.judge_token_usage.total == 23
    # Model tokens plus judge tokens
    assert result.token_usage.input == 10
    assert result.token_usage.total == 15 + 23


@pytest.mark.asyncio
async def test_text_test_failed_by_judge(make_model, make_definition, make_judge):
    test = TextTest(name="arithmetic", prompt="What is 2+2?", expected_answer="4")
    definition = make_definition(tests=[test], judge=make_judge(success=False, reason="Wrong"))
    item = WorkItem(model=make_model(text="5"), test=test, run_index=0)

    result = await BenchmarkExecutor(definition).execute(item)

    assert result.success is False
    assert result.reason == "Wrong"


@pytest.mark.asyncio
async def test_structured_test_validates_schema(make_model, make_definition):
    test = StructuredOutputTest(name="stack", prompt="Pick a stack", schema=TechStack)
    item = WorkItem(model=make_model(parsed=VALID_STACK), test=test, run_index=0)

    result = await BenchmarkExecutor(make_definition(tests=[test])).execute(item)

    assert result.success is True
    assert result.reason == "Test passed - schema validation successful"
    assert result.type == "structured-output"
    assert result.raw_output == VALID_STACK
    assert result.judge_output is None


@pytest.mark.asyncio
async def test_structured_test_schema_mismatch(make_model, make_definition):
    test = StructuredOutputTest(name="stack", prompt="Pick a stack", schema=TechStack)
    bad = {**VALID_STACK, "database": "oracle"}
    item = WorkItem(model=make_model(parsed=bad), test=test, run_index=0)

    result = await BenchmarkExecutor(make_definition(tests=[test])).execute(item)

    assert result.success is False
    assert "database" in result.reason


@pytest.mark.asyncio
async def test_custom_validation_is_used(make_model, make_definition):
    def always_fails(response, schema):
        return ValidationResult(success=False, reason="custom rule")

    test = StructuredOutputTest(name="stack", prompt="p", schema=TechStack, validation=always_fails)
    item = WorkItem(model=make_model(parsed=VALID_STACK), test=test, run_index=0)

    result = await BenchmarkExecutor(make_definition(tests=[test])).execute(item)
    assert result.reason == "custom rule"


@pytest.mark.asyncio
async def test_model_errors_propagate(make_model, make_definition):
    test = TextTest(name="arithmetic", prompt="What is 2+2?")
    item = WorkItem(model=make_model(error=ConnectionError("offline")), test=test, run_index=0)

    with pytest.raises(ConnectionError):
        await BenchmarkExecutor(make_definition(tests=[test])).execute(item)
