"""Tests for judge evaluation."""

import pytest

from ai_bench.benchmark.base import TextTest
from ai_bench.benchmark.judge import JudgeEvaluator


def _make_test(**kwargs) -> TextTest:
    defaults = {"name": "capital", "prompt": "What is the capital of Japan?", "expected_answer": "Tokyo"}
    defaults.update(kwargs)
    return TextTest(**defaults)


def test_prompt_includes_expected_answer(make_judge):
    judge = make_judge()
    prompt = judge.build_prompt(_make_test(), "Tokyo")
    assert "What is the capital of Japan?" in prompt
    assert "Expected Answer" in prompt
    assert "Tokyo" in prompt

    prompt = judge.build_prompt(_make_test(expected_answer=None), "Tokyo")
    assert "Expected Answer" not in prompt


@pytest.mark.asyncio
async def test_successful_verdict(make_judge):
    judge = make_judge(success=True, reason="Matches expected answer")
    result = await judge.evaluate(_make_test(), "Tokyo")

    assert result.success is True
    assert result.reason == "Matches expected answer"
    assert result.token_usage.total == 23
    assert result.raw_output == {"success": True, "reason": "Matches expected answer"}


@pytest.mark.asyncio
async def test_verdict_parsed_from_plain_text(fake_client):
    client = fake_client(text='Here you go:\n```json\n{"success": false, "reason": "Wrong city"}\n```')
    result = await JudgeEvaluator(client).evaluate(_make_test(), "Kyoto")

    assert result.success is False
    assert result.reason == "Wrong city"


@pytest.mark.asyncio
async def test_judge_failure_becomes_failed_verdict(fake_client):
    client = fake_client(error=RuntimeError("rate limited"))
    result = await JudgeEvaluator(client).evaluate(_make_test(), "Tokyo")

    assert result.success is False
    assert result.reason == "Judge evaluation failed: rate limited"
    assert result.token_usage.total == 0
    assert result.raw_output is None


@pytest.mark.asyncio
async def test_malformed_verdict_is_a_failure(fake_client):
    client = fake_client(parsed={"verdict": "yes"})
    result = await JudgeEvaluator(client).evaluate(_make_test(), "Tokyo")

    assert result.success is False
    assert result.reason.startswith("Judge evaluation failed:")
