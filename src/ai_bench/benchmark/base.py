"""Benchmark definitions and run result data models."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from ai_bench.benchmark.judge import JudgeEvaluator
    from ai_bench.llm.base import LLMClient

TestType = Literal["text", "structured-output"]


@dataclass(frozen=True)
class ValidationResult:
    success: bool
    reason: str


@dataclass(frozen=True)
class TextTest:
    """Free-text test, scored by the judge model."""
    name: str
    prompt: str
    description: str = ""
    expected_answer: str | None = None

    type: TestType = field(default="text", init=False)


@dataclass(frozen=True)
class StructuredOutputTest:
    """Structured-output test, scored by schema validation.

    `schema` is a pydantic model class or a TypeAdapter (for top-level
    lists and unions). `validation` replaces the default schema check.
    """
    name: str
    prompt: str
    schema: Any
    description: str = ""
    validation: Callable[[Any, Any], ValidationResult] | None = None

    type: TestType = field(default="structured-output", init=False)

    @property
    def adapter(self) -> TypeAdapter:
        if isinstance(self.schema, TypeAdapter):
            return self.schema
        return TypeAdapter(self.schema)

    def json_schema(self) -> dict[str, Any]:
        return self.adapter.json_schema()


BenchmarkTest = Union[TextTest, StructuredOutputTest]


@dataclass(frozen=True)
class BenchmarkModel:
    """A model under test, bound to the client that invokes it."""
    name: str
    client: LLMClient = field(compare=False, repr=False)
    max_tokens: int = 4096
    temperature: float = 0.0


@dataclass
class BenchmarkDefinition:
    """An already-constructed benchmark: judge plus test list."""
    name: str
    judge: JudgeEvaluator
    tests: list[BenchmarkTest]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        protected_namespaces=(),
    )


class TokenUsage(CamelModel):
    input: int = 0
    output: int = 0
    reasoning: int | None = None
    total: int = 0


class RunResult(CamelModel):
    """Outcome of one (model, test, run index) work item.

    Serialized with camelCase keys; this is the on-disk WAL record.
    """
    test_name: str
    model_name: str
    run_index: int
    timestamp: str
    success: bool
    reason: str
    duration_ms: int
    token_usage: TokenUsage
    raw_output: Any = None
    judge_output: Any = None

    type: TestType | None = None
    prompt: str | None = None
    expected_answer: str | None = None
    judge_duration_ms: int | None = None
    judge_token_usage: TokenUsage | None = None

    @property
    def key(self) -> tuple[str, str, int]:
        return (self.test_name, self.model_name, self.run_index)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


def validate_response_exists(response: Any) -> bool:
    return isinstance(response, (dict, list))


def validate_simple_response(response: Any, schema: Any) -> ValidationResult:
    """Default validation for structured output tests."""
    if not validate_response_exists(response):
        return ValidationResult(
            success=False,
            reason="Response is not an object or doesn't exist.",
        )
    adapter = schema if isinstance(schema, TypeAdapter) else TypeAdapter(schema)
    try:
        adapter.validate_python(response)
    except ValidationError as e:
        return ValidationResult(success=False, reason=str(e))
    return ValidationResult(
        success=True,
        reason="Test passed - schema validation successful",
    )
