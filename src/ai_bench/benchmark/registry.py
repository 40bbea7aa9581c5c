"""Explicit registry of benchmark test suites, keyed by benchmark name."""

from __future__ import annotations

from collections.abc import Callable

from ai_bench.errors import ConfigurationError

from .base import BenchmarkTest
from .samples import sample_json_tests, sample_text_tests

TestsFactory = Callable[[], list[BenchmarkTest]]

_REGISTRY: dict[str, TestsFactory] = {}


def normalize_benchmark_name(name: str) -> str:
    """Strip a legacy file extension, e.g. `sample-text-benchmark.ts`."""
    for suffix in (".py", ".ts"):
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def register_benchmark(name: str, factory: TestsFactory) -> None:
    _REGISTRY[normalize_benchmark_name(name)] = factory


def list_benchmarks() -> list[str]:
    return sorted(_REGISTRY)


def get_benchmark_tests(name: str) -> list[BenchmarkTest]:
    key = normalize_benchmark_name(name)
    factory = _REGISTRY.get(key)
    if factory is None:
        available = ", ".join(list_benchmarks()) or "none"
        raise ConfigurationError(f"Unknown benchmark '{name}' (available: {available})")
    tests = factory()
    if not tests:
        raise ConfigurationError(f"Benchmark '{key}' has no tests")
    return tests


register_benchmark("sample-text-benchmark", sample_text_tests)
register_benchmark("sample-json-benchmark", sample_json_tests)
