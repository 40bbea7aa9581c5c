"""Work matrix: one work item per (model, test, run index)."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Sequence

from ai_bench.benchmark.base import BenchmarkModel, BenchmarkTest
from ai_bench.errors import ConfigurationError


@dataclass(frozen=True)
class WorkItem:
    """A single schedulable unit of execution."""
    model: BenchmarkModel
    test: BenchmarkTest
    run_index: int

    @property
    def key(self) -> tuple[str, str, int]:
        """Identity of the item: (test name, model name, run index)."""
        return (self.test.name, self.model.name, self.run_index)

    @property
    def label(self) -> str:
        return f"{self.test.name} ({self.model.name}) [Run {self.run_index + 1}]"


def build_work_matrix(
    models: Sequence[BenchmarkModel],
    tests: Sequence[BenchmarkTest],
    runs_per_test: int,
) -> list[WorkItem]:
    """Expand models x tests x runs into work items, model-major order.

    Raises ConfigurationError on duplicate model or test names, since item
    keys would then collide.
    """
    if runs_per_test < 1:
        raise ConfigurationError(f"runs_per_test must be >= 1, got {runs_per_test}")
    _check_unique("model", [m.name for m in models])
    _check_unique("test", [t.name for t in tests])

    return [
        WorkItem(model=model, test=test, run_index=run_index)
        for model in models
        for test in tests
        for run_index in range(runs_per_test)
    ]


def _check_unique(kind: str, names: list[str]) -> None:
    duplicates = sorted(name for name, count in Counter(names).items() if count > 1)
    if duplicates:
        raise ConfigurationError(f"Duplicate {kind} names: {', '.join(duplicates)}")
