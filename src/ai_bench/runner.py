"""Benchmark runner: wires the work matrix, scheduler, store and observers together."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Sequence

from ai_bench.benchmark.base import BenchmarkDefinition, BenchmarkModel, RunResult
from ai_bench.benchmark.executor import BenchmarkExecutor
from ai_bench.benchmark.judge import JudgeEvaluator
from ai_bench.benchmark.registry import get_benchmark_tests, normalize_benchmark_name
from ai_bench.combiner import BenchmarkSummary, combine_run_dir
from ai_bench.config import RESULTS_DIRECTORY, BenchmarkConfig, LLMConfig
from ai_bench.events import EventBus
from ai_bench.llm import create_llm_client
from ai_bench.logging.logger import RunEventLogger
from ai_bench.matrix import build_work_matrix
from ai_bench.progress import ProgressAggregator
from ai_bench.scheduler import ExecuteFn, Scheduler
from ai_bench.store import ResultStore, make_run_timestamp, run_dir_for

logger = logging.getLogger(__name__)


class BenchmarkRunner:
    """Runs one benchmark session.

    The session timestamp and run directory are fixed at construction and
    shared by every result written during the session.
    """

    def __init__(
        self,
        definition: BenchmarkDefinition,
        models: Sequence[BenchmarkModel],
        runs_per_test: int,
        parallel_limit: int,
        timeout_seconds: float,
        output_dir: str | Path,
        execute: ExecuteFn | None = None,
    ):
        self.definition = definition
        self.models = list(models)
        self.runs_per_test = runs_per_test
        self.parallel_limit = parallel_limit
        self.timeout_seconds = timeout_seconds
        self.benchmark_name = definition.name
        self.run_timestamp = make_run_timestamp()
        self.run_dir = run_dir_for(output_dir, self.benchmark_name, self.run_timestamp)

        # Validates the matrix before anything is dispatched
        self.items = build_work_matrix(self.models, definition.tests, runs_per_test)

        self.bus = EventBus()
        self.store = ResultStore(self.run_dir)
        self.scheduler = Scheduler(
            store=self.store,
            concurrency=parallel_limit,
            timeout_seconds=timeout_seconds,
            bus=self.bus,
        )
        self.progress = ProgressAggregator(
            benchmark_name=self.benchmark_name,
            total_runs=len(self.items),
            parallel_limit=parallel_limit,
        )
        self.progress.attach(self.bus)
        self.event_log = RunEventLogger(self.benchmark_name, self.run_dir)
        self.event_log.attach(self.bus)
        self._execute = execute or BenchmarkExecutor(definition).execute

    async def run(self) -> list[RunResult]:
        logger.info(
            "Running %s: %d test(s) x %d model(s) x %d run(s) into %s",
            self.benchmark_name, len(self.definition.tests), len(self.models),
            self.runs_per_test, self.run_dir,
        )
        ticker = asyncio.create_task(self.progress.run_ticker())
        try:
            return await self.scheduler.run(self.items, self._execute)
        finally:
            ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ticker
            self.progress.close()
            await asyncio.to_thread(self.event_log.flush)

    def combine(
        self,
        results_dir: str | Path = RESULTS_DIRECTORY,
        summary_name: str | None = None,
    ) -> BenchmarkSummary:
        return combine_run_dir(
            self.run_dir,
            self.benchmark_name,
            self.run_timestamp,
            output_name=summary_name,
            results_dir=results_dir,
        )


def build_models(llm_configs: Sequence[LLMConfig], timeout_seconds: float) -> list[BenchmarkModel]:
    return [
        BenchmarkModel(
            name=llm.display_name,
            client=create_llm_client(llm, timeout_seconds),
            max_tokens=llm.max_tokens,
            temperature=llm.temperature,
        )
        for llm in llm_configs
    ]


def build_definition(config: BenchmarkConfig) -> BenchmarkDefinition:
    judge = JudgeEvaluator(
        client=create_llm_client(config.judge, config.timeout_seconds),
        max_tokens=config.judge.max_tokens,
    )
    return BenchmarkDefinition(
        name=normalize_benchmark_name(config.benchmark),
        judge=judge,
        tests=get_benchmark_tests(config.benchmark),
    )


def create_runner(config: BenchmarkConfig, models: Sequence[LLMConfig]) -> BenchmarkRunner:
    """Build a runner from validated configuration."""
    return BenchmarkRunner(
        definition=build_definition(config),
        models=build_models(models, config.timeout_seconds),
        runs_per_test=config.runs,
        parallel_limit=config.parallel,
        timeout_seconds=config.timeout_seconds,
        output_dir=config.output_dir,
    )
