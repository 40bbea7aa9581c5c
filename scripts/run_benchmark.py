#!/usr/bin/env python3
"""CLI entry point for running a benchmark (async bounded-parallel execution)."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv
load_dotenv()

from ai_bench.config import (
    DEFAULT_BENCHMARK,
    RUNS_DIRECTORY,
    BenchmarkConfig,
    apply_overrides,
    load_config,
    select_models,
    validate_environment,
)
from ai_bench.combiner import combine_latest
from ai_bench.errors import AIBenchError
from ai_bench.events import BenchmarkEvent, RunCompleted, RunStarted
from ai_bench.runner import BenchmarkRunner, create_runner


def _print_event(event: BenchmarkEvent) -> None:
    if isinstance(event, RunStarted):
        print(f"  -> {event.item.label}: started")
    elif isinstance(event, RunCompleted):
        r = event.result
        status = "PASS" if r.success else "FAIL"
        print(f"  <- {r.test_name} ({r.model_name}) [Run {r.run_index + 1}]: {status} | "
              f"Tokens: {r.token_usage.total:,} | Time: {r.duration_ms / 1000:.1f}s | {r.reason}")


async def run_benchmark_async(config: BenchmarkConfig, model_name: str | None) -> BenchmarkRunner:
    runner = create_runner(config, select_models(config, model_name))
    runner.bus.subscribe(_print_event)

    print(f"\n{'='*60}")
    print(f"{runner.benchmark_name}: {len(runner.items)} runs "
          f"({len(runner.definition.tests)} tests x {len(runner.models)} models x "
          f"{runner.runs_per_test} runs, max {runner.parallel_limit} parallel)")
    print(f"{'='*60}\n")

    await runner.run()
    _print_totals(runner)
    return runner


def _print_totals(runner: BenchmarkRunner) -> None:
    state = runner.progress.get_snapshot()
    rate = state.successful_runs / state.completed_runs if state.completed_runs else 0
    print(f"\n{'='*60}")
    print(f"Total runs: {state.completed_runs}")
    print(f"Successful: {state.successful_runs} ({rate:.1%})")
    print(f"Failed: {state.failed_runs}")
    print(f"Total tokens: {state.total_tokens:,}")
    print(f"Total time: {state.elapsed_ms / 1000:.1f}s")
    print(f"Results written to {runner.run_dir}")
    print(f"{'='*60}")


def _apply_overrides(config: BenchmarkConfig, args: argparse.Namespace) -> BenchmarkConfig:
    overrides = {
        "benchmark": args.benchmark,
        "runs": args.runs,
        "parallel": args.parallel,
        "output_dir": args.output_dir,
        "summary_name": args.output,
        "timeout_seconds": args.timeout,
    }
    return apply_overrides(config, overrides)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run an LLM benchmark")
    parser.add_argument("--config", required=True, help="Path to benchmark YAML config")
    parser.add_argument("--benchmark", help=f"Benchmark name (default: {DEFAULT_BENCHMARK})")
    parser.add_argument("--runs", type=int, help="Runs per test per model")
    parser.add_argument("--parallel", type=int, help="Max concurrent runs")
    parser.add_argument("--model", help="Run a single configured model")
    parser.add_argument("--output-dir", help=f"Run output directory (default: {RUNS_DIRECTORY})")
    parser.add_argument("--output", help="Summary file name (without -summary.json)")
    parser.add_argument("--timeout", type=float, help="Per-run timeout in seconds")
    parser.add_argument("--combine-only", action="store_true",
                        help="Skip running; combine the latest run directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _apply_overrides(load_config(args.config), args)

        if args.combine_only:
            summary = combine_latest(
                config.output_dir, config.summary_name, config.results_dir,
                default_benchmark_name=config.benchmark,
            )
        else:
            validate_environment(config)
            runner = asyncio.run(run_benchmark_async(config, args.model))
            summary = runner.combine(config.results_dir, config.summary_name)
    except AIBenchError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Summary: {summary.successful_runs}/{summary.total_runs} successful "
          f"({summary.overall_success_rate:.1f}%) across {summary.total_models} model(s)")


if __name__ == "__main__":
    main()
