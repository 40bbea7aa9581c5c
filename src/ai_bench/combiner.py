"""Rebuild benchmark statistics from persisted run files.

The combiner holds no state: it re-reads every run file under a run
directory, skips anything that does not parse or validate, and aggregates
the rest per test, per model and overall. It is safe to point at a run
directory from a crashed or still-running session.
"""

from __future__ import annotations

import json
import logging
import re
from collections import defaultdict
from pathlib import Path

from pydantic import ValidationError

from ai_bench.benchmark.base import CamelModel, RunResult
from ai_bench.config import RESULTS_DIRECTORY
from ai_bench.store import make_run_timestamp, utc_timestamp, write_json_atomic

logger = logging.getLogger(__name__)

RUN_DIR_TIMESTAMP = re.compile(r"-(\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z)$")


class TokenStats(CamelModel):
    input: float = 0
    output: float = 0
    reasoning: float = 0
    total: float = 0


class TestSummary(CamelModel):
    __test__ = False  # not a pytest class

    test_name: str
    total_runs: int
    successful_runs: int
    failed_runs: int
    success_rate: float
    avg_duration_ms: float
    avg_token_usage: TokenStats
    runs: list[RunResult]


class ModelSummary(CamelModel):
    model_name: str
    total_tests: int
    total_runs: int
    successful_runs: int
    failed_runs: int
    success_rate: float
    total_duration_ms: float
    avg_duration_ms: float
    total_token_usage: TokenStats
    avg_token_usage: TokenStats
    test_summaries: list[TestSummary]


class BenchmarkSummary(CamelModel):
    generated_at: str
    benchmark_name: str = ""
    run_timestamp: str = ""
    total_models: int = 0
    total_tests: int = 0
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    overall_success_rate: float = 0
    total_duration_ms: float = 0
    total_tokens: int = 0
    model_summaries: list[ModelSummary] = []

    def statistics(self) -> dict:
        """Everything except the generation time, for comparing combinations."""
        return self.model_dump(by_alias=True, exclude={"generated_at"})


def read_run_file(path: Path) -> RunResult | None:
    """Parse and validate one run file; None (with a warning) if unusable."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return RunResult.model_validate(data)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
        logger.warning("Skipping invalid run file %s: %s", path, _first_line(e))
        return None


def read_run_files(model_dir: Path) -> list[RunResult]:
    results = []
    for path in sorted(model_dir.glob("*.json")):
        result = read_run_file(path)
        if result is not None:
            results.append(result)
    return results


def load_run_results(run_dir: str | Path) -> list[RunResult]:
    """All valid run results under `run_dir`, one subdirectory per model."""
    run_dir = Path(run_dir)
    if not run_dir.is_dir():
        return []
    results: list[RunResult] = []
    for model_dir in sorted(p for p in run_dir.iterdir() if p.is_dir()):
        results.extend(read_run_files(model_dir))
    return results


def _average(total: float, count: int) -> float:
    return total / count if count else 0


def _success_rate(successful: int, total: int) -> float:
    return successful / total * 100 if total else 0


def _token_totals(runs: list[RunResult]) -> TokenStats:
    return TokenStats(
        input=sum(r.token_usage.input for r in runs),
        output=sum(r.token_usage.output for r in runs),
        reasoning=sum(r.token_usage.reasoning or 0 for r in runs),
        total=sum(r.token_usage.total for r in runs),
    )


def _token_averages(totals: TokenStats, count: int) -> TokenStats:
    return TokenStats(
        input=_average(totals.input, count),
        output=_average(totals.output, count),
        reasoning=_average(totals.reasoning, count),
        total=_average(totals.total, count),
    )


def _run_order(result: RunResult) -> tuple:
    return (result.run_index, result.timestamp)


def compute_test_summary(test_name: str, runs: list[RunResult]) -> TestSummary:
    runs = sorted(runs, key=_run_order)
    total_runs = len(runs)
    successful = sum(1 for r in runs if r.success)
    return TestSummary(
        test_name=test_name,
        total_runs=total_runs,
        successful_runs=successful,
        failed_runs=total_runs - successful,
        success_rate=_success_rate(successful, total_runs),
        avg_duration_ms=_average(sum(r.duration_ms for r in runs), total_runs),
        avg_token_usage=_token_averages(_token_totals(runs), total_runs),
        runs=runs,
    )


def compute_model_summary(model_name: str, runs: list[RunResult]) -> ModelSummary:
    runs_by_test: dict[str, list[RunResult]] = defaultdict(list)
    for run in runs:
        runs_by_test[run.test_name].append(run)

    test_summaries = [
        compute_test_summary(name, runs_by_test[name]) for name in sorted(runs_by_test)
    ]
    ordered = [run for summary in test_summaries for run in summary.runs]

    total_runs = len(ordered)
    successful = sum(1 for r in ordered if r.success)
    total_duration = sum(r.duration_ms for r in ordered)
    totals = _token_totals(ordered)
    return ModelSummary(
        model_name=model_name,
        total_tests=len(test_summaries),
        total_runs=total_runs,
        successful_runs=successful,
        failed_runs=total_runs - successful,
        success_rate=_success_rate(successful, total_runs),
        total_duration_ms=total_duration,
        avg_duration_ms=_average(total_duration, total_runs),
        total_token_usage=totals,
        avg_token_usage=_token_averages(totals, total_runs),
        test_summaries=test_summaries,
    )


def build_summary(
    results: list[RunResult],
    benchmark_name: str = "",
    run_timestamp: str = "",
) -> BenchmarkSummary:
    """Aggregate results: overall -> per model -> per test -> runs."""
    runs_by_model: dict[str, list[RunResult]] = defaultdict(list)
    for result in results:
        runs_by_model[result.model_name].append(result)

    model_summaries = [
        compute_model_summary(name, runs_by_model[name]) for name in sorted(runs_by_model)
    ]

    total_runs = sum(m.total_runs for m in model_summaries)
    successful = sum(m.successful_runs for m in model_summaries)
    unique_tests = {t.test_name for m in model_summaries for t in m.test_summaries}
    return BenchmarkSummary(
        generated_at=utc_timestamp(),
        benchmark_name=benchmark_name,
        run_timestamp=run_timestamp,
        total_models=len(model_summaries),
        total_tests=len(unique_tests),
        total_runs=total_runs,
        successful_runs=successful,
        failed_runs=total_runs - successful,
        overall_success_rate=_success_rate(successful, total_runs),
        total_duration_ms=sum(m.total_duration_ms for m in model_summaries),
        total_tokens=int(sum(m.total_token_usage.total for m in model_summaries)),
        model_summaries=model_summaries,
    )


def summary_filename(benchmark_name: str, run_timestamp: str, output_name: str | None = None) -> str:
    if output_name:
        return f"{output_name}-summary.json"
    return f"{benchmark_name}-{run_timestamp}-summary.json"


def write_summary(
    summary: BenchmarkSummary,
    results_dir: str | Path,
    output_name: str | None = None,
) -> Path:
    filename = summary_filename(summary.benchmark_name, summary.run_timestamp, output_name)
    path = write_json_atomic(
        Path(results_dir) / filename, summary.model_dump_json(by_alias=True, indent=2),
    )
    logger.info(
        "Summary of %d run(s) from %d model(s) written to %s",
        summary.total_runs, summary.total_models, path,
    )
    return path


def combine_run_dir(
    run_dir: str | Path,
    benchmark_name: str,
    run_timestamp: str,
    output_name: str | None = None,
    results_dir: str | Path = RESULTS_DIRECTORY,
) -> BenchmarkSummary:
    """Combine one run directory and write exactly one summary file."""
    run_dir = Path(run_dir)
    if not run_dir.is_dir():
        logger.info("Run directory not found: %s", run_dir)
    results = load_run_results(run_dir)
    if run_dir.is_dir() and not results:
        logger.info("No valid run files found in %s", run_dir)

    summary = build_summary(results, benchmark_name, run_timestamp)
    write_summary(summary, results_dir, output_name)
    return summary


def find_latest_run_dir(runs_dir: str | Path) -> Path | None:
    """Most recent `{benchmark}-{timestamp}` directory.

    Ordered by the timestamp in the name, whatever the benchmark; names
    without one sort before all stamped names, and among themselves by name.
    """
    runs_dir = Path(runs_dir)
    if not runs_dir.is_dir():
        return None
    candidates = sorted(
        (p.name for p in runs_dir.iterdir() if p.is_dir()), key=_run_dir_sort_key,
    )
    return runs_dir / candidates[-1] if candidates else None


def _run_dir_sort_key(name: str) -> tuple[str, str]:
    match = RUN_DIR_TIMESTAMP.search(name)
    return (match.group(1) if match else "", name)


def parse_run_dir_name(name: str) -> tuple[str, str]:
    """Split a run directory name into (benchmark name, run timestamp)."""
    match = RUN_DIR_TIMESTAMP.search(name)
    if match:
        run_timestamp = match.group(1)
        return name[: -len(run_timestamp) - 1], run_timestamp
    return name, make_run_timestamp()


def combine_latest(
    runs_dir: str | Path,
    output_name: str | None = None,
    results_dir: str | Path = RESULTS_DIRECTORY,
    default_benchmark_name: str = "benchmark",
) -> BenchmarkSummary:
    """Combine the most recent run directory under `runs_dir`."""
    runs_dir = Path(runs_dir)
    latest = find_latest_run_dir(runs_dir)
    if latest is None:
        logger.info("No benchmark run directories found in %s", runs_dir)
        runs_dir.mkdir(parents=True, exist_ok=True)
        summary = build_summary([], default_benchmark_name, make_run_timestamp())
        write_summary(summary, results_dir, output_name)
        return summary

    logger.info("Processing most recent benchmark run: %s", latest.name)
    benchmark_name, run_timestamp = parse_run_dir_name(latest.name)
    return combine_run_dir(
        latest, benchmark_name, run_timestamp,
        output_name=output_name, results_dir=results_dir,
    )


def _first_line(error: Exception) -> str:
    return str(error).splitlines()[0] if str(error) else type(error).__name__
