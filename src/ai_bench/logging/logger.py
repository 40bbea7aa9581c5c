"""Structured JSON-lines log of a benchmark run's lifecycle events.

Lines are appended on a dedicated writer thread, so bus listeners never
block the event loop on file I/O. Call `flush()` before reading the file.
"""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Any, Callable

from ai_bench.events import (
    BatchCompleted,
    BatchStarted,
    BenchmarkEvent,
    EventBus,
    RunCompleted,
    RunErrored,
    RunStarted,
)

logger = logging.getLogger(__name__)


class RunEventLogger:
    """Logs all run events as structured JSON lines in `{run_dir}/events.jsonl`."""

    def __init__(self, benchmark_name: str, run_dir: str | Path):
        self.benchmark_name = benchmark_name
        self.run_dir = Path(run_dir)
        self.log_path = self.run_dir / "events.jsonl"
        self._events: list[dict[str, Any]] = []
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="event-log")
        self._pending: list[Future] = []

    @property
    def events(self) -> list[dict[str, Any]]:
        return list(self._events)

    def attach(self, bus: EventBus) -> Callable[[], None]:
        return bus.subscribe(self.handle_event)

    def handle_event(self, event: BenchmarkEvent) -> None:
        if isinstance(event, BatchStarted):
            self.log_benchmark_start(event)
        elif isinstance(event, RunStarted):
            self.log_run_start(event)
        elif isinstance(event, RunErrored):
            self.log_run_error(event)
        elif isinstance(event, RunCompleted):
            self.log_run_complete(event)
        elif isinstance(event, BatchCompleted):
            self.log_benchmark_complete(event)

    def flush(self) -> None:
        """Block until every queued line is on disk."""
        pending, self._pending = self._pending, []
        wait(pending)

    def _write_event(self, event: dict[str, Any]) -> None:
        event["benchmark"] = self.benchmark_name
        event["timestamp"] = time.time()
        self._events.append(event)
        line = json.dumps(event, default=str) + "\n"
        # One writer thread keeps lines in emission order
        future = self._writer.submit(self._append, line)
        future.add_done_callback(_report_failure)
        self._pending.append(future)

    def _append(self, line: str) -> None:
        self.run_dir.mkdir(parents=True, exist_ok=True)
        with open(self.log_path, "a") as f:
            f.write(line)

    def log_benchmark_start(self, event: BatchStarted) -> None:
        self._write_event({
            "event": "benchmark_start",
            "total_runs": event.total_runs,
            "total_tests": event.total_tests,
            "runs_per_test": event.runs_per_test,
            "models_count": event.models_count,
        })

    def log_run_start(self, event: RunStarted) -> None:
        test_name, model_name, run_index = event.item.key
        self._write_event({
            "event": "run_start",
            "test_name": test_name,
            "model_name": model_name,
            "run_index": run_index,
        })

    def log_run_error(self, event: RunErrored) -> None:
        test_name, model_name, run_index = event.item.key
        self._write_event({
            "event": "run_error",
            "test_name": test_name,
            "model_name": model_name,
            "run_index": run_index,
            "error_type": event.error_type,
            "message": event.message[:1000],
        })

    def log_run_complete(self, event: RunCompleted) -> None:
        result = event.result
        self._write_event({
            "event": "run_complete",
            "test_name": result.test_name,
            "model_name": result.model_name,
            "run_index": result.run_index,
            "success": result.success,
            "duration_ms": result.duration_ms,
            "tokens": result.token_usage.total,
            "path": str(event.path) if event.path else None,
        })

    def log_benchmark_complete(self, event: BatchCompleted) -> None:
        successful = sum(1 for r in event.results if r.success)
        self._write_event({
            "event": "benchmark_complete",
            "total_runs": len(event.results),
            "successful_runs": successful,
            "failed_runs": len(event.results) - successful,
            "total_tokens": sum(r.token_usage.total for r in event.results),
        })


def _report_failure(future: Future) -> None:
    error = future.exception()
    if error is not None:
        logger.error("Could not append to event log: %s", error)
