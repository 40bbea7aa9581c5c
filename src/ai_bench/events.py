"""Typed lifecycle events emitted by the Scheduler, and the bus that delivers them."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from ai_bench.benchmark.base import RunResult
from ai_bench.matrix import WorkItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchStarted:
    total_runs: int
    total_tests: int
    runs_per_test: int
    models_count: int


@dataclass(frozen=True)
class RunStarted:
    item: WorkItem
    start_time: float  # time.time() at dispatch


@dataclass(frozen=True)
class RunErrored:
    item: WorkItem
    message: str
    error_type: str


@dataclass(frozen=True)
class RunCompleted:
    """Terminal event for an item. `path` is None when persistence failed."""
    result: RunResult
    path: Path | None


@dataclass(frozen=True)
class BatchCompleted:
    results: tuple[RunResult, ...]


BenchmarkEvent = Union[BatchStarted, RunStarted, RunErrored, RunCompleted, BatchCompleted]
EventListener = Callable[[BenchmarkEvent], None]


class EventBus:
    """Synchronous observer list.

    Listeners run in emission order on the emitting task. A failing listener
    is logged and does not affect the emitter or the other listeners.
    """

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register `listener`; returns a function that unsubscribes it."""
        self._listeners = [*self._listeners, listener]

        def unsubscribe() -> None:
            self._listeners = [l for l in self._listeners if l is not listener]

        return unsubscribe

    def emit(self, event: BenchmarkEvent) -> None:
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed on %s", type(event).__name__)
