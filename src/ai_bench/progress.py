"""Event-sourced live progress for a running batch.

The aggregator folds Scheduler events into an immutable ProgressState. Each
event is applied as one replace of the whole state object, so handlers can
never interleave halfway through an update. Observers read published
snapshots only.

Publishing follows a small state machine driven by a single timer::

    IDLE -> DIRTY -> FLUSH_SCHEDULED -> IDLE

Non-critical updates (batch start, elapsed-time ticks) mark the state dirty
and schedule one flush after `throttle_seconds`; more updates in that window
coalesce into it. Critical updates (run start, run error, run completion,
batch completion) flush synchronously and cancel any pending timer.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum

from ai_bench.benchmark.base import RunResult
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

DEFAULT_THROTTLE_SECONDS = 0.05

RunKey = tuple[str, str, int]


class FlushState(str, Enum):
    IDLE = "idle"
    DIRTY = "dirty"
    FLUSH_SCHEDULED = "flush_scheduled"


@dataclass(frozen=True)
class ActiveRun:
    test_name: str
    model_name: str
    run_index: int
    start_time: float

    @property
    def key(self) -> RunKey:
        return (self.test_name, self.model_name, self.run_index)


@dataclass(frozen=True)
class RunError:
    test_name: str
    model_name: str
    run_index: int
    message: str


@dataclass(frozen=True)
class ProgressState:
    """Point-in-time view of a batch. Counts derive from the collections."""
    benchmark_name: str = ""
    total_runs: int = 0
    total_tests: int = 0
    runs_per_test: int = 0
    models_count: int = 0
    parallel_limit: int = 0
    elapsed_ms: int = 0
    active_runs: tuple[ActiveRun, ...] = ()
    completed_results: tuple[RunResult, ...] = ()
    errors: tuple[RunError, ...] = ()
    is_complete: bool = False
    completed_keys: frozenset[RunKey] = field(default=frozenset(), repr=False)

    @property
    def completed_runs(self) -> int:
        return len(self.completed_results)

    @property
    def successful_runs(self) -> int:
        return sum(1 for r in self.completed_results if r.success)

    @property
    def failed_runs(self) -> int:
        return self.completed_runs - self.successful_runs

    @property
    def total_tokens(self) -> int:
        return sum(r.token_usage.total for r in self.completed_results)

    @property
    def progress(self) -> float:
        """Completed fraction in [0, 1]."""
        if self.total_runs == 0:
            return 1.0 if self.is_complete else 0.0
        return min(self.completed_runs / self.total_runs, 1.0)


ChangeListener = Callable[[ProgressState], None]


class ProgressAggregator:
    """Consumes lifecycle events and publishes throttled ProgressState snapshots."""

    def __init__(
        self,
        benchmark_name: str = "",
        total_runs: int = 0,
        parallel_limit: int = 0,
        throttle_seconds: float = DEFAULT_THROTTLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.throttle_seconds = throttle_seconds
        self._clock = clock
        self._started_at = clock()
        self._state = ProgressState(
            benchmark_name=benchmark_name,
            total_runs=total_runs,
            parallel_limit=parallel_limit,
        )
        self._snapshot = self._state
        self._flush_state = FlushState.IDLE
        self._timer: asyncio.TimerHandle | None = None
        self._listeners: list[ChangeListener] = []

    # -- observer API -----------------------------------------------------

    def get_snapshot(self) -> ProgressState:
        return self._snapshot

    def on_change(self, callback: ChangeListener) -> Callable[[], None]:
        """Call `callback` with each published snapshot; returns an unsubscriber."""
        self._listeners = [*self._listeners, callback]

        def unsubscribe() -> None:
            self._listeners = [c for c in self._listeners if c is not callback]

        return unsubscribe

    @property
    def flush_state(self) -> FlushState:
        return self._flush_state

    def attach(self, bus: EventBus) -> Callable[[], None]:
        return bus.subscribe(self.handle_event)

    # -- event handling ---------------------------------------------------

    def handle_event(self, event: BenchmarkEvent) -> None:
        if isinstance(event, BatchStarted):
            self._started_at = self._clock()
            self._apply(lambda s: _on_batch_started(s, event), critical=False)
        elif isinstance(event, RunStarted):
            self._apply(lambda s: _on_run_started(s, event), critical=True)
        elif isinstance(event, RunErrored):
            self._apply(lambda s: _on_run_errored(s, event), critical=True)
        elif isinstance(event, RunCompleted):
            self._apply(lambda s: _on_run_completed(s, event.result), critical=True)
        elif isinstance(event, BatchCompleted):
            elapsed = self._elapsed_ms()
            self._apply(
                lambda s: replace(s, is_complete=True, elapsed_ms=elapsed),
                critical=True,
            )

    def tick(self) -> None:
        """Non-critical elapsed-time update."""
        if self._state.is_complete:
            return
        elapsed = self._elapsed_ms()
        self._apply(lambda s: replace(s, elapsed_ms=elapsed), critical=False)

    async def run_ticker(self, interval: float = 0.1) -> None:
        """Tick every `interval` seconds until the batch completes."""
        while not self._state.is_complete:
            await asyncio.sleep(interval)
            self.tick()

    def flush(self) -> None:
        """Publish the current state now and notify listeners."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._state.is_complete:
            self._state = replace(self._state, elapsed_ms=self._elapsed_ms())
        self._snapshot = self._state
        self._flush_state = FlushState.IDLE

        snapshot = self._snapshot
        for listener in self._listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Progress listener failed")

    def close(self) -> None:
        """Cancel any pending throttled flush."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._flush_state = FlushState.IDLE

    # -- internals --------------------------------------------------------

    def _apply(self, transition: Callable[[ProgressState], ProgressState], critical: bool) -> None:
        self._state = transition(self._state)
        if critical:
            self.flush()
        else:
            self._mark_dirty()

    def _mark_dirty(self) -> None:
        if self._flush_state is FlushState.FLUSH_SCHEDULED:
            return
        self._flush_state = FlushState.DIRTY
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to own a timer; publish right away.
            self.flush()
            return
        self._timer = loop.call_later(self.throttle_seconds, self.flush)
        self._flush_state = FlushState.FLUSH_SCHEDULED

    def _elapsed_ms(self) -> int:
        return int((self._clock() - self._started_at) * 1000)


def _on_batch_started(state: ProgressState, event: BatchStarted) -> ProgressState:
    return replace(
        state,
        total_runs=event.total_runs,
        total_tests=event.total_tests,
        runs_per_test=event.runs_per_test,
        models_count=event.models_count,
    )


def _on_run_started(state: ProgressState, event: RunStarted) -> ProgressState:
    key = event.item.key
    if key in state.completed_keys or any(r.key == key for r in state.active_runs):
        return state
    test_name, model_name, run_index = key
    active = ActiveRun(
        test_name=test_name,
        model_name=model_name,
        run_index=run_index,
        start_time=event.start_time,
    )
    return replace(state, active_runs=(*state.active_runs, active))


def _on_run_errored(state: ProgressState, event: RunErrored) -> ProgressState:
    key = event.item.key
    test_name, model_name, run_index = key
    error = RunError(
        test_name=test_name,
        model_name=model_name,
        run_index=run_index,
        message=event.message,
    )
    return replace(
        state,
        active_runs=_without(state.active_runs, key),
        errors=(*state.errors, error),
    )


def _on_run_completed(state: ProgressState, result: RunResult) -> ProgressState:
    key = result.key
    active_runs = _without(state.active_runs, key)
    if key in state.completed_keys:
        return replace(state, active_runs=active_runs)
    return replace(
        state,
        active_runs=active_runs,
        completed_results=(*state.completed_results, result),
        completed_keys=state.completed_keys | {key},
    )


def _without(runs: tuple[ActiveRun, ...], key: RunKey) -> tuple[ActiveRun, ...]:
    return tuple(r for r in runs if r.key != key)
