"""Tests for the bounded-concurrency scheduler."""

import asyncio
import json

import pytest

from ai_bench.benchmark.base import RunResult, TextTest, TokenUsage
from ai_bench.errors import ConfigurationError, PersistenceError
from ai_bench.events import (
    BatchCompleted,
    BatchStarted,
    EventBus,
    RunCompleted,
    RunErrored,
    RunStarted,
)
from ai_bench.matrix import WorkItem, build_work_matrix
from ai_bench.scheduler import Scheduler
from ai_bench.store import ResultStore


def _make_items(make_model, models=2, tests=3, runs=2) -> list[WorkItem]:
    return build_work_matrix(
        [make_model(f"m{i}") for i in range(models)],
        [TextTest(name=f"t{i}", prompt="p") for i in range(tests)],
        runs,
    )


def _ok_result(item: WorkItem) -> RunResult:
    return RunResult(
        test_name=item.test.name,
        model_name=item.model.name,
        run_index=item.run_index,
        timestamp="2025-01-01T00:00:00.000Z",
        success=True,
        reason="ok",
        duration_ms=1,
        token_usage=TokenUsage(input=1, output=1, total=2),
    )


def _recording_bus() -> tuple[EventBus, list]:
    bus = EventBus()
    events: list = []
    bus.subscribe(events.append)
    return bus, events


class FailingStore(ResultStore):
    def __init__(self, run_dir, fail_key):
        super().__init__(run_dir)
        self.fail_key = fail_key

    async def persist(self, result):
        if result.key == self.fail_key:
            raise PersistenceError("disk full")
        return await super().persist(result)


@pytest.mark.asyncio
async def test_concurrency_never_exceeds_limit(tmp_path, make_model):
    bus, events = _recording_bus()
    in_flight = 0
    peak = 0

    async def execute(item):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return _ok_result(item)

    scheduler = Scheduler(ResultStore(tmp_path), concurrency=3, timeout_seconds=5, bus=bus)
    results = await scheduler.run(_make_items(make_model), execute)

    assert len(results) == 12
    assert peak == 3

    # Active runs seen by observers are bounded as well
    active = 0
    observed_peak = 0
    for event in events:
        if isinstance(event, RunStarted):
            active += 1
            observed_peak = max(observed_peak, active)
        elif isinstance(event, RunCompleted):
            active -= 1
    assert observed_peak <= 3


@pytest.mark.asyncio
async def test_event_ordering_and_exactly_one_completion(tmp_path, make_model):
    bus, events = _recording_bus()
    items = _make_items(make_model)

    async def execute(item):
        await asyncio.sleep(0)
        return _ok_result(item)

    results = await Scheduler(ResultStore(tmp_path), 4, 5, bus).run(items, execute)

    assert isinstance(events[0], BatchStarted)
    assert events[0].total_runs == 12
    assert events[0].models_count == 2
    assert events[0].total_tests == 3
    assert events[0].runs_per_test == 2
    assert isinstance(events[-1], BatchCompleted)
    assert len(events[-1].results) == 12

    completed = [e for e in events if isinstance(e, RunCompleted)]
    assert sorted(e.result.key for e in completed) == sorted(item.key for item in items)
    for item in items:
        started_at = next(i for i, e in enumerate(events)
                          if isinstance(e, RunStarted) and e.item.key == item.key)
        completed_at = next(i for i, e in enumerate(events)
                            if isinstance(e, RunCompleted) and e.result.key == item.key)
        assert started_at < completed_at

    assert [r.key for r in results] == [item.key for item in items]
    assert all(e.path is not None and e.path.exists() for e in completed)


@pytest.mark.asyncio
async def test_errors_are_isolated(tmp_path, make_model):
    bus, events = _recording_bus()
    items = _make_items(make_model, models=1, tests=3, runs=1)
    bad_key = items[1].key

    async def execute(item):
        if item.key == bad_key:
            raise ValueError("boom")
        return _ok_result(item)

    results = await Scheduler(ResultStore(tmp_path), 2, 5, bus).run(items, execute)

    assert [r.success for r in results] == [True, False, True]
    failed = results[1]
    assert failed.reason == "Error: boom"
    assert failed.raw_output == {"errorType": "ValueError", "message": "boom"}
    assert failed.token_usage.total == 0
    assert failed.judge_output is None
    errored = [e for e in events if isinstance(e, RunErrored)]
    assert len(errored) == 1
    assert errored[0].error_type == "ValueError"
    assert len(list(tmp_path.rglob("*.json"))) == 3


@pytest.mark.asyncio
async def test_timeout_becomes_failed_result(tmp_path, make_model):
    bus, events = _recording_bus()
    items = _make_items(make_model, models=1, tests=2, runs=1)
    slow_key = items[0].key

    async def execute(item):
        if item.key == slow_key:
            await asyncio.sleep(5)
        return _ok_result(item)

    results = await Scheduler(ResultStore(tmp_path), 2, 0.05, bus).run(items, execute)

    assert results[0].success is False
    assert "Timed out" in results[0].reason
    assert results[0].raw_output["errorType"] == "TimeoutError"
    assert results[1].success is True
    assert len([e for e in events if isinstance(e, RunCompleted)]) == 2


@pytest.mark.asyncio
async def test_persistence_failure_still_completes(tmp_path, make_model):
    bus, events = _recording_bus()
    items = _make_items(make_model, models=1, tests=2, runs=1)
    store = FailingStore(tmp_path, fail_key=items[0].key)

    async def execute(item):
        return _ok_result(item)

    results = await Scheduler(store, 2, 5, bus).run(items, execute)

    assert results[0].success is False
    assert results[0].reason.startswith("Persistence failed:")
    assert results[1].success is True

    errored = [e for e in events if isinstance(e, RunErrored)]
    assert [e.error_type for e in errored] == ["PersistenceError"]
    completed = {e.result.key: e for e in events if isinstance(e, RunCompleted)}
    assert completed[items[0].key].path is None
    assert completed[items[1].key].path is not None


@pytest.mark.asyncio
async def test_every_completed_path_holds_its_own_result(tmp_path, make_model):
    bus, events = _recording_bus()
    tests = [TextTest(name=f"q{sep}{i}", prompt="p") for i in range(4) for sep in (" ", ".")]
    items = build_work_matrix([make_model("m1")], tests, runs_per_test=1)

    async def execute(item):
        return _ok_result(item)

    for _ in range(5):
        await Scheduler(ResultStore(tmp_path), 8, 5, bus).run(items, execute)

    completed = [e for e in events if isinstance(e, RunCompleted)]
    assert len(completed) == 40
    assert len({e.path for e in completed}) == 40
    for event in completed:
        assert json.loads(event.path.read_text())["testName"] == event.result.test_name


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_batch(tmp_path, make_model):
    bus = EventBus()

    def broken(event):
        raise RuntimeError("listener bug")

    bus.subscribe(broken)

    async def execute(item):
        return _ok_result(item)

    results = await Scheduler(ResultStore(tmp_path), 2, 5, bus).run(
        _make_items(make_model, models=1, tests=2, runs=1), execute,
    )
    assert all(r.success for r in results)


def test_invalid_limits_rejected(tmp_path):
    with pytest.raises(ConfigurationError):
        Scheduler(ResultStore(tmp_path), concurrency=0, timeout_seconds=1)
    with pytest.raises(ConfigurationError):
        Scheduler(ResultStore(tmp_path), concurrency=1, timeout_seconds=0)
