"""Bounded-concurrency scheduler for a batch of work items."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence

from ai_bench.benchmark.base import RunResult, TokenUsage
from ai_bench.errors import ConfigurationError, PersistenceError
from ai_bench.events import (
    BatchCompleted,
    BatchStarted,
    EventBus,
    RunCompleted,
    RunErrored,
    RunStarted,
)
from ai_bench.matrix import WorkItem
from ai_bench.store import ResultStore, utc_timestamp

logger = logging.getLogger(__name__)

ExecuteFn = Callable[[WorkItem], Awaitable[RunResult]]


class Scheduler:
    """Runs every item under a global concurrency cap.

    Guarantees, per batch: BatchStarted first, RunStarted before the
    matching RunCompleted, exactly one RunCompleted per item (persisted
    before it is emitted), and BatchCompleted last. Item completions are
    otherwise unordered.
    """

    def __init__(
        self,
        store: ResultStore,
        concurrency: int,
        timeout_seconds: float,
        bus: EventBus | None = None,
    ):
        if concurrency < 1:
            raise ConfigurationError(f"concurrency must be >= 1, got {concurrency}")
        if timeout_seconds <= 0:
            raise ConfigurationError(f"timeout_seconds must be > 0, got {timeout_seconds}")
        self.store = store
        self.concurrency = concurrency
        self.timeout_seconds = timeout_seconds
        self.bus = bus or EventBus()

    async def run(self, items: Sequence[WorkItem], execute: ExecuteFn) -> list[RunResult]:
        """Execute all items; returns results in item order."""
        self.bus.emit(BatchStarted(
            total_runs=len(items),
            total_tests=len({i.test.name for i in items}),
            runs_per_test=len({i.run_index for i in items}),
            models_count=len({i.model.name for i in items}),
        ))
        logger.info(
            "Dispatching %d run(s) with concurrency %d", len(items), self.concurrency,
        )

        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(item: WorkItem) -> RunResult:
            async with semaphore:
                return await self._run_item(item, execute)

        results = await asyncio.gather(*(bounded(item) for item in items))

        self.bus.emit(BatchCompleted(results=tuple(results)))
        successful = sum(1 for r in results if r.success)
        logger.info("Batch complete: %d/%d successful", successful, len(results))
        return list(results)

    async def _run_item(self, item: WorkItem, execute: ExecuteFn) -> RunResult:
        self.bus.emit(RunStarted(item=item, start_time=time.time()))
        start = time.monotonic()

        try:
            result = await asyncio.wait_for(execute(item), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            message = f"Timed out after {self.timeout_seconds:g}s"
            result = self._failed_result(item, start, message, "TimeoutError")
        except Exception as e:
            result = self._failed_result(item, start, str(e) or repr(e), type(e).__name__)

        try:
            path = await self.store.persist(result)
        except PersistenceError as e:
            logger.error("Could not persist %s: %s", item.label, e)
            self.bus.emit(RunErrored(item=item, message=str(e), error_type="PersistenceError"))
            result = result.model_copy(update={
                "success": False,
                "reason": f"Persistence failed: {e}",
            })
            path = None

        self.bus.emit(RunCompleted(result=result, path=path))
        return result

    def _failed_result(
        self, item: WorkItem, start: float, message: str, error_type: str,
    ) -> RunResult:
        logger.warning("Run failed: %s: %s", item.label, message)
        self.bus.emit(RunErrored(item=item, message=message, error_type=error_type))
        return RunResult(
            test_name=item.test.name,
            model_name=item.model.name,
            run_index=item.run_index,
            timestamp=utc_timestamp(),
            type=item.test.type,
            prompt=item.test.prompt,
            expected_answer=getattr(item.test, "expected_answer", None),
            success=False,
            reason=f"Error: {message}",
            duration_ms=int((time.monotonic() - start) * 1000),
            token_usage=TokenUsage(input=0, output=0, total=0),
            raw_output={"errorType": error_type, "message": message},
        )
