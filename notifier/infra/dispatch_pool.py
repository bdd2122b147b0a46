# notifier/infra/dispatch_pool.py
"""
Pool that runs each submitted batch on its own dispatch worker.

Every batch becomes one asyncio task with a fresh DispatchWorker.
Concurrency is bounded by a semaphore. Tasks carry no result back to
the producer: outcomes are side effects on the shared collaborators,
and the task handles are kept only so shutdown can wait for them.
"""
from __future__ import annotations

import asyncio
from typing import Callable

from notifier.core.dispatch.domain import JobBatch
from notifier.core.dispatch.worker import DispatchWorker
from notifier.infra.logging_config import get_logger
from notifier.infra.metrics import inc_counter

logger = get_logger(__name__)


class DispatchPool:
    """
    Usage:
        pool = DispatchPool(worker_factory=runtime.new_worker, max_concurrent_batches=10)
        pool.submit(batch)
        ...
        await pool.stop()
    """

    def __init__(
        self,
        worker_factory: Callable[[], DispatchWorker],
        *,
        max_concurrent_batches: int = 10,
    ):
        self._worker_factory = worker_factory
        self._max_concurrent = max(1, max_concurrent_batches)
        self._semaphore = asyncio.Semaphore(self._max_concurrent)
        self._tasks: set[asyncio.Task] = set()
        self._accepting = True

    def submit(self, batch: JobBatch) -> asyncio.Task:
        """Hand ``batch`` over to a new worker. The caller must not touch it afterwards."""
        if not self._accepting:
            raise RuntimeError("Dispatch pool is stopped")

        task = asyncio.create_task(
            self._run(batch),
            name=f"sender-{batch.transaction_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        inc_counter("dispatch_batches_submitted")
        return task

    async def _run(self, batch: JobBatch) -> None:
        async with self._semaphore:
            worker = self._worker_factory()
            await worker.run(batch)
            inc_counter("dispatch_batches_completed")

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every submitted batch has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Refuse new batches and wait for in-flight ones (no cancellation)."""
        self._accepting = False
        pending = self.in_flight
        await self.drain()
        logger.info(f"Dispatch pool stopped: drained {pending} batch(es)")

    def _on_task_done(self, task: asyncio.Task) -> None:
        """Forget the task and log unexpected worker death."""
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            inc_counter("dispatch_batches_crashed")
            logger.error(
                f"Dispatch task {task.get_name()} died unexpectedly: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )
