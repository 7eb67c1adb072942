"""Detached FIFO queue for best-effort catalog writes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from backend.tripgen.metrics.registry import MetricsClient

logger = logging.getLogger(__name__)

BackgroundJob = Callable[..., Awaitable[Any]]


class BackgroundWriter:
    """Runs submitted jobs one at a time on a lazily started worker task.

    ``submit`` never blocks and never raises for job failures; failures are
    logged and counted. Production code does not wait for the queue; tests
    call ``drain`` to observe the writes.
    """

    def __init__(self, metrics: MetricsClient | None = None) -> None:
        self.metrics = metrics
        self._queue: asyncio.Queue[tuple[str, BackgroundJob, tuple[Any, ...]]] | None = None
        self._worker: asyncio.Task[None] | None = None
        self.completed = 0
        self.failed = 0

    def _ensure_worker(self) -> asyncio.Queue[tuple[str, BackgroundJob, tuple[Any, ...]]]:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(
                self._run(self._queue), name="catalog-background-writer"
            )
        return self._queue

    async def _run(
        self, queue: asyncio.Queue[tuple[str, BackgroundJob, tuple[Any, ...]]]
    ) -> None:
        while True:
            label, job, args = await queue.get()
            try:
                await job(*args)
                self.completed += 1
                if self.metrics is not None:
                    self.metrics.observe_background(label, ok=True)
            except Exception as e:
                self.failed += 1
                logger.warning(f"Background job '{label}' failed: {e}")
                if self.metrics is not None:
                    self.metrics.observe_background(label, ok=False)
            finally:
                queue.task_done()

    def submit(self, label: str, job: BackgroundJob, *args: Any) -> None:
        """Queue a job; must be called from a running event loop."""
        self._ensure_worker().put_nowait((label, job, args))

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    async def drain(self) -> None:
        """Wait until every queued job has finished."""
        if self._queue is not None:
            await self._queue.join()

    async def aclose(self) -> None:
        """Stop the worker; jobs still queued are dropped."""
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        if self._queue is not None and not self._queue.empty():
            logger.info(f"Dropping {self._queue.qsize()} queued background jobs")
        self._queue = None
