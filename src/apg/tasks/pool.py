"""Bounded worker pool that fans tasks out over a fixed number of threads."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from types import TracebackType
from typing import TYPE_CHECKING, Any

from apg.errors import InvalidInputError, PoolClosedError
from apg.tasks.hooks import HookManager

if TYPE_CHECKING:
    from apg.context import Context
    from apg.tasks.task import Task

__all__ = ["DEFAULT_QUEUE_SIZE", "PoolResult", "WorkerPool", "worker_pool"]

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1024

# How often blocked puts re-check cancellation and worker liveness.
_POLL_INTERVAL = 0.05

_STOP = object()


@dataclass(frozen=True)
class PoolResult:
    """Counts reported by WorkerPool.wait()."""

    submitted: int
    succeeded: int
    failed: int
    skipped: int
    failures: tuple[str, ...] = field(default=())

    @property
    def ok(self) -> bool:
        return self.failed == 0


class WorkerPool:
    """Run tasks on ``jobs`` worker threads reading from one bounded queue.

    All workers are started by the constructor. Call :meth:`wait` exactly once
    after the last :meth:`submit`; it stops the workers and joins them. A task
    that raises is logged and counted, never retried, and never stops the pool.

    When the context is cancelled, workers stop taking tasks and exit; tasks
    still queued are abandoned and reported as ``skipped``.

    Usage::

        with WorkerPool(ctx, jobs=10) as pool:
            for spec in specs:
                pool.submit(FunctionTask(f"compute {spec}", fn))
    """

    def __init__(
        self,
        ctx: Context,
        jobs: int,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        hooks: HookManager | None = None,
    ) -> None:
        if jobs < 1:
            raise InvalidInputError(f"jobs must be at least 1, got {jobs}")
        if queue_size < 1:
            raise InvalidInputError(f"queue_size must be at least 1, got {queue_size}")
        self._ctx = ctx
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=queue_size)
        self._hooks = hooks if hooks is not None else HookManager()
        self._lock = threading.Lock()
        self._submitted = 0
        self._succeeded = 0
        self._failed = 0
        self._failures: list[str] = []
        self._closed = False
        self._result: PoolResult | None = None
        self._threads = [
            threading.Thread(target=self._work, name=f"apg-worker-{i}", daemon=True)
            for i in range(jobs)
        ]
        for thread in self._threads:
            thread.start()

    @property
    def jobs(self) -> int:
        return len(self._threads)

    def submit(self, task: Task) -> bool:
        """Queue a task, blocking while the queue is full.

        Returns False without queueing when the context is (or becomes)
        cancelled.

        Raises:
            PoolClosedError: If wait() has already been called.
        """
        if self._closed:
            raise PoolClosedError()
        with self._lock:
            self._submitted += 1
        while not self._ctx.cancelled:
            try:
                self._queue.put(task, timeout=_POLL_INTERVAL)
            except queue.Full:
                continue
            return True
        return False

    def wait(self) -> PoolResult:
        """Close the pool and block until every worker has exited."""
        if self._result is not None:
            return self._result
        self._closed = True
        for _ in self._threads:
            self._put_stop()
        for thread in self._threads:
            thread.join()

        with self._lock:
            skipped = self._submitted - self._succeeded - self._failed
            self._result = PoolResult(
                submitted=self._submitted,
                succeeded=self._succeeded,
                failed=self._failed,
                skipped=skipped,
                failures=tuple(self._failures),
            )
        if self._result.failed:
            logger.warning(
                "%d of %d tasks failed",
                self._result.failed,
                self._result.submitted,
                extra={"trace_id": self._ctx.trace_id, "failed": self._result.failed},
            )
        if self._result.skipped:
            logger.info("%d tasks skipped after cancellation", self._result.skipped)
        return self._result

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None and not issubclass(exc_type, Exception):
            self._ctx.cancel()
        self.wait()

    def _put_stop(self) -> None:
        while True:
            try:
                self._queue.put(_STOP, timeout=_POLL_INTERVAL)
                return
            except queue.Full:
                if not any(t.is_alive() for t in self._threads):
                    return

    def _work(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP or self._ctx.cancelled:
                return
            self._run(item)

    def _run(self, task: Task) -> None:
        task_ctx = self._ctx.child(str(task))
        executed = self._hooks.run_before(task, task_ctx)
        try:
            task.run(task_ctx)
        except Exception as e:
            logger.error(
                "%s: %s",
                task,
                e,
                extra={
                    "trace_id": task_ctx.trace_id,
                    "task": str(task),
                    "error": str(e),
                },
            )
            self._hooks.run_on_error(task, e, task_ctx, executed)
            with self._lock:
                self._failed += 1
                self._failures.append(f"{task}: {e}")
            return
        self._hooks.run_after(task, task_ctx, executed)
        with self._lock:
            self._succeeded += 1


def worker_pool(
    ctx: Context,
    jobs: int,
    queue_size: int = DEFAULT_QUEUE_SIZE,
    hooks: HookManager | None = None,
) -> tuple[Callable[[Task], bool], Callable[[], PoolResult]]:
    """Start a pool and return its ``(submit, wait)`` pair."""
    pool = WorkerPool(ctx, jobs, queue_size=queue_size, hooks=hooks)
    return pool.submit, pool.wait
