"""Worker pool, task contract and task hooks."""

from apg.tasks.hooks import HookManager, TaskHook
from apg.tasks.pool import DEFAULT_QUEUE_SIZE, PoolResult, WorkerPool, worker_pool
from apg.tasks.task import FunctionTask, Task

__all__ = [
    "DEFAULT_QUEUE_SIZE",
    "FunctionTask",
    "HookManager",
    "PoolResult",
    "Task",
    "TaskHook",
    "WorkerPool",
    "worker_pool",
]
