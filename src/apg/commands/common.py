"""Per-command options and the shared enumerate-then-fan-out flow."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from apg.context import Context
from apg.names import ResourceRef
from apg.tasks import DEFAULT_QUEUE_SIZE, HookManager, PoolResult, Task, WorkerPool
from apg.visitor import visit

__all__ = ["DEFAULT_JOBS", "BulkOptions", "CommandEnv", "run_bulk"]

logger = logging.getLogger(__name__)

DEFAULT_JOBS = 10


class BulkOptions(BaseModel):
    """Options shared by commands that fan out over a resource pattern."""

    model_config = ConfigDict(frozen=True)

    filter: str = Field(default="", description="Server-side filter expression")
    jobs: int = Field(
        default=DEFAULT_JOBS, ge=1, description="Number of tasks to run concurrently"
    )
    queue_size: int = Field(
        default=DEFAULT_QUEUE_SIZE, ge=1, description="Capacity of the task queue"
    )
    dry_run: bool = Field(
        default=False, description="Print results instead of writing them"
    )


@dataclass
class CommandEnv:
    """What a command needs at run time.

    That is a registry client, a root context, task hooks and an output sink.
    """

    client: Any
    ctx: Context = field(default_factory=Context.create)
    hooks: HookManager = field(default_factory=HookManager)
    echo: Callable[[str], None] = print


def run_bulk(
    env: CommandEnv,
    ref: ResourceRef,
    options: BulkOptions,
    make_task: Callable[[Any], Task],
) -> PoolResult:
    """Visit every resource ``ref`` denotes and run one task per resource.

    Each call runs its tasks on a fresh pool. If enumeration fails, the tasks
    already submitted still run before the error propagates.
    """
    pool = WorkerPool(
        env.ctx, options.jobs, queue_size=options.queue_size, hooks=env.hooks
    )
    with pool:
        visited = visit(
            env.client,
            ref,
            lambda resource: pool.submit(make_task(resource)),
            filter=options.filter,
        )
    result = pool.wait()
    logger.debug("Visited %d resources for %s", visited, ref)
    return result
