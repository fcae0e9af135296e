"""``delete``: remove every resource a pattern matches."""

from __future__ import annotations

from typing import Any

from apg.commands.common import BulkOptions, CommandEnv, run_bulk
from apg.context import Context
from apg.errors import UnsupportedResourceNameError
from apg.names import ResourceKind, parse_resource
from apg.tasks import FunctionTask, PoolResult
from apg.visitor import delete_resource

__all__ = ["delete"]


def delete(
    env: CommandEnv, pattern: str, options: BulkOptions, force: bool = False
) -> PoolResult:
    """Delete matching resources concurrently.

    ``force`` also deletes children of APIs, versions, specs and deployments.
    With ``dry_run`` the names are printed instead.
    """
    ref = parse_resource(pattern)
    if ref.kind is ResourceKind.PROJECT:
        raise UnsupportedResourceNameError(pattern)

    def make_task(resource: Any) -> FunctionTask:
        def run(ctx: Context) -> None:
            if options.dry_run:
                env.echo(f"would delete {resource.name}")
                return
            delete_resource(env.client, ref.kind, resource.name, force=force)

        return FunctionTask(f"delete {resource.name}", run)

    return run_bulk(env, ref, options, make_task)
