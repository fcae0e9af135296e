"""Bulk ``label`` and ``annotate`` commands."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from apg.commands.common import BulkOptions, CommandEnv, run_bulk
from apg.context import Context
from apg.errors import UnsupportedResourceNameError
from apg.labels import Labeling, parse_operations
from apg.names import parse_resource
from apg.tasks import FunctionTask, PoolResult
from apg.visitor import UPDATABLE_KINDS, update_field

__all__ = ["annotate", "label", "patch_field"]

_VERBS = {"labels": "label", "annotations": "annotate"}


def patch_field(
    env: CommandEnv,
    pattern: str,
    operations: Sequence[str],
    field: str,
    options: BulkOptions,
    overwrite: bool = False,
) -> PoolResult:
    """Apply ``key=value`` and ``key-`` operations to ``field`` of each match.

    Operations and the pattern are validated before any task runs.

    Raises:
        InvalidPatchError: If an operation is malformed.
        UnsupportedResourceNameError: If the pattern is not an API, version,
            spec or deployment name.
    """
    labeling = parse_operations(operations, overwrite=overwrite)
    ref = parse_resource(pattern)
    if ref.kind not in UPDATABLE_KINDS:
        raise UnsupportedResourceNameError(pattern)
    verb = _VERBS[field]

    def make_task(resource: Any) -> FunctionTask:
        run = _patch(env, ref.kind, resource, field, labeling, options.dry_run)
        return FunctionTask(f"{verb} {resource.name}", run)

    return run_bulk(env, ref, options, make_task)


def _patch(
    env: CommandEnv,
    kind: Any,
    resource: Any,
    field: str,
    labeling: Labeling,
    dry_run: bool,
) -> Any:
    def run(ctx: Context) -> None:
        values = labeling.apply(dict(getattr(resource, field)))
        if dry_run:
            env.echo(f"{resource.name} {field}={values}")
            return
        update_field(env.client, kind, resource, field, values)

    return run


def label(
    env: CommandEnv,
    pattern: str,
    operations: Sequence[str],
    options: BulkOptions,
    overwrite: bool = False,
) -> PoolResult:
    return patch_field(env, pattern, operations, "labels", options, overwrite=overwrite)


def annotate(
    env: CommandEnv,
    pattern: str,
    operations: Sequence[str],
    options: BulkOptions,
    overwrite: bool = False,
) -> PoolResult:
    return patch_field(
        env, pattern, operations, "annotations", options, overwrite=overwrite
    )
