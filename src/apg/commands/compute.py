"""``compute`` commands: store derived metadata about specs as artifacts."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from google.cloud import apigee_registry_v1 as rpc
from google.protobuf.message import DecodeError

from apg import mime
from apg.commands.common import BulkOptions, CommandEnv, run_bulk
from apg.compute import (
    add_complexity,
    artifact_mime_type,
    compute_complexity,
    compute_lint_stats,
    compute_vocabulary,
    lint_relation,
    lint_spec,
    linter_executable,
    lintstats_relation,
    merge_lint_stats,
    to_json,
)
from apg.compute.messages import Complexity, Lint, LintStats
from apg.context import Context
from apg.errors import InvalidInputError, UnsupportedResourceNameError
from apg.names import ProjectName, ResourceKind, ResourceRef, parse_resource
from apg.tasks import FunctionTask, PoolResult
from apg.visitor import (
    SpecContents,
    fetch_artifact_contents,
    fetch_spec_contents,
    set_artifact,
    visit,
)

__all__ = ["complexity", "lint", "lintstats", "vocabulary", "spec_artifact_task"]

logger = logging.getLogger(__name__)

Summarizer = Callable[[SpecContents], Any]

# Resources whose lint stats are the sum of their children's, and the child collection.
_LINTSTATS_CHILDREN = {
    ResourceKind.PROJECT: "apis",
    ResourceKind.API: "versions",
    ResourceKind.VERSION: "specs",
}


def _spec_ref(pattern: str) -> ResourceRef:
    ref = parse_resource(pattern)
    if ref.kind is not ResourceKind.SPEC:
        raise UnsupportedResourceNameError(pattern)
    return ref


def _store(env: CommandEnv, name: str, message: Any, dry_run: bool) -> None:
    if dry_run:
        env.echo(to_json(message))
        return
    logger.debug("Storing %s", name)
    set_artifact(
        env.client,
        rpc.Artifact(
            name=name,
            mime_type=artifact_mime_type(message),
            contents=message.SerializeToString(deterministic=True),
        ),
    )


def spec_artifact_task(
    env: CommandEnv, spec: Any, relation: str, summarize: Summarizer, dry_run: bool
) -> FunctionTask:
    """Task that summarizes one spec into ``<spec>/artifacts/<relation>``."""

    def run(ctx: Context) -> None:
        contents = fetch_spec_contents(env.client, spec)
        _store(env, f"{spec.name}/artifacts/{relation}", summarize(contents), dry_run)

    return FunctionTask(f"compute {relation} {spec.name}", run)


def complexity(env: CommandEnv, pattern: str, options: BulkOptions) -> PoolResult:
    ref = _spec_ref(pattern)
    return run_bulk(
        env,
        ref,
        options,
        lambda spec: spec_artifact_task(
            env, spec, "complexity", compute_complexity, options.dry_run
        ),
    )


def vocabulary(env: CommandEnv, pattern: str, options: BulkOptions) -> PoolResult:
    ref = _spec_ref(pattern)
    return run_bulk(
        env,
        ref,
        options,
        lambda spec: spec_artifact_task(
            env, spec, "vocabulary", compute_vocabulary, options.dry_run
        ),
    )


def lint(
    env: CommandEnv,
    pattern: str,
    linter: str,
    options: BulkOptions,
    rule_ids: Sequence[str] = (),
    debug: bool = False,
) -> PoolResult:
    """Run ``registry-lint-<linter>`` over every matching spec.

    Raises:
        LinterError: If the plugin is not on PATH.
    """
    ref = _spec_ref(pattern)
    executable = linter_executable(linter)

    def summarize(contents: SpecContents) -> Any:
        return lint_spec(
            contents, linter, executable, rule_ids=rule_ids, keep_directory=debug
        )

    return run_bulk(
        env,
        ref,
        options,
        lambda spec: spec_artifact_task(
            env, spec, lint_relation(linter), summarize, options.dry_run
        ),
    )


def _read_artifact(client: Any, name: str, message_class: Any) -> Any | None:
    """Read an artifact as ``message_class``.

    Missing, mistyped and undecodable artifacts give None.
    """
    body = fetch_artifact_contents(client, name)
    if body is None:
        return None
    try:
        message_type = mime.message_type_for_mime_type(body.content_type)
    except InvalidInputError:
        logger.debug("%s does not hold a message (%s)", name, body.content_type)
        return None
    expected = message_class.DESCRIPTOR.full_name
    if message_type != expected:
        logger.debug("%s holds %s, not %s", name, message_type, expected)
        return None
    message = message_class()
    try:
        message.ParseFromString(body.data)
    except DecodeError:
        logger.debug("%s could not be decoded", name)
        return None
    return message


def lintstats(
    env: CommandEnv, pattern: str, linter: str, options: BulkOptions
) -> PoolResult:
    """Summarize ``lint-<linter>`` results as ``lintstats-<linter>`` artifacts.

    Specs get problem counts from their lint artifact plus operation and
    schema counts from their ``complexity`` artifact; specs missing either are
    skipped. Versions, APIs and projects get the sum of their children's
    stats, so compute them bottom-up.

    Raises:
        UnsupportedResourceNameError: For deployments and artifacts.
    """
    ref = parse_resource(pattern)
    if ref.kind is not ResourceKind.SPEC and ref.kind not in _LINTSTATS_CHILDREN:
        raise UnsupportedResourceNameError(pattern)
    relation = lintstats_relation(linter)

    def summarize_spec(name: str) -> Any | None:
        artifacts = f"{name}/artifacts"
        lint_result = _read_artifact(
            env.client, f"{artifacts}/{lint_relation(linter)}", Lint
        )
        if lint_result is None:
            return None
        summary = _read_artifact(env.client, f"{artifacts}/complexity", Complexity)
        if summary is None:
            return None
        return add_complexity(compute_lint_stats(lint_result), summary)

    def aggregate(name: str, collection: str) -> Any:
        total = LintStats()

        def add(child: Any) -> None:
            stats = _read_artifact(
                env.client, f"{child.name}/artifacts/{relation}", LintStats
            )
            if stats is not None:
                merge_lint_stats(total, stats)

        visit(env.client, parse_resource(f"{name}/{collection}/-"), add)
        return total

    def make_task(resource: Any) -> FunctionTask:
        name = str(resource) if isinstance(resource, ProjectName) else resource.name

        def run(ctx: Context) -> None:
            if ref.kind is ResourceKind.SPEC:
                stats = summarize_spec(name)
                if stats is None:
                    logger.debug("Skipping %s: no lint or complexity results", name)
                    return
            else:
                stats = aggregate(name, _LINTSTATS_CHILDREN[ref.kind])
            _store(env, f"{name}/artifacts/{relation}", stats, options.dry_run)

        return FunctionTask(f"compute {relation} {name}", run)

    return run_bulk(env, ref, options, make_task)
