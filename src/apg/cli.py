"""Command-line interface for the API Registry.

Every command follows the same flow: resolve settings, parse the resource
pattern, then either print results or fan tasks out over a worker pool.
Setup failures exit with status 1 before any task runs; failures inside
individual tasks are logged and leave the exit status at 0.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any

import typer
from google.api_core import exceptions as core_exceptions
from pydantic import ValidationError

from apg import __version__
from apg.commands import compute as compute_commands
from apg.commands import delete as delete_command
from apg.commands import get as get_command
from apg.commands import labeling, upload
from apg.commands.common import DEFAULT_JOBS, BulkOptions, CommandEnv
from apg.config import Config, RegistrySettings, load_profile, load_settings
from apg.connection import build_client
from apg.context import Context
from apg.errors import RegistryError
from apg.observability import (
    LoggingHook,
    MetricsCollector,
    MetricsHook,
    OTLPExporter,
    SpanExporter,
    TracingHook,
    configure_logging,
)
from apg.tasks import DEFAULT_QUEUE_SIZE, HookManager, PoolResult

__all__ = ["CliState", "app", "main"]

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="apg",
    help="A command-line client for the API Registry.",
    no_args_is_help=True,
    add_completion=False,
)
compute_app = typer.Typer(
    help="Compute properties of specs and store them as artifacts.",
    no_args_is_help=True,
)
upload_app = typer.Typer(
    help="Upload API descriptions and artifacts.", no_args_is_help=True
)
app.add_typer(compute_app, name="compute")
app.add_typer(upload_app, name="upload")


@dataclass
class CliState:
    """Per-invocation state shared by the global callback and the commands."""

    settings: RegistrySettings
    config: Config = field(default_factory=Config)
    metrics: MetricsCollector = field(default_factory=MetricsCollector)
    exporter: SpanExporter | None = None
    metrics_out: Path | None = None
    ctx: Context = field(default_factory=Context.create)
    _client: Any = None

    def client(self) -> Any:
        if self._client is None:
            self._client = build_client(self.settings)
        return self._client

    def env(self, command: str) -> CommandEnv:
        hooks = HookManager()
        if self.exporter is not None:
            hooks.add(TracingHook(self.exporter, command))
        hooks.add(MetricsHook(self.metrics, command))
        hooks.add(LoggingHook())
        return CommandEnv(
            client=self.client(), ctx=self.ctx, hooks=hooks, echo=typer.echo
        )

    def options(
        self,
        filter: str = "",
        jobs: int | None = None,
        dry_run: bool = False,
        default_jobs: int = DEFAULT_JOBS,
    ) -> BulkOptions:
        if jobs is None:
            jobs = self.config.get("defaults.jobs", default_jobs)
        return BulkOptions(
            filter=filter,
            jobs=jobs,
            queue_size=self.config.get("defaults.queue_size", DEFAULT_QUEUE_SIZE),
            dry_run=dry_run,
        )

    def qualify(self, pattern: str) -> str:
        """Fully qualify ``pattern`` with the configured project when relative."""
        return self.settings.fq_name(pattern)

    def project_id(self, project_id: str | None) -> str:
        """The project bulk uploads go to: ``--project-id``, else ``--project``."""
        project = project_id or self.settings.project
        if not project:
            typer.echo(
                "Error: please specify a project id with --project-id or --project",
                err=True,
            )
            raise typer.Exit(1)
        return project

    def close(self) -> None:
        if self.metrics_out is not None:
            text = self.metrics.export_prometheus()
            self.metrics_out.write_text(text, encoding="utf-8")
        shutdown = getattr(self.exporter, "shutdown", None)
        if shutdown is not None:
            shutdown()


@contextlib.contextmanager
def _setup_errors() -> Iterator[None]:
    """Report setup failures on stderr and exit with status 1."""
    try:
        yield
    except (RegistryError, core_exceptions.GoogleAPICallError, ValidationError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def _report(result: PoolResult) -> None:
    logger.debug(
        "%d submitted, %d succeeded, %d failed, %d skipped",
        result.submitted,
        result.succeeded,
        result.failed,
        result.skipped,
    )


def _state(ctx: typer.Context) -> CliState:
    state = ctx.find_object(CliState)
    if state is None:
        raise RuntimeError("command invoked without the apg callback")
    return state


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"apg {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    ctx: typer.Context,
    config: Annotated[
        str | None,
        typer.Option(
            "--config",
            help="Profile name under ~/.config/registry or a path to a YAML file.",
        ),
    ] = None,
    address: Annotated[
        str | None,
        typer.Option("--address", help="Registry server address (host:port)."),
    ] = None,
    insecure: Annotated[
        bool | None,
        typer.Option(
            "--insecure/--secure", help="Connect without TLS.", show_default=False
        ),
    ] = None,
    token: Annotated[
        str | None, typer.Option("--token", help="Bearer token for registry calls.")
    ] = None,
    api_key: Annotated[
        str | None, typer.Option("--api-key", help="API key for registry calls.")
    ] = None,
    project: Annotated[
        str | None,
        typer.Option("--project", help="Project for relative resource names."),
    ] = None,
    log_level: Annotated[
        str, typer.Option("--log-level", help="debug, info, warning or error.")
    ] = "warning",
    log_format: Annotated[
        str, typer.Option("--log-format", help="text or json.")
    ] = "text",
    metrics_out: Annotated[
        Path | None,
        typer.Option(
            "--metrics-out", help="Write Prometheus metrics to this file on exit."
        ),
    ] = None,
    trace_endpoint: Annotated[
        str | None,
        typer.Option(
            "--trace-endpoint", help="Export task spans to this OTLP endpoint."
        ),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """A command-line client for the API Registry."""
    configure_logging(level=log_level, format=log_format)
    with _setup_errors():
        profile = load_profile(config)
        settings = load_settings(
            profile,
            address=address,
            insecure=insecure,
            token=token,
            api_key=api_key,
            project=project,
        )
    exporter = None
    if trace_endpoint:
        try:
            exporter = OTLPExporter(endpoint=trace_endpoint)
        except ImportError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from e
    state = CliState(
        settings=settings, config=profile, exporter=exporter, metrics_out=metrics_out
    )
    ctx.obj = state
    ctx.call_on_close(state.close)


FilterOption = Annotated[
    str, typer.Option("--filter", help="Filter expression evaluated by the server.")
]
JobsOption = Annotated[
    int | None,
    typer.Option(
        "--jobs", "-j", help="Number of concurrent tasks.", show_default=False
    ),
]
DryRunOption = Annotated[
    bool, typer.Option("--dry-run", help="Print what would change without changing it.")
]
OverwriteOption = Annotated[
    bool, typer.Option("--overwrite", help="Replace keys that already have values.")
]
PatternArgument = Annotated[
    str, typer.Argument(help="Resource name or pattern, e.g. projects/p/apis/-.")
]
OperationsArgument = Annotated[
    list[str], typer.Argument(help="KEY=VALUE to set a key, KEY- to remove it.")
]
LinterOption = Annotated[
    str, typer.Option("--linter", help="Name of the registry-lint-<linter> plugin.")
]
ProjectIdOption = Annotated[
    str | None, typer.Option("--project-id", help="Project to upload into.")
]
BaseUriOption = Annotated[
    str, typer.Option("--base-uri", help="Prefix for the source_uri of uploaded specs.")
]


def _patch(
    ctx: typer.Context,
    command: str,
    pattern: str,
    operations: list[str],
    filter: str,
    jobs: int | None,
    dry_run: bool,
    overwrite: bool,
) -> None:
    state = _state(ctx)
    with _setup_errors():
        run = labeling.label if command == "label" else labeling.annotate
        result = run(
            state.env(command),
            state.qualify(pattern),
            operations,
            state.options(filter, jobs, dry_run),
            overwrite=overwrite,
        )
    _report(result)


@app.command()
def label(
    ctx: typer.Context,
    pattern: PatternArgument,
    operations: OperationsArgument,
    filter: FilterOption = "",
    jobs: JobsOption = None,
    dry_run: DryRunOption = False,
    overwrite: OverwriteOption = False,
) -> None:
    """Set or remove labels on APIs, versions, specs and deployments."""
    _patch(ctx, "label", pattern, operations, filter, jobs, dry_run, overwrite)


@app.command()
def annotate(
    ctx: typer.Context,
    pattern: PatternArgument,
    operations: OperationsArgument,
    filter: FilterOption = "",
    jobs: JobsOption = None,
    dry_run: DryRunOption = False,
    overwrite: OverwriteOption = False,
) -> None:
    """Set or remove annotations on APIs, versions, specs and deployments."""
    _patch(ctx, "annotate", pattern, operations, filter, jobs, dry_run, overwrite)


@compute_app.command("complexity")
def compute_complexity(
    ctx: typer.Context,
    pattern: PatternArgument,
    filter: FilterOption = "",
    jobs: JobsOption = None,
    dry_run: DryRunOption = False,
) -> None:
    """Compute complexity metrics of specs."""
    state = _state(ctx)
    with _setup_errors():
        result = compute_commands.complexity(
            state.env("compute complexity"),
            state.qualify(pattern),
            state.options(filter, jobs, dry_run),
        )
    _report(result)


@compute_app.command("vocabulary")
def compute_vocabulary(
    ctx: typer.Context,
    pattern: PatternArgument,
    filter: FilterOption = "",
    jobs: JobsOption = None,
    dry_run: DryRunOption = False,
) -> None:
    """Compute the vocabularies of specs."""
    state = _state(ctx)
    with _setup_errors():
        result = compute_commands.vocabulary(
            state.env("compute vocabulary"),
            state.qualify(pattern),
            state.options(filter, jobs, dry_run),
        )
    _report(result)


@compute_app.command("lint")
def compute_lint(
    ctx: typer.Context,
    pattern: PatternArgument,
    linter: LinterOption,
    rule: Annotated[
        list[str] | None,
        typer.Option("--rule", help="Rule id to enable; repeatable."),
    ] = None,
    filter: FilterOption = "",
    jobs: JobsOption = None,
    dry_run: DryRunOption = False,
    debug: Annotated[
        bool, typer.Option("--debug", help="Keep the temporary spec directories.")
    ] = False,
) -> None:
    """Lint specs with an external linter plugin."""
    state = _state(ctx)
    with _setup_errors():
        result = compute_commands.lint(
            state.env("compute lint"),
            state.qualify(pattern),
            linter,
            state.options(filter, jobs, dry_run),
            rule_ids=rule or (),
            debug=debug,
        )
    _report(result)


@compute_app.command("lintstats")
def compute_lintstats(
    ctx: typer.Context,
    pattern: PatternArgument,
    linter: LinterOption,
    filter: FilterOption = "",
    jobs: JobsOption = None,
    dry_run: DryRunOption = False,
) -> None:
    """Summarize lint results of specs, versions, APIs or projects."""
    state = _state(ctx)
    with _setup_errors():
        result = compute_commands.lintstats(
            state.env("compute lintstats"),
            state.qualify(pattern),
            linter,
            state.options(filter, jobs, dry_run),
        )
    _report(result)


@app.command()
def get(
    ctx: typer.Context,
    pattern: PatternArgument,
    filter: FilterOption = "",
    output: Annotated[
        str, typer.Option("--output", "-o", help="names or json.")
    ] = "names",
) -> None:
    """Print the resources matching a name or pattern."""
    state = _state(ctx)
    with _setup_errors():
        if output not in get_command.OUTPUT_FORMATS:
            raise typer.BadParameter(
                f"must be one of {', '.join(get_command.OUTPUT_FORMATS)}",
                param_hint="--output",
            )
        get_command.get(
            state.env("get"), state.qualify(pattern), filter=filter, output=output
        )


@app.command()
def delete(
    ctx: typer.Context,
    pattern: PatternArgument,
    filter: FilterOption = "",
    force: Annotated[
        bool, typer.Option("--force", help="Also delete child resources.")
    ] = False,
    jobs: JobsOption = None,
    dry_run: DryRunOption = False,
) -> None:
    """Delete the resources matching a name or pattern."""
    state = _state(ctx)
    with _setup_errors():
        result = delete_command.delete(
            state.env("delete"),
            state.qualify(pattern),
            state.options(filter, jobs, dry_run),
            force=force,
        )
    _report(result)


@upload_app.command("spec")
def upload_spec(
    ctx: typer.Context,
    file: Annotated[
        Path,
        typer.Argument(
            exists=True, dir_okay=False, readable=True, help="Spec file to upload."
        ),
    ],
    parent: Annotated[
        str, typer.Option("--parent", help="Version that will own the spec.")
    ],
    mime_type: Annotated[
        str, typer.Option("--mime-type", help="Mime type of the spec contents.")
    ],
    spec_id: Annotated[
        str | None, typer.Option("--id", help="Spec id; defaults to the file name.")
    ] = None,
    compress: Annotated[
        bool, typer.Option("--gzip", help="Store the contents gzip-compressed.")
    ] = False,
) -> None:
    """Upload one spec file."""
    state = _state(ctx)
    with _setup_errors():
        spec = upload.upload_spec(
            state.env("upload spec"),
            file,
            state.qualify(parent),
            mime_type,
            spec_id=spec_id,
            compress=compress,
        )
    typer.echo(spec.name)


@upload_app.command("openapi")
def upload_openapi(
    ctx: typer.Context,
    directory: Annotated[
        Path, typer.Argument(exists=True, file_okay=False, help="Directory to scan.")
    ],
    project_id: ProjectIdOption = None,
    base_uri: BaseUriOption = "",
    jobs: JobsOption = None,
    dry_run: DryRunOption = False,
) -> None:
    """Upload every openapi.* and swagger.* file below a directory."""
    state = _state(ctx)
    project = state.project_id(project_id)
    with _setup_errors():
        result = upload.upload_openapi(
            state.env("upload openapi"),
            directory,
            project,
            state.options(
                jobs=jobs, dry_run=dry_run, default_jobs=upload.BULK_UPLOAD_JOBS
            ),
            base_uri=base_uri,
        )
    _report(result)


@upload_app.command("protos")
def upload_protos(
    ctx: typer.Context,
    directory: Annotated[
        Path, typer.Argument(exists=True, file_okay=False, help="Directory to scan.")
    ],
    project_id: ProjectIdOption = None,
    base_uri: BaseUriOption = "",
    jobs: JobsOption = None,
    dry_run: DryRunOption = False,
) -> None:
    """Upload the proto APIs below a directory, one zip archive per version."""
    state = _state(ctx)
    project = state.project_id(project_id)
    with _setup_errors():
        result = upload.upload_protos(
            state.env("upload protos"),
            directory,
            project,
            state.options(
                jobs=jobs, dry_run=dry_run, default_jobs=upload.BULK_UPLOAD_JOBS
            ),
            base_uri=base_uri,
        )
    _report(result)


@upload_app.command("artifact")
def upload_artifact(
    ctx: typer.Context,
    file: Annotated[
        Path,
        typer.Argument(
            exists=True, dir_okay=False, readable=True, help="Artifact YAML file."
        ),
    ],
    parent: Annotated[
        str, typer.Option("--parent", help="Resource that will own the artifact.")
    ],
) -> None:
    """Upload an artifact described in YAML."""
    state = _state(ctx)
    with _setup_errors():
        artifact = upload.upload_artifact(
            state.env("upload artifact"), file, state.qualify(parent)
        )
    typer.echo(artifact.name)


def main() -> None:
    app()
