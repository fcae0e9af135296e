"""``upload``: put specs and artifacts into the registry."""

from __future__ import annotations

import gzip
import hashlib
import io
import logging
import os
import re
import zipfile
from pathlib import Path
from typing import Any

import yaml
from google.api_core import exceptions as core_exceptions
from google.cloud import apigee_registry_v1 as rpc
from google.protobuf import json_format

from apg import mime
from apg.commands.common import BulkOptions, CommandEnv
from apg.compute.messages import artifact_message_class, artifact_mime_type
from apg.context import Context
from apg.errors import InvalidInputError, SpecParseError, UnsupportedResourceNameError
from apg.names import (
    ApiName,
    ProjectName,
    ResourceKind,
    SpecName,
    VersionName,
    parse_resource,
    validate_id,
)
from apg.tasks import FunctionTask, PoolResult, WorkerPool
from apg.visitor import (
    ensure_api,
    ensure_version,
    set_artifact,
    upsert_api,
    upsert_spec,
)

__all__ = [
    "BULK_UPLOAD_JOBS",
    "OPENAPI_FILENAMES",
    "ServiceConfig",
    "build_artifact",
    "openapi_spec_name",
    "proto_import_closure",
    "read_service_config",
    "sanitize",
    "upload_artifact",
    "upload_openapi",
    "upload_protos",
    "upload_spec",
    "zip_proto_directory",
]

logger = logging.getLogger(__name__)

BULK_UPLOAD_JOBS = 64

# File name -> OpenAPI major version.
OPENAPI_FILENAMES = {
    "swagger.yaml": "2",
    "swagger.json": "2",
    "openapi.yaml": "3",
    "openapi.json": "3",
}

# Directories that hold one version of a proto API, e.g. v1, v1beta2, v2alpha.
_VERSION_DIRECTORY = re.compile(r"v.*[1-9]+.*")

_PROTO_IMPORT = re.compile(
    r'^\s*import\s+(?:public\s+|weak\s+)?"([^"]+)"\s*;', re.MULTILINE
)

# Fixed timestamp so archives of unchanged files hash identically.
_ZIP_DATE = (1980, 1, 1, 0, 0, 0)


def _version_parent(parent: str) -> VersionName:
    ref = parse_resource(parent)
    if ref.kind is not ResourceKind.VERSION or ref.collection:
        raise UnsupportedResourceNameError(parent)
    if not isinstance(ref.name, VersionName):
        raise UnsupportedResourceNameError(parent)
    return ref.name


def upload_spec(
    env: CommandEnv,
    path: str | os.PathLike[str],
    parent: str,
    mime_type: str,
    spec_id: str | None = None,
    compress: bool = False,
) -> rpc.ApiSpec:
    """Upload one file as a spec under the version ``parent``.

    The spec id defaults to the file name. An existing spec keeps its metadata
    and only gets new contents.

    Raises:
        UnsupportedResourceNameError: If ``parent`` is not a single version.
        InvalidInputError: If the spec id is not a valid identifier.
    """
    version = _version_parent(parent)
    source = Path(path)
    contents = source.read_bytes()
    spec_id = validate_id(spec_id or source.name)
    if compress:
        contents = gzip.compress(contents)
        mime_type = mime.gzipped_type(mime_type)

    name = version.spec(spec_id)
    spec = rpc.ApiSpec(mime_type=mime_type, filename=source.name, contents=contents)
    result = upsert_spec(env.client, name, spec)
    logger.info("Uploaded %s", name)
    return result


def sanitize(name: str) -> str:
    """Turn a path segment into an identifier.

    Spaces, colons and underscores become dashes.
    """
    for char in " :_":
        name = name.replace(char, "-")
    return name.lower()


def openapi_spec_name(project_id: str, relative_path: str) -> SpecName:
    """Map ``<api path>/<version>/<file>`` to a spec name.

    Every directory above the version joins into the API id, so
    ``google/pubsub/v1/openapi.yaml`` becomes api ``google-pubsub``, version
    ``v1``, spec ``openapi.yaml``.

    Raises:
        InvalidInputError: If the path has fewer than three segments.
    """
    parts = Path(relative_path).parts
    if len(parts) < 3:
        raise InvalidInputError(f"invalid API path: {relative_path}")
    return SpecName(
        project_id,
        sanitize("-".join(parts[:-2])),
        sanitize(parts[-2]),
        sanitize(parts[-1]),
    )


def _upload_openapi_task(
    env: CommandEnv,
    project_id: str,
    directory: Path,
    path: Path,
    version: str,
    base_uri: str,
) -> FunctionTask:
    relative = path.relative_to(directory).as_posix()

    def run(ctx: Context) -> None:
        name = openapi_spec_name(project_id, relative)
        for identifier in (name.api_id, name.version_id, name.spec_id):
            validate_id(identifier)
        ensure_api(env.client, name.version().api())
        ensure_version(env.client, name.version())
        spec = rpc.ApiSpec(
            mime_type=mime.openapi_mime_type("+gzip", version),
            filename=path.name,
            contents=gzip.compress(path.read_bytes()),
        )
        if base_uri:
            spec.source_uri = f"{base_uri.rstrip('/')}/{relative}"
        upsert_spec(env.client, name, spec)
        logger.info("Uploaded %s", name)

    return FunctionTask(f"upload openapi {path}", run)


def _check_directory(directory: str | os.PathLike[str]) -> Path:
    root = Path(directory)
    if not root.is_dir():
        raise InvalidInputError(f"{root} is not a directory")
    return root


def upload_openapi(
    env: CommandEnv,
    directory: str | os.PathLike[str],
    project_id: str,
    options: BulkOptions,
    base_uri: str = "",
) -> PoolResult:
    """Walk ``directory`` and upload every ``openapi.*`` and ``swagger.*`` file found.

    Raises:
        InvalidInputError: If ``directory`` is not a directory.
    """
    root = _check_directory(directory)
    logger.debug(
        "Uploading OpenAPI descriptions from %s to %s", root, ProjectName(project_id)
    )

    with WorkerPool(
        env.ctx, options.jobs, queue_size=options.queue_size, hooks=env.hooks
    ) as pool:
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            for filename in sorted(filenames):
                version = OPENAPI_FILENAMES.get(filename)
                if version is None:
                    continue
                path = Path(dirpath) / filename
                if options.dry_run:
                    env.echo(f"would upload {path.relative_to(root).as_posix()}")
                    continue
                pool.submit(
                    _upload_openapi_task(env, project_id, root, path, version, base_uri)
                )
    return pool.wait()


class ServiceConfig:
    """The parts of a ``google.api.Service`` configuration that describe an API."""

    def __init__(self, name: str, title: str, summary: str = "") -> None:
        self.name = name
        self.title = title
        self.summary = summary

    @property
    def api_id(self) -> str:
        return self.name.removesuffix(".googleapis.com")

    @property
    def description(self) -> str:
        return self.summary.replace("\n", " ")


def read_service_config(path: Path) -> ServiceConfig | None:
    """Read ``path`` as an API service configuration.

    Returns None for YAML files that are not service configurations, or that
    lack a name or title.

    Raises:
        SpecParseError: If the file is not valid YAML.
    """
    try:
        document = yaml.safe_load(path.read_bytes())
    except yaml.YAMLError as e:
        raise SpecParseError(str(path), str(e), cause=e) from e
    if not isinstance(document, dict) or document.get("type") != "google.api.Service":
        return None
    name = document.get("name") or ""
    title = document.get("title") or ""
    if not name or not title:
        return None
    documentation = document.get("documentation")
    summary = ""
    if isinstance(documentation, dict):
        summary = documentation.get("summary", "")
    return ServiceConfig(str(name), str(title), str(summary or ""))


def _files_below(directory: Path, root: Path, suffixes: tuple[str, ...]) -> list[str]:
    return sorted(
        path.relative_to(root).as_posix()
        for path in directory.rglob("*")
        if path.is_file() and path.name.endswith(suffixes)
    )


def proto_import_closure(protos: list[str], root: Path) -> list[str]:
    """Follow ``import`` statements from ``protos`` to the files they need.

    Paths are relative to ``root``. Imports of ``google/protobuf/`` and imports
    with no file under ``root`` are left out.
    """
    seen: set[str] = set()
    pending = list(protos)
    while pending:
        proto = pending.pop()
        if proto in seen:
            continue
        seen.add(proto)
        text = (root / proto).read_text(encoding="utf-8", errors="replace")
        for imported in _PROTO_IMPORT.findall(text):
            if imported.startswith("google/protobuf/") or imported in seen:
                continue
            if not (root / imported).is_file():
                logger.debug("Import %s of %s is not under %s", imported, proto, root)
                continue
            pending.append(imported)
    return sorted(seen)


def zip_proto_directory(directory: Path, root: Path) -> bytes:
    """Zip the metadata files and protos of one API version, with their imports.

    Archive entries are named relative to ``root``.
    """
    metadata = _files_below(directory, root, (".json", ".yaml"))
    protos = _files_below(directory, root, (".proto",))
    if protos:
        protos = proto_import_closure(protos, root)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for relative in [*metadata, *protos]:
            info = zipfile.ZipInfo(relative, date_time=_ZIP_DATE)
            info.compress_type = zipfile.ZIP_DEFLATED
            archive.writestr(info, (root / relative).read_bytes())
    return buffer.getvalue()


def _upload_protos_task(
    env: CommandEnv,
    project_id: str,
    root: Path,
    directory: Path,
    config: ServiceConfig,
    base_uri: str,
) -> FunctionTask:
    api_path = directory.relative_to(root).as_posix()
    filename = "-".join(Path(api_path).parts) + ".zip"

    def run(ctx: Context) -> None:
        api = ApiName(project_id, validate_id(config.api_id))
        version = api.version(validate_id(sanitize(Path(api_path).name)))
        name = version.spec(validate_id(sanitize(filename.removesuffix(".zip"))))
        logger.info("Uploading %s", name)

        contents = zip_proto_directory(directory, root)
        upsert_api(
            env.client,
            api,
            rpc.Api(display_name=config.title, description=config.description),
        )
        ensure_version(env.client, version)

        try:
            existing = env.client.get_api_spec(
                request=rpc.GetApiSpecRequest(name=str(name))
            )
        except core_exceptions.NotFound:
            existing = None
        digest = hashlib.sha256(contents).hexdigest()
        if (
            existing is not None
            and existing.size_bytes == len(contents)
            and existing.hash_ == digest
        ):
            logger.debug("Matched already uploaded spec %s", name)
            return

        spec = rpc.ApiSpec(
            mime_type=mime.protobuf_mime_type("+zip"),
            filename=filename,
            contents=contents,
        )
        if base_uri:
            spec.source_uri = f"{base_uri.rstrip('/')}/{api_path}"
        upsert_spec(env.client, name, spec)

    return FunctionTask(f"upload proto {directory}", run)


def upload_protos(
    env: CommandEnv,
    directory: str | os.PathLike[str],
    project_id: str,
    options: BulkOptions,
    base_uri: str = "",
) -> PoolResult:
    """Upload every versioned proto API found below ``directory``.

    A directory whose name looks like a version (``v1``, ``v2beta``) and that
    holds a ``google.api.Service`` YAML configuration is one API version. Its
    protos, their imports and its metadata files are zipped into a single
    spec. The rest of that directory is not searched further.

    Raises:
        InvalidInputError: If ``directory`` is not a directory.
    """
    root = _check_directory(directory)
    logger.debug("Uploading protos from %s to %s", root, ProjectName(project_id))

    with WorkerPool(
        env.ctx, options.jobs, queue_size=options.queue_size, hooks=env.hooks
    ) as pool:
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            current = Path(dirpath)
            if not _VERSION_DIRECTORY.search(current.name):
                continue
            for filename in sorted(filenames):
                if not filename.endswith(".yaml"):
                    continue
                config = read_service_config(current / filename)
                if config is None:
                    continue
                if options.dry_run:
                    env.echo(f"would upload {current.relative_to(root).as_posix()}")
                else:
                    task = _upload_protos_task(
                        env, project_id, root, current, config, base_uri
                    )
                    pool.submit(task)
                dirnames.clear()
                break
    return pool.wait()


def build_artifact(path: str | os.PathLike[str]) -> tuple[str, rpc.Artifact]:
    """Read an artifact from a YAML file with ``id`` and ``kind`` keys.

    The remaining keys are the message fields, in their JSON spelling.
    ``kind`` is a message name, short (``TaxonomyList``) or fully qualified.

    Raises:
        InvalidInputError: If the id is missing or invalid, or the kind is unknown.
        SpecParseError: If the file is not valid YAML or does not match the message.
    """
    source = Path(path)
    try:
        document = yaml.safe_load(source.read_bytes())
    except yaml.YAMLError as e:
        raise SpecParseError(str(source), str(e), cause=e) from e
    if not isinstance(document, dict):
        raise SpecParseError(str(source), "document is not a mapping")

    artifact_id = validate_id(str(document.get("id") or ""))
    kind = str(document.get("kind") or "")
    message_class = artifact_message_class(kind)
    if message_class is None:
        raise InvalidInputError(f"unsupported artifact type {kind!r}")

    fields = message_class.DESCRIPTOR.fields_by_name
    body: dict[str, Any] = {
        key: value
        for key, value in document.items()
        if key not in ("id", "kind") or key in fields
    }
    message = message_class()
    try:
        json_format.ParseDict(body, message)
    except json_format.ParseError as e:
        raise SpecParseError(str(source), str(e), cause=e) from e

    artifact = rpc.Artifact(
        mime_type=artifact_mime_type(message),
        contents=message.SerializeToString(deterministic=True),
    )
    return artifact_id, artifact


def upload_artifact(
    env: CommandEnv, path: str | os.PathLike[str], parent: str
) -> rpc.Artifact:
    """Create or replace the artifact described by ``path`` under ``parent``.

    Raises:
        UnsupportedResourceNameError: If ``parent`` is a collection or an artifact.
    """
    ref = parse_resource(parent)
    if ref.collection or ref.kind is ResourceKind.ARTIFACT:
        raise UnsupportedResourceNameError(parent)
    artifact_id, artifact = build_artifact(path)
    artifact.name = f"{ref.name}/artifacts/{artifact_id}"
    logger.debug("Uploading %s", artifact.name)
    return set_artifact(env.client, artifact)
