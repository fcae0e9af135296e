"""Get, List, Update and Delete helpers over the registry client, plus ``visit``.

``visit`` is the single dispatch point for a parsed ResourceRef: singletons
are fetched with one Get, collections are enumerated with the paginated List
call. Handlers run synchronously on the calling thread, in server order, and
any error (from the List call or from the handler) stops enumeration and
propagates to the caller.
"""

from __future__ import annotations

import gzip
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from google.api_core import exceptions as core_exceptions
from google.cloud import apigee_registry_v1 as rpc
from google.protobuf import field_mask_pb2

from apg import mime
from apg.errors import UnsupportedResourceNameError
from apg.names import (
    WILDCARD,
    ApiName,
    ArtifactName,
    DeploymentName,
    ResourceKind,
    ResourceRef,
    SpecName,
    VersionName,
)

__all__ = [
    "Handler",
    "SpecContents",
    "visit",
    "list_apis",
    "list_versions",
    "list_specs",
    "list_deployments",
    "list_artifacts",
    "get_resource",
    "fetch_spec_contents",
    "update_field",
    "delete_resource",
    "set_artifact",
    "fetch_artifact_contents",
    "upsert_api",
    "UPDATABLE_KINDS",
    "ensure_api",
    "ensure_version",
    "upsert_spec",
]

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


def _id_filter(field: str, identifier: str, filter: str) -> str:
    if not identifier or identifier == WILDCARD:
        return filter
    clause = f"{field} == '{identifier}'"
    return f"{filter} && {clause}" if filter else clause


def _drain(pager: Any, handler: Handler) -> int:
    count = 0
    for resource in pager:
        handler(resource)
        count += 1
    return count


def list_apis(client: Any, name: ApiName, filter: str, handler: Handler) -> int:
    request = rpc.ListApisRequest(
        parent=name.parent(), filter=_id_filter("api_id", name.api_id, filter)
    )
    return _drain(client.list_apis(request=request), handler)


def list_versions(client: Any, name: VersionName, filter: str, handler: Handler) -> int:
    request = rpc.ListApiVersionsRequest(
        parent=name.parent(), filter=_id_filter("version_id", name.version_id, filter)
    )
    return _drain(client.list_api_versions(request=request), handler)


def list_specs(client: Any, name: SpecName, filter: str, handler: Handler) -> int:
    """List specs, or the revisions of one spec when the revision is ``-``."""
    if name.revision_id == WILDCARD:
        request = rpc.ListApiSpecRevisionsRequest(name=str(name))
        return _drain(client.list_api_spec_revisions(request=request), handler)
    request = rpc.ListApiSpecsRequest(
        parent=name.parent(), filter=_id_filter("spec_id", name.spec_id, filter)
    )
    return _drain(client.list_api_specs(request=request), handler)


def list_deployments(
    client: Any, name: DeploymentName, filter: str, handler: Handler
) -> int:
    """List deployments, or one deployment's revisions when the revision is ``-``."""
    if name.revision_id == WILDCARD:
        request = rpc.ListApiDeploymentRevisionsRequest(name=str(name))
        return _drain(client.list_api_deployment_revisions(request=request), handler)
    request = rpc.ListApiDeploymentsRequest(
        parent=name.parent(),
        filter=_id_filter("deployment_id", name.deployment_id, filter),
    )
    return _drain(client.list_api_deployments(request=request), handler)


def list_artifacts(
    client: Any, name: ArtifactName, filter: str, handler: Handler
) -> int:
    request = rpc.ListArtifactsRequest(
        parent=name.parent(),
        filter=_id_filter("artifact_id", name.artifact_id, filter),
    )
    return _drain(client.list_artifacts(request=request), handler)


_LISTERS: dict[ResourceKind, Callable[[Any, Any, str, Handler], int]] = {
    ResourceKind.API: list_apis,
    ResourceKind.VERSION: list_versions,
    ResourceKind.SPEC: list_specs,
    ResourceKind.DEPLOYMENT: list_deployments,
    ResourceKind.ARTIFACT: list_artifacts,
}

_GETTERS: dict[ResourceKind, tuple[str, type]] = {
    ResourceKind.API: ("get_api", rpc.GetApiRequest),
    ResourceKind.VERSION: ("get_api_version", rpc.GetApiVersionRequest),
    ResourceKind.SPEC: ("get_api_spec", rpc.GetApiSpecRequest),
    ResourceKind.DEPLOYMENT: ("get_api_deployment", rpc.GetApiDeploymentRequest),
    ResourceKind.ARTIFACT: ("get_artifact", rpc.GetArtifactRequest),
}


def get_resource(client: Any, kind: ResourceKind, name: str) -> Any:
    """Fetch one resource of ``kind`` by its full name."""
    method, request_type = _GETTERS[kind]
    return getattr(client, method)(request=request_type(name=name))


def visit(client: Any, ref: ResourceRef, handler: Handler, filter: str = "") -> int:
    """Call ``handler`` for every resource ``ref`` denotes.

    Returns how many resources were visited.

    Projects are handled without a call: the handler receives the ProjectName.

    Raises:
        UnsupportedResourceNameError: For project collections.
    """
    if ref.kind is ResourceKind.PROJECT:
        if ref.collection:
            raise UnsupportedResourceNameError(str(ref.name))
        handler(ref.name)
        return 1
    if ref.collection:
        return _LISTERS[ref.kind](client, ref.name, filter, handler)
    handler(get_resource(client, ref.kind, str(ref.name)))
    return 1


@dataclass(frozen=True)
class SpecContents:
    """Spec bytes with compression already removed."""

    name: str
    mime_type: str
    data: bytes
    filename: str = ""


def fetch_spec_contents(client: Any, spec: Any) -> SpecContents:
    """Fetch a spec's contents, gunzipping them when the content type is ``+gzip``."""
    request = rpc.GetApiSpecContentsRequest(name=spec.name)
    body = client.get_api_spec_contents(request=request)
    data = body.data
    mime_type = spec.mime_type or body.content_type
    if mime.is_gzip_compressed(body.content_type):
        data = gzip.decompress(data)
        mime_type = mime.gunzipped_type(mime_type)
    return SpecContents(
        name=spec.name, mime_type=mime_type, data=data, filename=spec.filename
    )


_UPDATERS: dict[ResourceKind, tuple[str, type, str]] = {
    ResourceKind.API: ("update_api", rpc.UpdateApiRequest, "api"),
    ResourceKind.VERSION: (
        "update_api_version",
        rpc.UpdateApiVersionRequest,
        "api_version",
    ),
    ResourceKind.SPEC: ("update_api_spec", rpc.UpdateApiSpecRequest, "api_spec"),
    ResourceKind.DEPLOYMENT: (
        "update_api_deployment",
        rpc.UpdateApiDeploymentRequest,
        "api_deployment",
    ),
}

UPDATABLE_KINDS = frozenset(_UPDATERS)


def update_field(
    client: Any, kind: ResourceKind, resource: Any, field: str, value: Any
) -> Any:
    """Update exactly one field of ``resource``.

    Only the resource name and that field are sent.
    """
    if kind not in _UPDATERS:
        raise UnsupportedResourceNameError(resource.name)
    method, request_type, attr = _UPDATERS[kind]
    message = type(resource)(name=resource.name, **{field: value})
    mask = field_mask_pb2.FieldMask(paths=[field])
    request = request_type(**{attr: message, "update_mask": mask})
    return getattr(client, method)(request=request)


_DELETERS: dict[ResourceKind, tuple[str, type, bool]] = {
    ResourceKind.API: ("delete_api", rpc.DeleteApiRequest, True),
    ResourceKind.VERSION: ("delete_api_version", rpc.DeleteApiVersionRequest, True),
    ResourceKind.SPEC: ("delete_api_spec", rpc.DeleteApiSpecRequest, True),
    ResourceKind.DEPLOYMENT: (
        "delete_api_deployment",
        rpc.DeleteApiDeploymentRequest,
        True,
    ),
    ResourceKind.ARTIFACT: ("delete_artifact", rpc.DeleteArtifactRequest, False),
}


_REVISION_DELETERS: dict[ResourceKind, tuple[str, type]] = {
    ResourceKind.SPEC: ("delete_api_spec_revision", rpc.DeleteApiSpecRevisionRequest),
    ResourceKind.DEPLOYMENT: (
        "delete_api_deployment_revision",
        rpc.DeleteApiDeploymentRevisionRequest,
    ),
}


def delete_resource(
    client: Any, kind: ResourceKind, name: str, force: bool = False
) -> None:
    """Delete one resource; names carrying ``@revision`` delete just that revision."""
    if "@" in name and kind in _REVISION_DELETERS:
        method, request_type = _REVISION_DELETERS[kind]
        getattr(client, method)(request=request_type(name=name))
        return
    method, request_type, supports_force = _DELETERS[kind]
    if supports_force:
        request = request_type(name=name, force=force)
    else:
        request = request_type(name=name)
    getattr(client, method)(request=request)


def set_artifact(client: Any, artifact: Any) -> Any:
    """Create ``artifact``, replacing it if it already exists."""
    parent, _, artifact_id = artifact.name.rpartition("/artifacts/")
    try:
        return client.create_artifact(
            request=rpc.CreateArtifactRequest(
                parent=parent, artifact_id=artifact_id, artifact=artifact
            )
        )
    except core_exceptions.AlreadyExists:
        logger.debug("Replacing %s", artifact.name)
        request = rpc.ReplaceArtifactRequest(artifact=artifact)
        return client.replace_artifact(request=request)


def fetch_artifact_contents(client: Any, name: str) -> Any | None:
    """Return the ``HttpBody`` holding an artifact's contents.

    Returns None if the artifact does not exist.
    """
    request = rpc.GetArtifactContentsRequest(name=name)
    try:
        return client.get_artifact_contents(request=request)
    except core_exceptions.NotFound:
        logger.debug("No artifact %s", name)
        return None


def upsert_api(client: Any, name: ApiName, api: Any) -> Any:
    """Create or replace an API's display name and description in one call."""
    api.name = str(name)
    mask = field_mask_pb2.FieldMask(paths=["display_name", "description"])
    request = rpc.UpdateApiRequest(api=api, update_mask=mask, allow_missing=True)
    return client.update_api(request=request)


def ensure_api(client: Any, name: ApiName) -> None:
    try:
        client.get_api(request=rpc.GetApiRequest(name=str(name)))
        return
    except core_exceptions.NotFound:
        pass
    try:
        client.create_api(
            request=rpc.CreateApiRequest(
                parent=name.parent(),
                api_id=name.api_id,
                api=rpc.Api(display_name=name.api_id),
            )
        )
    except core_exceptions.AlreadyExists:
        pass


def ensure_version(client: Any, name: VersionName) -> None:
    try:
        client.get_api_version(request=rpc.GetApiVersionRequest(name=str(name)))
        return
    except core_exceptions.NotFound:
        pass
    try:
        client.create_api_version(
            request=rpc.CreateApiVersionRequest(
                parent=name.parent(),
                api_version_id=name.version_id,
                api_version=rpc.ApiVersion(display_name=name.version_id),
            )
        )
    except core_exceptions.AlreadyExists:
        pass


def upsert_spec(client: Any, name: SpecName, spec: Any) -> Any:
    """Create a spec, or update only its contents if it already exists."""
    try:
        return client.create_api_spec(
            request=rpc.CreateApiSpecRequest(
                parent=name.parent(), api_spec_id=name.spec_id, api_spec=spec
            )
        )
    except core_exceptions.AlreadyExists:
        pass
    spec.name = str(name)
    mask = field_mask_pb2.FieldMask(paths=["contents"])
    request = rpc.UpdateApiSpecRequest(api_spec=spec, update_mask=mask)
    return client.update_api_spec(request=request)
