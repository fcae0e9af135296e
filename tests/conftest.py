"""Shared fixtures: an in-memory registry client and command environments."""

from __future__ import annotations

import gzip
import hashlib
import logging
import re
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from google.api import httpbody_pb2
from google.api_core import exceptions as core_exceptions
from google.cloud import apigee_registry_v1 as rpc

from apg.commands.common import CommandEnv
from apg.context import Context
from apg.tasks import HookManager

TESTDATA = Path(__file__).parent / "testdata"

PROJECT = "projects/my-project/locations/global"

_CLAUSE = re.compile(r"(\w+)_id == '([^']*)'")


def _copy(resource: Any) -> Any:
    return type(resource).deserialize(type(resource).serialize(resource))


def _stamp(resource: Any) -> Any:
    """Fill the output-only size and hash the server computes for specs."""
    if isinstance(resource, rpc.ApiSpec):
        resource.size_bytes = len(resource.contents)
        resource.hash_ = hashlib.sha256(resource.contents).hexdigest()
    return resource


def _parent_matches(pattern: str, parent: str) -> bool:
    expected = pattern.split("/")
    actual = parent.split("/")
    if len(expected) != len(actual):
        return False
    return all(e == "-" or e == a for e, a in zip(expected, actual))


class FakeRegistryClient:
    """In-memory stand-in for ``apigee_registry_v1.RegistryClient``.

    Stores proto-plus messages by name. List calls understand ``-`` in any
    parent segment and ``<kind>_id == 'value'`` filter clauses. Every call is
    recorded in ``calls`` as ``(method, request)``.

    Error injection:
        ``errors[method]`` is raised by the next call to ``method``.
        ``list_error_after`` makes List calls raise after that many resources.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._resources: dict[str, Any] = {}
        self.calls: list[tuple[str, Any]] = []
        self.errors: dict[str, Exception] = {}
        self.list_error_after: int | None = None

    # --- seeding and inspection ---

    def add(self, resource: Any) -> Any:
        with self._lock:
            self._resources[resource.name] = _copy(resource)
        return resource

    def add_api(self, api_id: str, project: str = PROJECT, **fields: Any) -> rpc.Api:
        return self.add(rpc.Api(name=f"{project}/apis/{api_id}", **fields))

    def add_version(
        self, api_id: str, version_id: str, project: str = PROJECT, **fields: Any
    ) -> rpc.ApiVersion:
        name = f"{project}/apis/{api_id}/versions/{version_id}"
        return self.add(rpc.ApiVersion(name=name, **fields))

    def add_spec(
        self,
        api_id: str,
        version_id: str,
        spec_id: str,
        project: str = PROJECT,
        **fields: Any,
    ) -> rpc.ApiSpec:
        name = f"{project}/apis/{api_id}/versions/{version_id}/specs/{spec_id}"
        return self.add(rpc.ApiSpec(name=name, **fields))

    def add_deployment(
        self, api_id: str, deployment_id: str, project: str = PROJECT, **fields: Any
    ) -> rpc.ApiDeployment:
        name = f"{project}/apis/{api_id}/deployments/{deployment_id}"
        return self.add(rpc.ApiDeployment(name=name, **fields))

    def resource(self, name: str) -> Any:
        with self._lock:
            return _copy(self._resources[name])

    def exists(self, name: str) -> bool:
        with self._lock:
            return name in self._resources

    def names(self, collection: str) -> list[str]:
        with self._lock:
            return sorted(
                n for n in self._resources if n.rsplit("/", 2)[-2] == collection
            )

    def requests(self, method: str) -> list[Any]:
        with self._lock:
            return [request for name, request in self.calls if name == method]

    # --- plumbing ---

    def _record(self, method: str, request: Any) -> None:
        with self._lock:
            self.calls.append((method, request))
            error = self.errors.pop(method, None)
        if error is not None:
            raise error

    def _list(
        self, method: str, collection: str, parent: str, filter: str
    ) -> Iterator[Any]:
        clauses = _CLAUSE.findall(filter)
        with self._lock:
            matches = []
            for name in sorted(self._resources):
                owner, _, leaf = name.rpartition("/")
                owner, _, kind = owner.rpartition("/")
                if kind != collection or not _parent_matches(parent, owner):
                    continue
                if any(value != leaf for _, value in clauses):
                    continue
                matches.append(_copy(self._resources[name]))
        limit = self.list_error_after

        def pages() -> Iterator[Any]:
            for i, resource in enumerate(matches):
                if limit is not None and i >= limit:
                    raise core_exceptions.ServiceUnavailable(f"{method} failed")
                yield resource

        return pages()

    def _get(self, name: str) -> Any:
        with self._lock:
            if name not in self._resources:
                raise core_exceptions.NotFound(f"{name} not found")
            return _copy(self._resources[name])

    def _create(
        self, parent: str, collection: str, identifier: str, resource: Any
    ) -> Any:
        name = f"{parent}/{collection}/{identifier}"
        with self._lock:
            if name in self._resources:
                raise core_exceptions.AlreadyExists(f"{name} already exists")
            stored = _copy(resource)
            stored.name = name
            self._resources[name] = _stamp(stored)
            return _copy(stored)

    def _update(self, resource: Any, mask: Any, allow_missing: bool = False) -> Any:
        with self._lock:
            if resource.name not in self._resources:
                if not allow_missing:
                    raise core_exceptions.NotFound(f"{resource.name} not found")
                self._resources[resource.name] = _stamp(_copy(resource))
                return _copy(self._resources[resource.name])
            stored = self._resources[resource.name]
            for path in mask.paths:
                value = getattr(resource, path)
                setattr(stored, path, dict(value) if hasattr(value, "items") else value)
            return _copy(_stamp(stored))

    def _delete(self, name: str, force: bool = False) -> None:
        with self._lock:
            if name not in self._resources:
                raise core_exceptions.NotFound(f"{name} not found")
            children = [n for n in self._resources if n.startswith(name + "/")]
            if children and not force:
                raise core_exceptions.FailedPrecondition(f"{name} has children")
            for n in [name, *children]:
                del self._resources[n]

    # --- List ---

    def list_apis(self, request: rpc.ListApisRequest) -> Iterator[Any]:
        self._record("list_apis", request)
        return self._list("list_apis", "apis", request.parent, request.filter)

    def list_api_versions(self, request: rpc.ListApiVersionsRequest) -> Iterator[Any]:
        self._record("list_api_versions", request)
        return self._list(
            "list_api_versions", "versions", request.parent, request.filter
        )

    def list_api_specs(self, request: rpc.ListApiSpecsRequest) -> Iterator[Any]:
        self._record("list_api_specs", request)
        return self._list("list_api_specs", "specs", request.parent, request.filter)

    def list_api_deployments(self, request) -> Iterator[Any]:
        self._record("list_api_deployments", request)
        return self._list(
            "list_api_deployments", "deployments", request.parent, request.filter
        )

    def list_artifacts(self, request: rpc.ListArtifactsRequest) -> Iterator[Any]:
        self._record("list_artifacts", request)
        return self._list("list_artifacts", "artifacts", request.parent, request.filter)

    def list_api_spec_revisions(self, request) -> Iterator[Any]:
        self._record("list_api_spec_revisions", request)
        return iter([self._get(request.name.split("@")[0])])

    def list_api_deployment_revisions(self, request) -> Iterator[Any]:
        self._record("list_api_deployment_revisions", request)
        return iter([self._get(request.name.split("@")[0])])

    # --- Get ---

    def get_api(self, request: rpc.GetApiRequest) -> rpc.Api:
        self._record("get_api", request)
        return self._get(request.name)

    def get_api_version(self, request: rpc.GetApiVersionRequest) -> rpc.ApiVersion:
        self._record("get_api_version", request)
        return self._get(request.name)

    def get_api_spec(self, request: rpc.GetApiSpecRequest) -> rpc.ApiSpec:
        self._record("get_api_spec", request)
        return self._get(request.name)

    def get_api_deployment(self, request) -> rpc.ApiDeployment:
        self._record("get_api_deployment", request)
        return self._get(request.name)

    def get_artifact(self, request: rpc.GetArtifactRequest) -> rpc.Artifact:
        self._record("get_artifact", request)
        return self._get(request.name)

    def get_api_spec_contents(self, request) -> httpbody_pb2.HttpBody:
        self._record("get_api_spec_contents", request)
        spec = self._get(request.name)
        return httpbody_pb2.HttpBody(content_type=spec.mime_type, data=spec.contents)

    def get_artifact_contents(self, request) -> httpbody_pb2.HttpBody:
        self._record("get_artifact_contents", request)
        artifact = self._get(request.name)
        return httpbody_pb2.HttpBody(
            content_type=artifact.mime_type, data=artifact.contents
        )

    # --- Create / Replace ---

    def create_api(self, request: rpc.CreateApiRequest) -> rpc.Api:
        self._record("create_api", request)
        return self._create(request.parent, "apis", request.api_id, request.api)

    def create_api_version(self, request) -> rpc.ApiVersion:
        self._record("create_api_version", request)
        return self._create(
            request.parent, "versions", request.api_version_id, request.api_version
        )

    def create_api_spec(self, request: rpc.CreateApiSpecRequest) -> rpc.ApiSpec:
        self._record("create_api_spec", request)
        return self._create(
            request.parent, "specs", request.api_spec_id, request.api_spec
        )

    def create_artifact(self, request: rpc.CreateArtifactRequest) -> rpc.Artifact:
        self._record("create_artifact", request)
        return self._create(
            request.parent, "artifacts", request.artifact_id, request.artifact
        )

    def replace_artifact(self, request: rpc.ReplaceArtifactRequest) -> rpc.Artifact:
        self._record("replace_artifact", request)
        with self._lock:
            if request.artifact.name not in self._resources:
                raise core_exceptions.NotFound(f"{request.artifact.name} not found")
            self._resources[request.artifact.name] = _copy(request.artifact)
            return _copy(request.artifact)

    # --- Update ---

    def update_api(self, request: rpc.UpdateApiRequest) -> rpc.Api:
        self._record("update_api", request)
        return self._update(request.api, request.update_mask, request.allow_missing)

    def update_api_version(self, request) -> rpc.ApiVersion:
        self._record("update_api_version", request)
        return self._update(
            request.api_version, request.update_mask, request.allow_missing
        )

    def update_api_spec(self, request: rpc.UpdateApiSpecRequest) -> rpc.ApiSpec:
        self._record("update_api_spec", request)
        return self._update(
            request.api_spec, request.update_mask, request.allow_missing
        )

    def update_api_deployment(self, request) -> rpc.ApiDeployment:
        self._record("update_api_deployment", request)
        return self._update(request.api_deployment, request.update_mask)

    # --- Delete ---

    def delete_api(self, request: rpc.DeleteApiRequest) -> None:
        self._record("delete_api", request)
        self._delete(request.name, request.force)

    def delete_api_version(self, request: rpc.DeleteApiVersionRequest) -> None:
        self._record("delete_api_version", request)
        self._delete(request.name, request.force)

    def delete_api_spec(self, request: rpc.DeleteApiSpecRequest) -> None:
        self._record("delete_api_spec", request)
        self._delete(request.name, request.force)

    def delete_api_deployment(self, request: rpc.DeleteApiDeploymentRequest) -> None:
        self._record("delete_api_deployment", request)
        self._delete(request.name, request.force)

    def delete_artifact(self, request: rpc.DeleteArtifactRequest) -> None:
        self._record("delete_artifact", request)
        self._delete(request.name)

    def delete_api_spec_revision(self, request) -> rpc.ApiSpec:
        self._record("delete_api_spec_revision", request)
        return self._get(request.name.split("@")[0])

    def delete_api_deployment_revision(self, request) -> rpc.ApiDeployment:
        self._record("delete_api_deployment_revision", request)
        return self._get(request.name.split("@")[0])


# === Fixtures ===


@pytest.fixture
def client() -> FakeRegistryClient:
    return FakeRegistryClient()


@pytest.fixture
def output() -> list[str]:
    """Lines a command echoed."""
    return []


@pytest.fixture
def env(client: FakeRegistryClient, output: list[str]) -> CommandEnv:
    return CommandEnv(
        client=client, ctx=Context.create(), hooks=HookManager(), echo=output.append
    )


@pytest.fixture
def petstore() -> bytes:
    return (TESTDATA / "petstore.yaml").read_bytes()


@pytest.fixture
def petstore_client(client: FakeRegistryClient, petstore: bytes) -> FakeRegistryClient:
    """A registry holding the petstore spec, gzip-compressed like server uploads."""
    client.add_api("petstore")
    client.add_version("petstore", "1.0.0")
    client.add_spec(
        "petstore",
        "1.0.0",
        "openapi.yaml",
        mime_type="application/x.openapi+gzip;version=3.0.0",
        filename="openapi.yaml",
        contents=gzip.compress(petstore),
    )
    return client


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep tests away from the user's profiles and APG_REGISTRY_* variables."""
    for var in ("ADDRESS", "INSECURE", "TOKEN", "API_KEY", "PROJECT", "LOCATION"):
        monkeypatch.delenv(f"APG_REGISTRY_{var}", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


@pytest.fixture(autouse=True)
def _reset_apg_logger() -> Iterator[None]:
    """Undo configure_logging() so caplog sees records from later tests."""
    yield
    root = logging.getLogger("apg")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)
    root.propagate = True
