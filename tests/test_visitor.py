"""Tests for visit() and the registry helpers."""

from __future__ import annotations

import gzip

import pytest
from google.api_core import exceptions as core_exceptions
from google.cloud import apigee_registry_v1 as rpc

from apg.errors import UnsupportedResourceNameError
from apg.names import ProjectName, ResourceKind, SpecName, VersionName, parse_resource
from apg.visitor import (
    delete_resource,
    ensure_api,
    ensure_version,
    fetch_spec_contents,
    get_resource,
    set_artifact,
    update_field,
    upsert_spec,
    visit,
)

PROJECT = "projects/my-project/locations/global"
OPENAPI_3 = "application/x.openapi;version=3"


def _visit(client, pattern, filter=""):
    seen = []
    count = visit(
        client,
        parse_resource(pattern),
        lambda r: seen.append(r.name if hasattr(r, "name") else r),
        filter,
    )
    return count, seen


@pytest.fixture
def seeded(client):
    for api in ("pets", "store"):
        client.add_api(api)
        for version in ("v1", "v2"):
            client.add_version(api, version)
            client.add_spec(api, version, "openapi.yaml", mime_type=OPENAPI_3)
    client.add_deployment("pets", "prod")
    return client


class TestVisitSingletons:
    """Singleton names are fetched with one Get."""

    def test_get_api(self, seeded):
        count, seen = _visit(seeded, f"{PROJECT}/apis/pets")
        assert count == 1
        assert seen == [f"{PROJECT}/apis/pets"]
        assert [r.name for r in seeded.requests("get_api")] == [f"{PROJECT}/apis/pets"]
        assert seeded.requests("list_apis") == []

    def test_missing_resource_propagates(self, seeded):
        with pytest.raises(core_exceptions.NotFound):
            _visit(seeded, f"{PROJECT}/apis/missing")

    def test_project_singleton(self, seeded):
        seen = []
        assert visit(seeded, parse_resource("projects/my-project"), seen.append) == 1
        assert seen == [ProjectName("my-project")]
        assert seeded.calls == []

    def test_project_collection_unsupported(self, seeded):
        with pytest.raises(UnsupportedResourceNameError):
            visit(seeded, parse_resource("projects/-"), lambda r: None)


class TestVisitCollections:
    """Collections are enumerated with List."""

    def test_all_apis(self, seeded):
        count, seen = _visit(seeded, f"{PROJECT}/apis")
        assert count == 2
        assert seen == [f"{PROJECT}/apis/pets", f"{PROJECT}/apis/store"]
        request = seeded.requests("list_apis")[0]
        assert request.parent == PROJECT
        assert request.filter == ""

    def test_wildcard_parent(self, seeded):
        count, seen = _visit(seeded, f"{PROJECT}/apis/-/versions/-/specs/-")
        assert count == 4
        assert all(name.endswith("/specs/openapi.yaml") for name in seen)
        request = seeded.requests("list_api_specs")[0]
        assert request.parent == f"{PROJECT}/apis/-/versions/-"

    def test_concrete_leaf_becomes_filter(self, seeded):
        count, seen = _visit(seeded, f"{PROJECT}/apis/-/versions/v2")
        assert count == 2
        assert seeded.requests("list_api_versions")[0].filter == "version_id == 'v2'"

    def test_filter_is_combined(self, seeded):
        _visit(seeded, f"{PROJECT}/apis/-/versions/v2", filter="labels.tier == 'gold'")
        request = seeded.requests("list_api_versions")[0]
        assert request.filter == "labels.tier == 'gold' && version_id == 'v2'"

    def test_filter_passes_through(self, seeded):
        _visit(seeded, f"{PROJECT}/apis/-", filter="display_name == 'Pets'")
        assert seeded.requests("list_apis")[0].filter == "display_name == 'Pets'"

    def test_deployments(self, seeded):
        count, seen = _visit(seeded, f"{PROJECT}/apis/-/deployments")
        assert seen == [f"{PROJECT}/apis/pets/deployments/prod"]

    def test_spec_revisions(self, seeded):
        pattern = f"{PROJECT}/apis/pets/versions/v1/specs/openapi.yaml3873"
        count, _ = _visit(seeded, pattern)
        assert count == 1
        request = seeded.requests("list_api_spec_revisions")[0]
        assert request.name.endswith("openapi.yaml3873")

    def test_list_error_stops_enumeration(self, seeded):
        seeded.list_error_after = 1
        seen = []
        with pytest.raises(core_exceptions.ServiceUnavailable):
            visit(seeded, parse_resource(f"{PROJECT}/apis/-/versions/-"), seen.append)
        assert len(seen) == 1

    def test_handler_error_stops_enumeration(self, seeded):
        calls = []

        def handler(resource):
            calls.append(resource)
            raise ValueError("stop")

        with pytest.raises(ValueError):
            visit(seeded, parse_resource(f"{PROJECT}/apis"), handler)
        assert len(calls) == 1


class TestGetResource:
    def test_kinds(self, seeded):
        name = f"{PROJECT}/apis/pets/versions/v1/specs/openapi.yaml"
        spec = get_resource(seeded, ResourceKind.SPEC, name)
        assert spec.mime_type == OPENAPI_3


class TestFetchSpecContents:
    """fetch_spec_contents() removes gzip compression."""

    def test_plain(self, client):
        spec = client.add_spec(
            "a", "v", "s", mime_type=OPENAPI_3, filename="s.yaml", contents=b"x: 1"
        )
        contents = fetch_spec_contents(client, spec)
        assert contents.data == b"x: 1"
        assert contents.mime_type == OPENAPI_3
        assert contents.filename == "s.yaml"

    def test_gzipped(self, client):
        spec = client.add_spec(
            "a",
            "v",
            "s",
            mime_type="application/x.openapi+gzip;version=3",
            contents=gzip.compress(b"x: 1"),
        )
        contents = fetch_spec_contents(client, spec)
        assert contents.data == b"x: 1"
        assert contents.mime_type == "application/x.openapi;version=3"


class TestUpdateField:
    """update_field() sends only the name and one masked field."""

    def test_update_labels(self, seeded):
        api = seeded.resource(f"{PROJECT}/apis/pets")
        update_field(seeded, ResourceKind.API, api, "labels", {"tier": "gold"})
        request = seeded.requests("update_api")[0]
        assert list(request.update_mask.paths) == ["labels"]
        assert request.api.name == api.name
        assert dict(request.api.labels) == {"tier": "gold"}
        assert dict(seeded.resource(api.name).labels) == {"tier": "gold"}

    def test_unsupported_kind(self, client):
        with pytest.raises(UnsupportedResourceNameError):
            update_field(
                client, ResourceKind.ARTIFACT, rpc.Artifact(name="x"), "labels", {}
            )


class TestDeleteResource:
    def test_force(self, seeded):
        delete_resource(seeded, ResourceKind.API, f"{PROJECT}/apis/store", force=True)
        assert seeded.requests("delete_api")[0].force is True
        assert not seeded.exists(f"{PROJECT}/apis/store/versions/v1")

    def test_revision(self, seeded):
        name = f"{PROJECT}/apis/pets/versions/v1/specs/openapi.yaml@r1"
        delete_resource(seeded, ResourceKind.SPEC, name)
        assert [r.name for r in seeded.requests("delete_api_spec_revision")] == [name]
        assert seeded.requests("delete_api_spec") == []


class TestSetArtifact:
    """set_artifact() creates, then replaces on AlreadyExists."""

    def test_create_then_replace(self, seeded):
        name = f"{PROJECT}/apis/pets/artifacts/summary"
        for contents in (b"one", b"two"):
            set_artifact(
                seeded,
                rpc.Artifact(name=name, mime_type="text/plain", contents=contents),
            )
        assert seeded.resource(name).contents == b"two"
        assert seeded.requests("create_artifact")[0].parent == f"{PROJECT}/apis/pets"
        assert seeded.requests("create_artifact")[0].artifact_id == "summary"
        assert len(seeded.requests("replace_artifact")) == 1


class TestEnsure:
    """ensure_api() / ensure_version() create only what is missing."""

    def test_creates_missing(self, client):
        version = VersionName("my-project", "new", "v1")
        ensure_api(client, version.api())
        ensure_version(client, version)
        assert client.exists(f"{PROJECT}/apis/new")
        assert client.exists(f"{PROJECT}/apis/new/versions/v1")

    def test_existing_untouched(self, seeded):
        ensure_api(seeded, VersionName("my-project", "pets", "v1").api())
        assert seeded.requests("create_api") == []


class TestUpsertSpec:
    def test_create(self, seeded):
        name = SpecName("my-project", "pets", "v1", "new.yaml")
        upsert_spec(seeded, name, rpc.ApiSpec(mime_type="text/plain", contents=b"a"))
        assert seeded.resource(str(name)).contents == b"a"

    def test_existing_updates_contents_only(self, seeded):
        name = SpecName("my-project", "pets", "v1", "openapi.yaml")
        upsert_spec(seeded, name, rpc.ApiSpec(mime_type="text/plain", contents=b"new"))
        request = seeded.requests("update_api_spec")[0]
        assert list(request.update_mask.paths) == ["contents"]
        stored = seeded.resource(str(name))
        assert stored.contents == b"new"
        assert stored.mime_type == "application/x.openapi;version=3"
