"""Tests for resource names and the pattern resolver."""

from __future__ import annotations

import pytest

from apg.errors import InvalidInputError, UnsupportedResourceNameError
from apg.names import (
    ApiName,
    ArtifactName,
    DeploymentName,
    ProjectName,
    ResourceKind,
    SpecName,
    VersionName,
    parse_resource,
    validate_id,
)

P = "projects/p/locations/global"


class TestParseSingletons:
    """Names without wildcards resolve to single resources."""

    @pytest.mark.parametrize(
        "name, kind, expected",
        [
            ("projects/p", ResourceKind.PROJECT, ProjectName("p")),
            (f"{P}/apis/a", ResourceKind.API, ApiName("p", "a")),
            (
                f"{P}/apis/a/versions/v1",
                ResourceKind.VERSION,
                VersionName("p", "a", "v1"),
            ),
            (
                f"{P}/apis/a/versions/v1/specs/openapi.yaml",
                ResourceKind.SPEC,
                SpecName("p", "a", "v1", "openapi.yaml"),
            ),
            (
                f"{P}/apis/a/deployments/prod",
                ResourceKind.DEPLOYMENT,
                DeploymentName("p", "a", "prod"),
            ),
            (
                f"{P}/artifacts/style",
                ResourceKind.ARTIFACT,
                ArtifactName(ProjectName("p"), "style"),
            ),
            (
                f"{P}/apis/a/versions/v1/specs/s/artifacts/complexity",
                ResourceKind.ARTIFACT,
                ArtifactName(SpecName("p", "a", "v1", "s"), "complexity"),
            ),
        ],
    )
    def test_kinds(self, name, kind, expected):
        ref = parse_resource(name)
        assert ref.kind is kind
        assert ref.name == expected
        assert ref.collection is False

    def test_location_is_optional(self):
        short = parse_resource("projects/p/apis/a")
        assert short.name == parse_resource(f"{P}/apis/a").name

    def test_revision(self):
        ref = parse_resource(f"{P}/apis/a/versions/v/specs/s@abc123")
        assert ref.name == SpecName("p", "a", "v", "s", "abc123")
        assert not ref.collection

    def test_str_is_canonical(self):
        """str() of a parsed name is the fully qualified lowercase form."""
        ref = parse_resource("projects/P/apis/Pets/versions/V1/specs/Openapi.yaml/")
        assert str(ref.name) == f"{P}/apis/pets/versions/v1/specs/openapi.yaml"


class TestParseCollections:
    """Wildcards and collection segments make a ref a collection."""

    @pytest.mark.parametrize(
        "name, kind",
        [
            (f"{P}/apis", ResourceKind.API),
            (f"{P}/apis/-", ResourceKind.API),
            (f"{P}/apis/-/versions", ResourceKind.VERSION),
            (f"{P}/apis/a/versions/-", ResourceKind.VERSION),
            (f"{P}/apis/-/versions/-/specs/-", ResourceKind.SPEC),
            (f"{P}/apis/-/versions/v1/specs/openapi.yaml", ResourceKind.SPEC),
            (f"{P}/apis/a/deployments/-", ResourceKind.DEPLOYMENT),
            (f"{P}/apis/a/versions/v/specs/s/artifacts", ResourceKind.ARTIFACT),
            (f"{P}/apis/-/artifacts/-", ResourceKind.ARTIFACT),
        ],
    )
    def test_collections(self, name, kind):
        ref = parse_resource(name)
        assert ref.kind is kind
        assert ref.collection is True

    def test_wildcard_revision(self):
        ref = parse_resource(f"{P}/apis/a/versions/v/specs/s@-")
        assert ref.kind is ResourceKind.SPEC
        assert ref.collection is True
        assert ref.name.revision_id == "-"

    def test_collection_parent(self):
        ref = parse_resource(f"{P}/apis/a/versions")
        assert ref.name.parent() == f"{P}/apis/a"
        assert ref.name.version_id == ""


class TestParseErrors:
    """Names no grammar accepts."""

    @pytest.mark.parametrize(
        "name",
        [
            "",
            "apis/a",
            "projects/p/locations/us-east1/apis/a",
            "projects/p/widgets/w",
            "projects/p/apis/a/specs/s",
            "projects/p/apis/a_b",
        ],
    )
    def test_unsupported(self, name):
        with pytest.raises(UnsupportedResourceNameError) as exc_info:
            parse_resource(name)
        assert exc_info.value.message == f"unsupported resource name {name}"


class TestNames:
    """Tests for the typed name helpers."""

    def test_parents(self):
        spec = SpecName("p", "a", "v", "s")
        assert spec.parent() == f"{P}/apis/a/versions/v"
        assert spec.version().parent() == f"{P}/apis/a"
        assert spec.version().api().parent() == P

    def test_artifact_parent(self):
        artifact = ArtifactName(DeploymentName("p", "a", "d"), "x")
        assert str(artifact) == f"{P}/apis/a/deployments/d/artifacts/x"
        assert artifact.parent() == f"{P}/apis/a/deployments/d"

    def test_builders(self):
        spec = ProjectName("p").api("a").version("v").spec("s")
        assert spec == SpecName("p", "a", "v", "s")

    def test_leaf_ids(self):
        assert ApiName("p", "a").leaf_id == "a"
        assert DeploymentName("p", "a", "d", "r1").leaf_id == "d"


class TestValidateId:
    """Tests for validate_id()."""

    def test_valid(self):
        assert validate_id("openapi.yaml") == "openapi.yaml"

    @pytest.mark.parametrize(
        "identifier", ["", "Upper", "-lead", "trail.", "under_score", "x" * 81]
    )
    def test_invalid(self, identifier):
        with pytest.raises(InvalidInputError):
            validate_id(identifier)
