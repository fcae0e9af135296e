"""Resource names and the pattern resolver.

A user-supplied name is parsed once into a :class:`ResourceRef` whose ``kind``
selects the registry call and whose ``collection`` flag decides between a
single Get and a paginated List.  A name denotes a collection when it ends in
a collection segment (``.../apis``) or when any identifier, including a
revision, is the wildcard ``-``.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Union

from apg.errors import InvalidInputError, UnsupportedResourceNameError

__all__ = [
    "WILDCARD",
    "LOCATION",
    "ResourceKind",
    "ProjectName",
    "ApiName",
    "VersionName",
    "SpecName",
    "DeploymentName",
    "ArtifactName",
    "ResourceName",
    "ResourceRef",
    "parse_resource",
    "validate_id",
]

WILDCARD = "-"
LOCATION = "global"

_ID = r"([a-z0-9-.]+)"
_REV = r"([a-z0-9-]+)"
_LOC = rf"(?:/locations/{LOCATION})?"
_CUSTOM_ID = re.compile(r"^[a-z0-9-.]+$")


class ResourceKind(str, enum.Enum):
    PROJECT = "project"
    API = "api"
    VERSION = "version"
    SPEC = "spec"
    DEPLOYMENT = "deployment"
    ARTIFACT = "artifact"


def _normalize(value: str) -> str:
    return value.lower()


def _rev(revision_id: str | None) -> str:
    return f"@{revision_id}" if revision_id else ""


@dataclass(frozen=True)
class ProjectName:
    project_id: str

    def __str__(self) -> str:
        return _normalize(f"projects/{self.project_id}/locations/{LOCATION}")

    @property
    def leaf_id(self) -> str:
        return self.project_id

    def api(self, api_id: str) -> ApiName:
        return ApiName(self.project_id, api_id)


@dataclass(frozen=True)
class ApiName:
    project_id: str
    api_id: str

    def __str__(self) -> str:
        return _normalize(f"{self.project()}/apis/{self.api_id}")

    @property
    def leaf_id(self) -> str:
        return self.api_id

    def project(self) -> ProjectName:
        return ProjectName(self.project_id)

    def parent(self) -> str:
        return str(self.project())

    def version(self, version_id: str) -> VersionName:
        return VersionName(self.project_id, self.api_id, version_id)


@dataclass(frozen=True)
class VersionName:
    project_id: str
    api_id: str
    version_id: str

    def __str__(self) -> str:
        return f"{self.api()}/versions/{_normalize(self.version_id)}"

    @property
    def leaf_id(self) -> str:
        return self.version_id

    def api(self) -> ApiName:
        return ApiName(self.project_id, self.api_id)

    def parent(self) -> str:
        return str(self.api())

    def spec(self, spec_id: str) -> SpecName:
        return SpecName(self.project_id, self.api_id, self.version_id, spec_id)


@dataclass(frozen=True)
class SpecName:
    project_id: str
    api_id: str
    version_id: str
    spec_id: str
    revision_id: str | None = None

    def __str__(self) -> str:
        spec_id = _normalize(self.spec_id)
        return f"{self.version()}/specs/{spec_id}{_rev(self.revision_id)}"

    @property
    def leaf_id(self) -> str:
        return self.spec_id

    def version(self) -> VersionName:
        return VersionName(self.project_id, self.api_id, self.version_id)

    def parent(self) -> str:
        return str(self.version())


@dataclass(frozen=True)
class DeploymentName:
    project_id: str
    api_id: str
    deployment_id: str
    revision_id: str | None = None

    def __str__(self) -> str:
        deployment_id = _normalize(self.deployment_id)
        return f"{self.api()}/deployments/{deployment_id}{_rev(self.revision_id)}"

    @property
    def leaf_id(self) -> str:
        return self.deployment_id

    def api(self) -> ApiName:
        return ApiName(self.project_id, self.api_id)

    def parent(self) -> str:
        return str(self.api())


@dataclass(frozen=True)
class ArtifactName:
    owner: ProjectName | ApiName | VersionName | SpecName | DeploymentName
    artifact_id: str

    def __str__(self) -> str:
        return f"{self.owner}/artifacts/{_normalize(self.artifact_id)}"

    @property
    def leaf_id(self) -> str:
        return self.artifact_id

    def parent(self) -> str:
        return str(self.owner)


ResourceName = Union[
    ProjectName, ApiName, VersionName, SpecName, DeploymentName, ArtifactName
]


@dataclass(frozen=True)
class ResourceRef:
    """A parsed resource name: what it is and whether it selects many resources."""

    kind: ResourceKind
    name: ResourceName
    collection: bool

    def __str__(self) -> str:
        return str(self.name)


_PROJECT = rf"projects/{_ID}{_LOC}"
_API = rf"{_PROJECT}/apis/{_ID}"
_VERSION = rf"{_API}/versions/{_ID}"
_SPEC = rf"{_VERSION}/specs/{_ID}(?:@{_REV})?"
_DEPLOYMENT = rf"{_API}/deployments/{_ID}(?:@{_REV})?"

_Builder = Callable[[tuple[str, ...]], ResourceName]


def _spec(g: tuple[str, ...]) -> SpecName:
    return SpecName(g[0], g[1], g[2], g[3], g[4])


def _deployment(g: tuple[str, ...]) -> DeploymentName:
    return DeploymentName(g[0], g[1], g[2], g[3])


# Ordered from most to least specific. Each entry is
# (kind, grammar, builder, collection form).
_GRAMMARS: list[tuple[ResourceKind, re.Pattern[str], _Builder, bool]] = [
    (
        ResourceKind.ARTIFACT,
        re.compile(rf"^{_SPEC}/artifacts/{_ID}$"),
        lambda g: ArtifactName(_spec(g), g[5]),
        False,
    ),
    (
        ResourceKind.ARTIFACT,
        re.compile(rf"^{_SPEC}/artifacts$"),
        lambda g: ArtifactName(_spec(g), ""),
        True,
    ),
    (
        ResourceKind.ARTIFACT,
        re.compile(rf"^{_DEPLOYMENT}/artifacts/{_ID}$"),
        lambda g: ArtifactName(_deployment(g), g[4]),
        False,
    ),
    (
        ResourceKind.ARTIFACT,
        re.compile(rf"^{_DEPLOYMENT}/artifacts$"),
        lambda g: ArtifactName(_deployment(g), ""),
        True,
    ),
    (
        ResourceKind.ARTIFACT,
        re.compile(rf"^{_VERSION}/artifacts/{_ID}$"),
        lambda g: ArtifactName(VersionName(*g[:3]), g[3]),
        False,
    ),
    (
        ResourceKind.ARTIFACT,
        re.compile(rf"^{_VERSION}/artifacts$"),
        lambda g: ArtifactName(VersionName(*g[:3]), ""),
        True,
    ),
    (
        ResourceKind.ARTIFACT,
        re.compile(rf"^{_API}/artifacts/{_ID}$"),
        lambda g: ArtifactName(ApiName(*g[:2]), g[2]),
        False,
    ),
    (
        ResourceKind.ARTIFACT,
        re.compile(rf"^{_API}/artifacts$"),
        lambda g: ArtifactName(ApiName(*g[:2]), ""),
        True,
    ),
    (
        ResourceKind.ARTIFACT,
        re.compile(rf"^{_PROJECT}/artifacts/{_ID}$"),
        lambda g: ArtifactName(ProjectName(g[0]), g[1]),
        False,
    ),
    (
        ResourceKind.ARTIFACT,
        re.compile(rf"^{_PROJECT}/artifacts$"),
        lambda g: ArtifactName(ProjectName(g[0]), ""),
        True,
    ),
    (ResourceKind.SPEC, re.compile(rf"^{_SPEC}$"), _spec, False),
    (
        ResourceKind.SPEC,
        re.compile(rf"^{_VERSION}/specs$"),
        lambda g: SpecName(*g[:3], ""),
        True,
    ),
    (ResourceKind.DEPLOYMENT, re.compile(rf"^{_DEPLOYMENT}$"), _deployment, False),
    (
        ResourceKind.DEPLOYMENT,
        re.compile(rf"^{_API}/deployments$"),
        lambda g: DeploymentName(*g[:2], ""),
        True,
    ),
    (
        ResourceKind.VERSION,
        re.compile(rf"^{_VERSION}$"),
        lambda g: VersionName(*g[:3]),
        False,
    ),
    (
        ResourceKind.VERSION,
        re.compile(rf"^{_API}/versions$"),
        lambda g: VersionName(*g[:2], ""),
        True,
    ),
    (ResourceKind.API, re.compile(rf"^{_API}$"), lambda g: ApiName(*g[:2]), False),
    (
        ResourceKind.API,
        re.compile(rf"^{_PROJECT}/apis$"),
        lambda g: ApiName(g[0], ""),
        True,
    ),
    (
        ResourceKind.PROJECT,
        re.compile(rf"^{_PROJECT}$"),
        lambda g: ProjectName(g[0]),
        False,
    ),
]


def parse_resource(name: str) -> ResourceRef:
    """Resolve a resource name or collection pattern into a ResourceRef.

    Raises:
        UnsupportedResourceNameError: If no grammar matches.
    """
    candidate = _normalize(name.strip()).rstrip("/")
    for kind, grammar, builder, collection_form in _GRAMMARS:
        m = grammar.match(candidate)
        if m is None:
            continue
        groups = m.groups()
        wildcard = any(g == WILDCARD for g in groups if g is not None)
        return ResourceRef(
            kind=kind, name=builder(groups), collection=collection_form or wildcard
        )
    raise UnsupportedResourceNameError(name)


def validate_id(identifier: str) -> str:
    """Check a user-provided identifier for a new resource and return it."""
    if not identifier:
        raise InvalidInputError(
            f"invalid identifier {identifier!r}: identifier must be nonempty"
        )
    if not _CUSTOM_ID.match(identifier):
        raise InvalidInputError(
            f"invalid identifier {identifier!r}: must match {_CUSTOM_ID.pattern!r}"
        )
    if len(identifier) > 80:
        raise InvalidInputError(
            f"invalid identifier {identifier!r}: must be 80 characters or less"
        )
    if identifier[0] in "-." or identifier[-1] in "-.":
        raise InvalidInputError(
            f"invalid identifier {identifier!r}: "
            "must begin and end with a number or letter"
        )
    return identifier
