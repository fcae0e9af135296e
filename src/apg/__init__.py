"""apg - command-line client and bulk tooling for the API Registry."""

from __future__ import annotations

__version__ = "0.3.0"

# Config
from apg.config import Config, RegistrySettings, load_profile, load_settings

# Context
from apg.context import Context

# Errors
from apg.errors import (
    ConfigError,
    ConfigNotFoundError,
    ErrorCodes,
    InvalidInputError,
    InvalidPatchError,
    LinterError,
    OverwriteConflictError,
    PoolClosedError,
    RegistryError,
    SpecParseError,
    UnsupportedMimeTypeError,
    UnsupportedResourceNameError,
)

# Labels
from apg.labels import Labeling, parse_operations

# Names
from apg.names import (
    ApiName,
    ArtifactName,
    DeploymentName,
    ProjectName,
    ResourceKind,
    ResourceRef,
    SpecName,
    VersionName,
    parse_resource,
)

# Tasks
from apg.tasks import (
    FunctionTask,
    HookManager,
    PoolResult,
    Task,
    TaskHook,
    WorkerPool,
    worker_pool,
)

# Visitor
from apg.visitor import visit

__all__ = [
    "__version__",
    # Config
    "Config",
    "RegistrySettings",
    "load_profile",
    "load_settings",
    # Context
    "Context",
    # Errors
    "ConfigError",
    "ConfigNotFoundError",
    "ErrorCodes",
    "InvalidInputError",
    "InvalidPatchError",
    "LinterError",
    "OverwriteConflictError",
    "PoolClosedError",
    "RegistryError",
    "SpecParseError",
    "UnsupportedMimeTypeError",
    "UnsupportedResourceNameError",
    # Labels
    "Labeling",
    "parse_operations",
    # Names
    "ApiName",
    "ArtifactName",
    "DeploymentName",
    "ProjectName",
    "ResourceKind",
    "ResourceRef",
    "SpecName",
    "VersionName",
    "parse_resource",
    # Tasks
    "FunctionTask",
    "HookManager",
    "PoolResult",
    "Task",
    "TaskHook",
    "WorkerPool",
    "worker_pool",
    # Visitor
    "visit",
]
