"""Connection settings and configuration profiles.

Settings come from three layers, later layers winning:

1. a YAML profile under ``~/.config/registry/`` (or an explicit path),
2. ``APG_REGISTRY_*`` environment variables,
3. command-line flags.

A profile looks like::

    registry:
      address: localhost:8080
      insecure: true
      project: my-project
    defaults:
      jobs: 16
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from apg.errors import ConfigError, ConfigNotFoundError

__all__ = [
    "ACTIVE_POINTER_FILENAME",
    "Config",
    "RegistrySettings",
    "config_directory",
    "load_profile",
    "load_settings",
]

logger = logging.getLogger(__name__)

ACTIVE_POINTER_FILENAME = "active_config"


class Config:
    """Configuration accessor with dot-path key support."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dot-path key."""
        parts = key.split(".")
        current: Any = self._data
        for part in parts:
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def section(self, key: str) -> dict[str, Any]:
        """Return the mapping at ``key`` or an empty dict."""
        value = self.get(key)
        return dict(value) if isinstance(value, dict) else {}


class RegistrySettings(BaseSettings):
    """Registry connection settings (``APG_REGISTRY_*``)."""

    model_config = SettingsConfigDict(env_prefix="APG_REGISTRY_", extra="ignore")

    address: str = Field(
        default="", description="Registry server and port, e.g. localhost:8080"
    )
    insecure: bool = Field(default=False, description="Connect without TLS")
    token: str = Field(default="", description="Bearer token sent with every call")
    api_key: str = Field(default="", description="API key sent with every call")
    project: str = Field(default="", description="Default project for relative names")
    location: str = Field(default="global", description="Registry location")

    def validate_connection(self) -> None:
        """Raise ConfigError when the settings cannot produce a client."""
        if not self.address:
            raise ConfigError("rpc error: address must be set")

    def fq_name(self, name: str) -> str:
        """Qualify a project-relative name with the configured project."""
        if name.startswith("projects"):
            return name
        if not self.project:
            raise ConfigError(
                f"{name!r} is not fully qualified and no project is configured"
            )
        return f"projects/{self.project}/locations/{self.location}/{name}"


def config_directory() -> Path:
    """Directory holding configuration profiles."""
    return Path.home() / ".config" / "registry"


def _resolve_profile_path(profile: str | None, directory: Path) -> Path | None:
    if profile:
        candidate = Path(profile)
        if candidate.is_file():
            return candidate
        named = directory / profile
        if named.is_file():
            return named
        raise ConfigNotFoundError(profile)

    pointer = directory / ACTIVE_POINTER_FILENAME
    if not pointer.is_file():
        return None
    name = pointer.read_text(encoding="utf-8").strip()
    if not name:
        return None
    active = directory / name
    if not active.is_file():
        raise ConfigNotFoundError(str(active))
    return active


def load_profile(profile: str | None = None, directory: Path | None = None) -> Config:
    """Load a YAML profile by name or path.

    Without ``profile`` the active profile is loaded, if there is one.
    """
    path = _resolve_profile_path(profile, directory or config_directory())
    if path is None:
        return Config()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", cause=e) from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration in {path} must be a mapping")
    logger.debug("Loaded configuration profile %s", path)
    return Config(data)


def load_settings(profile: Config | None = None, **overrides: Any) -> RegistrySettings:
    """Build RegistrySettings from a profile, the environment and explicit overrides.

    Overrides that are ``None`` are ignored, so unset CLI flags never mask
    environment values.
    """
    try:
        base = RegistrySettings()
        values = base.model_dump()
        if profile is not None:
            for key, value in profile.section("registry").items():
                if key not in RegistrySettings.model_fields:
                    continue
                if key not in base.model_fields_set:
                    values[key] = value
        values.update({k: v for k, v in overrides.items() if v is not None})
        return RegistrySettings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid registry settings: {e}", cause=e) from e
