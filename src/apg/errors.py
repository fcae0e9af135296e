"""Error hierarchy for the apg registry client."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

__all__ = [
    "RegistryError",
    "ConfigNotFoundError",
    "ConfigError",
    "InvalidInputError",
    "UnsupportedResourceNameError",
    "InvalidPatchError",
    "OverwriteConflictError",
    "UnsupportedMimeTypeError",
    "SpecParseError",
    "LinterError",
    "PoolClosedError",
    "ErrorCodes",
]


class RegistryError(Exception):
    """Base error for all apg errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details: dict[str, Any] = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ConfigNotFoundError(RegistryError):
    """Raised when a configuration profile cannot be found."""

    def __init__(self, config_path: str, **kwargs: Any) -> None:
        super().__init__(
            code="CONFIG_NOT_FOUND",
            message=f"Configuration file not found: {config_path}",
            details={"config_path": config_path},
            **kwargs,
        )


class ConfigError(RegistryError):
    """Raised when connection settings are invalid."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(code="CONFIG_INVALID", message=message, **kwargs)


class InvalidInputError(RegistryError):
    """Raised for invalid arguments."""

    def __init__(self, message: str = "Invalid input", **kwargs: Any) -> None:
        super().__init__(code="GENERAL_INVALID_INPUT", message=message, **kwargs)


class UnsupportedResourceNameError(RegistryError):
    """Raised when a resource name matches none of the known name grammars."""

    def __init__(self, name: str, **kwargs: Any) -> None:
        super().__init__(
            code="UNSUPPORTED_RESOURCE_NAME",
            message=f"unsupported resource name {name}",
            details={"name": name},
            **kwargs,
        )

    @property
    def name(self) -> str:
        """The resource name that could not be resolved."""
        return self.details["name"]


class InvalidPatchError(RegistryError):
    """Raised when a label or annotation operation is malformed."""

    def __init__(
        self, operation: str, reason: str | None = None, **kwargs: Any
    ) -> None:
        if reason is None:
            reason = (
                'must have the form "key=value" (value can be empty) '
                'or "key-" (to remove the key)'
            )
        super().__init__(
            code="INVALID_PATCH",
            message=f'"{operation}" {reason}',
            details={"operation": operation},
            **kwargs,
        )


class OverwriteConflictError(RegistryError):
    """Raised when a set operation would replace a value without --overwrite."""

    def __init__(self, key: str, value: str, **kwargs: Any) -> None:
        super().__init__(
            code="OVERWRITE_CONFLICT",
            message=f"{key} already has a value ({value}) and --overwrite is false",
            details={"key": key, "value": value},
            **kwargs,
        )

    @property
    def key(self) -> str:
        """The key that already holds a value."""
        return self.details["key"]


class UnsupportedMimeTypeError(RegistryError):
    """Raised when no summarizer exists for a spec's mime type."""

    def __init__(
        self, spec_name: str, mime_type: str, verb: str = "summarize", **kwargs: Any
    ) -> None:
        super().__init__(
            code="UNSUPPORTED_MIME_TYPE",
            message=f"we don't know how to {verb} {spec_name}",
            details={"spec_name": spec_name, "mime_type": mime_type},
            **kwargs,
        )


class SpecParseError(RegistryError):
    """Raised when spec contents cannot be parsed."""

    def __init__(self, spec_name: str, reason: str, **kwargs: Any) -> None:
        super().__init__(
            code="SPEC_PARSE_ERROR",
            message=f"invalid spec {spec_name}: {reason}",
            details={"spec_name": spec_name, "reason": reason},
            **kwargs,
        )


class LinterError(RegistryError):
    """Raised when an external linter cannot be run or reports errors."""

    def __init__(self, linter: str, reason: str, **kwargs: Any) -> None:
        super().__init__(
            code="LINTER_ERROR",
            message=f"linter {linter}: {reason}",
            details={"linter": linter, "reason": reason},
            **kwargs,
        )


class PoolClosedError(RegistryError):
    """Raised when a task is submitted to a pool that has already been waited on."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(code="POOL_CLOSED", message="worker pool is closed", **kwargs)


class ErrorCodes:
    """All apg error codes as constants.

    Example:
        if error.code == ErrorCodes.OVERWRITE_CONFLICT:
            skip_resource()
    """

    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
    CONFIG_INVALID = "CONFIG_INVALID"
    GENERAL_INVALID_INPUT = "GENERAL_INVALID_INPUT"
    UNSUPPORTED_RESOURCE_NAME = "UNSUPPORTED_RESOURCE_NAME"
    INVALID_PATCH = "INVALID_PATCH"
    OVERWRITE_CONFLICT = "OVERWRITE_CONFLICT"
    UNSUPPORTED_MIME_TYPE = "UNSUPPORTED_MIME_TYPE"
    SPEC_PARSE_ERROR = "SPEC_PARSE_ERROR"
    LINTER_ERROR = "LINTER_ERROR"
    POOL_CLOSED = "POOL_CLOSED"

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("ErrorCodes is immutable")
