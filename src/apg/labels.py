"""Label and annotation patches: ``key=value`` sets a key, ``key-`` clears it."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from apg.errors import InvalidPatchError, OverwriteConflictError

__all__ = ["Labeling", "parse_operations"]


@dataclass(frozen=True)
class Labeling:
    """A parsed patch over a string-to-string map."""

    set: dict[str, str] = field(default_factory=dict)
    clear: tuple[str, ...] = ()
    overwrite: bool = False

    def apply(self, existing: Mapping[str, str]) -> dict[str, str]:
        """Return the patched copy of ``existing``; ``existing`` is never modified.

        Keys in ``clear`` are removed before keys in ``set`` are written, so a
        key named in both ends up set.

        Raises:
            OverwriteConflictError: If ``overwrite`` is off and a key to set
                already has a value.
        """
        if not self.overwrite:
            for key in self.set:
                if key in existing:
                    raise OverwriteConflictError(key, existing[key])
        result = dict(existing)
        for key in self.clear:
            result.pop(key, None)
        result.update(self.set)
        return result


def parse_operations(operations: Iterable[str], overwrite: bool = False) -> Labeling:
    """Parse ``key=value`` and ``key-`` operations.

    Raises:
        InvalidPatchError: For anything else, or for an empty key.
    """
    values_to_set: dict[str, str] = {}
    values_to_clear: list[str] = []
    for operation in operations:
        if len(operation) > 1 and operation.endswith("-"):
            values_to_clear.append(operation[:-1])
            continue
        pair = operation.split("=")
        if len(pair) != 2:
            raise InvalidPatchError(operation)
        if not pair[0]:
            raise InvalidPatchError(
                operation, "is invalid because it specifies an empty key"
            )
        values_to_set[pair[0]] = pair[1]
    return Labeling(
        set=values_to_set, clear=tuple(values_to_clear), overwrite=overwrite
    )
