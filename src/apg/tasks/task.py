"""The Task contract and its single closure-backed implementation."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from apg.context import Context

__all__ = ["Task", "FunctionTask"]


@runtime_checkable
class Task(Protocol):
    """A unit of work run by a worker. ``run`` raises on failure."""

    def run(self, ctx: Context) -> None: ...

    def __str__(self) -> str: ...


class FunctionTask:
    """Task built from a description and a ``fn(ctx)`` closure."""

    __slots__ = ("_description", "_fn")

    def __init__(self, description: str, fn: Callable[[Context], None]) -> None:
        self._description = description
        self._fn = fn

    def run(self, ctx: Context) -> None:
        self._fn(ctx)

    def __str__(self) -> str:
        return self._description

    def __repr__(self) -> str:
        return f"FunctionTask({self._description!r})"
