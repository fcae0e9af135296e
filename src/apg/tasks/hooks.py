"""Task hooks: before/after/on_error callbacks run by the pool around every task."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from apg.context import Context
    from apg.tasks.task import Task

__all__ = ["TaskHook", "HookManager"]

_logger = logging.getLogger(__name__)


class TaskHook:
    """Base hook class with default no-op implementations.

    Subclass and override the methods you need. Hooks observe tasks; they
    cannot change a task's outcome.
    """

    def before(self, task: Task, context: Context) -> None:
        """Called before the task runs."""

    def after(self, task: Task, context: Context) -> None:
        """Called after the task returned successfully."""

    def on_error(self, task: Task, error: Exception, context: Context) -> None:
        """Called after the task raised."""


class HookManager:
    """Ordered, thread-safe list of hooks.

    ``before`` runs in registration order, ``after`` and ``on_error`` run in
    reverse order over the hooks whose ``before`` succeeded. A failing hook is
    logged and skipped.
    """

    def __init__(self, hooks: list[TaskHook] | None = None) -> None:
        self._hooks: list[TaskHook] = list(hooks or [])
        self._lock = threading.Lock()

    def add(self, hook: TaskHook) -> None:
        """Append a hook to the end of the execution list."""
        with self._lock:
            self._hooks.append(hook)

    def remove(self, hook: TaskHook) -> bool:
        """Remove a hook by identity (is). Returns True if found and removed."""
        with self._lock:
            for i, entry in enumerate(self._hooks):
                if entry is hook:
                    self._hooks.pop(i)
                    return True
            return False

    def snapshot(self) -> list[TaskHook]:
        """Return a copy of the current hook list."""
        with self._lock:
            return list(self._hooks)

    def run_before(self, task: Task, context: Context) -> list[TaskHook]:
        """Run before() on all hooks; returns the hooks that succeeded."""
        executed: list[TaskHook] = []
        for hook in self.snapshot():
            try:
                hook.before(task, context)
            except Exception:
                _logger.error(
                    "Exception in before hook %r for %s", hook, task, exc_info=True
                )
                continue
            executed.append(hook)
        return executed

    def run_after(self, task: Task, context: Context, executed: list[TaskHook]) -> None:
        for hook in reversed(executed):
            try:
                hook.after(task, context)
            except Exception:
                _logger.error(
                    "Exception in after hook %r for %s", hook, task, exc_info=True
                )

    def run_on_error(
        self,
        task: Task,
        error: Exception,
        context: Context,
        executed: list[TaskHook],
    ) -> None:
        for hook in reversed(executed):
            try:
                hook.on_error(task, error, context)
            except Exception:
                _logger.error(
                    "Exception in on_error hook %r for %s", hook, task, exc_info=True
                )
