"""Task counters and durations with Prometheus text export."""

from __future__ import annotations

import threading
import time
from collections import Counter
from typing import TYPE_CHECKING

from apg.errors import RegistryError
from apg.tasks.hooks import TaskHook

if TYPE_CHECKING:
    from apg.context import Context
    from apg.tasks.task import Task

__all__ = ["MetricsCollector", "MetricsHook"]

TASKS_TOTAL = "apg_tasks_total"
TASK_ERRORS_TOTAL = "apg_task_errors_total"
TASK_DURATION = "apg_task_duration_seconds"


class _Durations:
    """Cumulative histogram of one command's task durations."""

    def __init__(self, buckets: list[float]) -> None:
        self.buckets = [0] * len(buckets)
        self.count = 0
        self.sum = 0.0


class MetricsCollector:
    """Counts tasks by command and outcome, and times them.

    Safe to share between the threads of a worker pool.
    """

    DEFAULT_BUCKETS: list[float] = [
        0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0
    ]

    def __init__(self, buckets: list[float] | None = None) -> None:
        self._bounds = sorted(buckets) if buckets is not None else self.DEFAULT_BUCKETS
        self._lock = threading.Lock()
        self._tasks: Counter[tuple[str, str]] = Counter()
        self._errors: Counter[tuple[str, str]] = Counter()
        self._durations: dict[str, _Durations] = {}

    def record(
        self, command: str, duration: float, error_code: str | None = None
    ) -> None:
        """Count one finished task; ``error_code`` is set for failures."""
        status = "success" if error_code is None else "error"
        with self._lock:
            self._tasks[command, status] += 1
            if error_code is not None:
                self._errors[command, error_code] += 1
            durations = self._durations.get(command)
            if durations is None:
                durations = self._durations[command] = _Durations(self._bounds)
            durations.count += 1
            durations.sum += duration
            for i, bound in enumerate(self._bounds):
                if duration <= bound:
                    durations.buckets[i] += 1

    def task_count(self, command: str, status: str) -> int:
        with self._lock:
            return self._tasks[command, status]

    def error_count(self, command: str, error_code: str) -> int:
        with self._lock:
            return self._errors[command, error_code]

    def duration_count(self, command: str) -> int:
        with self._lock:
            durations = self._durations.get(command)
            return durations.count if durations is not None else 0

    def export_prometheus(self) -> str:
        """Render the Prometheus text exposition format; empty when nothing ran."""
        with self._lock:
            lines: list[str] = []
            if self._tasks:
                description = "Total tasks run by worker pools"
                lines += _header(TASKS_TOTAL, description, "counter")
                for (command, status), value in sorted(self._tasks.items()):
                    labels = _labels(command=command, status=status)
                    lines.append(f"{TASKS_TOTAL}{labels} {value}")
            if self._errors:
                lines += _header(TASK_ERRORS_TOTAL, "Total failed tasks", "counter")
                for (command, code), value in sorted(self._errors.items()):
                    labels = _labels(command=command, error_code=code)
                    lines.append(f"{TASK_ERRORS_TOTAL}{labels} {value}")
            if self._durations:
                lines += _header(TASK_DURATION, "Task execution duration", "histogram")
                for command, durations in sorted(self._durations.items()):
                    for bound, count in zip(self._bounds, durations.buckets):
                        labels = _labels(command=command, le=f"{bound:g}")
                        lines.append(f"{TASK_DURATION}_bucket{labels} {count}")
                    labels = _labels(command=command, le="+Inf")
                    lines.append(f"{TASK_DURATION}_bucket{labels} {durations.count}")
                    labels = _labels(command=command)
                    lines.append(f"{TASK_DURATION}_sum{labels} {durations.sum}")
                    lines.append(f"{TASK_DURATION}_count{labels} {durations.count}")
            return "\n".join(lines) + "\n" if lines else ""


def _header(name: str, description: str, kind: str) -> list[str]:
    return [f"# HELP {name} {description}", f"# TYPE {name} {kind}"]


def _labels(**labels: str) -> str:
    return "{" + ",".join(f'{k}="{v}"' for k, v in labels.items()) + "}"


class MetricsHook(TaskHook):
    """Record task counts, error counts and durations, labelled by command."""

    def __init__(self, collector: MetricsCollector, command: str) -> None:
        self._collector = collector
        self._command = command

    def before(self, task: Task, context: Context) -> None:
        context.data["_metrics_start"] = time.monotonic()

    def after(self, task: Task, context: Context) -> None:
        self._collector.record(self._command, self._elapsed(context))

    def on_error(self, task: Task, error: Exception, context: Context) -> None:
        code = error.code if isinstance(error, RegistryError) else type(error).__name__
        self._collector.record(self._command, self._elapsed(context), error_code=code)

    @staticmethod
    def _elapsed(context: Context) -> float:
        now = time.monotonic()
        return now - context.data.pop("_metrics_start", now)
