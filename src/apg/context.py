"""Command context: trace id, per-task data and cooperative cancellation."""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from typing import Any

__all__ = ["Context"]


@dataclass
class Context:
    """Context threaded from a command through the pool into every task.

    All contexts derived from one command share the same cancellation event,
    so cancelling any of them cancels the whole command.
    """

    trace_id: str
    task: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    _cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)

    @classmethod
    def create(cls, data: dict[str, Any] | None = None) -> Context:
        """Create a new top-level Context with a generated UUID v4 trace_id."""
        return cls(trace_id=str(uuid.uuid4()), data=data if data is not None else {})

    def child(self, task: str) -> Context:
        """Create a per-task Context.

        ``data`` is fresh for each task so hooks can keep timing state without
        locking; the cancellation event is shared.
        """
        return Context(
            trace_id=self.trace_id,
            task=task,
            data={},
            _cancel_event=self._cancel_event,
        )

    def cancel(self) -> None:
        """Signal cancellation to every context sharing this event."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        """True once cancel() has been called."""
        return self._cancel_event.is_set()
