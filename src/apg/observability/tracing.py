"""Tracing: Span dataclass, span exporters and TracingHook."""

from __future__ import annotations

import collections
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from apg.tasks.hooks import TaskHook

if TYPE_CHECKING:
    from apg.context import Context
    from apg.tasks.task import Task

__all__ = [
    "Span",
    "SpanExporter",
    "InMemoryExporter",
    "OTLPExporter",
    "TracingHook",
]

_tracing_logger = logging.getLogger(__name__)


@dataclass
class Span:
    """A trace span covering one task."""

    trace_id: str
    name: str
    start_time: float
    span_id: str = field(default_factory=lambda: os.urandom(8).hex())
    attributes: dict[str, Any] = field(default_factory=dict)
    end_time: float | None = None
    status: str = "ok"


@runtime_checkable
class SpanExporter(Protocol):
    """Protocol for span export destinations."""

    def export(self, span: Span) -> None:
        """Export a completed span."""
        ...


class InMemoryExporter:
    """Collects spans in memory for testing.

    Thread-safe and bounded by ``max_spans``.
    """

    def __init__(self, max_spans: int = 10_000) -> None:
        self._spans: collections.deque[Span] = collections.deque(maxlen=max_spans)
        self._lock = threading.Lock()

    def export(self, span: Span) -> None:
        with self._lock:
            self._spans.append(span)

    def get_spans(self) -> list[Span]:
        with self._lock:
            return list(self._spans)

    def clear(self) -> None:
        with self._lock:
            self._spans.clear()


class OTLPExporter:
    """Exports spans via OpenTelemetry Protocol (requires the ``otlp`` extra).

    Args:
        endpoint: OTLP collector endpoint URL. Defaults to the OTel SDK default
            (``http://localhost:4318/v1/traces``).
        service_name: ``service.name`` resource attribute.
    """

    def __init__(self, endpoint: str | None = None, service_name: str = "apg") -> None:
        try:
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
                OTLPSpanExporter as _OTLPSpanExporter,
            )
            from opentelemetry.sdk.resources import Resource
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import SimpleSpanProcessor
            from opentelemetry.trace import StatusCode
        except ImportError:
            raise ImportError(
                "opentelemetry packages are required for OTLPExporter. "
                "Install with: pip install 'apg-registry-cli[otlp]'"
            ) from None

        self._StatusCode = StatusCode
        resource = Resource.create({"service.name": service_name})
        self._provider = TracerProvider(resource=resource)

        exporter_kwargs: dict[str, Any] = {}
        if endpoint is not None:
            exporter_kwargs["endpoint"] = endpoint
        self._provider.add_span_processor(
            SimpleSpanProcessor(_OTLPSpanExporter(**exporter_kwargs))
        )
        self._tracer = self._provider.get_tracer("apg.tracing")

    def export(self, span: Span) -> None:
        otel_span = self._tracer.start_span(
            name=span.name, start_time=int(span.start_time * 1e9)
        )
        otel_span.set_attribute("apg.trace_id", span.trace_id)
        otel_span.set_attribute("apg.span_id", span.span_id)
        for key, value in span.attributes.items():
            if value is None:
                continue
            if not isinstance(value, (str, int, float, bool)):
                value = str(value)
            otel_span.set_attribute(key, value)
        if span.status == "error":
            otel_span.set_status(self._StatusCode.ERROR)
        otel_span.end(end_time=int(span.end_time * 1e9) if span.end_time else None)

    def shutdown(self) -> None:
        """Flush pending spans and shut down the TracerProvider."""
        self._provider.shutdown()


class TracingHook(TaskHook):
    """Create one span per task and export it when the task finishes."""

    def __init__(self, exporter: SpanExporter, command: str) -> None:
        self._exporter = exporter
        self._command = command

    def before(self, task: Task, context: Context) -> None:
        context.data["_tracing_span"] = Span(
            trace_id=context.trace_id,
            name=f"apg.{self._command}",
            start_time=time.time(),
            attributes={"task": str(task), "command": self._command},
        )

    def _finish(self, task: Task, context: Context, status: str) -> Span | None:
        span = context.data.pop("_tracing_span", None)
        if span is None:
            _tracing_logger.warning("TracingHook finished %s without a span", task)
            return None
        span.end_time = time.time()
        span.status = status
        span.attributes["duration_ms"] = (span.end_time - span.start_time) * 1000
        span.attributes["success"] = status == "ok"
        return span

    def after(self, task: Task, context: Context) -> None:
        span = self._finish(task, context, "ok")
        if span is not None:
            self._exporter.export(span)

    def on_error(self, task: Task, error: Exception, context: Context) -> None:
        span = self._finish(task, context, "error")
        if span is not None:
            span.attributes["error_code"] = getattr(error, "code", type(error).__name__)
            self._exporter.export(span)
