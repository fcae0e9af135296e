"""apg observability package.

Hooks are registered on a worker pool's HookManager, outermost first::

    1. TracingHook  -- captures total task wall-clock time
    2. MetricsHook  -- counts tasks and records durations
    3. LoggingHook  -- logs start, end and failures
"""

from apg.observability.logging import JsonFormatter, LoggingHook, configure_logging
from apg.observability.metrics import MetricsCollector, MetricsHook
from apg.observability.tracing import (
    InMemoryExporter,
    OTLPExporter,
    Span,
    SpanExporter,
    TracingHook,
)

__all__ = [
    "InMemoryExporter",
    "JsonFormatter",
    "LoggingHook",
    "MetricsCollector",
    "MetricsHook",
    "OTLPExporter",
    "Span",
    "SpanExporter",
    "TracingHook",
    "configure_logging",
]
