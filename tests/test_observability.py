"""Tests for logging, metrics and tracing hooks."""

from __future__ import annotations

import io
import json
import logging

import pytest

from apg.context import Context
from apg.errors import OverwriteConflictError
from apg.observability import (
    InMemoryExporter,
    JsonFormatter,
    LoggingHook,
    MetricsCollector,
    MetricsHook,
    OTLPExporter,
    TracingHook,
    configure_logging,
)
from apg.tasks import FunctionTask, HookManager, WorkerPool


def _noop(ctx):
    pass


def _conflict(ctx):
    raise OverwriteConflictError("team", "red")


def _run(hooks, *tasks):
    with WorkerPool(Context.create(), 1, hooks=HookManager(hooks)) as pool:
        for task in tasks:
            pool.submit(task)
    return pool.wait()


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_text_format(self):
        stream = io.StringIO()
        configure_logging(level="info", stream=stream)
        logging.getLogger("apg.visitor").info("listing %s", "apis")
        assert "[INFO] apg.visitor: listing apis" in stream.getvalue()

    def test_level_filters(self):
        stream = io.StringIO()
        configure_logging(level="warning", stream=stream)
        logging.getLogger("apg.visitor").info("hidden")
        assert stream.getvalue() == ""

    def test_replaces_previous_handler(self):
        first = io.StringIO()
        second = io.StringIO()
        configure_logging(stream=first)
        handler = configure_logging(stream=second)
        assert logging.getLogger("apg").handlers == [handler]


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def _format(self, **extra):
        logger = logging.getLogger("apg.test.json")
        record = logger.makeRecord(
            "apg.test.json",
            logging.WARNING,
            __file__,
            1,
            "hello %s",
            ("world",),
            None,
            extra=extra,
        )
        return json.loads(JsonFormatter().format(record))

    def test_fields(self):
        entry = self._format(trace_id="t-1", task="label x", failed=2)
        assert entry["message"] == "hello world"
        assert entry["level"] == "warning"
        assert entry["logger"] == "apg.test.json"
        assert entry["trace_id"] == "t-1"
        assert entry["task"] == "label x"
        assert entry["extra"] == {"failed": 2}
        assert entry["timestamp"]

    def test_secret_redacted(self):
        entry = self._format(_secret_token="abc")
        assert entry["extra"] == {"_secret_token": "***REDACTED***"}

    def test_no_extra(self):
        assert self._format()["extra"] is None


class TestLoggingHook:
    """LoggingHook logs start, end and failure."""

    def test_logs_lifecycle(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="apg.tasks"):
            _run(
                [LoggingHook()],
                FunctionTask("ok task", _noop),
                FunctionTask("bad task", _conflict),
            )
        messages = [r.getMessage() for r in caplog.records if r.name == "apg.tasks"]
        assert any("START ok task" in m for m in messages)
        assert any("END ok task" in m for m in messages)
        assert any("ERROR bad task" in m for m in messages)


class TestMetricsHook:
    """MetricsHook counts tasks and errors per command."""

    def test_counts(self):
        collector = MetricsCollector()
        _run(
            [MetricsHook(collector, "label")],
            FunctionTask("a", _noop),
            FunctionTask("b", _noop),
            FunctionTask("c", _conflict),
        )
        assert collector.task_count("label", "success") == 2
        assert collector.task_count("label", "error") == 1
        assert collector.error_count("label", "OVERWRITE_CONFLICT") == 1
        assert collector.duration_count("label") == 3

    def test_non_registry_error_code(self):
        collector = MetricsCollector()
        _run([MetricsHook(collector, "delete")], FunctionTask("x", lambda ctx: 1 / 0))
        assert collector.error_count("delete", "ZeroDivisionError") == 1
        assert collector.task_count("delete", "success") == 0


class TestMetricsCollector:
    """Prometheus text export."""

    def test_prometheus_export(self):
        collector = MetricsCollector()
        collector.record("label", 0.02)
        text = collector.export_prometheus()
        assert "# TYPE apg_tasks_total counter" in text
        assert 'apg_tasks_total{command="label",status="success"} 1' in text
        assert 'apg_task_duration_seconds_bucket{command="label",le="0.01"} 0' in text
        assert 'apg_task_duration_seconds_bucket{command="label",le="0.025"} 1' in text
        assert 'apg_task_duration_seconds_bucket{command="label",le="+Inf"} 1' in text
        assert 'apg_task_duration_seconds_count{command="label"} 1' in text
        assert "apg_task_errors_total" not in text

    def test_error_export(self):
        collector = MetricsCollector(buckets=[1.0])
        collector.record("delete", 2.0, error_code="NOT_FOUND")
        text = collector.export_prometheus()
        assert 'apg_tasks_total{command="delete",status="error"} 1' in text
        errors = 'apg_task_errors_total{command="delete",error_code="NOT_FOUND"}'
        assert f"{errors} 1" in text
        assert 'apg_task_duration_seconds_bucket{command="delete",le="1"} 0' in text
        assert 'apg_task_duration_seconds_sum{command="delete"} 2.0' in text

    def test_empty_export(self):
        assert MetricsCollector().export_prometheus() == ""


class TestTracingHook:
    """TracingHook exports one span per task."""

    def test_spans(self):
        exporter = InMemoryExporter()
        _run(
            [TracingHook(exporter, "compute complexity")],
            FunctionTask("ok", _noop),
            FunctionTask("bad", _conflict),
        )
        spans = exporter.get_spans()
        assert [s.attributes["task"] for s in spans] == ["ok", "bad"]
        assert all(s.name == "apg.compute complexity" for s in spans)
        assert spans[0].status == "ok"
        assert spans[1].status == "error"
        assert spans[1].attributes["error_code"] == "OVERWRITE_CONFLICT"
        assert spans[0].end_time >= spans[0].start_time

    def test_in_memory_bound(self):
        exporter = InMemoryExporter(max_spans=1)
        _run(
            [TracingHook(exporter, "get")],
            FunctionTask("a", _noop),
            FunctionTask("b", _noop),
        )
        assert [s.attributes["task"] for s in exporter.get_spans()] == ["b"]
        exporter.clear()
        assert exporter.get_spans() == []

    def test_otlp_exporter_requires_extra(self):
        pytest.importorskip("opentelemetry.sdk")
        exporter = OTLPExporter(endpoint="http://localhost:4318/v1/traces")
        exporter.shutdown()
