"""OpenTelemetry + Prometheus fallback wiring for codex-replay."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from codex_replay import config

logger = logging.getLogger("codex_replay.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_parse_counter: Any | None = None
_parse_latency_hist: Any | None = None
_parse_turns_hist: Any | None = None
_parser_failure_counter: Any | None = None
_rpc_calls_counter: Any | None = None

_prom_enabled = False
_prom_parse_counter: Any | None = None
_prom_parse_latency_hist: Any | None = None
_prom_parse_turns_hist: Any | None = None
_prom_parser_failure_counter: Any | None = None
_prom_rpc_calls_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _label(value: str | None) -> str:
    return (value or "").strip() or "unknown"


def _start_prometheus() -> None:
    global _prom_enabled
    global _prom_parse_counter, _prom_parse_latency_hist, _prom_parse_turns_hist
    global _prom_parser_failure_counter, _prom_rpc_calls_counter

    try:
        from prometheus_client import Counter, Histogram, start_http_server

        start_http_server(config.PROM_PORT)
        _prom_parse_counter = Counter(
            "codex_replay_parses_total",
            "Count of transcripts reconstructed",
            ["path"],
        )
        _prom_parse_latency_hist = Histogram(
            "codex_replay_parse_latency_ms",
            "Latency for transcript ingestion and reconstruction",
            ["path"],
        )
        _prom_parse_turns_hist = Histogram(
            "codex_replay_parse_turns",
            "Turns produced per reconstructed transcript",
            ["path"],
        )
        _prom_parser_failure_counter = Counter(
            "codex_replay_parser_failures_total",
            "Count of transcripts rejected by the parser",
            ["error"],
        )
        _prom_rpc_calls_counter = Counter(
            "codex_replay_rpc_calls_total",
            "Read-only RPC calls answered from the loaded transcript",
            ["method", "result"],
        )
        _prom_enabled = True
        logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Prometheus fallback not started: %s", exc)
        _prom_enabled = False


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _parse_counter, _parse_latency_hist, _parse_turns_hist
    global _parser_failure_counter, _rpc_calls_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if config.PROM_PORT > 0:
        _start_prometheus()

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (CODEX_REPLAY_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "codex-replay"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "codex-replay",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("codex_replay")

    _parse_counter = meter.create_counter(
        "codex_replay_parses_total",
        unit="1",
        description="Count of transcripts reconstructed",
    )
    _parse_latency_hist = meter.create_histogram(
        "codex_replay_parse_latency_ms",
        unit="ms",
        description="Latency for transcript ingestion and reconstruction",
    )
    _parse_turns_hist = meter.create_histogram(
        "codex_replay_parse_turns",
        unit="1",
        description="Turns produced per reconstructed transcript",
    )
    _parser_failure_counter = meter.create_counter(
        "codex_replay_parser_failures_total",
        unit="1",
        description="Count of transcripts rejected by the parser",
    )
    _rpc_calls_counter = meter.create_counter(
        "codex_replay_rpc_calls_total",
        unit="1",
        description="Read-only RPC calls answered from the loaded transcript",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = trace.get_tracer("codex_replay")
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception:  # noqa: BLE001
        logger.debug("FastAPI uninstrumentation failed", exc_info=True)
    for provider in (_meter_provider, _trace_provider):
        try:
            if provider is not None:
                provider.shutdown()
        except Exception:  # noqa: BLE001
            logger.debug("Telemetry provider shutdown failed", exc_info=True)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_parse(path: str, duration_ms: float, *, turns: int) -> None:
    """Record one successful reconstruction; `path` is `events` or `fallback`."""
    labels = {"path": _label(path)}
    if _enabled and _parse_counter is not None:
        _parse_counter.add(1, labels)
    if _enabled and _parse_latency_hist is not None:
        _parse_latency_hist.record(max(0.0, float(duration_ms)), labels)
    if _enabled and _parse_turns_hist is not None:
        _parse_turns_hist.record(max(0, int(turns)), labels)
    if _prom_enabled and _prom_parse_counter is not None:
        _prom_parse_counter.labels(**labels).inc()
    if _prom_enabled and _prom_parse_latency_hist is not None:
        _prom_parse_latency_hist.labels(**labels).observe(max(0.0, float(duration_ms)))
    if _prom_enabled and _prom_parse_turns_hist is not None:
        _prom_parse_turns_hist.labels(**labels).observe(max(0, int(turns)))


def record_parser_failure(error: str) -> None:
    labels = {"error": _label(error)}
    if _enabled and _parser_failure_counter is not None:
        _parser_failure_counter.add(1, labels)
    if _prom_enabled and _prom_parser_failure_counter is not None:
        _prom_parser_failure_counter.labels(**labels).inc()


def record_rpc_call(method: str, result: str) -> None:
    labels = {"method": _label(method), "result": _label(result)}
    if _enabled and _rpc_calls_counter is not None:
        _rpc_calls_counter.add(1, labels)
    if _prom_enabled and _prom_rpc_calls_counter is not None:
        _prom_rpc_calls_counter.labels(**labels).inc()
