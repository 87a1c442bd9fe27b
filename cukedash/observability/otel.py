"""OpenTelemetry + Prometheus fallback wiring for the cukedash backend."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from cukedash import config

logger = logging.getLogger("cukedash.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_rebuild_counter: Any | None = None
_rebuild_latency_hist: Any | None = None
_parser_failure_counter: Any | None = None
_resolution_counter: Any | None = None

_prom_enabled = False
_prom_rebuild_counter: Any | None = None
_prom_rebuild_latency_hist: Any | None = None
_prom_indexed_features_gauge: Any | None = None
_prom_parser_failure_counter: Any | None = None
_prom_resolution_counter: Any | None = None


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


def _label(value: str) -> str:
    return (value or "").strip() or "unknown"


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _rebuild_counter, _rebuild_latency_hist, _parser_failure_counter, _resolution_counter
    global _prom_enabled
    global _prom_rebuild_counter, _prom_rebuild_latency_hist, _prom_indexed_features_gauge
    global _prom_parser_failure_counter, _prom_resolution_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (CUKEDASH_OTEL_ENABLED=false)")
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
    service_name = config.OTEL_SERVICE_NAME or "cukedash-backend"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "cukedash",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_exporter = OTLPSpanExporter(endpoint=traces_endpoint or None)
    trace_provider.add_span_processor(BatchSpanProcessor(trace_exporter))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("cukedash.backend")

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("cukedash.backend")

    _rebuild_counter = meter.create_counter(
        "cukedash_index_rebuilds_total",
        unit="1",
        description="Count of feature index rebuilds",
    )
    _rebuild_latency_hist = meter.create_histogram(
        "cukedash_index_rebuild_latency_ms",
        unit="ms",
        description="Latency of full feature index rebuilds",
    )
    _parser_failure_counter = meter.create_counter(
        "cukedash_parser_failures_total",
        unit="1",
        description="Count of feature documents that could not be read",
    )
    _resolution_counter = meter.create_counter(
        "cukedash_reference_resolutions_total",
        unit="1",
        description="Reference resolution outcomes by strategy",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, Gauge, Histogram, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_enabled = True
            _prom_rebuild_counter = Counter(
                "cukedash_index_rebuilds_total",
                "Count of feature index rebuilds",
                ["result"],
            )
            _prom_rebuild_latency_hist = Histogram(
                "cukedash_index_rebuild_latency_ms",
                "Latency of full feature index rebuilds",
                ["result"],
            )
            _prom_indexed_features_gauge = Gauge(
                "cukedash_indexed_features",
                "Number of feature records currently indexed",
            )
            _prom_parser_failure_counter = Counter(
                "cukedash_parser_failures_total",
                "Count of feature documents that could not be read",
                ["parser"],
            )
            _prom_resolution_counter = Counter(
                "cukedash_reference_resolutions_total",
                "Reference resolution outcomes by strategy",
                ["strategy", "result"],
            )
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False

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
    except Exception as exc:  # noqa: BLE001
        logger.debug("FastAPI uninstrument failed: %s", exc)
    try:
        if _meter_provider is not None:
            _meter_provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Meter provider shutdown failed: %s", exc)
    try:
        if _trace_provider is not None:
            _trace_provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Trace provider shutdown failed: %s", exc)
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


def record_rebuild(result: str, duration_ms: float, *, feature_count: int = 0) -> None:
    labels = {"result": _label(result)}
    if _enabled and _rebuild_counter is not None:
        _rebuild_counter.add(1, labels)
    if _enabled and _rebuild_latency_hist is not None:
        _rebuild_latency_hist.record(max(0.0, float(duration_ms)), labels)
    if _prom_enabled and _prom_rebuild_counter is not None:
        _prom_rebuild_counter.labels(**labels).inc()
    if _prom_enabled and _prom_rebuild_latency_hist is not None:
        _prom_rebuild_latency_hist.labels(**labels).observe(max(0.0, float(duration_ms)))
    if _prom_enabled and _prom_indexed_features_gauge is not None:
        if result == "success":
            _prom_indexed_features_gauge.set(max(0, int(feature_count)))
        elif result == "empty":
            _prom_indexed_features_gauge.set(0)


def record_parser_failure(parser: str) -> None:
    labels = {"parser": _label(parser)}
    if _enabled and _parser_failure_counter is not None:
        _parser_failure_counter.add(1, labels)
    if _prom_enabled and _prom_parser_failure_counter is not None:
        _prom_parser_failure_counter.labels(**labels).inc()


def record_resolution(strategy: str, result: str) -> None:
    labels = {"strategy": _label(strategy), "result": _label(result)}
    if _enabled and _resolution_counter is not None:
        _resolution_counter.add(1, labels)
    if _prom_enabled and _prom_resolution_counter is not None:
        _prom_resolution_counter.labels(**labels).inc()
