from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
import logging
import os
from urllib.parse import unquote

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from jobly.core.config import Settings

CORRELATED_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s span_id=%(span_id)s %(message)s"
PLAIN_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
UNTRACED_URLS = "healthz,readyz"
OTLP_ENDPOINT_ENV_VARS = ("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "OTEL_EXPORTER_OTLP_ENDPOINT")

logger = logging.getLogger(__name__)
_tracer = trace.get_tracer("jobly")


@dataclass(slots=True)
class TelemetryRuntime:
    enabled: bool
    provider: TracerProvider | None


class TraceContextFilter(logging.Filter):
    """Stamps the active span's ids onto records; zeros when no span is recording."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace.get_current_span().get_span_context()
        record.trace_id = format(context.trace_id, "032x") if context.is_valid else "0" * 32
        record.span_id = format(context.span_id, "016x") if context.is_valid else "0" * 16
        return True


def configure_api_logging(settings: Settings) -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=logging.INFO,
            format=CORRELATED_LOG_FORMAT if settings.otel_log_correlation else PLAIN_LOG_FORMAT,
        )
    if not settings.otel_log_correlation:
        return
    for handler in root.handlers:
        if not any(isinstance(existing, TraceContextFilter) for existing in handler.filters):
            handler.addFilter(TraceContextFilter())


def setup_api_telemetry(app: FastAPI, settings: Settings) -> TelemetryRuntime:
    if not settings.otel_enabled:
        logger.info("tracing disabled service=%s", settings.otel_service_name)
        return TelemetryRuntime(enabled=False, provider=None)

    provider = TracerProvider(
        resource=Resource.create(
            {
                SERVICE_NAME: settings.otel_service_name,
                SERVICE_VERSION: settings.app_version,
                DEPLOYMENT_ENVIRONMENT: settings.environment,
            }
        ),
        sampler=ParentBased(TraceIdRatioBased(settings.otel_trace_sample_ratio)),
    )
    exporter = build_span_exporter(settings)
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls=UNTRACED_URLS)
    return TelemetryRuntime(enabled=True, provider=provider)


def shutdown_api_telemetry(app: FastAPI, runtime: TelemetryRuntime) -> None:
    if not runtime.enabled:
        return
    FastAPIInstrumentor.uninstrument_app(app)
    if runtime.provider is not None:
        runtime.provider.force_flush()
        runtime.provider.shutdown()


def build_span_exporter(settings: Settings) -> OTLPSpanExporter | None:
    """Return an OTLP exporter, or ``None`` when no endpoint is configured anywhere.

    An explicit ``JOBLY_OTEL_EXPORTER_OTLP_*`` setting wins. Otherwise the
    exporter resolves the standard ``OTEL_EXPORTER_OTLP_*`` variables itself,
    including the ``/v1/traces`` suffix on the generic endpoint.
    """
    endpoint = settings.otel_exporter_otlp_endpoint
    if not endpoint and not any(os.getenv(name) for name in OTLP_ENDPOINT_ENV_VARS):
        logger.info("no OTLP endpoint configured; spans stay in-process service=%s", settings.otel_service_name)
        return None

    headers = parse_otlp_headers(settings.otel_exporter_otlp_headers)
    return OTLPSpanExporter(endpoint=endpoint or None, headers=headers or None)


def parse_otlp_headers(raw: str | None) -> dict[str, str]:
    """Parse ``key=value,key2=value2``; keys and values may be percent-encoded."""
    if not raw:
        return {}
    headers: dict[str, str] = {}
    for item in raw.split(","):
        key, separator, value = item.partition("=")
        key = unquote(key.strip())
        if separator and key:
            headers[key] = unquote(value.strip())
    return headers


@contextmanager
def traced(name: str, **attributes: str | int | bool) -> Iterator[trace.Span]:
    with _tracer.start_as_current_span(name, attributes=attributes) as span:
        yield span
