"""Logging and tracing for prediction polling and recipe generation."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from voice_recipe.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
CORRELATED_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s span_id=%(span_id)s %(message)s"

logger = logging.getLogger(__name__)


class TraceContextFilter(logging.Filter):
    """Stamps records with the ids of the span they were logged under."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace.get_current_span().get_span_context()
        record.trace_id = format(context.trace_id, "032x") if context.is_valid else "-"
        record.span_id = format(context.span_id, "016x") if context.is_valid else "-"
        return True


@dataclass(slots=True)
class TelemetryRuntime:
    provider: TracerProvider | None = None
    instrumentor: HTTPXClientInstrumentor | None = None

    @property
    def enabled(self) -> bool:
        return self.provider is not None


def configure_logging(level: int = logging.INFO, *, correlate: bool = True) -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=CORRELATED_LOG_FORMAT if correlate else LOG_FORMAT)
    if not correlate:
        return
    for handler in root.handlers:
        if not any(isinstance(existing, TraceContextFilter) for existing in handler.filters):
            handler.addFilter(TraceContextFilter())


def build_span_processor(settings: Settings, exporter: SpanExporter | None = None) -> SpanProcessor | None:
    if exporter is not None:
        return SimpleSpanProcessor(exporter)
    if not settings.otel_exporter_otlp_endpoint:
        return None
    headers = parse_headers(settings.otel_exporter_otlp_headers)
    return BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint, headers=headers or None))


def setup_telemetry(settings: Settings, *, exporter: SpanExporter | None = None) -> TelemetryRuntime:
    """Install the global tracer provider behind ``job.poll`` and ``recipe.generate`` spans.

    ``exporter`` replaces the OTLP exporter and is flushed on every span end.
    """
    if not settings.otel_enabled:
        return TelemetryRuntime()

    provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: settings.otel_service_name, DEPLOYMENT_ENVIRONMENT: settings.environment}),
        sampler=TraceIdRatioBased(settings.otel_trace_sample_ratio),
    )
    processor = build_span_processor(settings, exporter)
    if processor is None:
        logger.info("no OTLP endpoint configured; spans for service=%s are not exported", settings.otel_service_name)
    else:
        provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)

    # Runner requests show up as children of the job.poll span that issued them.
    instrumentor = HTTPXClientInstrumentor()
    instrumentor.instrument(tracer_provider=provider)
    return TelemetryRuntime(provider=provider, instrumentor=instrumentor)


def shutdown_telemetry(runtime: TelemetryRuntime) -> None:
    if runtime.instrumentor is not None:
        runtime.instrumentor.uninstrument()
    if runtime.provider is not None:
        runtime.provider.shutdown()


def parse_headers(raw: str | None) -> dict[str, str]:
    """Parse ``key=value,key2=value2`` exporter headers, skipping malformed items."""
    pairs = (item.partition("=") for item in (raw or "").split(","))
    return {key.strip(): value.strip() for key, separator, value in pairs if separator and key.strip()}
