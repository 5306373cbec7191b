"""OpenTelemetry tracing for turns, actions and evaluators.

Tracing is driven by the ``telemetry`` settings section. While it is
disabled the global provider is a no-op and spans cost nothing.
"""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor, SpanExporter
from opentelemetry.trace import NoOpTracerProvider

from tandem.config import TelemetryConfig

logger = logging.getLogger(__name__)

_tracer_provider: TracerProvider | NoOpTracerProvider | None = None


def _package_version() -> str:
    try:
        return pkg_version("tandem")
    except PackageNotFoundError:
        return "0.0.0"


def _span_processor(config: TelemetryConfig, exporter: SpanExporter | None) -> SpanProcessor:
    # An injected exporter is flushed per span; the OTLP one batches.
    if exporter is not None:
        return SimpleSpanProcessor(exporter)
    return BatchSpanProcessor(OTLPSpanExporter(endpoint=config.endpoint, insecure=True))


def init_tracing(
    config: TelemetryConfig,
    *,
    service_name: str = "tandem",
    exporter: SpanExporter | None = None,
) -> TracerProvider | NoOpTracerProvider:
    """Install the process-wide tracer provider described by *config*.

    Disabled telemetry installs a no-op provider. Passing *exporter*
    replaces the OTLP gRPC exporter, e.g. with an in-memory one.
    A previously installed SDK provider is shut down first.
    """
    global _tracer_provider  # noqa: PLW0603

    shutdown_tracing()
    if not config.enabled and exporter is None:
        provider: TracerProvider | NoOpTracerProvider = NoOpTracerProvider()
        logger.info("Tracing disabled for %s", service_name)
    else:
        resource = Resource.create(
            {
                "service.name": service_name,
                "service.version": _package_version(),
                "deployment.environment": config.env,
            }
        )
        provider = TracerProvider(resource=resource)
        provider.add_span_processor(_span_processor(config, exporter))
        logger.info(
            "Tracing %s -> %s (env=%s)",
            service_name,
            config.endpoint if exporter is None else type(exporter).__name__,
            config.env,
        )

    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    return provider


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


def shutdown_tracing() -> None:
    """Flush pending spans and release the SDK provider, if one is installed."""
    global _tracer_provider  # noqa: PLW0603

    if isinstance(_tracer_provider, TracerProvider):
        _tracer_provider.shutdown()
    _tracer_provider = None


__all__ = ["get_tracer", "init_tracing", "shutdown_tracing"]
