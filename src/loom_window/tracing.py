"""OpenTelemetry setup for loom-window.

``window.truncate`` and ``window.ensure_fit`` spans go through the global
tracer provider and are no-ops until ``init_telemetry`` installs one.

Settings resolve in order: explicit arguments, the ``[telemetry]`` table of
loom-window.toml, ``OTEL_SERVICE_NAME`` / ``OTEL_EXPORTER_OTLP_ENDPOINT``,
then built-in defaults.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter

from . import __version__
from .config import WindowConfig

DEFAULT_SERVICE_NAME = "loom-window"
DEFAULT_OTLP_ENDPOINT = "http://localhost:4317"

_provider: Optional[TracerProvider] = None


def _resolve(explicit: Optional[str], configured: Optional[str], env: str, default: str) -> str:
    return explicit or configured or os.getenv(env) or default


def init_telemetry(
    service_name: Optional[str] = None,
    otlp_endpoint: Optional[str] = None,
    config: Optional[WindowConfig] = None,
    exporter: Optional[SpanExporter] = None,
) -> TracerProvider:
    """Install a tracer provider exporting truncation spans.

    Calling it again before ``shutdown_telemetry`` returns the installed
    provider unchanged.

    Args:
        service_name: Service name for traces
        otlp_endpoint: OTLP gRPC collector endpoint
        config: Configuration supplying [telemetry] defaults
        exporter: Span exporter to use instead of OTLP

    Returns:
        The active TracerProvider
    """
    global _provider
    if _provider is not None:
        return _provider

    service_name = _resolve(
        service_name,
        config.service_name if config else None,
        "OTEL_SERVICE_NAME",
        DEFAULT_SERVICE_NAME,
    )

    if exporter is None:
        otlp_endpoint = _resolve(
            otlp_endpoint,
            config.otlp_endpoint if config else None,
            "OTEL_EXPORTER_OTLP_ENDPOINT",
            DEFAULT_OTLP_ENDPOINT,
        )
        exporter = OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": service_name,
                "service.version": __version__,
            }
        )
    )
    # Truncation calls are short; flush every second in small batches
    provider.add_span_processor(
        BatchSpanProcessor(exporter, schedule_delay_millis=1000, max_export_batch_size=128)
    )
    trace.set_tracer_provider(provider)

    _provider = provider
    logging.info(
        "[loom-window] Telemetry initialized: service=%s, exporter=%s",
        service_name,
        otlp_endpoint or type(exporter).__name__,
    )
    return provider


def shutdown_telemetry() -> None:
    """Flush pending spans and release the provider installed by init_telemetry."""
    global _provider
    if _provider is None:
        return

    _provider.shutdown()
    _provider = None
    logging.info("[loom-window] Telemetry shutdown complete")


__all__ = ["init_telemetry", "shutdown_telemetry"]
