"""OpenTelemetry bootstrap and lifecycle spans."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

_TRACER_NAME = "asterisk_harness"
_ENDPOINT_ENVS = ("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "OTEL_EXPORTER_OTLP_ENDPOINT")
_configured = False


def _otlp_endpoint() -> str | None:
    for name in _ENDPOINT_ENVS:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return None


def configure_tracing(*, service_name: str) -> bool:
    """Export lifecycle spans over OTLP/HTTP when an endpoint is configured.

    Returns True when a tracer provider was installed. Only the first call does
    anything. ``OTEL_TRACES_EXPORTER=none`` turns export off; naming any other
    exporter without an endpoint is a configuration error.
    """

    global _configured
    if _configured:
        return False

    exporter = (os.getenv("OTEL_TRACES_EXPORTER") or "").strip().lower()
    endpoint = _otlp_endpoint()
    if exporter != "none" and exporter and endpoint is None:
        raise RuntimeError(
            f"OTEL_TRACES_EXPORTER={exporter} needs one of {', '.join(_ENDPOINT_ENVS)}"
        )

    _configured = True
    if exporter == "none" or endpoint is None:
        logger.debug("span export disabled")
        return False

    name = (os.getenv("OTEL_SERVICE_NAME") or "").strip() or service_name
    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)
    logger.info("span export enabled", extra={"data": {"endpoint": endpoint, "service": name}})
    return True


@contextmanager
def lifecycle_span(name: str, attributes: Mapping[str, str | int | None]) -> Iterator[trace.Span]:
    """Wrap one lifecycle step of an instance in a span."""

    tracer = trace.get_tracer(_TRACER_NAME)
    clean = {key: value for key, value in attributes.items() if value is not None}
    with tracer.start_as_current_span(f"asterisk.{name}", attributes=clean) as span:
        yield span


__all__ = ["configure_tracing", "lifecycle_span"]
