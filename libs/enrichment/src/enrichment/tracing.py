"""
OpenTelemetry tracing for enrichments.

Every pipeline run is wrapped in an ``enrich-<type>`` span. Spans go to the
globally configured tracer provider unless a tracer is injected; without an
SDK configured the OpenTelemetry API hands out no-op spans.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode, Tracer

logger = logging.getLogger(__name__)

TRACER_NAME = "enrichment"

ATTR_PROVIDER = "enrichment.provider"
ATTR_TYPE = "enrichment.type"
ATTR_POLICY = "enrichment.policy"
ATTR_REQUEST_ID = "enrichment.request_id"
ATTR_CACHE_HIT = "enrichment.cache_hit"
ATTR_SUCCESS = "enrichment.success"
ATTR_FIELDS_ENRICHED = "enrichment.fields_enriched"


def get_tracer() -> Tracer:
    """Get the enrichment tracer from the global tracer provider."""
    return trace.get_tracer(TRACER_NAME)


@contextmanager
def trace_span(tracer: Tracer, name: str, attributes: dict[str, Any] | None = None) -> Iterator[Span]:
    """Create a trace span context."""
    with tracer.start_as_current_span(name, attributes=attributes) as span:
        yield span


def set_span_attributes(span: Span, attributes: dict[str, Any]) -> None:
    """Attach attributes to a span, logging instead of propagating tracing failures."""
    try:
        span.set_attributes(attributes)
    except Exception as e:
        logger.warning(f"Failed to set span attributes: {e}")


def record_outcome(span: Span, success: bool, fields_enriched: int, error: str | None) -> None:
    """Record the result of an enrichment on its span."""
    set_span_attributes(span, {ATTR_SUCCESS: success, ATTR_FIELDS_ENRICHED: fields_enriched})
    if success:
        return
    try:
        span.set_status(Status(StatusCode.ERROR, error))
    except Exception as e:
        logger.warning(f"Failed to set span status: {e}")
