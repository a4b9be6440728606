"""
Metrics sinks for enrichment observability.

Metrics are fire-and-forget: a failing sink is logged and never changes the
outcome of an enrichment.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

logger = logging.getLogger(__name__)


class MetricsSink(Protocol):
    """Observational hooks called by the pipeline and batch coordinator."""

    def record_cache_lookup(self, provider: str, enrichment_type: str, hit: bool) -> None: ...

    def record_enrichment(
        self,
        provider: str,
        enrichment_type: str,
        success: bool,
        duration_seconds: float,
        fields_enriched: int,
        cost: float | None,
    ) -> None: ...

    def record_enrichment_error(
        self, provider: str, enrichment_type: str, error_type: str, duration_seconds: float
    ) -> None: ...

    def record_batch(self, size: int, unique_keys: int) -> None: ...


class NullMetricsSink:
    """Sink that discards every measurement."""

    def record_cache_lookup(self, provider: str, enrichment_type: str, hit: bool) -> None:
        pass

    def record_enrichment(
        self,
        provider: str,
        enrichment_type: str,
        success: bool,
        duration_seconds: float,
        fields_enriched: int,
        cost: float | None,
    ) -> None:
        pass

    def record_enrichment_error(
        self, provider: str, enrichment_type: str, error_type: str, duration_seconds: float
    ) -> None:
        pass

    def record_batch(self, size: int, unique_keys: int) -> None:
        pass


class PrometheusMetricsSink:
    """Prometheus-backed sink.

    Pass a dedicated CollectorRegistry when more than one sink lives in a process
    (e.g. in tests); metric names can only be registered once per registry.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY, namespace: str = "enrichment"):
        self.cache_lookups = Counter(
            "cache_lookups_total",
            "Result cache lookups by outcome",
            ["provider", "enrichment_type", "result"],
            namespace=namespace,
            registry=registry,
        )
        self.enrichments = Counter(
            "requests_total",
            "Completed enrichments by outcome",
            ["provider", "enrichment_type", "success"],
            namespace=namespace,
            registry=registry,
        )
        self.duration = Histogram(
            "duration_seconds",
            "Enrichment duration in seconds",
            ["provider", "enrichment_type"],
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            namespace=namespace,
            registry=registry,
        )
        self.fields_enriched = Histogram(
            "fields_enriched",
            "Number of fields changed or added per enrichment",
            ["provider", "enrichment_type"],
            buckets=[0, 1, 2, 5, 10, 20, 50],
            namespace=namespace,
            registry=registry,
        )
        self.cost = Counter(
            "cost_total",
            "Accumulated provider cost reported by enrichments",
            ["provider", "enrichment_type"],
            namespace=namespace,
            registry=registry,
        )
        self.errors = Counter(
            "errors_total",
            "Enrichment errors by type",
            ["provider", "enrichment_type", "error_type"],
            namespace=namespace,
            registry=registry,
        )
        self.batch_size = Histogram(
            "batch_size",
            "Number of requests per batch",
            buckets=[1, 5, 10, 25, 50, 100],
            namespace=namespace,
            registry=registry,
        )
        self.batch_unique_keys = Histogram(
            "batch_unique_keys",
            "Number of distinct canonical keys per batch",
            buckets=[1, 5, 10, 25, 50, 100],
            namespace=namespace,
            registry=registry,
        )

    def record_cache_lookup(self, provider: str, enrichment_type: str, hit: bool) -> None:
        self.cache_lookups.labels(provider, enrichment_type, "hit" if hit else "miss").inc()

    def record_enrichment(
        self,
        provider: str,
        enrichment_type: str,
        success: bool,
        duration_seconds: float,
        fields_enriched: int,
        cost: float | None,
    ) -> None:
        self.enrichments.labels(provider, enrichment_type, str(success).lower()).inc()
        self.duration.labels(provider, enrichment_type).observe(duration_seconds)
        if success:
            self.fields_enriched.labels(provider, enrichment_type).observe(fields_enriched)
        if cost:
            self.cost.labels(provider, enrichment_type).inc(cost)

    def record_enrichment_error(
        self, provider: str, enrichment_type: str, error_type: str, duration_seconds: float
    ) -> None:
        self.errors.labels(provider, enrichment_type, error_type).inc()

    def record_batch(self, size: int, unique_keys: int) -> None:
        self.batch_size.observe(size)
        self.batch_unique_keys.observe(unique_keys)


def emit(record: Callable[..., Any], *args: Any) -> None:
    """Call a sink method, logging instead of propagating sink failures."""
    try:
        record(*args)
    except Exception as e:
        logger.warning(f"Metrics sink {getattr(record, '__name__', record)} failed: {e}")
