"""Enrichment library: merge provider data into source objects with caching and batching.

This library contains:
- Request/response models and merge policies
- The generic merge engine
- The single-item pipeline and the batch coordinator
- The pipeline registry and the enrichment service facade
- OpenTelemetry span helpers
"""

from .batch import BatchCoordinator
from .config import EnrichmentConfig, get_enrichment_config
from .exceptions import (
    BatchTooLargeError,
    EnrichmentError,
    EnrichmentValidationError,
    ProviderFetchError,
    ShapeIntrospectionError,
)
from .merge import MergeResult, apply_policy
from .metrics import MetricsSink, NullMetricsSink, PrometheusMetricsSink
from .models import EnrichmentRequest, EnrichmentResponse, MergePolicy, ProviderPayload
from .pipeline import EnrichmentPipeline, Mapper, PipelineStage, ProviderClient
from .registry import EnricherRegistry
from .service import EnrichmentService, create_result_cache
from .tracing import get_tracer, trace_span

__all__ = [
    "BatchCoordinator",
    "BatchTooLargeError",
    "EnricherRegistry",
    "EnrichmentConfig",
    "EnrichmentError",
    "EnrichmentPipeline",
    "EnrichmentRequest",
    "EnrichmentResponse",
    "EnrichmentService",
    "EnrichmentValidationError",
    "Mapper",
    "MergePolicy",
    "MergeResult",
    "MetricsSink",
    "NullMetricsSink",
    "PipelineStage",
    "PrometheusMetricsSink",
    "ProviderClient",
    "ProviderFetchError",
    "ProviderPayload",
    "ShapeIntrospectionError",
    "apply_policy",
    "create_result_cache",
    "get_enrichment_config",
    "get_tracer",
    "trace_span",
]
