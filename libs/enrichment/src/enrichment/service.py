"""
Enrichment service: the in-process entry point used by controllers and jobs.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from types import TracebackType

from enrichment_cache import CacheConfig, ResultCache, create_backing_cache, get_cache_config

from .batch import BatchCoordinator
from .config import EnrichmentConfig, get_enrichment_config
from .exceptions import EnrichmentValidationError
from .metrics import MetricsSink, NullMetricsSink
from .models import EnrichmentRequest, EnrichmentResponse
from .pipeline import EnrichmentPipeline
from .registry import EnricherRegistry

logger = logging.getLogger(__name__)


def create_result_cache(
    cache_config: CacheConfig | None = None,
) -> ResultCache[EnrichmentResponse]:
    """Build a response cache on the backing store selected by the cache configuration."""
    cache_config = cache_config or get_cache_config()
    backend = create_backing_cache(cache_config) if cache_config.enabled else None
    return ResultCache(backend, EnrichmentResponse, cache_config)


class EnrichmentService:
    """Routes requests to registered pipelines and runs single or batch enrichments."""

    def __init__(
        self,
        registry: EnricherRegistry,
        config: EnrichmentConfig | None = None,
        metrics: MetricsSink | None = None,
    ):
        self.registry = registry
        self.config = config or get_enrichment_config()
        self.metrics: MetricsSink = metrics or NullMetricsSink()

    def resolve(self, request: EnrichmentRequest, provider: str | None = None) -> EnrichmentPipeline:
        """
        Find the pipeline for a request.

        Parameters:
            request (EnrichmentRequest): Request to route.
            provider (str | None): Explicit provider name; otherwise routed by enrichment type.

        Raises:
            EnrichmentValidationError: If no registered pipeline matches.
        """
        if provider:
            pipeline = self.registry.get_by_provider(provider)
            if pipeline is None:
                raise EnrichmentValidationError(f"No enrichment provider registered as '{provider}'")
            return pipeline

        pipeline = self.registry.get_for_type(request.enrichment_type)
        if pipeline is None:
            raise EnrichmentValidationError(
                f"No enrichment provider registered for type '{request.enrichment_type}'"
            )
        return pipeline

    async def enrich_one(
        self, request: EnrichmentRequest, provider: str | None = None
    ) -> EnrichmentResponse:
        return await self.resolve(request, provider).enrich(request)

    async def enrich_batch(
        self, requests: Sequence[EnrichmentRequest], provider: str | None = None
    ) -> list[EnrichmentResponse]:
        """Enrich a batch; responses come back in request order, one per request."""
        coordinator = BatchCoordinator(
            lambda request: self.resolve(request, provider), self.config, self.metrics
        )
        return await coordinator.enrich_batch(requests)

    async def aclose(self) -> None:
        """Close every distinct result cache used by the registered pipelines."""
        closed: set[int] = set()
        for pipeline in self.registry.pipelines:
            cache = pipeline.result_cache
            if cache is not None and id(cache) not in closed:
                closed.add(id(cache))
                await cache.aclose()

    async def __aenter__(self) -> EnrichmentService:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        await self.aclose()
        return False
