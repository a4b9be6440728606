"""
Batch coordinator for enrichment requests.

Requests are grouped by canonical key before anything is dispatched, so each
distinct key reaches its provider at most once per batch no matter how the
event loop schedules the work. The single response for a key is then fanned
out to every position that shared it, in the caller's original order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from .config import EnrichmentConfig, get_enrichment_config
from .exceptions import BatchTooLargeError
from .metrics import MetricsSink, NullMetricsSink, emit
from .models import EnrichmentRequest, EnrichmentResponse

if TYPE_CHECKING:
    from .pipeline import EnrichmentPipeline

logger = logging.getLogger(__name__)

PipelineResolver = Callable[[EnrichmentRequest], "EnrichmentPipeline"]


class BatchCoordinator:
    """Deduplicates, dispatches with bounded concurrency and reassembles a batch."""

    def __init__(
        self,
        resolve_pipeline: PipelineResolver,
        config: EnrichmentConfig | None = None,
        metrics: MetricsSink | None = None,
    ):
        """
        Parameters:
            resolve_pipeline (PipelineResolver): Returns the pipeline serving a request;
                may raise EnrichmentValidationError for unroutable requests.
            config (EnrichmentConfig | None): Supplies `max_batch_size` and `batch_parallelism`.
            metrics (MetricsSink | None): Observational sink; defaults to a no-op sink.
        """
        self.resolve_pipeline = resolve_pipeline
        self.config = config or get_enrichment_config()
        self.metrics: MetricsSink = metrics or NullMetricsSink()

    def group(
        self, requests: Sequence[EnrichmentRequest]
    ) -> tuple[dict[str, list[int]], dict[str, EnrichmentPipeline]]:
        """
        Group request positions by canonical key.

        Returns:
            A tuple of (key -> original indices in first-seen order, key -> pipeline).

        Raises:
            EnrichmentValidationError: If a request cannot be routed or is invalid for its pipeline.
        """
        groups: dict[str, list[int]] = {}
        pipelines: dict[str, EnrichmentPipeline] = {}

        for index, request in enumerate(requests):
            pipeline = self.resolve_pipeline(request)
            pipeline.validate(request)
            key = pipeline.cache_key_for(request)
            if key not in groups:
                groups[key] = []
                pipelines[key] = pipeline
            groups[key].append(index)

        return groups, pipelines

    async def enrich_batch(
        self, requests: Sequence[EnrichmentRequest]
    ) -> list[EnrichmentResponse]:
        """
        Enrich a batch of requests.

        Args:
            requests: Requests in caller order

        Returns:
            One response per request, in the same order as `requests`

        Raises:
            BatchTooLargeError: If the batch exceeds `config.max_batch_size`
            EnrichmentValidationError: If any request is invalid (raised before any I/O)
        """
        if not requests:
            return []

        if len(requests) > self.config.max_batch_size:
            raise BatchTooLargeError(len(requests), self.config.max_batch_size)

        groups, pipelines = self.group(requests)
        emit(self.metrics.record_batch, len(requests), len(groups))

        logger.info(
            f"Starting batch enrichment: batch_size={len(requests)}, unique_keys={len(groups)}, "
            f"parallelism={self.config.batch_parallelism}"
        )

        semaphore = asyncio.Semaphore(self.config.batch_parallelism)

        async def enrich_with_limit(key: str) -> EnrichmentResponse:
            # First occurrence represents every duplicate of its key
            request = requests[groups[key][0]]
            if not request.include_raw_response and any(
                requests[index].include_raw_response for index in groups[key]
            ):
                request = request.model_copy(update={"include_raw_response": True})
            async with semaphore:
                return await pipelines[key].enrich(request)

        keys = list(groups)
        results = await asyncio.gather(
            *(enrich_with_limit(key) for key in keys), return_exceptions=True
        )

        responses: list[EnrichmentResponse | None] = [None] * len(requests)
        failed = 0

        for key, result in zip(keys, results):
            representative = requests[groups[key][0]]
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error(
                    f"Unexpected error enriching {representative.enrichment_type} "
                    f"(request_id={representative.request_id}): {result}"
                )
                result = EnrichmentResponse.failed(
                    representative, pipelines[key].provider_name, str(result) or type(result).__name__
                )
            if not result.success:
                failed += len(groups[key])
            pipeline = pipelines[key]
            for index in groups[key]:
                responses[index] = result.for_request(
                    requests[index], pipeline.wants_raw(requests[index])
                )

        logger.info(
            f"Batch enrichment completed: batch_size={len(requests)}, "
            f"successful={len(requests) - failed}, failed={failed}"
        )

        return [response for response in responses if response is not None]
