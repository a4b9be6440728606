"""
Single-item enrichment pipeline.

Stages per request:
    START -> CACHE_LOOKUP -> HIT -> DONE
                          -> MISS -> FETCH -> MAP_OR_SKIP -> MERGE -> CACHE_WRITE -> DONE
FETCH, MAP_OR_SKIP and MERGE can end in FAILED. Failures are returned as
failure responses, never raised, and are never cached.

The request timeout covers lookup, fetch, mapping and merge. The cache write
runs after it, so a slow store cannot fail an enrichment that already succeeded.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Sequence
from enum import Enum
from typing import Any, Protocol

from opentelemetry.trace import Span, Tracer

from enrichment_cache import ResultCache, build_cache_key

from .batch import BatchCoordinator
from .config import EnrichmentConfig, get_enrichment_config
from .exceptions import EnrichmentValidationError, ProviderFetchError, ShapeIntrospectionError
from .merge import MergeResult, apply_policy
from .metrics import MetricsSink, NullMetricsSink, emit
from .models import EnrichmentRequest, EnrichmentResponse, MergePolicy, ProviderPayload
from .retry import retry_with_backoff
from .tracing import (
    ATTR_CACHE_HIT,
    ATTR_POLICY,
    ATTR_PROVIDER,
    ATTR_REQUEST_ID,
    ATTR_TYPE,
    get_tracer,
    record_outcome,
    set_span_attributes,
    trace_span,
)

logger = logging.getLogger(__name__)

Mapper = Callable[[Any], Any]


class ProviderClient(Protocol):
    """External provider API client supplied by the embedding application."""

    name: str

    async def fetch(self, request: EnrichmentRequest) -> Any: ...


class PipelineStage(str, Enum):
    """Stages of the single-item pipeline."""

    START = "START"
    CACHE_LOOKUP = "CACHE_LOOKUP"
    FETCH = "FETCH"
    MAP_OR_SKIP = "MAP_OR_SKIP"
    MERGE = "MERGE"
    CACHE_WRITE = "CACHE_WRITE"
    DONE = "DONE"
    FAILED = "FAILED"


def _identity(payload: Any) -> Any:
    return payload


class EnrichmentPipeline:
    """
    Orchestrates cache lookup, provider fetch, mapping, merge and cache write for one provider.
    """

    def __init__(
        self,
        provider: ProviderClient,
        mapper: Mapper | None = None,
        target_shape: type | None = None,
        *,
        enrichment_types: Iterable[str] | None = None,
        result_cache: ResultCache[EnrichmentResponse] | None = None,
        config: EnrichmentConfig | None = None,
        metrics: MetricsSink | None = None,
        tracer: Tracer | None = None,
    ):
        """
        Create a pipeline for one provider.

        Parameters:
            provider (ProviderClient): Client whose `fetch(request)` returns the provider payload.
            mapper (Mapper | None): Converts a provider payload into the target shape; identity when omitted.
            target_shape (type | None): Pydantic model class or dataclass describing merged output; None for plain mappings.
            enrichment_types (Iterable[str] | None): Enrichment types this pipeline serves; None accepts any type.
            result_cache (ResultCache | None): Shared cache of successful responses; None disables caching.
            config (EnrichmentConfig | None): Pipeline configuration; defaults to get_enrichment_config().
            metrics (MetricsSink | None): Observational sink; defaults to a no-op sink.
            tracer (Tracer | None): OpenTelemetry tracer; defaults to the global "enrichment" tracer.
        """
        self.provider = provider
        self.mapper = mapper or _identity
        self.target_shape = target_shape
        self.enrichment_types: tuple[str, ...] | None = (
            tuple(enrichment_types) if enrichment_types is not None else None
        )
        self.result_cache = result_cache
        self.config = config or get_enrichment_config()
        self.metrics: MetricsSink = metrics or NullMetricsSink()
        self.tracer = tracer or get_tracer()

        if self.config.verbose_logging:
            self.config.log_configuration()

    @property
    def provider_name(self) -> str:
        return self.provider.name

    def supports(self, enrichment_type: str) -> bool:
        return self.enrichment_types is None or enrichment_type in self.enrichment_types

    def wants_raw(self, request: EnrichmentRequest) -> bool:
        """Whether responses to `request` carry the raw provider payload."""
        return request.include_raw_response or self.config.capture_raw_responses

    def validate(self, request: EnrichmentRequest) -> None:
        """
        Reject requests this pipeline cannot serve, before any I/O.

        Raises:
            EnrichmentValidationError: If the enrichment type is not supported.
        """
        if not self.supports(request.enrichment_type):
            raise EnrichmentValidationError(
                f"Provider '{self.provider_name}' does not support enrichment type "
                f"'{request.enrichment_type}' (supported: {', '.join(self.enrichment_types or ())})"
            )

    def cache_key_for(self, request: EnrichmentRequest) -> str:
        """Canonical key identifying the request's tenant, provider, type and parameters."""
        prefix = self.result_cache.config.key_prefix if self.result_cache else "enrichment"
        return build_cache_key(
            request.tenant_id,
            self.provider_name,
            request.enrichment_type,
            request.parameters,
            prefix=prefix,
        )

    async def enrich(self, request: EnrichmentRequest) -> EnrichmentResponse:
        """
        Enrich a single request.

        Returns:
            EnrichmentResponse: success response, cached response stamped for this request,
            or a failure response with `error` populated.

        Raises:
            EnrichmentValidationError: If the request is not valid for this pipeline.
        """
        self.validate(request)

        timeout = request.timeout_seconds or self.config.default_timeout_seconds
        start_time = time.monotonic()
        attributes = {
            ATTR_PROVIDER: self.provider_name,
            ATTR_TYPE: request.enrichment_type,
            ATTR_POLICY: request.policy.value,
            ATTR_REQUEST_ID: request.request_id,
        }

        with trace_span(self.tracer, f"enrich-{request.enrichment_type}", attributes) as span:
            cache_entry: tuple[str, EnrichmentResponse] | None = None
            try:
                if timeout:
                    response, cache_entry = await asyncio.wait_for(
                        self._run(request, start_time, span), timeout=timeout
                    )
                else:
                    response, cache_entry = await self._run(request, start_time, span)
            except asyncio.TimeoutError:
                response = self._timed_out(request, timeout, start_time)

            if cache_entry is not None:
                await self._store(*cache_entry)

            record_outcome(span, response.success, response.fields_enriched, response.error)
            return response

    async def enrich_batch(self, requests: Sequence[EnrichmentRequest]) -> list[EnrichmentResponse]:
        """Enrich a batch through this pipeline, deduplicating identical requests."""
        coordinator = BatchCoordinator(lambda _request: self, self.config, self.metrics)
        return await coordinator.enrich_batch(requests)

    async def _run(
        self, request: EnrichmentRequest, start_time: float, span: Span
    ) -> tuple[EnrichmentResponse, tuple[str, EnrichmentResponse] | None]:
        """Run the pipeline; returns the response and the (key, entry) to cache, if any."""
        stage = PipelineStage.START
        key = self.cache_key_for(request)
        include_raw = self.wants_raw(request)
        use_cache = (
            self.result_cache is not None
            and self.result_cache.enabled
            and not request.bypass_cache
        )

        if use_cache:
            assert self.result_cache is not None
            stage = PipelineStage.CACHE_LOOKUP
            cached = await self.result_cache.get(key)
            emit(
                self.metrics.record_cache_lookup,
                self.provider_name,
                request.enrichment_type,
                cached is not None,
            )
            set_span_attributes(span, {ATTR_CACHE_HIT: cached is not None})
            if cached is not None:
                logger.debug(
                    f"Cache HIT for enrichment: type={request.enrichment_type}, "
                    f"provider={self.provider_name}, tenant={request.tenant_id}"
                )
                return cached.for_request(request, include_raw), None
            logger.debug(
                f"Cache MISS for enrichment: type={request.enrichment_type}, "
                f"provider={self.provider_name}, tenant={request.tenant_id}"
            )

        stage = PipelineStage.FETCH
        try:
            payload = await self._fetch(request)
        except Exception as e:
            return self._failure(request, stage, e, start_time), None

        envelope = payload if isinstance(payload, ProviderPayload) else ProviderPayload(data=payload)

        stage = PipelineStage.MAP_OR_SKIP
        try:
            if request.policy is MergePolicy.RAW:
                # RAW bypasses both mapping and the field merge
                result = MergeResult(data=envelope.data, fields_changed=0)
                if self.config.count_raw_diff:
                    result = apply_policy(
                        MergePolicy.RAW, request.source, envelope.data, count_raw_diff=True
                    )
            else:
                mapped = self.mapper(envelope.data)
                stage = PipelineStage.MERGE
                result = apply_policy(request.policy, request.source, mapped, self.target_shape)

            # Raw payload is always kept on the shared result; stamping decides who sees it
            shared = EnrichmentResponse.succeeded(
                request,
                self.provider_name,
                result.data,
                result.fields_changed,
                raw_response=envelope.data,
                confidence_score=envelope.confidence_score,
                cost=envelope.cost,
                cost_currency=envelope.cost_currency,
                metadata=envelope.metadata,
            )
        except ShapeIntrospectionError as e:
            return self._failure(request, PipelineStage.MERGE, e, start_time), None
        except Exception as e:
            return self._failure(request, stage, e, start_time), None

        response = shared.for_request(request, include_raw)

        duration = time.monotonic() - start_time
        emit(
            self.metrics.record_enrichment,
            self.provider_name,
            request.enrichment_type,
            True,
            duration,
            response.fields_enriched,
            response.cost,
        )
        logger.info(
            f"Enrichment completed: type={request.enrichment_type}, provider={self.provider_name}, "
            f"policy={request.policy.value}, fields={response.fields_enriched}, "
            f"duration={duration * 1000:.0f}ms, request_id={request.request_id}"
        )
        return response, ((key, shared.for_cache()) if use_cache else None)

    async def _store(self, key: str, entry: EnrichmentResponse) -> None:
        assert self.result_cache is not None
        logger.debug(f"{PipelineStage.CACHE_WRITE.value}: key={key}")
        await self.result_cache.put(key, entry, self.result_cache.config.ttl_for(self.provider_name))

    async def _fetch(self, request: EnrichmentRequest) -> Any:
        if not self.config.retry_enabled:
            return await self.provider.fetch(request)

        try:
            return await retry_with_backoff(
                lambda: self.provider.fetch(request),
                max_retries=self.config.max_retry_attempts,
                retry_delay=self.config.retry_delay,
                description=f"{self.provider_name} fetch",
            )
        except (asyncio.TimeoutError, ConnectionError) as e:
            raise ProviderFetchError(f"{type(e).__name__}: {e}") from e

    def _timed_out(
        self, request: EnrichmentRequest, timeout: float, start_time: float
    ) -> EnrichmentResponse:
        duration = time.monotonic() - start_time
        logger.warning(
            f"Enrichment timed out after {timeout}s: type={request.enrichment_type}, "
            f"provider={self.provider_name}, request_id={request.request_id}"
        )
        emit(
            self.metrics.record_enrichment_error,
            self.provider_name,
            request.enrichment_type,
            "TimeoutError",
            duration,
        )
        return EnrichmentResponse.failed(
            request, self.provider_name, f"Enrichment timed out after {timeout}s"
        )

    def _failure(
        self,
        request: EnrichmentRequest,
        stage: PipelineStage,
        error: Exception,
        start_time: float,
    ) -> EnrichmentResponse:
        duration = time.monotonic() - start_time
        error_type = type(error).__name__
        logger.warning(
            f"Enrichment failed at {stage.value}: type={request.enrichment_type}, "
            f"provider={self.provider_name}, error={error}, request_id={request.request_id}"
        )
        emit(
            self.metrics.record_enrichment_error,
            self.provider_name,
            request.enrichment_type,
            error_type,
            duration,
        )
        emit(
            self.metrics.record_enrichment,
            self.provider_name,
            request.enrichment_type,
            False,
            duration,
            0,
            None,
        )
        return EnrichmentResponse.failed(request, self.provider_name, str(error) or error_type)
