"""
Root test configuration for all tests.

Provides a fake provider client, in-memory cache wiring and fast pipeline settings.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from typing import Any

import pytest

from enrichment import EnrichmentConfig, EnrichmentRequest, EnrichmentResponse, MergePolicy
from enrichment.config import get_enrichment_config
from enrichment_cache import CacheConfig, InMemoryBackingCache, ResultCache
from enrichment_cache.config import get_cache_config


class FakeProvider:
    """
    In-process provider client that records every fetch.

    Payloads are produced by `respond(request)`; `delays` maps a parameter value of
    `company_id` to an artificial latency, and `fail_with` makes every fetch raise.
    """

    def __init__(
        self,
        name: str = "Financial Data Provider",
        respond: Callable[[EnrichmentRequest], Any] | None = None,
        delays: dict[str, float] | None = None,
        fail_with: Exception | None = None,
    ):
        self.name = name
        self.respond = respond or (
            lambda request: {
                "company_id": request.parameters.get("company_id"),
                "name": "Acme Corp",
                "address": "123 Main St",
            }
        )
        self.delays = delays or {}
        self.fail_with = fail_with
        self.calls: list[EnrichmentRequest] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def fetch(self, request: EnrichmentRequest) -> Any:
        self.calls.append(request)
        delay = self.delays.get(str(request.parameters.get("company_id")), 0)
        if delay:
            await asyncio.sleep(delay)
        if self.fail_with is not None:
            raise self.fail_with
        return self.respond(request)


@pytest.fixture(autouse=True)
def reset_config_singletons() -> Generator[None, None, None]:
    """
    Clear the lru_cache'd configuration singletons around each test.

    Prevents environment-driven configuration from leaking between tests.
    """
    get_cache_config.cache_clear()
    get_enrichment_config.cache_clear()
    yield
    get_cache_config.cache_clear()
    get_enrichment_config.cache_clear()


@pytest.fixture
def enrichment_config() -> EnrichmentConfig:
    """Pipeline settings without retries and with a short default timeout."""
    return EnrichmentConfig(retry_enabled=False, default_timeout_seconds=5)


@pytest.fixture
def cache_config() -> CacheConfig:
    """In-memory cache configuration with a 10 minute TTL."""
    return CacheConfig(enabled=True, storage_type="memory", ttl_seconds=600)


@pytest.fixture
def memory_backend() -> InMemoryBackingCache:
    return InMemoryBackingCache()


@pytest.fixture
def result_cache(
    memory_backend: InMemoryBackingCache, cache_config: CacheConfig
) -> ResultCache[EnrichmentResponse]:
    """Response cache on top of the in-memory backend."""
    return ResultCache(memory_backend, EnrichmentResponse, cache_config)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def provider_factory() -> type[FakeProvider]:
    """Expose FakeProvider so tests can build providers with custom behavior."""
    return FakeProvider


@pytest.fixture
def make_request() -> Callable[..., EnrichmentRequest]:
    """
    Factory for company-profile requests.

    Returns:
        Callable taking `company_id`, `tenant_id` and any EnrichmentRequest overrides.
    """

    def _make(
        company_id: str = "12345", tenant_id: str | None = "tenant-abc", **overrides: Any
    ) -> EnrichmentRequest:
        fields: dict[str, Any] = {
            "enrichment_type": "company-profile",
            "policy": MergePolicy.ENHANCE,
            "parameters": {"company_id": company_id},
            "tenant_id": tenant_id,
        }
        fields.update(overrides)
        return EnrichmentRequest(**fields)

    return _make
