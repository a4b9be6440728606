"""
Cache configuration for enrichment results.

Supports a Redis backend for production and an in-memory backend for local runs and tests.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheConfig(BaseSettings):
    """Result cache configuration for the enrichment pipeline."""

    model_config = SettingsConfigDict(
        env_prefix="ENRICHMENT_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    enabled: bool = Field(
        default=True,
        description="Enable caching of successful enrichment results",
    )

    storage_type: Literal["redis", "memory"] = Field(
        default="redis", description="Cache storage backend type"
    )

    # Redis configuration
    redis_url: str | None = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    # TTLs (in seconds)
    ttl_seconds: int = Field(
        default=3600, description="Default TTL for cached enrichment results - 1 hour"
    )
    provider_ttls: dict[str, int] = Field(
        default_factory=dict,
        description="Per-provider TTL overrides keyed by lowercase provider name",
    )

    # Cache key configuration
    key_prefix: str = Field(
        default="enrichment", description="Prefix for every enrichment cache key"
    )

    # Redis connection pool configuration
    redis_max_connections: int = Field(
        default=100,
        description="Max Redis connections (batch parallelism x concurrent batches)",
    )
    redis_socket_keepalive: bool = Field(
        default=True,
        description="Enable TCP keepalive to detect stale connections",
    )
    redis_socket_connect_timeout: int = Field(
        default=5,
        description="Connection timeout in seconds (fail-fast on unreachable Redis)",
    )
    redis_socket_timeout: int = Field(
        default=10,
        description="Socket read/write timeout in seconds",
    )
    redis_retry_on_timeout: bool = Field(
        default=True,
        description="Retry operations on timeout (safe for idempotent cache operations)",
    )
    redis_health_check_interval: int = Field(
        default=30,
        description="Health check interval in seconds (0=disabled)",
    )

    @field_validator("ttl_seconds")
    @classmethod
    def validate_ttl(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Cache TTL must be non-negative")
        return v

    @field_validator("provider_ttls")
    @classmethod
    def validate_provider_ttls(cls, v: dict[str, int]) -> dict[str, int]:
        """
        Normalize provider names to lowercase and reject negative TTLs.

        Raises:
            ValueError: If any provider TTL is negative.
        """
        normalized: dict[str, int] = {}
        for provider, ttl in v.items():
            if ttl < 0:
                raise ValueError(f"TTL for provider '{provider}' must be non-negative")
            normalized[provider.lower()] = ttl
        return normalized

    def ttl_for(self, provider_name: str) -> int:
        """
        Retrieve the TTL in seconds for the given provider.

        Returns:
            ttl_seconds (int): The provider override when configured, otherwise `ttl_seconds`.
        """
        return self.provider_ttls.get(provider_name.lower(), self.ttl_seconds)


@lru_cache
def get_cache_config() -> CacheConfig:
    """Get cached CacheConfig instance populated from environment variables.

    Environment variables are automatically read by Pydantic BaseSettings:
        ENRICHMENT_CACHE_ENABLED (default: true)
        ENRICHMENT_CACHE_STORAGE_TYPE (default: "redis")
        ENRICHMENT_CACHE_REDIS_URL (default: "redis://localhost:6379/0")
        ENRICHMENT_CACHE_TTL_SECONDS (default: 3600)
        ENRICHMENT_CACHE_PROVIDER_TTLS (JSON object, default: {})
        ENRICHMENT_CACHE_KEY_PREFIX (default: "enrichment")
        ENRICHMENT_CACHE_REDIS_MAX_CONNECTIONS (default: 100)

    Returns:
        Cached CacheConfig instance.

    Note:
        Uses @lru_cache for singleton pattern. For testing, call
        get_cache_config.cache_clear() to reset the cache.
    """
    return CacheConfig()
