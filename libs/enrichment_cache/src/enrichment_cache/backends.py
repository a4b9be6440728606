"""
Backing key/value stores for the enrichment result cache.

The result cache only needs two raw operations from a store: read bytes for a
key and write bytes with a TTL. Redis is the production backend; the in-memory
backend serves local runs and tests.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .config import CacheConfig
from .exceptions import (
    CacheStorageError,
    InvalidTTLError,
    RedisConfigurationError,
    StorageConfigurationError,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class BackingCache(Protocol):
    """Minimal contract of an external key/value store.

    Implementations signal store failures by raising CacheStorageError.
    """

    async def raw_get(self, key: str) -> bytes | None: ...

    async def raw_put(self, key: str, value: bytes, ttl_seconds: int) -> None: ...

    async def aclose(self) -> None: ...


class RedisBackingCache:
    """Redis-backed store with a lazily created, pooled async client."""

    def __init__(self, config: CacheConfig, client: Redis | None = None):
        """
        Parameters:
            config (CacheConfig): Cache configuration holding the Redis URL and pool settings.
            client (Redis | None): Pre-built client; when omitted one is created on first use.

        Raises:
            RedisConfigurationError: If no client is given and `config.redis_url` is empty.
        """
        if client is None and not config.redis_url:
            raise RedisConfigurationError()
        self.config = config
        self._client = client
        self._lock = asyncio.Lock()

    async def _get_client(self) -> Redis:
        """Return the Redis client, creating it on first use.

        The lock is held until return so aclose() cannot reset the client
        between the check and the return.
        """
        async with self._lock:
            if self._client is None:
                logger.info(
                    f"Initializing Redis client for enrichment result cache: {self.config.redis_url} "
                    f"(max_connections={self.config.redis_max_connections})"
                )
                self._client = Redis.from_url(
                    self.config.redis_url,
                    decode_responses=False,
                    max_connections=self.config.redis_max_connections,
                    socket_keepalive=self.config.redis_socket_keepalive,
                    socket_connect_timeout=self.config.redis_socket_connect_timeout,
                    socket_timeout=self.config.redis_socket_timeout,
                    retry_on_timeout=self.config.redis_retry_on_timeout,
                    health_check_interval=self.config.redis_health_check_interval,
                )
            return self._client

    async def raw_get(self, key: str) -> bytes | None:
        try:
            client = await self._get_client()
            value = await client.get(key)
        except RedisError as e:
            raise CacheStorageError(f"Redis GET failed for {key}: {e}") from e

        if value is None:
            return None
        if isinstance(value, str):
            return value.encode("utf-8")
        return value

    async def raw_put(self, key: str, value: bytes, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise InvalidTTLError(ttl_seconds, field_name="ttl_seconds")
        try:
            client = await self._get_client()
            await client.setex(key, ttl_seconds, value)
        except RedisError as e:
            raise CacheStorageError(f"Redis SETEX failed for {key}: {e}") from e

    async def aclose(self) -> None:
        """Close the Redis client if one was created."""
        async with self._lock:
            if self._client is not None:
                logger.info("Closing Redis client for enrichment result cache.")
                try:
                    await self._client.aclose()
                except RedisError as e:
                    logger.warning(f"Error closing Redis client: {e}")
                finally:
                    self._client = None


class InMemoryBackingCache:
    """Process-local store with passive expiry.

    Expired entries are dropped when read; there is no background eviction.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: dict[str, tuple[bytes, float]] = {}
        self._clock = clock

    async def raw_get(self, key: str) -> bytes | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def raw_put(self, key: str, value: bytes, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise InvalidTTLError(ttl_seconds, field_name="ttl_seconds")
        self._entries[key] = (value, self._clock() + ttl_seconds)

    async def aclose(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def create_backing_cache(config: CacheConfig) -> BackingCache:
    """
    Build the backing store selected by `config.storage_type`.

    Raises:
        RedisConfigurationError: If Redis is selected without a URL.
        StorageConfigurationError: If the storage type is not recognized.
    """
    match config.storage_type:
        case "redis":
            return RedisBackingCache(config)
        case "memory":
            return InMemoryBackingCache()
        case _:
            raise StorageConfigurationError(config.storage_type)
