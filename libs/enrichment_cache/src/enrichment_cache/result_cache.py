"""
Result-level caching for enrichment responses.

Only successful responses are stored: a transient provider failure must not be
frozen into the cache. Any backing-store problem degrades to a cache miss so
that a cache outage falls back to direct provider calls instead of failing
requests.
"""

from __future__ import annotations

import logging
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

from .backends import BackingCache
from .config import CacheConfig, get_cache_config
from .exceptions import CacheStorageError, InvalidTTLError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class ResultCache(Generic[M]):
    """TTL-bounded cache of successful responses on top of a BackingCache.

    Responses are serialized with pydantic (``model_dump_json``) and must expose
    a boolean ``success`` attribute.
    """

    def __init__(
        self,
        backend: BackingCache | None,
        model: type[M],
        config: CacheConfig | None = None,
    ):
        """
        Parameters:
            backend (BackingCache | None): Store for serialized entries; None disables caching.
            model (type[M]): Pydantic model used to decode cached entries.
            config (CacheConfig | None): Cache configuration; defaults to get_cache_config().
        """
        self.backend = backend
        self.model = model
        self.config = config or get_cache_config()

    @property
    def enabled(self) -> bool:
        return self.config.enabled and self.backend is not None

    async def get(self, key: str) -> M | None:
        """
        Look up a cached response.

        Returns:
            The cached response, or None on a miss, an expired entry, a disabled
            cache, a backing-store failure or a corrupt entry.
        """
        if not self.enabled:
            return None
        assert self.backend is not None

        try:
            raw = await self.backend.raw_get(key)
        except (CacheStorageError, OSError) as e:
            logger.warning(f"Cache read error for key {key}: {e}")
            return None

        if raw is None:
            return None

        try:
            return self.model.model_validate_json(raw)
        except (ValidationError, ValueError) as e:
            # Corrupted cache entry - treat as cache miss
            logger.warning(f"Cache decode error for key {key}: {e}")
            return None

    async def put(self, key: str, response: M, ttl: int | None = None) -> bool:
        """
        Store a response if it is successful.

        Parameters:
            key (str): Canonical cache key.
            response (M): Response to store; skipped unless `response.success` is true.
            ttl (int | None): TTL in seconds; defaults to `config.ttl_seconds`. 0 skips the write.

        Returns:
            bool: True when the entry was written.

        Raises:
            InvalidTTLError: If `ttl` is negative.
        """
        effective_ttl = self.config.ttl_seconds if ttl is None else ttl
        if effective_ttl < 0:
            raise InvalidTTLError(effective_ttl)

        if not self.enabled or effective_ttl == 0:
            return False
        if not getattr(response, "success", False):
            logger.debug(f"Not caching failed response for key {key}")
            return False
        assert self.backend is not None

        try:
            payload = response.model_dump_json().encode("utf-8")
            await self.backend.raw_put(key, payload, effective_ttl)
        except (CacheStorageError, OSError) as e:
            # Best-effort cache write
            logger.warning(f"Cache write error for key {key}: {e}")
            return False

        return True

    async def aclose(self) -> None:
        if self.backend is not None:
            await self.backend.aclose()
