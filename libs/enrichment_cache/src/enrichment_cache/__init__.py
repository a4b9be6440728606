"""Result caching infrastructure for the enrichment pipeline."""

from .backends import (
    BackingCache,
    InMemoryBackingCache,
    RedisBackingCache,
    create_backing_cache,
)
from .config import CacheConfig, get_cache_config
from .keys import build_cache_key, canonicalize
from .result_cache import ResultCache

__all__ = [
    "BackingCache",
    "CacheConfig",
    "InMemoryBackingCache",
    "RedisBackingCache",
    "ResultCache",
    "build_cache_key",
    "canonicalize",
    "create_backing_cache",
    "get_cache_config",
]
