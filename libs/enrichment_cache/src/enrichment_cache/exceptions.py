"""Custom exceptions for the enrichment result cache."""


class CacheError(Exception):
    """Base exception for cache-related errors."""


class StorageConfigurationError(CacheError):
    """Raised when cache storage is misconfigured."""

    def __init__(self, storage_type: str | None = None):
        if storage_type:
            super().__init__(f"Unknown storage type: {storage_type}")
        else:
            super().__init__("Storage configuration error")


class RedisConfigurationError(StorageConfigurationError):
    """Raised when Redis storage is misconfigured."""

    def __init__(self):
        super().__init__()
        self.args = ("redis_url required for Redis storage",)


class CacheStorageError(CacheError):
    """Raised when backing cache operations fail."""


class InvalidTTLError(CacheError):
    """Raised when TTL value is invalid (negative or incorrect type)."""

    def __init__(self, ttl_value: float | None = None, field_name: str = "TTL"):
        if ttl_value is not None:
            super().__init__(f"{field_name} must be non-negative, got {ttl_value}")
        else:
            super().__init__(f"{field_name} must be non-negative")
