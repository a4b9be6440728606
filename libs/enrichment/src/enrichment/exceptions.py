"""Exceptions for the enrichment merge and cache pipeline."""


class EnrichmentError(Exception):
    """Base exception for enrichment errors."""

    pass


class EnrichmentValidationError(EnrichmentError, ValueError):
    """Raised before any I/O when a request or batch is invalid."""

    pass


class BatchTooLargeError(EnrichmentValidationError):
    """Raised when a batch exceeds the configured maximum size."""

    def __init__(self, size: int, max_size: int):
        super().__init__(f"Batch size {size} exceeds maximum of {max_size}")
        self.size = size
        self.max_size = max_size


class ShapeIntrospectionError(EnrichmentError):
    """Raised when a target shape cannot be introspected or an object lacks a declared field."""

    def __init__(self, message: str, field_name: str | None = None):
        super().__init__(message)
        self.field_name = field_name


class ProviderFetchError(EnrichmentError):
    """Raised when a provider fetch fails after all retry attempts."""

    pass
