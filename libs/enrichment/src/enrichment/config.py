"""
Configuration for the enrichment pipeline and batch coordinator.
"""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class EnrichmentConfig(BaseSettings):
    """
    Enrichment pipeline configuration with validation.
    """

    model_config = SettingsConfigDict(
        env_prefix="ENRICHMENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Provider calls
    default_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for one enrichment in seconds (0 disables the timeout)",
    )
    retry_enabled: bool = Field(
        default=True, description="Retry transient provider failures"
    )
    max_retry_attempts: int = Field(
        default=3, description="Number of retry attempts for failed provider calls"
    )
    retry_delay: float = Field(
        default=1.0, description="Initial delay between retries in seconds (doubles each retry)"
    )

    # Batch Processing
    batch_parallelism: int = Field(
        default=10, description="Number of unique requests enriched concurrently in a batch"
    )
    max_batch_size: int = Field(
        default=100, description="Maximum number of requests accepted in one batch"
    )

    # Responses
    capture_raw_responses: bool = Field(
        default=False,
        description="Attach raw provider payloads to every response for audit purposes",
    )
    count_raw_diff: bool = Field(
        default=False,
        description="For RAW enrichments, count fields differing from the source instead of reporting 0",
    )

    verbose_logging: bool = Field(default=False, description="Enable verbose logging")

    @field_validator("default_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """
        Validate that the enrichment timeout is between 0 and 300 seconds.

        Raises:
            ValueError: If `v` is negative or greater than 300.
        """
        if v < 0 or v > 300:
            raise ValueError("Enrichment timeout must be between 0 and 300 seconds")
        return v

    @field_validator("batch_parallelism")
    @classmethod
    def validate_batch_parallelism(cls, v: int) -> int:
        if v < 1 or v > 100:
            raise ValueError("Batch parallelism must be between 1 and 100")
        return v

    @field_validator("max_batch_size")
    @classmethod
    def validate_max_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Max batch size must be at least 1")
        return v

    @field_validator("max_retry_attempts")
    @classmethod
    def validate_max_retry_attempts(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Max retry attempts must be non-negative")
        return v

    @field_validator("retry_delay")
    @classmethod
    def validate_retry_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Retry delay must be non-negative")
        return v

    def log_configuration(self) -> None:
        """Log current configuration for debugging."""
        logger.info("Enrichment Pipeline Configuration:")
        logger.info(f"  Default Timeout: {self.default_timeout_seconds}s")
        logger.info(
            f"  Retries: {'Enabled' if self.retry_enabled else 'Disabled'} "
            f"(max {self.max_retry_attempts}, delay {self.retry_delay}s)"
        )
        logger.info(f"  Batch Parallelism: {self.batch_parallelism}")
        logger.info(f"  Max Batch Size: {self.max_batch_size}")
        logger.info(
            f"  Raw Responses: {'Captured' if self.capture_raw_responses else 'On request'}"
        )


@lru_cache
def get_enrichment_config() -> EnrichmentConfig:
    """Get cached EnrichmentConfig instance populated from ENRICHMENT_* environment variables.

    Note:
        For testing, call get_enrichment_config.cache_clear() to reset the cache.
    """
    return EnrichmentConfig()
