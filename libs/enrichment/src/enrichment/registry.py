"""Registry of enrichment pipelines indexed by provider name and enrichment type."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .pipeline import EnrichmentPipeline

logger = logging.getLogger(__name__)


class EnricherRegistry:
    """Looks up pipelines by provider name (case-insensitive) or by enrichment type.

    When several pipelines declare the same enrichment type, the first one
    registered wins and later ones are logged.
    """

    def __init__(self, pipelines: Iterable[EnrichmentPipeline] = ()):
        self._pipelines: list[EnrichmentPipeline] = []
        self._by_provider: dict[str, EnrichmentPipeline] = {}
        self._by_type: dict[str, EnrichmentPipeline] = {}

        pipelines = list(pipelines)
        logger.info(f"Registering {len(pipelines)} enrichment pipelines")
        for pipeline in pipelines:
            self.register(pipeline)
        logger.info(
            f"Enrichment pipeline registration complete. "
            f"Providers: {len(self._by_provider)}, Types: {len(self._by_type)}"
        )

    def register(self, pipeline: EnrichmentPipeline) -> None:
        self._pipelines.append(pipeline)

        provider_name = pipeline.provider_name
        if provider_name:
            self._by_provider[provider_name.lower()] = pipeline
            logger.debug(f"Registered pipeline for provider: {provider_name}")

        for enrichment_type in pipeline.enrichment_types or ():
            if not enrichment_type:
                continue
            if enrichment_type in self._by_type:
                logger.warning(
                    f"Multiple pipelines registered for type '{enrichment_type}'. "
                    f"Using the first one: {self._by_type[enrichment_type].provider_name}"
                )
                continue
            self._by_type[enrichment_type] = pipeline
            logger.debug(f"Registered pipeline '{provider_name}' for type: {enrichment_type}")

    def get_by_provider(self, provider_name: str | None) -> EnrichmentPipeline | None:
        if not provider_name:
            return None
        return self._by_provider.get(provider_name.lower())

    def get_for_type(self, enrichment_type: str | None) -> EnrichmentPipeline | None:
        if not enrichment_type:
            return None
        return self._by_type.get(enrichment_type)

    def has_provider(self, provider_name: str | None) -> bool:
        return self.get_by_provider(provider_name) is not None

    def has_type(self, enrichment_type: str | None) -> bool:
        return self.get_for_type(enrichment_type) is not None

    @property
    def pipelines(self) -> list[EnrichmentPipeline]:
        return list(self._pipelines)

    def provider_names(self) -> list[str]:
        names: dict[str, None] = {}
        for pipeline in self._pipelines:
            if pipeline.provider_name:
                names.setdefault(pipeline.provider_name, None)
        return list(names)

    def enrichment_types(self) -> list[str]:
        return sorted(self._by_type)

    def __len__(self) -> int:
        return len(self._pipelines)
