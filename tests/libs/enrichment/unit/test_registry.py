"""
Tests for enrichment/registry.py

Tests cover:
- Case-insensitive lookup by provider name
- First-registered-wins lookup by enrichment type
- Introspection helpers
"""

import logging

import pytest

from enrichment import EnricherRegistry, EnrichmentConfig, EnrichmentPipeline


@pytest.fixture
def build_pipeline(provider_factory, enrichment_config: EnrichmentConfig):
    def _build(name: str, types: list[str] | None) -> EnrichmentPipeline:
        return EnrichmentPipeline(
            provider_factory(name=name), enrichment_types=types, config=enrichment_config
        )

    return _build


class TestEnricherRegistry:
    """Test EnricherRegistry lookups."""

    def test_lookup_by_provider_is_case_insensitive(self, build_pipeline) -> None:
        orbis = build_pipeline("Orbis", ["company-profile"])
        registry = EnricherRegistry([orbis])

        assert registry.get_by_provider("orbis") is orbis
        assert registry.get_by_provider("ORBIS") is orbis
        assert registry.has_provider("Orbis") is True
        assert registry.get_by_provider("dnb") is None
        assert registry.get_by_provider(None) is None

    def test_lookup_by_type(self, build_pipeline) -> None:
        orbis = build_pipeline("Orbis", ["company-profile", "ownership"])
        dnb = build_pipeline("DnB", ["credit-score"])
        registry = EnricherRegistry([orbis, dnb])

        assert registry.get_for_type("ownership") is orbis
        assert registry.get_for_type("credit-score") is dnb
        assert registry.has_type("unknown") is False
        assert registry.get_for_type("") is None

    def test_first_pipeline_wins_for_duplicate_type(
        self, build_pipeline, caplog: pytest.LogCaptureFixture
    ) -> None:
        orbis = build_pipeline("Orbis", ["company-profile"])
        dnb = build_pipeline("DnB", ["company-profile"])

        with caplog.at_level(logging.WARNING, logger="enrichment.registry"):
            registry = EnricherRegistry([orbis, dnb])

        assert registry.get_for_type("company-profile") is orbis
        assert registry.get_by_provider("dnb") is dnb
        assert "Multiple pipelines registered for type 'company-profile'" in caplog.text

    def test_pipeline_accepting_any_type_is_not_indexed_by_type(self, build_pipeline) -> None:
        registry = EnricherRegistry([build_pipeline("Generic", None)])

        assert registry.enrichment_types() == []
        assert registry.has_provider("generic")

    def test_introspection(self, build_pipeline) -> None:
        registry = EnricherRegistry()
        registry.register(build_pipeline("Orbis", ["ownership", "company-profile"]))
        registry.register(build_pipeline("DnB", ["credit-score"]))

        assert len(registry) == 2
        assert registry.provider_names() == ["Orbis", "DnB"]
        assert registry.enrichment_types() == ["company-profile", "credit-score", "ownership"]
        assert [p.provider_name for p in registry.pipelines] == ["Orbis", "DnB"]
