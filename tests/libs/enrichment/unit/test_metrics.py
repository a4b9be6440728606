"""
Tests for enrichment/metrics.py

Tests cover:
- PrometheusMetricsSink counters and histograms on an isolated registry
- emit() never propagating sink failures
"""

import pytest
from prometheus_client import CollectorRegistry

from enrichment.metrics import NullMetricsSink, PrometheusMetricsSink, emit


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def sink(registry: CollectorRegistry) -> PrometheusMetricsSink:
    return PrometheusMetricsSink(registry=registry)


class TestPrometheusMetricsSink:
    """Test Prometheus-backed measurements."""

    def test_cache_lookups(self, sink: PrometheusMetricsSink, registry: CollectorRegistry) -> None:
        sink.record_cache_lookup("orbis", "company-profile", True)
        sink.record_cache_lookup("orbis", "company-profile", False)
        sink.record_cache_lookup("orbis", "company-profile", False)

        labels = {"provider": "orbis", "enrichment_type": "company-profile"}
        assert registry.get_sample_value(
            "enrichment_cache_lookups_total", {**labels, "result": "hit"}
        ) == 1.0
        assert registry.get_sample_value(
            "enrichment_cache_lookups_total", {**labels, "result": "miss"}
        ) == 2.0

    def test_successful_enrichment(self, sink: PrometheusMetricsSink, registry: CollectorRegistry) -> None:
        sink.record_enrichment("orbis", "company-profile", True, 0.2, 3, 0.5)

        labels = {"provider": "orbis", "enrichment_type": "company-profile"}
        assert registry.get_sample_value(
            "enrichment_requests_total", {**labels, "success": "true"}
        ) == 1.0
        assert registry.get_sample_value("enrichment_duration_seconds_count", labels) == 1.0
        assert registry.get_sample_value("enrichment_fields_enriched_sum", labels) == 3.0
        assert registry.get_sample_value("enrichment_cost_total", labels) == 0.5

    def test_errors(self, sink: PrometheusMetricsSink, registry: CollectorRegistry) -> None:
        sink.record_enrichment_error("orbis", "company-profile", "TimeoutError", 30.0)

        assert registry.get_sample_value(
            "enrichment_errors_total",
            {"provider": "orbis", "enrichment_type": "company-profile", "error_type": "TimeoutError"},
        ) == 1.0

    def test_batch(self, sink: PrometheusMetricsSink, registry: CollectorRegistry) -> None:
        sink.record_batch(5, 2)

        assert registry.get_sample_value("enrichment_batch_size_sum") == 5.0
        assert registry.get_sample_value("enrichment_batch_unique_keys_sum") == 2.0

    def test_custom_namespace(self, registry: CollectorRegistry) -> None:
        sink = PrometheusMetricsSink(registry=registry, namespace="kyc")

        sink.record_batch(1, 1)

        assert registry.get_sample_value("kyc_batch_size_count") == 1.0


class TestEmit:
    """Test emit() helper."""

    def test_calls_sink(self) -> None:
        calls = []

        emit(lambda *args: calls.append(args), 1, 2)

        assert calls == [(1, 2)]

    def test_sink_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        def broken(*args: object) -> None:
            raise RuntimeError("collector gone")

        emit(broken, "orbis")

        assert "collector gone" in caplog.text

    def test_null_sink_accepts_everything(self) -> None:
        sink = NullMetricsSink()

        sink.record_cache_lookup("orbis", "company-profile", True)
        sink.record_enrichment("orbis", "company-profile", False, 0.1, 0, None)
        sink.record_enrichment_error("orbis", "company-profile", "ValueError", 0.1)
        sink.record_batch(1, 1)
