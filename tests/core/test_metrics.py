"""Unit tests for metric aggregation."""

import math
from datetime import datetime, timezone

import pytest

from variant_testing.core import metrics
from variant_testing.core.models import Metrics, MetricsDelta


class TestApply:
    """Tests for applying deltas to running totals."""

    def test_apply_accumulates_counters(self):
        """Test that successive deltas are summed, not overwritten."""
        m = metrics.apply(metrics.initial_metrics(), MetricsDelta(impressions=1000, clicks=50))
        m = metrics.apply(m, MetricsDelta(impressions=500, clicks=25, conversions=5))

        assert m.impressions == 1500
        assert m.clicks == 75
        assert m.conversions == 5

    def test_apply_is_pure(self):
        """Test that the input snapshot is left untouched."""
        before = metrics.initial_metrics()
        after = metrics.apply(before, MetricsDelta(impressions=10))

        assert before.impressions == 0
        assert after.impressions == 10

    def test_apply_sets_last_updated(self):
        """Test that the update timestamp is recorded."""
        now = datetime(2024, 3, 1, tzinfo=timezone.utc)
        m = metrics.apply(metrics.initial_metrics(), MetricsDelta(impressions=1), now)
        assert m.last_updated == now

    def test_apply_rejects_negative_delta(self):
        """Test error handling for negative increments."""
        with pytest.raises(ValueError, match="must be non-negative"):
            metrics.apply(metrics.initial_metrics(), MetricsDelta(clicks=-1))


class TestDerivedMetrics:
    """Tests for derived rate computation."""

    def test_derived_rates(self):
        """Test every derived rate on known inputs."""
        m = metrics.apply(metrics.initial_metrics(), MetricsDelta(
            impressions=1000, clicks=50, conversions=10,
            revenue=400.0, cost=200.0, likes=20, comments=5, shares=5,
        ))

        assert m.click_through_rate == pytest.approx(5.0)
        assert m.conversion_rate == pytest.approx(20.0)
        assert m.cost_per_conversion == pytest.approx(20.0)
        assert m.return_on_ad_spend == pytest.approx(200.0)
        assert m.engagement_rate == pytest.approx(3.0)

    def test_zero_denominators_yield_zero(self):
        """Test that empty metrics never produce NaN or Infinity."""
        m = metrics.apply(metrics.initial_metrics(), MetricsDelta(
            conversions=3, revenue=50.0, cost=0.0, likes=4,
        ))

        for value in (m.click_through_rate, m.conversion_rate,
                      m.return_on_ad_spend, m.engagement_rate):
            assert value == 0.0
        assert m.cost_per_conversion == 0.0
        assert all(math.isfinite(getattr(m, f)) for f in (
            'click_through_rate', 'conversion_rate', 'cost_per_conversion',
            'return_on_ad_spend', 'engagement_rate',
        ))

    def test_ctr_zero_impressions(self):
        """Test CTR for a variant with clicks but no impressions."""
        m = metrics.derive(Metrics(clicks=10))
        assert m.click_through_rate == 0.0


class TestTotal:
    """Tests for summing snapshots."""

    def test_total_sums_counters(self):
        """Test totals across variants."""
        a = metrics.apply(metrics.initial_metrics(), MetricsDelta(impressions=100, cost=10.0))
        b = metrics.apply(metrics.initial_metrics(), MetricsDelta(impressions=300, cost=5.0, clicks=8))
        t = metrics.total([a, b])

        assert t.impressions == 400
        assert t.cost == pytest.approx(15.0)
        assert t.click_through_rate == pytest.approx(2.0)

    def test_total_empty(self):
        """Test totals of nothing."""
        t = metrics.total([])
        assert t.impressions == 0
        assert t.conversion_rate == 0.0


class TestMetricsDelta:
    """Tests for building deltas from feed payloads."""

    def test_from_dict(self):
        delta = MetricsDelta.from_dict({'impressions': 10, 'revenue': 2.5})
        assert delta.impressions == 10
        assert delta.revenue == 2.5
        assert delta.clicks == 0

    def test_from_dict_unknown_field(self):
        with pytest.raises(ValueError, match="Unknown metric fields"):
            MetricsDelta.from_dict({'click_through_rate': 4.0})
