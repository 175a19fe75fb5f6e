"""Unit tests for sample size planning and power."""

import pytest

from conftest import make_variant
from variant_testing.core import power


class TestZScoreForConfidence:
    """Tests for critical z lookup."""

    def test_lookup_values(self):
        assert power.z_score_for_confidence(90) == 1.645
        assert power.z_score_for_confidence(95) == 1.96
        assert power.z_score_for_confidence(99) == 2.576

    def test_other_levels_use_normal_quantile(self):
        """Test that unlisted levels fall between their neighbours."""
        assert 1.96 < power.z_score_for_confidence(97) < 2.576
        assert power.z_score_for_confidence(80) == pytest.approx(1.282, abs=1e-3)

    def test_non_decreasing(self):
        levels = [80, 85, 90, 92.5, 95, 97, 99]
        values = [power.z_score_for_confidence(c) for c in levels]
        assert values == sorted(values)

    def test_invalid_level(self):
        with pytest.raises(ValueError, match="confidence must be between 0 and 100"):
            power.z_score_for_confidence(100)


class TestMinimumSampleSize:
    """Tests for the simplified planning formula."""

    def test_known_value(self):
        """Test MDE 10% at 95%: (1.96+0.84)²·2·0.05·0.95 / 0.01 = 74.48 per variant."""
        assert power.minimum_sample_size(mde_percent=10, significance_percent=95) == 149

    def test_inverse_square(self):
        """Test that halving the MDE needs at least 4× the sample."""
        n_10 = power.minimum_sample_size(mde_percent=10, significance_percent=95)
        n_5 = power.minimum_sample_size(mde_percent=5, significance_percent=95)
        assert n_5 >= 4 * n_10

    def test_larger_mde_needs_fewer(self):
        sizes = [power.minimum_sample_size(mde, 95) for mde in (2, 5, 10, 20, 40)]
        assert sizes == sorted(sizes, reverse=True)

    def test_higher_confidence_needs_more(self):
        sizes = [power.minimum_sample_size(10, c) for c in (80, 85, 90, 95, 97, 99)]
        assert sizes == sorted(sizes)

    def test_invalid_inputs(self):
        with pytest.raises(ValueError, match="MDE must be positive"):
            power.minimum_sample_size(mde_percent=0, significance_percent=95)
        with pytest.raises(ValueError, match="p_baseline must be between 0 and 1"):
            power.minimum_sample_size(10, 95, p_baseline=1.5)


class TestCohensH:
    """Tests for Cohen's h effect size calculation."""

    def test_positive_effect(self):
        h = power.cohens_h(p1=0.05, p2=0.065)
        assert 0.05 < h < 0.08

    def test_no_effect(self):
        assert abs(power.cohens_h(p1=0.10, p2=0.10)) < 1e-10

    def test_invalid_proportions(self):
        with pytest.raises(ValueError, match="Proportions must be between 0 and 1"):
            power.cohens_h(p1=-0.1, p2=0.5)


class TestAchievedPower:
    """Tests for the power of a running test."""

    def test_large_sample_high_power(self):
        assert power.achieved_power(500, 10000, 650, 10000) > 0.95

    def test_small_sample_low_power(self):
        assert power.achieved_power(5, 100, 7, 100) < 0.2

    def test_more_data_more_power(self):
        low = power.achieved_power(50, 1000, 60, 1000)
        high = power.achieved_power(500, 10000, 600, 10000)
        assert high > low

    def test_no_data(self):
        assert power.achieved_power(0, 0, 10, 100) == 0.0

    def test_identical_rates(self):
        assert power.achieved_power(50, 1000, 50, 1000) == 0.0

    def test_conversions_above_impressions(self):
        assert power.achieved_power(5, 100, 20, 10) == 0.0
        assert power.achieved_power(120, 100, 5, 100) == 0.0


class TestSampleSizeReached:
    """Tests for the per-variant sample check."""

    def test_reached(self):
        variants = [make_variant("a", 100, 5, is_control=True), make_variant("b", 75, 4)]
        assert power.sample_size_reached(variants, 149)

    def test_not_reached(self):
        variants = [make_variant("a", 100, 5, is_control=True), make_variant("b", 74, 4)]
        assert not power.sample_size_reached(variants, 149)


class TestSampleProgress:
    """Tests for progress towards the planned sample."""

    def test_partial(self):
        variants = [make_variant("a", 30, 1, is_control=True), make_variant("b", 0, 0)]
        progress = power.sample_progress(variants, 149)

        assert progress['current'] == 30
        assert progress['required'] == 150
        assert progress['progress'] == pytest.approx(20.0)

    def test_capped_at_100(self):
        variants = [make_variant("a", 1000, 50, is_control=True), make_variant("b", 1000, 60)]
        assert power.sample_progress(variants, 149)['progress'] == 100.0

    def test_nothing_planned(self):
        assert power.sample_progress([], 149)['progress'] == 0.0


class TestDaysToSignificance:
    """Tests for the time-to-significance projection."""

    def test_projection(self):
        """Test 5% vs 6% after two days at 500 impressions a day."""
        days = power.days_to_significance(50, 1000, 60, 1000, elapsed_days=2)
        assert days == pytest.approx(6.14, abs=0.05)

    def test_faster_traffic_means_fewer_days(self):
        slow = power.days_to_significance(50, 1000, 60, 1000, elapsed_days=4)
        fast = power.days_to_significance(50, 1000, 60, 1000, elapsed_days=1)
        assert fast < slow

    def test_already_large_enough(self):
        assert power.days_to_significance(500, 10000, 650, 10000, elapsed_days=3) == 0.0

    @pytest.mark.parametrize("args", [
        (50, 1000, 60, 1000, 0),
        (0, 0, 60, 1000, 2),
        (60, 1000, 50, 1000, 2),
        (50, 1000, 50, 1000, 2),
        (5, 100, 20, 10, 2),
    ])
    def test_no_estimate(self, args):
        *counts, elapsed = args
        assert power.days_to_significance(*counts, elapsed_days=elapsed) is None
