"""Unit tests for traffic allocation quality checks."""

import pytest

from conftest import make_variant
from variant_testing.core import randomization


class TestSRMCheck:
    """Tests for the chi-square Sample Ratio Mismatch check."""

    def test_perfect_balance(self):
        result = randomization.srm_check([5000, 5000])

        assert result['chi2_statistic'] == 0.0
        assert result['p_value'] == pytest.approx(1.0)
        assert not result['srm_detected']

    def test_small_imbalance_ok(self):
        result = randomization.srm_check([5050, 4950])
        assert not result['srm_detected']

    def test_large_imbalance_detected(self):
        result = randomization.srm_check([53000, 47000])

        assert result['p_value'] < 0.01
        assert result['srm_detected']

    def test_three_groups(self):
        result = randomization.srm_check([3333, 3333, 3334])

        assert result['df'] == 2
        assert not result['srm_detected']

    def test_percentages_are_normalised(self):
        """Test that traffic percentages can be passed without rescaling."""
        result = randomization.srm_check([7000, 3000], expected_ratio=[70, 30])

        assert result['expected_counts'] == pytest.approx([7000, 3000])
        assert not result['srm_detected']

    def test_invalid_inputs(self):
        with pytest.raises(ValueError, match="Need at least 2 groups"):
            randomization.srm_check([1000])
        with pytest.raises(ValueError, match="All sample sizes must be positive"):
            randomization.srm_check([1000, 0])
        with pytest.raises(ValueError, match="must have 2 elements"):
            randomization.srm_check([1000, 1000], expected_ratio=[1.0])
        with pytest.raises(ValueError, match="must be positive"):
            randomization.srm_check([1000, 1000], expected_ratio=[-0.5, 1.5])


class TestVariantSRMCheck:
    """Tests for SRM on a test's variants."""

    def test_skipped_without_data(self):
        variants = [make_variant("a", 1000, 50, is_control=True), make_variant("b", 0, 0)]
        result = randomization.variant_srm_check(variants)

        assert not result['checked']
        assert not result['srm_detected']

    def test_detects_skewed_delivery(self):
        variants = [
            make_variant("a", 12000, 600, is_control=True, traffic_percentage=50),
            make_variant("b", 8000, 400, traffic_percentage=50),
        ]
        result = randomization.variant_srm_check(variants)

        assert result['checked']
        assert result['srm_detected']

    def test_weighted_split_respected(self):
        variants = [
            make_variant("a", 8000, 400, is_control=True, traffic_percentage=80),
            make_variant("b", 2000, 100, traffic_percentage=20),
        ]
        assert not randomization.variant_srm_check(variants)['srm_detected']


class TestPracticalGating:
    """Tests for separating severe mismatches from negligible ones."""

    def test_small_deviation_is_warning(self):
        """Test a 0.5pp skew on 100K impressions: detectable but not severe."""
        result = randomization.srm_check([50500, 49500])

        assert result['srm_detected']
        assert result['max_pp_deviation'] == pytest.approx(0.005)
        assert not result['practical_significant']
        assert result['srm_warning']
        assert not result['srm_severe']

    def test_large_deviation_is_severe(self):
        result = randomization.srm_check([53000, 47000])

        assert result['srm_severe']
        assert not result['srm_warning']

    def test_threshold_is_configurable(self):
        result = randomization.srm_check([50500, 49500], pp_threshold=0.001)
        assert result['srm_severe']

    def test_balanced_is_neither(self):
        result = randomization.srm_check([5000, 5000])
        assert not result['srm_severe'] and not result['srm_warning']

    def test_skipped_check_is_neither(self):
        variants = [make_variant("a", 1000, 50, is_control=True), make_variant("b", 0, 0)]
        result = randomization.variant_srm_check(variants)

        assert not result['srm_severe']
        assert not result['srm_warning']
