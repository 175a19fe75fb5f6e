"""
Significance Analysis for Multi-Variant Tests
=============================================

Two-proportion z-test on conversion rate (conversions / impressions) between
the control and each candidate variant.

The normal CDF uses the Abramowitz & Stegun 7.1.26 rational approximation to
erf (max absolute error ~1.5e-7), which keeps the engine deterministic across
platforms. scipy is only used for the confidence interval quantile.

Example Usage:
--------------
>>> from variant_testing.core import frequentist
>>>
>>> result = frequentist.z_test_conversions(
...     x_control=500, n_control=10000,
...     x_treatment=650, n_treatment=10000,
... )
>>> print(f"z={result['z_statistic']:.2f}, significance={result['significance']:.1f}%")
z=4.56, significance=99.9%
"""

import math
from typing import Dict, List

import numpy as np
from scipy import stats

from variant_testing.config import CONFIDENCE_CAP
from variant_testing.core.models import Metrics, Variant, VariantComparison

# Abramowitz & Stegun 7.1.26
A1 = 0.254829592
A2 = -0.284496736
A3 = 1.421413741
A4 = -1.453152027
A5 = 1.061405429
P = 0.3275911


def erf(x: float) -> float:
    """Error function via the Abramowitz & Stegun rational approximation."""
    sign = 1.0 if x >= 0 else -1.0
    x = abs(x)
    t = 1.0 / (1.0 + P * x)
    y = 1.0 - ((((A5 * t + A4) * t + A3) * t + A2) * t + A1) * t * math.exp(-x * x)
    return sign * y


def normal_cdf(x: float) -> float:
    """Standard normal CDF Φ(x)."""
    return 0.5 * (1.0 + erf(x / math.sqrt(2.0)))


def conversion_rate(m: Metrics) -> float:
    """Conversions per impression (a proportion, not a percentage)."""
    return m.conversions / m.impressions if m.impressions > 0 else 0.0


def _no_comparison(p_control: float, p_treatment: float) -> Dict[str, float]:
    return {
        'p_control': p_control,
        'p_treatment': p_treatment,
        'absolute_lift': p_treatment - p_control,
        'z_statistic': 0.0,
        'p_value': 1.0,
        'significance': 0.0,
        'effect_size': 0.0,
        'ci_lower': 0.0,
        'ci_upper': 0.0,
    }


def z_test_conversions(
    x_control: int,
    n_control: int,
    x_treatment: int,
    n_treatment: int,
    confidence: float = 95.0,
    cap: float = CONFIDENCE_CAP,
) -> Dict[str, float]:
    """
    Two-sided pooled z-test for a difference in conversion proportions.

    Parameters
    ----------
    x_control : int
        Conversions in the control
    n_control : int
        Impressions in the control
    x_treatment : int
        Conversions in the candidate variant
    n_treatment : int
        Impressions in the candidate variant
    confidence : float, default=95.0
        Confidence level (%) for the lift interval
    cap : float, default=99.9
        Upper bound for the reported significance

    Returns
    -------
    dict
        Dictionary with keys:
        - p_control, p_treatment: Conversion proportions
        - absolute_lift: p_treatment - p_control
        - z_statistic: |p_treatment - p_control| / SE (non-negative)
        - p_value: Two-sided p-value, 2·Φ(-|z|), within [0, 1]
        - significance: (1 - p_value) × 100, capped at ``cap``
        - effect_size: |p_treatment - p_control| / √[p̄(1-p̄)]
        - ci_lower, ci_upper: Interval for the absolute lift

    Notes
    -----
    - Pooled SE for the statistic: SE = √[p̄(1-p̄)(1/n₁ + 1/n₂)]
    - Non-pooled SE for the interval, as in standard practice
    - Zero impressions on either side or SE = 0 means the variants cannot be
      compared: significance 0, p-value 1. Nothing here raises on empty data.
    - Conversions above impressions (a conversion feed reporting ahead of the
      impression feed) are not a proportion yet and are treated the same way.
    """
    if x_control < 0 or x_treatment < 0:
        raise ValueError("x_control and x_treatment must be non-negative")
    if n_control < 0 or n_treatment < 0:
        raise ValueError("n_control and n_treatment must be non-negative")

    if n_control == 0 or n_treatment == 0:
        return _no_comparison(0.0, 0.0)

    p_control = x_control / n_control
    p_treatment = x_treatment / n_treatment

    if p_control > 1 or p_treatment > 1:
        return _no_comparison(p_control, p_treatment)

    p_pooled = (x_control + x_treatment) / (n_control + n_treatment)
    pooled_var = p_pooled * (1 - p_pooled)
    se_pooled = math.sqrt(max(pooled_var, 0.0) * (1 / n_control + 1 / n_treatment))

    if se_pooled == 0:
        return _no_comparison(p_control, p_treatment)

    diff = p_treatment - p_control
    z_stat = abs(diff) / se_pooled
    p_value = min(1.0, max(0.0, 2 * normal_cdf(-z_stat)))
    significance = min(cap, (1 - p_value) * 100)

    effect_size = abs(diff) / math.sqrt(pooled_var)

    # Interval on the lift (non-pooled SE)
    se_diff = math.sqrt(
        p_control * (1 - p_control) / n_control
        + p_treatment * (1 - p_treatment) / n_treatment
    )
    z_critical = stats.norm.ppf(1 - (1 - confidence / 100) / 2)
    ci_lower = diff - z_critical * se_diff
    ci_upper = diff + z_critical * se_diff

    return {
        'p_control': p_control,
        'p_treatment': p_treatment,
        'absolute_lift': diff,
        'z_statistic': z_stat,
        'p_value': p_value,
        'significance': significance,
        'effect_size': effect_size,
        'ci_lower': float(ci_lower),
        'ci_upper': float(ci_upper),
    }


def compare_metrics(control: Metrics, variant: Metrics,
                    confidence: float = 95.0,
                    cap: float = CONFIDENCE_CAP) -> Dict[str, float]:
    """z_test_conversions on two metric snapshots."""
    return z_test_conversions(
        control.conversions, control.impressions,
        variant.conversions, variant.impressions,
        confidence=confidence, cap=cap,
    )


def relative_improvement(control_rate: float, variant_rate: float) -> float:
    """(variant - control) / control × 100, or 0 when the control rate is 0."""
    if control_rate <= 0:
        return 0.0
    return (variant_rate - control_rate) / control_rate * 100


def analyze_variants(
    variants: List[Variant],
    confidence: float = 95.0,
    cap: float = CONFIDENCE_CAP,
) -> List[VariantComparison]:
    """
    Compare every variant against the control.

    Returns one VariantComparison per variant, in the input order. The
    control's own row carries zero significance and zero improvement.
    ``is_winner`` is left False; winner selection is a separate policy.
    """
    control = next((v for v in variants if v.is_control), None)
    if control is None:
        raise ValueError("No control variant found")

    control_rate = conversion_rate(control.metrics)
    comparisons = []
    for variant in variants:
        rate = conversion_rate(variant.metrics)
        if variant.is_control:
            result = _no_comparison(control_rate, rate)
            improvement = 0.0
        else:
            result = compare_metrics(control.metrics, variant.metrics, confidence, cap)
            improvement = relative_improvement(control_rate, rate)

        comparisons.append(VariantComparison(
            variant_id=variant.id,
            variant_name=variant.name,
            is_control=variant.is_control,
            metrics=variant.metrics,
            conversion_rate=rate,
            improvement_over_control=improvement,
            z_score=result['z_statistic'],
            p_value=result['p_value'],
            significance=result['significance'],
            confidence=min(cap, result['significance']),
            effect_size=result['effect_size'],
            ci_lower=result['ci_lower'],
            ci_upper=result['ci_upper'],
        ))
    return comparisons


def max_significance(comparisons: List[VariantComparison]) -> float:
    """Highest significance among the non-control variants (0 if none)."""
    values = [c.significance for c in comparisons if not c.is_control]
    return float(np.max(values)) if values else 0.0


def interpret_effect_size(effect_size: float) -> str:
    """
    Interpret a standardized difference between two proportions.

    Thresholds follow Cohen's rules of thumb: 0.2 (small), 0.5 (medium),
    0.8 (large).

    Example
    -------
    >>> interpret_effect_size(0.065)
    'Negligible'
    """
    abs_effect = abs(effect_size)

    if abs_effect > 0.8:
        return "Large"
    elif abs_effect > 0.5:
        return "Medium"
    elif abs_effect > 0.2:
        return "Small"
    else:
        return "Negligible"


if __name__ == "__main__":
    # Demo
    print("=" * 80)
    print("Significance Analysis Demo")
    print("=" * 80)

    print("\n📊 CLEAR WINNER (5.0% vs 6.5%)")
    print("-" * 80)
    result = z_test_conversions(500, 10000, 650, 10000)
    print(f"Control: {result['p_control']:.2%}")
    print(f"Variant: {result['p_treatment']:.2%}")
    print(f"Relative improvement: {relative_improvement(result['p_control'], result['p_treatment']):.1f}%")
    print(f"Z-statistic: {result['z_statistic']:.4f}")
    print(f"P-value: {result['p_value']:.6f}")
    print(f"Significance: {result['significance']:.1f}%")
    print(f"Effect size: {result['effect_size']:.4f} ({interpret_effect_size(result['effect_size'])})")

    print("\n📊 NO DIFFERENCE (100 impressions each)")
    print("-" * 80)
    result = z_test_conversions(5, 100, 5, 100)
    print(f"P-value: {result['p_value']:.4f}")
    print(f"Significance: {result['significance']:.2f}%")
