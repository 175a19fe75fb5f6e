"""
Sample Size Planning and Power
==============================

Minimum sample size for a test before it is created, and the achieved power
of a running test.

The planner uses the simplified two-proportion formula with an assumed 5%
baseline conversion rate and 80% power:

    n_per_variant = (z_α + z_β)² · 2p(1-p) / (MDE/100)²
    total         = ⌈2 · n_per_variant⌉

It is a planning aid only; analysis runs regardless of whether the minimum
has been reached.

Example Usage:
--------------
>>> from variant_testing.core import power
>>>
>>> power.minimum_sample_size(mde_percent=10, significance_percent=95)
149
>>> power.minimum_sample_size(mde_percent=5, significance_percent=95)
596
"""

import math
from typing import Dict, List, Optional

import numpy as np
from scipy import stats
from statsmodels.stats.power import zt_ind_solve_power

from variant_testing.core.models import Variant

# Two-sided critical values for the usual confidence levels (%)
Z_SCORES = {
    90.0: 1.645,
    95.0: 1.96,
    99.0: 2.576,
}


def z_score_for_confidence(confidence_percent: float) -> float:
    """
    Two-sided critical z for a confidence level in %.

    Common levels come from the lookup table. Anything else uses the normal
    quantile rounded to 3 decimals, which reproduces the table values and
    keeps the critical value non-decreasing in the confidence level.
    """
    if not (0 < confidence_percent < 100):
        raise ValueError("confidence must be between 0 and 100")
    if float(confidence_percent) in Z_SCORES:
        return Z_SCORES[float(confidence_percent)]
    alpha = (100 - confidence_percent) / 100
    return round(float(stats.norm.ppf(1 - alpha / 2)), 3)


def minimum_sample_size(
    mde_percent: float,
    significance_percent: float,
    p_baseline: float = 0.05,
    z_beta: float = 0.84,
) -> int:
    """
    Minimum total sample size (both variants) to detect ``mde_percent``.

    Parameters
    ----------
    mde_percent : float
        Minimum detectable effect in percentage points of the MDE scale
        (e.g. 10 for 10%)
    significance_percent : float
        Significance threshold of the test, e.g. 95
    p_baseline : float, default=0.05
        Assumed baseline conversion rate
    z_beta : float, default=0.84
        z for the desired power (0.84 ≈ 80%)

    Returns
    -------
    int
        Total observations across the control and one variant

    Notes
    -----
    Rounding up after doubling keeps the inverse-square relationship intact:
    halving the MDE never yields less than 4× the sample.
    """
    if mde_percent <= 0:
        raise ValueError("MDE must be positive")
    if not (0 < p_baseline < 1):
        raise ValueError("p_baseline must be between 0 and 1")

    z_alpha = z_score_for_confidence(significance_percent)
    per_variant = (z_alpha + z_beta) ** 2 * 2 * p_baseline * (1 - p_baseline) / (mde_percent / 100) ** 2
    return int(math.ceil(per_variant * 2))


def cohens_h(p1: float, p2: float) -> float:
    """
    Cohen's h effect size for proportions: 2·(arcsin√p2 − arcsin√p1).

    Example
    -------
    >>> h = cohens_h(p1=0.05, p2=0.065)
    >>> round(h, 4)
    0.0646
    """
    if not (0 <= p1 <= 1 and 0 <= p2 <= 1):
        raise ValueError("Proportions must be between 0 and 1")

    return float(2 * (np.arcsin(np.sqrt(p2)) - np.arcsin(np.sqrt(p1))))


def achieved_power(
    x_control: int,
    n_control: int,
    x_treatment: int,
    n_treatment: int,
    significance_percent: float = 95.0,
) -> float:
    """
    Power of the two-sided z-test to detect the observed difference.

    Uses the observed Cohen's h and the current group sizes. Returns 0 when
    the rates are identical or are not yet proportions (no impressions, or
    more conversions than impressions).
    """
    if n_control <= 0 or n_treatment <= 0:
        return 0.0
    if x_control > n_control or x_treatment > n_treatment:
        return 0.0

    h = abs(cohens_h(x_control / n_control, x_treatment / n_treatment))
    if h == 0:
        return 0.0

    result = zt_ind_solve_power(
        effect_size=h,
        nobs1=n_control,
        alpha=(100 - significance_percent) / 100,
        ratio=n_treatment / n_control,
        alternative='two-sided',
    )
    return float(min(1.0, max(0.0, result)))


def sample_size_reached(variants: List[Variant], minimum_total: int) -> bool:
    """
    Whether every variant has its share of the planned sample.

    The planned minimum covers two arms, so each variant needs
    ⌈minimum_total / 2⌉ impressions.
    """
    per_variant = math.ceil(minimum_total / 2)
    return all(v.metrics.impressions >= per_variant for v in variants)


def sample_progress(variants: List[Variant], minimum_total: int) -> Dict[str, float]:
    """
    Progress towards the planned sample across all variants.

    Returns
    -------
    dict
        Dictionary with keys:
        - current: Impressions collected across all variants
        - required: ⌈minimum_total / 2⌉ per variant, times the variant count
        - progress: current / required × 100, capped at 100
    """
    current = sum(v.metrics.impressions for v in variants)
    required = math.ceil(minimum_total / 2) * len(variants)
    progress = min(100.0, current / required * 100) if required > 0 else 0.0
    return {'current': current, 'required': required, 'progress': progress}


def days_to_significance(
    x_control: int,
    n_control: int,
    x_treatment: int,
    n_treatment: int,
    elapsed_days: float,
    significance_percent: float = 95.0,
    target_power: float = 0.8,
) -> Optional[float]:
    """
    Days until the control collects enough impressions to confirm the
    candidate's observed lift, at the control's current daily rate.

    The required per-variant sample comes from the observed Cohen's h.
    Returns 0.0 when the sample is already large enough, and None when no
    estimate is possible: the test has not run yet, the control has no
    impressions, or the candidate does not beat the control.

    Example
    -------
    >>> round(days_to_significance(50, 1000, 60, 1000, elapsed_days=2))
    6
    """
    if elapsed_days <= 0 or n_control <= 0 or n_treatment <= 0:
        return None
    if x_control > n_control or x_treatment > n_treatment:
        return None

    p_control = x_control / n_control
    p_treatment = x_treatment / n_treatment
    if p_treatment <= p_control:
        return None

    h = cohens_h(p_control, p_treatment)
    required = zt_ind_solve_power(
        effect_size=h,
        alpha=(100 - significance_percent) / 100,
        power=target_power,
        alternative='two-sided',
    )
    if not np.isfinite(required):
        return None

    remaining = max(0, int(np.ceil(required)) - n_control)
    per_day = n_control / elapsed_days
    return remaining / per_day


if __name__ == "__main__":
    # Demo
    print("=" * 80)
    print("Sample Size Planning Demo")
    print("=" * 80)

    print("\n📊 MINIMUM SAMPLE SIZE (5% baseline, 80% power)")
    print("-" * 80)
    for confidence in (90, 95, 99):
        for mde in (5, 10, 20):
            n = minimum_sample_size(mde, confidence)
            print(f"Confidence {confidence}% | MDE {mde:>2}% | total {n:,}")

    print("\n📊 ACHIEVED POWER (5.0% vs 6.5%, 10K per arm)")
    print("-" * 80)
    pwr = achieved_power(500, 10000, 650, 10000)
    print(f"Power: {pwr:.1%}")
