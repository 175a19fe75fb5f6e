"""
Traffic Allocation Quality Checks
=================================

Sample Ratio Mismatch (SRM) detection: do the impressions each variant
actually received match the configured traffic percentages?

A mismatch usually means a delivery or tracking bug (one platform stopped
reporting, a variant was throttled), and any winner declared on top of it
is suspect.

Example Usage:
--------------
>>> from variant_testing.core import randomization
>>>
>>> result = randomization.srm_check([5000, 5000, 5100])
>>> print(f"SRM detected: {result['srm_detected']}")
SRM detected: False
"""

from typing import Dict, List, Optional

import numpy as np
from scipy import stats

from variant_testing.core.models import Variant


def srm_check(
    observed_counts: List[int],
    expected_ratio: Optional[List[float]] = None,
    alpha: float = 0.01,
    pp_threshold: float = 0.01,
) -> Dict[str, float]:
    """
    Chi-square goodness-of-fit SRM check for any number of variants, with
    two-stage gating.

    - Stage A (Statistical): Chi-square p-value < alpha
    - Stage B (Practical): Some variant's share deviates from its expected
      share by more than pp_threshold
    - srm_severe = detected AND practical (hard gate)
    - srm_warning = detected but NOT practical (warn only)

    With impression counts in the hundreds of thousands, stage A alone flags
    deviations of a fraction of a percentage point.

    Parameters
    ----------
    observed_counts : list of int
        Observed impressions for each variant
    expected_ratio : list of float, optional
        Expected allocation. Default: equal allocation (1/k for k variants).
        Normalised to sum to 1, so traffic percentages can be passed as is.
    alpha : float, default=0.01
        Significance level (conservative, since SRM is a hard gate)
    pp_threshold : float, default=0.01
        Practical threshold as a share (0.01 = 1 percentage point)

    Returns
    -------
    dict
        Dictionary with keys:
        - observed_counts: Input observed counts
        - expected_counts: Expected counts for each variant
        - observed_ratio: Observed proportions
        - chi2_statistic: Chi-square test statistic
        - df: Degrees of freedom
        - p_value: P-value
        - srm_detected: Statistical significance (p < alpha)
        - max_pp_deviation: Largest |observed - expected| share
        - practical_significant: Whether max_pp_deviation exceeds pp_threshold
        - srm_severe: srm_detected AND practical_significant
        - srm_warning: srm_detected but NOT practical_significant
    """
    if len(observed_counts) < 2:
        raise ValueError("Need at least 2 groups")
    if any(n <= 0 for n in observed_counts):
        raise ValueError("All sample sizes must be positive")

    k = len(observed_counts)
    n_total = sum(observed_counts)

    if expected_ratio is None:
        expected_ratio = [1 / k] * k

    if len(expected_ratio) != k:
        raise ValueError(f"expected_ratio must have {k} elements")
    if any(r <= 0 for r in expected_ratio):
        raise ValueError("expected_ratio elements must be positive")

    ratio = np.array(expected_ratio, dtype=float)
    ratio = ratio / ratio.sum()

    expected = ratio * n_total
    observed = np.array(observed_counts, dtype=float)

    chi2_statistic = float(np.sum((observed - expected) ** 2 / expected))
    df = k - 1
    p_value = float(stats.chi2.sf(chi2_statistic, df=df))

    # Stage A: statistical
    srm_detected = p_value < alpha

    # Stage B: practical
    observed_ratio = observed / n_total
    max_pp_deviation = float(np.max(np.abs(observed_ratio - ratio)))
    practical_significant = max_pp_deviation > pp_threshold

    return {
        'observed_counts': [int(n) for n in observed_counts],
        'expected_counts': [float(e) for e in expected],
        'observed_ratio': [float(r) for r in observed_ratio],
        'chi2_statistic': chi2_statistic,
        'df': df,
        'p_value': p_value,
        'srm_detected': srm_detected,
        'max_pp_deviation': max_pp_deviation,
        'practical_significant': practical_significant,
        'srm_severe': srm_detected and practical_significant,
        'srm_warning': srm_detected and not practical_significant,
    }


def variant_srm_check(
    variants: List[Variant],
    alpha: float = 0.01,
    pp_threshold: float = 0.01,
) -> Dict[str, float]:
    """
    SRM check of a test's variants against their traffic percentages.

    Skipped (``checked`` False, nothing detected) while any variant has no
    impressions or the percentages are not all positive.
    """
    counts = [v.metrics.impressions for v in variants]
    shares = [v.traffic_percentage for v in variants]

    if any(n <= 0 for n in counts) or any(s <= 0 for s in shares):
        return {
            'checked': False,
            'srm_detected': False,
            'srm_severe': False,
            'srm_warning': False,
            'p_value': 1.0,
        }

    result = srm_check(counts, expected_ratio=shares, alpha=alpha, pp_threshold=pp_threshold)
    result['checked'] = True
    return result
