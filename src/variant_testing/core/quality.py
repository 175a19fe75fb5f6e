"""
Data Quality Checks
===================

Checks run on a test's variants before its result is trusted:

- **Sample ratio mismatch**: impressions vs. configured traffic split
  (see ``randomization``)
- **Data completeness**: share of variants that have reported impressions
- **Traffic allocation**: configured percentages sum to 100%
- **Outliers**: variants whose conversion rate sits far from the others

Each check returns a dict with ``status`` ('pass', 'warning' or 'fail'),
``impact`` ('low', 'medium' or 'high'), a ``message`` and, when something is
wrong, a ``recommendation``.

Example Usage:
--------------
>>> from variant_testing.core import quality
>>>
>>> checks = quality.run_quality_checks(test.variants)
>>> print(checks['passed'], checks['data_completeness']['message'])
"""

from typing import Any, Dict, List

import numpy as np

from variant_testing.core.frequentist import conversion_rate
from variant_testing.core.models import Variant
from variant_testing.core.randomization import variant_srm_check


def data_completeness(variants: List[Variant]) -> Dict[str, Any]:
    """Percentage of variants with at least one impression."""
    if not variants:
        completeness = 0.0
    else:
        reporting = sum(1 for v in variants if v.metrics.impressions > 0)
        completeness = reporting / len(variants) * 100

    if completeness == 100:
        status, impact = 'pass', 'low'
    elif completeness > 90:
        status, impact = 'warning', 'medium'
    else:
        status, impact = 'fail', 'high'

    return {
        'status': status,
        'impact': impact,
        'completeness': completeness,
        'message': f"Data completeness: {completeness:.1f}%",
        'recommendation': (
            None if completeness == 100 else "Review data collection for missing metrics"
        ),
    }


def traffic_allocation(variants: List[Variant], tolerance: float = 0.1) -> Dict[str, Any]:
    """Whether the configured traffic percentages sum to 100 (± ``tolerance``)."""
    total = float(sum(v.traffic_percentage for v in variants))
    valid = abs(total - 100.0) < tolerance

    return {
        'status': 'pass' if valid else 'fail',
        'impact': 'low' if valid else 'high',
        'total_allocation': total,
        'message': f"Traffic allocation sums to {total:.1f}%",
        'recommendation': None if valid else "Adjust traffic allocation to sum to 100%",
    }


def detect_outliers(variants: List[Variant], threshold: float = 3.0) -> List[Dict[str, Any]]:
    """
    Variants whose conversion rate is more than ``threshold`` standard
    deviations from the mean rate across variants.

    Only variants with impressions take part. With k variants no z-score can
    exceed √(k-1), so the default threshold only fires from 11 variants up.
    """
    reporting = [v for v in variants if v.metrics.impressions > 0]
    if len(reporting) < 2:
        return []

    rates = np.array([conversion_rate(v.metrics) for v in reporting])
    std = float(rates.std())
    if std == 0:
        return []

    z_scores = np.abs(rates - rates.mean()) / std
    return [
        {
            'status': 'warning',
            'impact': 'medium',
            'variant_id': variant.id,
            'z_score': float(z),
            'message': f"Variant {variant.name} has unusual conversion rate",
            'recommendation': "Investigate variant configuration and data quality",
        }
        for variant, z in zip(reporting, z_scores)
        if z > threshold
    ]


def run_quality_checks(
    variants: List[Variant],
    srm_alpha: float = 0.01,
    srm_pp_threshold: float = 0.01,
    traffic_tolerance: float = 0.1,
    outlier_threshold: float = 3.0,
) -> Dict[str, Any]:
    """
    All quality checks for a set of variants.

    Returns
    -------
    dict
        Dictionary with keys:
        - sample_ratio_mismatch: ``variant_srm_check`` result
        - data_completeness: ``data_completeness`` result
        - traffic_allocation: ``traffic_allocation`` result
        - outliers: list of ``detect_outliers`` findings
        - passed: True when nothing failed and no severe SRM was found
    """
    srm = variant_srm_check(variants, alpha=srm_alpha, pp_threshold=srm_pp_threshold)
    completeness = data_completeness(variants)
    allocation = traffic_allocation(variants, tolerance=traffic_tolerance)
    outliers = detect_outliers(variants, threshold=outlier_threshold)

    return {
        'sample_ratio_mismatch': srm,
        'data_completeness': completeness,
        'traffic_allocation': allocation,
        'outliers': outliers,
        'passed': (
            not srm['srm_severe']
            and completeness['status'] != 'fail'
            and allocation['status'] != 'fail'
        ),
    }

