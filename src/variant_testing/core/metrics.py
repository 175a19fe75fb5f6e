"""
Metric Aggregation
==================

Applies incoming metric deltas to a variant's running totals and recomputes
the derived rates. Counters only ever grow: every update is treated as an
increment, so several feeds (one per platform, say) can report into the
same variant independently.

Derived rates (all in %, except cost per conversion):
- click_through_rate = clicks / impressions × 100
- conversion_rate    = conversions / clicks × 100
- cost_per_conversion = cost / conversions
- return_on_ad_spend = revenue / cost × 100
- engagement_rate    = (likes + comments + shares) / impressions × 100

A zero denominator yields 0.

Example Usage:
--------------
>>> from variant_testing.core import metrics
>>> from variant_testing.core.models import MetricsDelta
>>>
>>> m = metrics.apply(metrics.initial_metrics(), MetricsDelta(impressions=1000, clicks=40))
>>> m.click_through_rate
4.0
"""

from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional

from variant_testing.core.models import COUNTER_FIELDS, Metrics, MetricsDelta


def _ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator * scale


def initial_metrics(now: Optional[datetime] = None) -> Metrics:
    """Zeroed metrics for a freshly created variant."""
    return Metrics(last_updated=now)


def derive(m: Metrics) -> Metrics:
    """Return a copy of ``m`` with every derived rate recomputed."""
    return replace(
        m,
        click_through_rate=_ratio(m.clicks, m.impressions, 100),
        conversion_rate=_ratio(m.conversions, m.clicks, 100),
        cost_per_conversion=_ratio(m.cost, m.conversions),
        return_on_ad_spend=_ratio(m.revenue, m.cost, 100),
        engagement_rate=_ratio(m.likes + m.comments + m.shares, m.impressions, 100),
    )


def validate_delta(delta: MetricsDelta) -> list:
    """List of problems with a delta (empty when valid)."""
    errors = []
    for name in COUNTER_FIELDS:
        value = getattr(delta, name)
        if value < 0:
            errors.append(f"{name} must be non-negative, got {value}")
    return errors


def apply(current: Metrics, delta: MetricsDelta,
          now: Optional[datetime] = None) -> Metrics:
    """
    Add ``delta`` to ``current`` and recompute derived rates.

    Parameters
    ----------
    current : Metrics
        Running totals before the update
    delta : MetricsDelta
        Increment to add
    now : datetime, optional
        Timestamp stored in ``last_updated``

    Returns
    -------
    Metrics
        New snapshot; ``current`` is left untouched

    Raises
    ------
    ValueError
        If any field of the delta is negative
    """
    errors = validate_delta(delta)
    if errors:
        raise ValueError("; ".join(errors))

    totals = {
        name: getattr(current, name) + getattr(delta, name)
        for name in COUNTER_FIELDS
    }
    return derive(replace(current, last_updated=now or current.last_updated, **totals))


def total(snapshots: Iterable[Metrics]) -> Metrics:
    """Sum the counters of several snapshots (e.g. all variants of a test)."""
    totals = {name: 0 for name in COUNTER_FIELDS}
    last_updated = None
    for m in snapshots:
        for name in COUNTER_FIELDS:
            totals[name] += getattr(m, name)
        if m.last_updated is not None and (last_updated is None or m.last_updated > last_updated):
            last_updated = m.last_updated
    return derive(Metrics(last_updated=last_updated, **totals))
