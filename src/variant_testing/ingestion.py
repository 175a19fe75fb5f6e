"""
Metrics Ingestion
=================

Entry point for external analytics feeds. Each feed reports increments for
one variant, optionally tagged with the platform they came from.

Batch ingestion keeps going past events that reference unknown or closed
tests and reports them; persistence errors stop the batch, since the caller
has to retry the save.

Example Usage:
--------------
>>> import pandas as pd
>>> from variant_testing.ingestion import MetricsIngestor
>>>
>>> ingestor = MetricsIngestor(manager)
>>> frame = pd.DataFrame([
...     {"test_id": test.id, "variant_id": control_id, "platform": "facebook",
...      "impressions": 1200, "clicks": 50, "conversions": 6},
...     {"test_id": test.id, "variant_id": variant_id, "platform": "facebook",
...      "impressions": 1180, "clicks": 64, "conversions": 11},
... ])
>>> summary = ingestor.ingest_frame(frame)
>>> print(summary['applied'], summary['rejected'])
2 0
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from variant_testing.core.models import COUNTER_FIELDS, ABTest, MetricsDelta
from variant_testing.exceptions import InvalidStateError, NotFoundError, ValidationError
from variant_testing.lifecycle import ABTestManager

logger = logging.getLogger(__name__)

KEY_COLUMNS = ['test_id', 'variant_id']


@dataclass(frozen=True)
class MetricsEvent:
    test_id: str
    variant_id: str
    delta: MetricsDelta
    platform: Optional[str] = None
    account: Optional[str] = None
    occurred_at: Optional[datetime] = None


@dataclass
class IngestionError:
    event: MetricsEvent
    reason: str


@dataclass
class _Summary:
    applied: int = 0
    rejected: int = 0
    completed_tests: List[str] = field(default_factory=list)
    errors: List[IngestionError] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            'applied': self.applied,
            'rejected': self.rejected,
            'completed_tests': list(self.completed_tests),
            'errors': list(self.errors),
        }


class MetricsIngestor:
    """Routes metric events to an ``ABTestManager``."""

    def __init__(self, manager: ABTestManager):
        self.manager = manager

    def ingest(self, event: MetricsEvent) -> ABTest:
        """Apply one event. Errors propagate to the caller."""
        return self.manager.record_metrics(
            event.test_id, event.variant_id, event.delta, platform=event.platform
        )

    def ingest_many(self, events: Iterable[MetricsEvent]) -> Dict[str, Any]:
        """
        Apply events in order, collecting the ones that cannot be applied.

        Returns
        -------
        dict
            Dictionary with keys:
            - applied: Number of events applied
            - rejected: Number of events refused
            - completed_tests: Ids of tests completed by early stopping
            - errors: IngestionError for each refused event
        """
        summary = _Summary()
        for event in events:
            try:
                test = self.ingest(event)
            except (NotFoundError, InvalidStateError, ValidationError) as exc:
                logger.warning("Rejected metrics for test %s variant %s: %s",
                               event.test_id, event.variant_id, exc)
                summary.rejected += 1
                summary.errors.append(IngestionError(event, str(exc)))
                continue

            summary.applied += 1
            if test.results is not None and test.id not in summary.completed_tests:
                summary.completed_tests.append(test.id)

        if summary.completed_tests:
            logger.info("Ingestion completed tests: %s", summary.completed_tests)
        return summary.as_dict()

    def ingest_frame(self, frame: pd.DataFrame) -> Dict[str, Any]:
        """
        Ingest a DataFrame of metric rows.

        Rows are summed per (test_id, variant_id, platform) first, so a feed
        exporting one row per post or per hour produces a single update per
        variant and platform. Missing counter columns count as 0; a
        ``platform`` column is optional.
        """
        missing = [c for c in KEY_COLUMNS if c not in frame.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        return self.ingest_many(frame_to_events(frame))


def frame_to_events(frame: pd.DataFrame) -> List[MetricsEvent]:
    """Aggregate metric rows into one event per (test, variant, platform)."""
    if frame.empty:
        return []

    df = frame.copy()
    for column in COUNTER_FIELDS:
        if column not in df.columns:
            df[column] = 0
    df[list(COUNTER_FIELDS)] = df[list(COUNTER_FIELDS)].fillna(0)

    if 'platform' in df.columns:
        df['platform'] = df['platform'].fillna("")
    else:
        df['platform'] = ""

    keys = KEY_COLUMNS + ['platform']
    grouped = df.groupby(keys, sort=False)[list(COUNTER_FIELDS)].sum().reset_index()

    events = []
    for row in grouped.itertuples(index=False):
        values = row._asdict()
        delta = MetricsDelta(
            impressions=int(values['impressions']),
            clicks=int(values['clicks']),
            conversions=int(values['conversions']),
            revenue=float(values['revenue']),
            cost=float(values['cost']),
            engagement=int(values['engagement']),
            shares=int(values['shares']),
            comments=int(values['comments']),
            likes=int(values['likes']),
            reach=int(values['reach']),
        )
        events.append(MetricsEvent(
            test_id=str(values['test_id']),
            variant_id=str(values['variant_id']),
            delta=delta,
            platform=values['platform'] or None,
        ))
    return events
