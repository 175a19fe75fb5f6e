"""
Multi-Variant Experimentation Engine
====================================

Lifecycle management and statistical winner selection for marketing content
tests run across platforms and accounts.

Modules:
--------
- core: Data model, metric aggregation, significance tests, sample size
  planning and traffic quality checks
- decision: Winner selection policy and results reporting
- lifecycle: Test state machine (create, start, record metrics, complete)
- repository: Persistence interface and in-memory implementation
- ingestion: Metric feeds (single events, batches, DataFrames)
- analytics: Portfolio summary across tests

Example Usage:
--------------
>>> from variant_testing import ABTestManager, InMemoryRepository
>>> from variant_testing.core.models import ABTestConfig, VariantSpec, MetricsDelta
>>>
>>> manager = ABTestManager(InMemoryRepository())
>>> test = manager.create_test(
...     ABTestConfig(name="Subject line", sample_size=5000, significance_threshold=95),
...     [VariantSpec("Current", is_control=True), VariantSpec("Emoji")],
... )
>>> manager.start_test(test.id)
>>> control, emoji = test.variants
>>> manager.record_metrics(test.id, control.id, MetricsDelta(impressions=10000, conversions=500))
>>> manager.record_metrics(test.id, emoji.id, MetricsDelta(impressions=10000, conversions=650))
>>> manager.get_test(test.id).status.value
'completed'

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__license__ = "MIT"

from variant_testing.core import frequentist, metrics, power, randomization
from variant_testing.lifecycle import ABTestManager, is_expired
from variant_testing.repository import InMemoryRepository, Repository

__all__ = [
    "ABTestManager",
    "InMemoryRepository",
    "Repository",
    "is_expired",
    "frequentist",
    "metrics",
    "power",
    "randomization",
]
