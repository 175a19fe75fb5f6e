"""Shared fixtures for engine tests."""

from datetime import datetime, timedelta, timezone

import pytest

from variant_testing.config import EngineSettings
from variant_testing.core import metrics
from variant_testing.core.models import (
    ABTestConfig,
    MetricsDelta,
    Variant,
    VariantSpec,
)
from variant_testing.lifecycle import ABTestManager
from variant_testing.repository import InMemoryRepository


class FakeClock:
    """Deterministic clock; advance it explicitly."""

    def __init__(self):
        self.now = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def make_variant(variant_id, impressions=0, conversions=0, is_control=False,
                 traffic_percentage=50.0, **counters):
    """Variant with metrics already aggregated."""
    m = metrics.apply(
        metrics.initial_metrics(),
        MetricsDelta(impressions=impressions, conversions=conversions, **counters),
    )
    return Variant(
        id=variant_id,
        name=variant_id.title(),
        is_control=is_control,
        traffic_percentage=traffic_percentage,
        metrics=m,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return EngineSettings()


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def manager(repository, settings, clock):
    return ABTestManager(repository, settings=settings, clock=clock)


@pytest.fixture
def config():
    return ABTestConfig(
        name="Spring headline",
        description="Question vs statement headline",
        platforms=("facebook", "linkedin"),
        target_audience="smb_owners",
        sample_size=5000,
        significance_threshold=95,
        minimum_detectable_effect=10,
        max_duration_days=14,
        auto_winner_declaration=True,
    )


@pytest.fixture
def variant_specs():
    return [
        VariantSpec(name="Statement", is_control=True, traffic_percentage=50),
        VariantSpec(name="Question", traffic_percentage=50),
    ]


@pytest.fixture
def running_test(manager, config, variant_specs):
    test = manager.create_test(config, variant_specs)
    return manager.start_test(test.id)
