"""Tests for engine settings."""

from dataclasses import replace

import pytest

from variant_testing.config import (
    CONFIDENCE_CAP,
    EARLY_STOPPING_THRESHOLD,
    MIN_SAMPLE_SIZE,
    EngineSettings,
)
from variant_testing.exceptions import ValidationError
from variant_testing.lifecycle import ABTestManager


def test_defaults():
    settings = EngineSettings()

    assert settings.min_sample_size == MIN_SAMPLE_SIZE == 100
    assert settings.max_sample_size == 1_000_000
    assert settings.early_stopping_threshold == EARLY_STOPPING_THRESHOLD == 99.0
    assert settings.confidence_cap == CONFIDENCE_CAP == 99.9
    assert settings.min_significance_threshold == 80.0
    assert settings.max_significance_threshold == 99.0
    assert settings.srm_pp_threshold == 0.01
    assert settings.traffic_tolerance == 0.1
    assert settings.outlier_threshold == 3.0


def test_environment_override(monkeypatch):
    monkeypatch.setenv("VARIANT_TESTING_MIN_SAMPLE_SIZE", "500")
    monkeypatch.setenv("VARIANT_TESTING_STRONG_IMPROVEMENT", "35")

    settings = EngineSettings()

    assert settings.min_sample_size == 500
    assert settings.strong_improvement == 35.0


def test_override_applies_to_validation(monkeypatch, repository, config, variant_specs, clock):
    monkeypatch.setenv("VARIANT_TESTING_MIN_SAMPLE_SIZE", "10000")
    manager = ABTestManager(repository, settings=EngineSettings(), clock=clock)

    with pytest.raises(ValidationError, match="Minimum: 10000"):
        manager.create_test(replace(config, sample_size=5000), variant_specs)
