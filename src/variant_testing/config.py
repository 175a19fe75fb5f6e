"""
Engine Configuration
====================

Policy constants for the experimentation engine, overridable through
environment variables prefixed with ``VARIANT_TESTING_`` or a ``.env`` file.

Example Usage:
--------------
>>> from variant_testing.config import get_settings
>>> settings = get_settings()
>>> settings.early_stopping_threshold
99.0

    $ VARIANT_TESTING_MIN_SAMPLE_SIZE=500 uv run python run_simulation.py
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_SAMPLE_SIZE = 100
MAX_SAMPLE_SIZE = 1_000_000
EARLY_STOPPING_THRESHOLD = 99.0
CONFIDENCE_CAP = 99.9


class EngineSettings(BaseSettings):
    # Test validation
    min_sample_size: int = MIN_SAMPLE_SIZE
    max_sample_size: int = MAX_SAMPLE_SIZE
    min_significance_threshold: float = 80.0
    max_significance_threshold: float = 99.0

    # Statistics
    early_stopping_threshold: float = EARLY_STOPPING_THRESHOLD
    confidence_cap: float = CONFIDENCE_CAP
    baseline_conversion_rate: float = 0.05
    z_beta: float = 0.84  # 80% power
    srm_alpha: float = 0.01
    srm_pp_threshold: float = 0.01  # 1 percentage point

    # Data quality
    traffic_tolerance: float = 0.1  # percentage points around 100%
    outlier_threshold: float = 3.0  # standard deviations

    # Recommendation policy (improvement in %)
    minimal_improvement: float = 5.0
    strong_improvement: float = 20.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="VARIANT_TESTING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> EngineSettings:
    return EngineSettings()
