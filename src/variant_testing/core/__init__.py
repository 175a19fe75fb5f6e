"""Core statistical methods and data model for multi-variant tests."""

from variant_testing.core import frequentist, metrics, models, power, quality, randomization

__all__ = ["frequentist", "metrics", "models", "power", "quality", "randomization"]
