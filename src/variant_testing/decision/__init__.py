"""Winner selection and results reporting."""

from variant_testing.decision import report, winner

__all__ = ["report", "winner"]
