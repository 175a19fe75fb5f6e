"""
Winner Selection Policy
=======================

Decides which variant, if any, beats the control, whether the test may stop
early, and what to tell the operator.

Decision rules:
- **Winner**: non-control variant with significance ≥ the test threshold
  and the highest positive improvement (ties keep the earlier variant)
- **Early stop**: max significance ≥ 99%, independent of the test threshold,
  and only when automatic winner declaration is enabled
- **Recommendation**: extend / minimal / implement / implement immediately

Example Usage:
--------------
>>> from variant_testing.decision import winner
>>>
>>> winner.recommend(significance=99.9, threshold=95, improvement=30.0,
...                  winner_name="Question headline")
'Excellent results! Implement Question headline immediately. ...'
"""

from dataclasses import dataclass
from typing import List, Optional

from variant_testing.config import EARLY_STOPPING_THRESHOLD
from variant_testing.core.frequentist import max_significance
from variant_testing.core.models import VariantComparison


@dataclass
class WinnerDecision:
    """Outcome of applying the policy to one analysis."""
    winner: Optional[VariantComparison]
    significance: float
    improvement: float
    early_stop: bool
    recommendation: str

    @property
    def winner_variant_id(self) -> Optional[str]:
        return self.winner.variant_id if self.winner else None


def select_winner(
    comparisons: List[VariantComparison],
    significance_threshold: float,
) -> Optional[VariantComparison]:
    """
    Best qualifying non-control variant, or None.

    A variant qualifies with significance ≥ ``significance_threshold`` and an
    improvement over the control above zero. A variant that is significantly
    worse than the control never wins.
    """
    best = None
    best_improvement = 0.0
    for comparison in comparisons:
        if comparison.is_control:
            continue
        if comparison.significance < significance_threshold:
            continue
        if comparison.improvement_over_control > best_improvement:
            best = comparison
            best_improvement = comparison.improvement_over_control
    return best


def should_stop_early(
    significance: float,
    auto_winner_declaration: bool,
    threshold: float = EARLY_STOPPING_THRESHOLD,
) -> bool:
    """Early stopping fires at ≥ ``threshold`` only when the flag is on."""
    return auto_winner_declaration and significance >= threshold


def recommend(
    significance: float,
    threshold: float,
    improvement: float,
    winner_name: Optional[str] = None,
    minimal_improvement: float = 5.0,
    strong_improvement: float = 20.0,
) -> str:
    """
    Recommendation text for the operator.

    Parameters
    ----------
    significance : float
        Significance of the winner, or the best significance seen when there
        is no winner
    threshold : float
        The test's significance threshold
    improvement : float
        Improvement of the winner over the control in % (0 without a winner)
    winner_name : str, optional
        Display name of the winning variant
    minimal_improvement, strong_improvement : float
        Policy cut-offs in %
    """
    if significance < threshold:
        return (
            "Test has not reached statistical significance. "
            "Consider extending the test duration or increasing sample size."
        )

    if improvement < minimal_improvement:
        return (
            "While statistically significant, the improvement is minimal. "
            "Treat the result as inconclusive and consider testing more dramatic variations."
        )

    name = winner_name or "the winning variant"
    if improvement >= strong_improvement:
        return (
            f"Excellent results! Implement {name} immediately. "
            f"The {improvement:.1f}% improvement is substantial and should be "
            f"rolled out across all campaigns."
        )

    return (
        f"Good results! {name} shows a {improvement:.1f}% improvement. "
        f"Implement this variant and keep testing similar optimizations."
    )


def decide(
    comparisons: List[VariantComparison],
    significance_threshold: float,
    auto_winner_declaration: bool,
    early_stopping_threshold: float = EARLY_STOPPING_THRESHOLD,
    minimal_improvement: float = 5.0,
    strong_improvement: float = 20.0,
) -> WinnerDecision:
    """Apply the full policy to a set of comparisons."""
    best_significance = max_significance(comparisons)
    chosen = select_winner(comparisons, significance_threshold)

    if chosen is not None:
        significance = chosen.significance
        improvement = chosen.improvement_over_control
    else:
        significance = best_significance
        improvement = 0.0

    return WinnerDecision(
        winner=chosen,
        significance=significance,
        improvement=improvement,
        early_stop=should_stop_early(
            best_significance, auto_winner_declaration, early_stopping_threshold
        ),
        recommendation=recommend(
            significance,
            significance_threshold,
            improvement,
            winner_name=chosen.variant_name if chosen else None,
            minimal_improvement=minimal_improvement,
            strong_improvement=strong_improvement,
        ),
    )
