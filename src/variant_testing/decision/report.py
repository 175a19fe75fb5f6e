"""
Results Reporting
=================

Turns an analysis into the final report of a test: per-variant comparison
table, cost summary, per-platform breakdown and qualitative insights.

Every figure is computed from ingested data; nothing is estimated or
randomised.

Example Usage:
--------------
>>> from variant_testing.decision import report
>>>
>>> results = report.build_results(test, analysis)
>>> print(results.recommendation)
>>> print(f"ROI: {results.cost_analysis.roi:.1f}%")
"""

from dataclasses import replace
from typing import Any, Dict, List, Optional

from variant_testing.config import EngineSettings, get_settings
from variant_testing.core import metrics as metrics_ops, quality
from variant_testing.core.frequentist import conversion_rate, interpret_effect_size
from variant_testing.core.models import (
    ABTest,
    ABTestResults,
    CostAnalysis,
    Insight,
    StatisticalResult,
    Variant,
    VariantComparison,
)


def cost_analysis(variants: List[Variant]) -> CostAnalysis:
    """
    Aggregate spend and return across all variants.

    - roi = (revenue - cost) / cost × 100
    - cost_efficiency = revenue / cost
    Both are 0 when nothing was spent.
    """
    total_cost = float(sum(v.metrics.cost for v in variants))
    total_revenue = float(sum(v.metrics.revenue for v in variants))

    return CostAnalysis(
        total_cost=total_cost,
        total_revenue=total_revenue,
        cost_per_variant=total_cost / len(variants) if variants else 0.0,
        roi=(total_revenue - total_cost) / total_cost * 100 if total_cost > 0 else 0.0,
        cost_efficiency=total_revenue / total_cost if total_cost > 0 else 0.0,
    )


def mark_winner(comparisons: List[VariantComparison],
                winner_variant_id: Optional[str]) -> List[VariantComparison]:
    """Copies of ``comparisons`` with exactly the winner flagged (or none)."""
    return [
        replace(c, is_winner=(winner_variant_id is not None and c.variant_id == winner_variant_id))
        for c in comparisons
    ]


def platform_performance(test: ABTest) -> List[Dict[str, Any]]:
    """
    Per-platform totals and the best-converting variant on each platform.

    Platforms come from the configuration plus any platform that reported
    data. A platform without impressions has no winner ("").
    """
    platforms = list(test.config.platforms)
    for variant in test.variants:
        for platform in variant.platform_metrics:
            if platform not in platforms:
                platforms.append(platform)

    rows = []
    for platform in platforms:
        per_variant = [
            (v, v.platform_metrics[platform])
            for v in test.variants if platform in v.platform_metrics
        ]
        totals = metrics_ops.total(m for _, m in per_variant)

        best_id, best_rate = "", -1.0
        for variant, m in per_variant:
            if m.impressions == 0:
                continue
            rate = conversion_rate(m)
            if rate > best_rate:
                best_id, best_rate = variant.id, rate

        rows.append({
            'platform': platform,
            'performance': {
                'impressions': totals.impressions,
                'clicks': totals.clicks,
                'conversions': totals.conversions,
                'cost': totals.cost,
                'revenue': totals.revenue,
                'conversion_rate': conversion_rate(totals),
            },
            'winner_variant': best_id,
        })
    return rows


def audience_segments(test: ABTest) -> List[Dict[str, Any]]:
    """Single segment for the configured target audience."""
    totals = metrics_ops.total(v.metrics for v in test.variants)
    return [{
        'segment': test.config.target_audience,
        'performance': {
            'impressions': totals.impressions,
            'conversions': totals.conversions,
            'conversion_rate': conversion_rate(totals),
        },
        'winner_variant': test.winner_variant_id or "",
    }]


def generate_insights(
    test: ABTest,
    analysis: StatisticalResult,
    costs: CostAnalysis,
    checks: Dict[str, Any],
    settings: Optional[EngineSettings] = None,
) -> List[Insight]:
    """Qualitative observations, each tagged with impact and confidence."""
    settings = settings or get_settings()
    threshold = test.config.significance_threshold
    insights = []

    if analysis.significance >= threshold:
        insights.append(Insight(
            type='statistical',
            category='significance',
            message=f"Test reached statistical significance with {analysis.significance:.1f}% confidence",
            impact='high',
            actionable=True,
            recommendation="Implement winning variant" if analysis.winner_variant_id else "Keep the control",
            confidence=analysis.significance / 100,
            metadata={
                'significance': analysis.significance,
                'threshold': threshold,
                'effect_size': analysis.effect_size,
                'effect_interpretation': interpret_effect_size(analysis.effect_size),
            },
        ))

    if analysis.improvement > settings.strong_improvement:
        insights.append(Insight(
            type='performance',
            category='improvement',
            message=f"Exceptional improvement of {analysis.improvement:.1f}% detected",
            impact='high',
            actionable=True,
            recommendation="Prioritize immediate implementation",
            confidence=0.95,
            metadata={'improvement': analysis.improvement},
        ))

    for comparison in analysis.comparisons:
        if comparison.is_control:
            continue
        if comparison.significance >= threshold and comparison.improvement_over_control < 0:
            insights.append(Insight(
                type='performance',
                category='underperformance',
                message=(
                    f"{comparison.variant_name} converts {abs(comparison.improvement_over_control):.1f}% "
                    f"worse than the control"
                ),
                impact='medium',
                actionable=True,
                recommendation=f"Stop {comparison.variant_name}",
                confidence=comparison.significance / 100,
                metadata={
                    'variant_id': comparison.variant_id,
                    'improvement': comparison.improvement_over_control,
                },
            ))

    if not analysis.sample_size_reached:
        insights.append(Insight(
            type='statistical',
            category='sample_size',
            message=(
                f"Planned minimum sample size of {test.statistical.minimum_sample_size:,} "
                f"has not been reached for every variant"
            ),
            impact='medium',
            actionable=True,
            recommendation="Keep the test running before trusting the result",
            confidence=0.9,
            metadata={
                'minimum_sample_size': test.statistical.minimum_sample_size,
                'power': analysis.power,
            },
        ))

    if costs.total_cost > 0 and costs.roi < 0:
        insights.append(Insight(
            type='cost',
            category='roi',
            message=f"Test spend is not paying back (ROI {costs.roi:.1f}%)",
            impact='medium',
            actionable=True,
            recommendation="Review budget allocation across variants",
            confidence=0.8,
            metadata={'roi': costs.roi, 'total_cost': costs.total_cost},
        ))

    srm = checks.get('sample_ratio_mismatch', {})
    if srm.get('srm_severe') or srm.get('srm_warning'):
        severe = bool(srm.get('srm_severe'))
        insights.append(Insight(
            type='quality',
            category='sample_ratio_mismatch',
            message=(
                f"Impressions do not match the configured traffic split "
                f"(χ² = {srm['chi2_statistic']:.2f}, p = {srm['p_value']:.4f}, "
                f"max deviation {srm['max_pp_deviation'] * 100:.2f}pp)"
            ),
            impact='high' if severe else 'low',
            actionable=severe,
            recommendation=(
                "Investigate traffic allocation issues before acting on the result"
                if severe else "Monitor the traffic split; the deviation is too small to matter yet"
            ),
            confidence=1 - srm['p_value'],
            metadata={
                'observed_ratio': srm.get('observed_ratio', []),
                'max_pp_deviation': srm['max_pp_deviation'],
            },
        ))

    allocation = checks.get('traffic_allocation', {})
    if allocation.get('status') == 'fail':
        insights.append(Insight(
            type='quality',
            category='traffic_allocation',
            message=allocation['message'],
            impact='high',
            actionable=True,
            recommendation=allocation['recommendation'],
            confidence=1.0,
            metadata={'total_allocation': allocation['total_allocation']},
        ))

    for outlier in checks.get('outliers', []):
        insights.append(Insight(
            type='quality',
            category='outlier',
            message=outlier['message'],
            impact=outlier['impact'],
            actionable=True,
            recommendation=outlier['recommendation'],
            confidence=0.8,
            metadata={'variant_id': outlier['variant_id'], 'z_score': outlier['z_score']},
        ))

    return insights


def build_results(
    test: ABTest,
    analysis: StatisticalResult,
    settings: Optional[EngineSettings] = None,
) -> ABTestResults:
    """
    Assemble the full report for a completed or in-flight test.

    Parameters
    ----------
    test : ABTest
        Test whose variants hold the latest metrics
    analysis : StatisticalResult
        Analysis of those metrics
    settings : EngineSettings, optional
        Policy constants; defaults to the process-wide settings

    Returns
    -------
    ABTestResults
        Report with at most one comparison flagged as winner
    """
    settings = settings or get_settings()
    costs = cost_analysis(test.variants)
    checks = quality.run_quality_checks(
        test.variants,
        srm_alpha=settings.srm_alpha,
        srm_pp_threshold=settings.srm_pp_threshold,
        traffic_tolerance=settings.traffic_tolerance,
        outlier_threshold=settings.outlier_threshold,
    )

    return ABTestResults(
        test_id=test.id,
        winner_variant_id=analysis.winner_variant_id,
        confidence_level=analysis.confidence_level,
        statistical_significance=analysis.significance,
        improvement_percentage=analysis.improvement,
        p_value=analysis.p_value,
        effect_size=analysis.effect_size,
        recommendation=analysis.recommendation,
        insights=generate_insights(test, analysis, costs, checks, settings),
        performance_comparison=mark_winner(analysis.comparisons, analysis.winner_variant_id),
        cost_analysis=costs,
        platform_performance=platform_performance(test),
        audience_segments=audience_segments(test),
        quality_checks=checks,
        sample_size_analysis=analysis.sample_size_analysis,
        days_to_significance=analysis.days_to_significance,
    )
