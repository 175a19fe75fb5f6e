"""
Run a Simulated Multi-Variant Test

Creates a test, starts it and feeds seeded daily metric batches from several
platforms through the ingestion layer until the test stops early or the
planned duration runs out. Prints the final report.

Usage:
    # Default: control at 5%, one variant at 6%, two platforms
    uv run python run_simulation.py

    # Three variants, custom rates
    uv run python run_simulation.py --rates 0.05 0.055 0.065

    # Manual completion only (no early stopping)
    uv run python run_simulation.py --no-auto-winner

    # Run quietly
    uv run python run_simulation.py --quiet
"""

import argparse
import logging
import sys
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from variant_testing import ABTestManager, InMemoryRepository
from variant_testing.config import get_settings
from variant_testing.core.models import ABTestConfig, ABTestResults, VariantSpec
from variant_testing.ingestion import MetricsIngestor


class _SimulatedClock:
    """Clock advanced one day per batch so durations are realistic."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 1) -> None:
        self.now += timedelta(days=days)


def simulate(
    rates: Sequence[float],
    daily_impressions: int = 2000,
    days: int = 14,
    platforms: Sequence[str] = ("facebook", "linkedin"),
    significance_threshold: float = 95.0,
    auto_winner: bool = True,
    seed: int = 42,
) -> Dict[str, object]:
    """
    Simulate a test and return the final test and report.

    ``rates[0]`` is the control's true conversion rate. Each day every
    variant receives ``daily_impressions`` impressions split evenly across
    platforms, with binomial clicks and conversions.
    """
    if len(rates) < 2:
        raise ValueError("Need at least 2 conversion rates")

    rng = np.random.RandomState(seed)
    clock = _SimulatedClock(datetime(2024, 1, 1, tzinfo=timezone.utc))
    manager = ABTestManager(InMemoryRepository(), clock=clock)
    ingestor = MetricsIngestor(manager)

    share = 100.0 / len(rates)
    test = manager.create_test(
        ABTestConfig(
            name="Simulated content test",
            platforms=tuple(platforms),
            sample_size=daily_impressions * days * len(rates),
            significance_threshold=significance_threshold,
            minimum_detectable_effect=10.0,
            max_duration_days=days,
            auto_winner_declaration=auto_winner,
        ),
        [
            VariantSpec(
                name="Control" if i == 0 else f"Variant {chr(ord('A') + i - 1)}",
                is_control=(i == 0),
                traffic_percentage=share,
            )
            for i in range(len(rates))
        ],
    )
    manager.start_test(test.id)

    days_run = 0
    for _ in range(days):
        clock.advance()
        days_run += 1

        rows: List[Dict[str, object]] = []
        per_platform = daily_impressions // len(platforms)
        for variant, rate in zip(test.variants, rates):
            for platform in platforms:
                clicks = rng.binomial(per_platform, 0.08)
                conversions = rng.binomial(per_platform, rate)
                rows.append({
                    'test_id': test.id,
                    'variant_id': variant.id,
                    'platform': platform,
                    'impressions': per_platform,
                    'clicks': max(clicks, conversions),
                    'conversions': conversions,
                    'cost': per_platform * 0.01,
                    'revenue': conversions * 2.5,
                })

        summary = ingestor.ingest_frame(pd.DataFrame(rows))
        if summary['completed_tests']:
            break

    final = manager.get_test(test.id)
    if final.results is None:
        final = manager.complete_test(test.id)

    return {'test': final, 'results': final.results, 'days_run': days_run}


def print_report(results: ABTestResults, days_run: int) -> None:
    print("\n" + "=" * 80)
    print(" " * 28 + "SIMULATED TEST REPORT")
    print("=" * 80)
    print(f"Days run: {days_run}")
    print(f"Winner: {results.winner_variant_id or 'none'}")
    print(f"Significance: {results.statistical_significance:.1f}%")
    print(f"Improvement: {results.improvement_percentage:+.1f}%")
    print(f"P-value: {results.p_value:.6f}")

    print("\n📊 VARIANTS")
    print("-" * 80)
    for c in results.performance_comparison:
        flag = "🏆" if c.is_winner else ("  " if not c.is_control else "⚑ ")
        print(f"{flag} {c.variant_name:<12} rate={c.conversion_rate:.2%} "
              f"lift={c.improvement_over_control:+.1f}% sig={c.significance:.1f}%")

    costs = results.cost_analysis
    print("\n💰 COST")
    print("-" * 80)
    print(f"Total cost: ${costs.total_cost:,.2f} | ROI: {costs.roi:.1f}% | "
          f"Efficiency: {costs.cost_efficiency:.2f}")

    checks = results.quality_checks
    srm = checks.get('sample_ratio_mismatch', {})
    print("\n🔍 DATA QUALITY")
    print("-" * 80)
    print(f"SRM severity: {'SEVERE' if srm.get('srm_severe') else 'WARNING ONLY' if srm.get('srm_warning') else 'NONE'}")
    print(f"Checks passed: {checks.get('passed', False)}")
    print(f"Sample progress: {results.sample_size_analysis.get('progress', 0.0):.0f}%")
    if results.days_to_significance is not None:
        print(f"Days to significance: {results.days_to_significance:.1f}")

    print("\n💡 INSIGHTS")
    print("-" * 80)
    for insight in results.insights:
        print(f"  • [{insight.impact}] {insight.message}")

    print(f"\nRecommendation: {results.recommendation}")
    print("=" * 80 + "\n")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run a simulated multi-variant test",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        '--rates',
        type=float,
        nargs='+',
        default=[0.05, 0.06],
        help='True conversion rates, control first (default: 0.05 0.06)'
    )
    parser.add_argument('--daily', type=int, default=2000,
                        help='Impressions per variant per day (default: 2000)')
    parser.add_argument('--days', type=int, default=14,
                        help='Maximum test duration in days (default: 14)')
    parser.add_argument('--threshold', type=float, default=95.0,
                        help='Significance threshold in %% (default: 95)')
    parser.add_argument('--no-auto-winner', action='store_true',
                        help='Disable early stopping')
    parser.add_argument('--seed', type=int, default=42)
    parser.add_argument('--quiet', action='store_true', help='Suppress report output')

    args = parser.parse_args()
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        outcome = simulate(
            rates=args.rates,
            daily_impressions=args.daily,
            days=args.days,
            significance_threshold=args.threshold,
            auto_winner=not args.no_auto_winner,
            seed=args.seed,
        )
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    if not args.quiet:
        print_report(outcome['results'], outcome['days_run'])
    return 0


if __name__ == '__main__':
    sys.exit(main())
