"""
Portfolio Analytics
===================

Summary of a testing programme over a time window: how many tests ran, how
many found a winner, the average improvement of the winners, and where
testing effort went by test type and platform. Also plans a testing
timeline for a budget (``testing_strategy``).

Example Usage:
--------------
>>> from datetime import datetime, timezone
>>> from variant_testing.analytics import testing_analytics
>>>
>>> summary = testing_analytics(repository.list_tests(), now=datetime.now(timezone.utc), days=30)
>>> print(f"Success rate: {summary['summary']['success_rate']:.0f}%")
"""

from datetime import datetime, timedelta
import math
from typing import Any, Dict, List, Sequence

import pandas as pd

from variant_testing.core.models import ABTest, ABTestStatus, ABTestType

MIN_TESTS_FOR_INSIGHT = 5
TARGET_SUCCESS_RATE = 60.0

COST_PER_TEST = 5000.0
MAX_TESTS_PER_WEEK = 3
HOURS_PER_TEST = 40
TIMEFRAME_WEEKS = {'week': 1, 'month': 4, 'quarter': 12}
WEEKLY_FOCUS = (
    "Foundation Building",
    "Performance Optimization",
    "Conversion Enhancement",
    "Audience Refinement",
)

# (test type, reasoning, expected impact), highest priority first
TEST_PRIORITIES = (
    (ABTestType.SUBJECT_LINE, "High impact on open rates", "10-30% improvement in open rates"),
    (ABTestType.CREATIVE, "Visual elements drive engagement", "5-25% improvement in CTR"),
    (ABTestType.CONTENT, "Message optimization for conversions", "5-20% improvement in conversion rate"),
    (ABTestType.AUDIENCE, "Targeting refinement", "10-40% improvement in ROAS"),
    (ABTestType.TIMING, "Optimization of send times", "5-15% improvement in engagement"),
)


def tests_to_frame(tests: List[ABTest]) -> pd.DataFrame:
    """One row per test with the fields the analytics need."""
    rows = []
    for test in tests:
        improvement = test.results.improvement_percentage if test.results else 0.0
        rows.append({
            'test_id': test.id,
            'test_type': test.config.test_type.value,
            'status': test.status.value,
            'platforms': list(test.config.platforms),
            'has_winner': test.winner_variant_id is not None,
            'improvement': improvement,
            'created_at': test.created_at,
        })
    columns = ['test_id', 'test_type', 'status', 'platforms',
               'has_winner', 'improvement', 'created_at']
    return pd.DataFrame(rows, columns=columns)


def testing_analytics(tests: List[ABTest], now: datetime, days: int = 30) -> Dict[str, Any]:
    """
    Analytics over tests created in the last ``days`` days.

    Returns
    -------
    dict
        Dictionary with keys:
        - summary: total / running / completed tests, tests with winners,
          success_rate (% of completed tests with a winner) and
          avg_improvement (mean improvement of tests with a winner)
        - test_types: [{'type', 'count'}]
        - platforms: [{'platform', 'count'}]
        - trends: total_tests, success_rate (% of all tests with a winner)
          and avg_improvement (mean improvement over all tests)
        - recommendations: list of str
    """
    if days <= 0:
        raise ValueError("days must be positive")

    df = tests_to_frame(tests)
    since = now - timedelta(days=days)
    if not df.empty:
        df = df[df['created_at'] >= since]

    total = int(len(df))
    running = int((df['status'] == ABTestStatus.RUNNING.value).sum())
    completed = int((df['status'] == ABTestStatus.COMPLETED.value).sum())
    winners = df[df['has_winner'].astype(bool)]
    with_winners = int(len(winners))

    success_rate = with_winners / completed * 100 if completed > 0 else 0.0
    avg_improvement = float(winners['improvement'].mean()) if with_winners > 0 else 0.0
    trend_success = with_winners / total * 100 if total > 0 else 0.0
    trend_improvement = float(df['improvement'].mean()) if total > 0 else 0.0

    type_counts = df['test_type'].value_counts(sort=False)
    platform_counts = df['platforms'].explode().dropna().value_counts(sort=False)

    recommendations = []
    if total < MIN_TESTS_FOR_INSIGHT:
        recommendations.append("Increase testing frequency to gather more insights")
    if success_rate < TARGET_SUCCESS_RATE:
        recommendations.append(
            "Consider testing more dramatic variations to improve success rate"
        )

    return {
        'summary': {
            'total_tests': total,
            'running_tests': running,
            'completed_tests': completed,
            'tests_with_winners': with_winners,
            'success_rate': success_rate,
            'avg_improvement': avg_improvement,
        },
        'test_types': [
            {'type': str(t), 'count': int(c)} for t, c in type_counts.items()
        ],
        'platforms': [
            {'platform': str(p), 'count': int(c)} for p, c in platform_counts.items()
        ],
        'trends': {
            'total_tests': total,
            'success_rate': trend_success,
            'avg_improvement': trend_improvement,
        },
        'recommendations': recommendations,
    }


def prioritize_test_types(objectives: Sequence[str] = ()) -> List[Dict[str, Any]]:
    """
    Test types in the order they should be run.

    Types named in ``objectives`` move to the front; otherwise the fixed
    priority order holds.
    """
    wanted = {o.strip().lower() for o in objectives}
    ordered = sorted(TEST_PRIORITIES, key=lambda p: p[0].value not in wanted)
    return [
        {
            'test_type': test_type.value,
            'priority': rank,
            'reasoning': reasoning,
            'expected_impact': impact,
        }
        for rank, (test_type, reasoning, impact) in enumerate(ordered, start=1)
    ]


def testing_strategy(objectives: Sequence[str], timeframe: str = 'month',
                     budget: float = 10000.0) -> Dict[str, Any]:
    """
    Weekly testing plan for a timeframe and budget.

    Each test is budgeted at ``COST_PER_TEST``, with at most
    ``MAX_TESTS_PER_WEEK`` per week. Weeks are filled from the priority
    list in order; once it is used up the remaining weeks are empty.

    Parameters
    ----------
    objectives : sequence of str
        Test types the programme cares most about
    timeframe : str
        'week', 'month' or 'quarter'
    budget : float
        Testing budget

    Returns
    -------
    dict
        Dictionary with keys:
        - timeline: [{'week', 'tests', 'focus', 'expected_results'}]
        - prioritization: output of ``prioritize_test_types``
        - resource_allocation: budget, team_members, time_investment
          (hours per week)

    Example
    -------
    >>> plan = testing_strategy(["audience"], timeframe="month", budget=10000)
    >>> plan['timeline'][0]['tests']
    ['audience', 'subject_line']
    """
    if timeframe not in TIMEFRAME_WEEKS:
        raise ValueError(f"timeframe must be one of {sorted(TIMEFRAME_WEEKS)}, got {timeframe!r}")
    if budget < 0:
        raise ValueError("budget must be non-negative")

    weeks = TIMEFRAME_WEEKS[timeframe]
    tests_per_week = min(MAX_TESTS_PER_WEEK, int(budget // COST_PER_TEST))
    priorities = prioritize_test_types(objectives)

    timeline = []
    for week in range(1, weeks + 1):
        week_tests = priorities[(week - 1) * tests_per_week:week * tests_per_week]
        count = len(week_tests)
        timeline.append({
            'week': week,
            'tests': [p['test_type'] for p in week_tests],
            'focus': WEEKLY_FOCUS[(week - 1) % len(WEEKLY_FOCUS)],
            'expected_results': (
                f"Expected 10-25% improvement across {count} test{'s' if count > 1 else ''}"
            ),
        })

    return {
        'timeline': timeline,
        'prioritization': priorities,
        'resource_allocation': {
            'budget': budget,
            'team_members': math.ceil(tests_per_week * 0.5),
            'time_investment': tests_per_week * HOURS_PER_TEST,
        },
    }
