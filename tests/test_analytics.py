"""Tests for portfolio analytics."""

from dataclasses import replace
from datetime import timedelta

import pytest

from variant_testing import analytics
from variant_testing.core.models import ABTestType, MetricsDelta


def _winning_test(manager, config, variant_specs):
    test = manager.create_test(config, variant_specs)
    manager.start_test(test.id)
    control, question = test.variants
    manager.record_metrics(test.id, control.id, MetricsDelta(impressions=10000, conversions=500))
    return manager.record_metrics(test.id, question.id, MetricsDelta(impressions=10000, conversions=650))


class TestTestingAnalytics:
    """Tests for summary statistics over a window."""

    def test_summary(self, manager, repository, config, variant_specs, clock):
        _winning_test(manager, config, variant_specs)

        flat = manager.create_test(replace(config, test_type=ABTestType.TIMING,
                                           platforms=("instagram",)), variant_specs)
        manager.start_test(flat.id)
        manager.complete_test(flat.id)

        running = manager.create_test(config, variant_specs)
        manager.start_test(running.id)

        result = analytics.testing_analytics(repository.list_tests(), now=clock.now)
        summary = result['summary']

        assert summary['total_tests'] == 3
        assert summary['running_tests'] == 1
        assert summary['completed_tests'] == 2
        assert summary['tests_with_winners'] == 1
        assert summary['success_rate'] == pytest.approx(50.0)
        assert summary['avg_improvement'] == pytest.approx(30.0)

        trends = result['trends']
        assert trends['total_tests'] == 3
        assert trends['success_rate'] == pytest.approx(100 / 3)
        assert trends['avg_improvement'] == pytest.approx(10.0)

        types = {row['type']: row['count'] for row in result['test_types']}
        assert types == {'content': 2, 'timing': 1}
        platforms = {row['platform']: row['count'] for row in result['platforms']}
        assert platforms == {'facebook': 2, 'linkedin': 2, 'instagram': 1}

        assert any("testing frequency" in r for r in result['recommendations'])
        assert any("dramatic variations" in r for r in result['recommendations'])

    def test_window_excludes_old_tests(self, manager, repository, config, variant_specs, clock):
        manager.create_test(config, variant_specs)
        clock.advance(days=45)
        manager.create_test(config, variant_specs)

        result = analytics.testing_analytics(repository.list_tests(), now=clock.now, days=30)
        assert result['summary']['total_tests'] == 1

    def test_empty(self, clock):
        result = analytics.testing_analytics([], now=clock.now)

        assert result['summary']['total_tests'] == 0
        assert result['summary']['success_rate'] == 0.0
        assert result['trends'] == {'total_tests': 0, 'success_rate': 0.0, 'avg_improvement': 0.0}
        assert result['test_types'] == []
        assert result['platforms'] == []

    def test_invalid_window(self, clock):
        with pytest.raises(ValueError, match="days must be positive"):
            analytics.testing_analytics([], now=clock.now, days=0)

    def test_frame_columns(self, manager, config, variant_specs, clock):
        test = _winning_test(manager, config, variant_specs)
        df = analytics.tests_to_frame([test])

        assert df.loc[0, 'has_winner']
        assert df.loc[0, 'improvement'] == pytest.approx(30.0)
        assert clock.now - df.loc[0, 'created_at'] < timedelta(days=1)


class TestTestingStrategy:
    """Tests for the weekly testing plan."""

    def test_month_plan(self):
        plan = analytics.testing_strategy([], timeframe='month', budget=10000)

        assert [w['week'] for w in plan['timeline']] == [1, 2, 3, 4]
        assert plan['timeline'][0]['tests'] == ['subject_line', 'creative']
        assert plan['timeline'][1]['tests'] == ['content', 'audience']
        assert plan['timeline'][2]['tests'] == ['timing']
        assert plan['timeline'][3]['tests'] == []
        assert plan['timeline'][0]['expected_results'] == "Expected 10-25% improvement across 2 tests"
        assert plan['timeline'][2]['expected_results'] == "Expected 10-25% improvement across 1 test"

    def test_weekly_focus_cycles(self):
        plan = analytics.testing_strategy([], timeframe='quarter', budget=15000)
        focus = [w['focus'] for w in plan['timeline']]

        assert len(focus) == 12
        assert focus[0] == "Foundation Building"
        assert focus[3] == "Audience Refinement"
        assert focus[4] == "Foundation Building"

    def test_objectives_move_to_front(self):
        priorities = analytics.prioritize_test_types(["Timing", "audience"])

        assert [p['test_type'] for p in priorities] == [
            'audience', 'timing', 'subject_line', 'creative', 'content',
        ]
        assert [p['priority'] for p in priorities] == [1, 2, 3, 4, 5]

    @pytest.mark.parametrize("budget, per_week, team, hours", [
        (4999, 0, 0, 0),
        (5000, 1, 1, 40),
        (12000, 2, 1, 80),
        (50000, 3, 2, 120),
    ])
    def test_resources_scale_with_budget(self, budget, per_week, team, hours):
        plan = analytics.testing_strategy([], timeframe='week', budget=budget)

        assert len(plan['timeline'][0]['tests']) == per_week
        assert plan['resource_allocation'] == {
            'budget': budget,
            'team_members': team,
            'time_investment': hours,
        }

    def test_invalid_arguments(self):
        with pytest.raises(ValueError, match="timeframe must be one of"):
            analytics.testing_strategy([], timeframe='year')
        with pytest.raises(ValueError, match="budget must be non-negative"):
            analytics.testing_strategy([], budget=-1)
