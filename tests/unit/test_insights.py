# PatternHub
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Tests for InsightGenerator rules and report caching."""

import pytest

from patternhub.config import InsightConfig
from patternhub.sessions.insights import InsightGenerator
from patternhub.sessions.models import DailyTrend, MetricsSummary

ALL_GATES_PASS = {"typecheck": 1.0, "lint": 1.0, "tests": 1.0, "build": 1.0}


def _summary(**overrides) -> MetricsSummary:
    values = {
        "total_sessions": 10,
        "successful_sessions": 8,
        "failed_sessions": 2,
        "average_duration": 600.0,
        "objective_completion_rate": 1.0,
        "quality_gate_pass_rates": dict(ALL_GATES_PASS),
    }
    values.update(overrides)
    return MetricsSummary(**values)


def _trend(counts: list[int]) -> list[DailyTrend]:
    return [
        DailyTrend(date=f"2026-03-{day:02d}", sessions_completed=count)
        for day, count in enumerate(counts, start=1)
    ]


@pytest.fixture
def generator(ledger, clock):
    return InsightGenerator(ledger, InsightConfig(), clock=clock)


class TestRules:
    def test_empty_window_gives_empty_report(self, generator, clock):
        report = generator.build_report(MetricsSummary(), clock())
        assert report.insights == [] and report.patterns == [] and report.recommendations == []

    def test_healthy_summary_is_quiet(self, generator, clock):
        report = generator.build_report(_summary(), clock())
        assert report.insights == []
        assert report.patterns == []
        assert report.recommendations == []

    def test_high_success_rate(self, generator, clock):
        report = generator.build_report(
            _summary(successful_sessions=19, failed_sessions=1, total_sessions=20), clock()
        )
        titles = [i.title for i in report.insights]
        assert titles == ["Excellent Success Rate"]
        assert report.insights[0].type == "success"
        assert "95.0%" in report.insights[0].description

    def test_low_success_rate(self, generator, clock):
        report = generator.build_report(
            _summary(successful_sessions=5, failed_sessions=1, total_sessions=10), clock()
        )
        warning = report.insights[0]
        assert warning.type == "warning"
        assert warning.title == "Low Success Rate"
        assert warning.recommendation == "Review common errors and improve session planning"

    def test_success_rate_boundaries_are_exclusive(self, generator, clock):
        at_high = _summary(successful_sessions=9, failed_sessions=0, total_sessions=10)
        at_low = _summary(successful_sessions=7, failed_sessions=0, total_sessions=10)
        assert generator.build_report(at_high, clock()).insights == []
        assert generator.build_report(at_low, clock()).insights == []

    def test_quality_gate_below_threshold(self, generator, clock):
        rates = dict(ALL_GATES_PASS, lint=0.5)
        report = generator.build_report(_summary(quality_gate_pass_rates=rates), clock())
        (insight,) = report.insights
        assert insight.type == "improvement"
        assert insight.title == "lint Quality Gate Issues"
        assert insight.recommendation == "Focus on improving lint compliance"

    def test_common_error_pattern(self, generator, clock):
        errors = [{"type": "TypeError", "count": 4}, {"type": "KeyError", "count": 1}]
        report = generator.build_report(_summary(common_errors=errors), clock())
        (pattern,) = report.patterns
        assert pattern.pattern == "Frequent TypeError errors"
        assert pattern.frequency == 4
        assert pattern.impact == "negative"
        assert "Address recurring TypeError errors" in report.recommendations

    def test_long_sessions(self, generator, clock):
        report = generator.build_report(_summary(average_duration=3 * 3600.0), clock())
        (insight,) = report.insights
        assert insight.title == "Long Session Duration"
        assert "3.0 hours" in insight.description

    def test_objective_and_failure_recommendations(self, generator, clock):
        report = generator.build_report(
            _summary(objective_completion_rate=0.5, successful_sessions=8, failed_sessions=3, total_sessions=11),
            clock(),
        )
        assert "Improve objective planning and scoping" in report.recommendations
        assert "Implement better error recovery strategies" in report.recommendations

    def test_increasing_productivity(self, generator, clock):
        report = generator.build_report(_summary(daily_trend=_trend([1, 1, 3, 3, 3, 3, 3, 3, 3])), clock())
        assert [p.pattern for p in report.patterns] == ["Increasing productivity"]
        assert report.patterns[0].frequency == 7

    def test_decreasing_productivity(self, generator, clock):
        report = generator.build_report(_summary(daily_trend=_trend([5, 5, 1, 1, 1, 1, 1, 1, 1])), clock())
        assert [p.pattern for p in report.patterns] == ["Decreasing productivity"]
        assert "Review recent workflow changes" in report.recommendations

    def test_trend_change_of_exactly_twenty_percent(self, generator, clock):
        rising = generator.build_report(_summary(daily_trend=_trend([5] + [6] * 7)), clock())
        falling = generator.build_report(_summary(daily_trend=_trend([10] + [8] * 7)), clock())
        assert [p.pattern for p in rising.patterns] == ["Increasing productivity"]
        assert [p.pattern for p in falling.patterns] == ["Decreasing productivity"]

    def test_small_trend_change_is_ignored(self, generator, clock):
        report = generator.build_report(_summary(daily_trend=_trend([10] + [11] * 7)), clock())
        assert report.patterns == []

    def test_flat_idle_trend_is_ignored(self, generator, clock):
        report = generator.build_report(_summary(daily_trend=_trend([0] * 8)), clock())
        assert report.patterns == []

    def test_trend_needs_enough_days(self, generator, clock):
        report = generator.build_report(_summary(daily_trend=_trend([0, 0, 0, 5, 5, 5, 5])), clock())
        assert report.patterns == []


class TestCaching:
    def test_report_is_cached_within_ttl(self, generator, ledger, clock):
        first = generator.generate()
        ledger.start_session("s1", ["a"])
        clock.advance(minutes=59)
        assert generator.generate() is first

    def test_report_expires_after_ttl(self, generator, ledger, clock):
        first = generator.generate()
        assert first.insights == []
        ledger.start_session("s1", ["a"])
        ledger.update_session("s1", status="failed")
        clock.advance(hours=1)
        second = generator.generate()
        assert second is not first
        assert second.insights[0].title == "Low Success Rate"

    def test_invalidate(self, generator, ledger):
        assert generator.invalidate() is False
        first = generator.generate()
        assert generator.cached_report is first
        assert generator.invalidate() is True
        assert generator.cached_report is None
        assert generator.generate() is not first

    def test_generated_at_uses_clock(self, generator, clock):
        assert generator.generate().generated_at == clock.now

    def test_to_dict_shape(self, generator, ledger):
        ledger.start_session("s1", ["a"])
        ledger.record_error("s1", "TypeError", "m")
        ledger.update_session("s1", status="failed")
        data = generator.generate().to_dict()
        assert set(data) == {"generated_at", "insights", "patterns", "recommendations"}
        assert data["patterns"][0] == {"pattern": "Frequent TypeError errors", "frequency": 1, "impact": "negative"}
