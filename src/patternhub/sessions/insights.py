# PatternHub
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of PatternHub.
#
# PatternHub is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""
PatternHub -- Insight Generator

Turns a ``MetricsSummary`` into an ``InsightReport``: flagged successes,
warnings and improvement areas, recurring behavioural patterns, and
free-text recommendations.

The report is cached. Calls within ``cache_ttl_seconds`` (one hour by
default) return the identical cached report even if sessions were recorded
in between; ``invalidate()`` drops the cache immediately.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from patternhub.config import InsightConfig
from patternhub.sessions.ledger import SessionMetricsLedger
from patternhub.sessions.models import MetricsSummary

logger = logging.getLogger("patternhub.sessions.insights")


@dataclass
class Insight:
    type: str  # 'success', 'warning', 'improvement'
    title: str
    description: str
    recommendation: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result = {"type": self.type, "title": self.title, "description": self.description}
        if self.recommendation:
            result["recommendation"] = self.recommendation
        if self.data:
            result["data"] = self.data
        return result


@dataclass
class BehaviourPattern:
    pattern: str
    frequency: int
    impact: str  # 'positive', 'negative', 'neutral'

    def to_dict(self) -> dict[str, Any]:
        return {"pattern": self.pattern, "frequency": self.frequency, "impact": self.impact}


@dataclass
class InsightReport:
    generated_at: datetime
    insights: list[Insight] = field(default_factory=list)
    patterns: list[BehaviourPattern] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "insights": [i.to_dict() for i in self.insights],
            "patterns": [p.to_dict() for p in self.patterns],
            "recommendations": list(self.recommendations),
        }


class InsightGenerator:
    """Derives and caches insight reports from the session ledger."""

    def __init__(
        self,
        ledger: SessionMetricsLedger,
        config: InsightConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ):
        self._ledger = ledger
        self._config = config or InsightConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._cached: InsightReport | None = None

    def generate(self) -> InsightReport:
        """Return the cached report if still fresh, else build and cache a new one."""
        now = self._clock()
        with self._lock:
            if self._cached is not None and now - self._cached.generated_at < timedelta(
                seconds=self._config.cache_ttl_seconds
            ):
                return self._cached

            summary = self._ledger.summary(self._config.window_days)
            report = self.build_report(summary, now)
            self._cached = report
        logger.info(
            "Generated insight report: %d insight(s), %d pattern(s), %d recommendation(s)",
            len(report.insights),
            len(report.patterns),
            len(report.recommendations),
        )
        return report

    def invalidate(self) -> bool:
        """Drop the cached report. Returns True if there was one."""
        with self._lock:
            had_report = self._cached is not None
            self._cached = None
        return had_report

    @property
    def cached_report(self) -> InsightReport | None:
        return self._cached

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def build_report(self, summary: MetricsSummary, now: datetime) -> InsightReport:
        cfg = self._config
        report = InsightReport(generated_at=now)
        if summary.total_sessions == 0:
            return report

        success_rate = summary.success_rate
        if success_rate > cfg.high_success_rate:
            report.insights.append(
                Insight(
                    type="success",
                    title="Excellent Success Rate",
                    description=f"{success_rate * 100:.1f}% of sessions completed successfully",
                    data={"success_rate": success_rate},
                )
            )
        elif success_rate < cfg.low_success_rate:
            report.insights.append(
                Insight(
                    type="warning",
                    title="Low Success Rate",
                    description=f"Only {success_rate * 100:.1f}% of sessions completed successfully",
                    recommendation="Review common errors and improve session planning",
                    data={"success_rate": success_rate},
                )
            )

        for gate, pass_rate in summary.quality_gate_pass_rates.items():
            if pass_rate < cfg.min_gate_pass_rate:
                report.insights.append(
                    Insight(
                        type="improvement",
                        title=f"{gate} Quality Gate Issues",
                        description=f"Only {pass_rate * 100:.1f}% pass rate for {gate}",
                        recommendation=f"Focus on improving {gate} compliance",
                        data={"gate": gate, "pass_rate": pass_rate},
                    )
                )

        if summary.common_errors:
            top = summary.common_errors[0]
            report.patterns.append(
                BehaviourPattern(
                    pattern=f"Frequent {top['type']} errors",
                    frequency=top["count"],
                    impact="negative",
                )
            )
            report.recommendations.append(f"Address recurring {top['type']} errors")

        self._trend_rule(summary, report)

        if summary.average_duration > cfg.long_session_seconds:
            report.insights.append(
                Insight(
                    type="improvement",
                    title="Long Session Duration",
                    description=f"Average session takes {summary.average_duration / 3600:.1f} hours",
                    recommendation="Consider breaking down sessions into smaller tasks",
                    data={"average_duration": summary.average_duration},
                )
            )

        if summary.objective_completion_rate < cfg.min_objective_completion:
            report.recommendations.append("Improve objective planning and scoping")
        if summary.failed_sessions > summary.successful_sessions * cfg.max_failure_ratio:
            report.recommendations.append("Implement better error recovery strategies")

        return report

    def _trend_rule(self, summary: MetricsSummary, report: InsightReport) -> None:
        """Compare the most recent days of completed sessions against the rest."""
        cfg = self._config
        trend = summary.daily_trend
        if len(trend) < cfg.trend_min_days:
            return
        recent = trend[-cfg.trend_recent_days :]
        older = trend[: -cfg.trend_recent_days]
        if not recent or not older:
            return
        avg_recent = sum(t.sessions_completed for t in recent) / len(recent)
        avg_older = sum(t.sessions_completed for t in older) / len(older)
        if avg_recent == avg_older:
            return

        if avg_recent >= avg_older * (1 + cfg.trend_change):
            report.patterns.append(
                BehaviourPattern(pattern="Increasing productivity", frequency=len(recent), impact="positive")
            )
        elif avg_recent <= avg_older * (1 - cfg.trend_change):
            report.patterns.append(
                BehaviourPattern(pattern="Decreasing productivity", frequency=len(recent), impact="negative")
            )
            report.recommendations.append("Review recent workflow changes")
