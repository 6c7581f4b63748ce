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
"""Cross-project scans over every pattern and every project snapshot.

Each ``analyze()`` run rebuilds the insight list from scratch and replaces
the persisted list; insights are never merged across runs.
"""

from __future__ import annotations

import logging
import statistics
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from patternhub.config import GlobalAnalysisConfig
from patternhub.patterns.store import PatternStore
from patternhub.projects.knowledge import ProjectKnowledgeCache

logger = logging.getLogger("patternhub.projects.global_analysis")


@dataclass
class CrossProjectInsight:
    type: str  # 'pattern', 'antipattern', 'optimization', 'warning'
    title: str
    description: str
    affected_projects: list[str] = field(default_factory=list)
    recommendation: str = ""
    confidence: float = 0.0
    examples: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "affected_projects": list(self.affected_projects),
            "recommendation": self.recommendation,
            "confidence": self.confidence,
        }
        if self.examples is not None:
            data["examples"] = list(self.examples)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CrossProjectInsight:
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        return cls(**{k: v for k, v in data.items() if k in valid_fields})


class GlobalPatternAnalyzer:
    def __init__(
        self,
        store: PatternStore,
        cache: ProjectKnowledgeCache,
        config: GlobalAnalysisConfig | None = None,
    ):
        self._store = store
        self._cache = cache
        self._config = config or GlobalAnalysisConfig()

    def insights(self, project_id: str | None = None) -> list[CrossProjectInsight]:
        """Current insights, optionally only those affecting *project_id*."""
        result = []
        for record in self._cache.insight_records:
            try:
                insight = CrossProjectInsight.from_dict(record)
            except TypeError as exc:
                logger.warning("Skipping malformed insight record: %s", exc)
                continue
            if project_id is None or project_id in insight.affected_projects:
                result.append(insight)
        return result

    def analyze(self) -> list[CrossProjectInsight]:
        """Recompute and persist the full insight list."""
        insights = self._scan_patterns() + self._scan_errors() + self._scan_durations()
        self._cache.replace_insights([i.to_dict() for i in insights])
        logger.info("Global analysis produced %d insight(s)", len(insights))
        return insights

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    def _scan_patterns(self) -> list[CrossProjectInsight]:
        cfg = self._config
        insights = []
        for pattern in self._store.all():
            usage = pattern.usage
            if usage.count > cfg.pattern_min_usage and usage.success_rate > cfg.pattern_min_success_rate:
                insights.append(
                    CrossProjectInsight(
                        type="pattern",
                        title=f"Highly successful pattern: {pattern.name}",
                        description=(
                            f"Used {usage.count} times with {usage.success_rate * 100:.1f}% success rate"
                        ),
                        affected_projects=sorted(usage.projects),
                        recommendation="Consider using this pattern in similar contexts",
                        confidence=usage.success_rate,
                        examples=[pattern.id],
                    )
                )
            elif (
                usage.count > cfg.antipattern_min_usage
                and usage.success_rate < cfg.antipattern_max_success_rate
            ):
                insights.append(
                    CrossProjectInsight(
                        type="antipattern",
                        title=f"Problematic pattern: {pattern.name}",
                        description=(
                            f"Low success rate ({usage.success_rate * 100:.1f}%) "
                            f"across {usage.count} uses"
                        ),
                        affected_projects=sorted(usage.projects),
                        recommendation="Avoid this pattern or refactor existing usage",
                        confidence=1.0 - usage.success_rate,
                        examples=[pattern.id],
                    )
                )
        return insights

    def _scan_errors(self) -> list[CrossProjectInsight]:
        snapshots = self._cache.all()
        if not snapshots:
            return []
        projects_by_error: dict[str, list[str]] = {}
        for snapshot in snapshots:
            for error in snapshot.metrics.common_errors:
                projects_by_error.setdefault(error, []).append(snapshot.project_id)

        insights = []
        for error, projects in projects_by_error.items():
            if len(projects) > self._config.error_min_projects:
                insights.append(
                    CrossProjectInsight(
                        type="warning",
                        title=f"Common error across projects: {error}",
                        description=f"This error appears in {len(projects)} projects",
                        affected_projects=projects,
                        recommendation="Create a shared solution or pattern to address this issue",
                        confidence=len(projects) / len(snapshots),
                    )
                )
        return insights

    def _scan_durations(self) -> list[CrossProjectInsight]:
        cfg = self._config
        # Projects without timed sessions carry no duration signal
        by_type: dict[str, list[tuple[str, float]]] = {}
        for snapshot in self._cache.all():
            if snapshot.metrics.session_count == 0 or snapshot.metrics.avg_duration <= 0:
                continue
            by_type.setdefault(snapshot.project_type, []).append(
                (snapshot.project_id, snapshot.metrics.avg_duration)
            )

        insights = []
        for project_type, entries in by_type.items():
            if len(entries) <= cfg.optimization_min_group_size:
                continue
            durations = [d for _, d in entries]
            avg = statistics.mean(durations)
            fastest = min(durations)
            if avg <= fastest * cfg.optimization_duration_factor:
                continue
            insights.append(
                CrossProjectInsight(
                    type="optimization",
                    title=f"Performance optimization opportunity for {project_type} projects",
                    description=(
                        f"Average duration is {avg / 60:.1f} minutes, "
                        f"but fastest is {fastest / 60:.1f} minutes"
                    ),
                    affected_projects=[pid for pid, d in entries if d > avg],
                    recommendation="Study the fastest project's patterns and apply optimizations",
                    confidence=cfg.optimization_confidence,
                )
            )
        return insights

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def project_summary(self) -> dict[str, Any]:
        """Portfolio overview across every known project snapshot."""
        snapshots = self._cache.all()
        pattern_counts = Counter(pid for s in snapshots for pid in s.patterns)
        error_counts = Counter(e for s in snapshots for e in s.metrics.common_errors)
        return {
            "total_projects": len(snapshots),
            "avg_success_rate": (
                statistics.mean(s.metrics.success_rate for s in snapshots) if snapshots else 0.0
            ),
            "common_patterns": [pid for pid, _ in pattern_counts.most_common(5)],
            "common_issues": [error for error, _ in error_counts.most_common(5)],
        }
