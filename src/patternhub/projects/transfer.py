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
PatternHub -- Learning Transfer Planner

Decides which patterns and style preferences of one project can safely be
applied to another. A pattern is transferable when

  1. its language matches the target's (or it is language-agnostic),
  2. every dependency it declares is already a dependency of the target,
  3. it has not under-performed (success rate < 0.7) in projects of the
     target's type.

A style preference is transferable when its confidence exceeds 0.8 and
the target has no preference for the same rule with a different value.
Both snapshots are refreshed first when stale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from patternhub.config import TransferConfig
from patternhub.patterns.models import CodePattern
from patternhub.patterns.search import PatternSearchEngine, parse_criteria
from patternhub.patterns.store import PatternStore
from patternhub.projects.collaborators import StylePreference
from patternhub.projects.knowledge import ProjectKnowledge, ProjectKnowledgeCache, project_basename
from patternhub.projects.similarity import SimilarityEngine

logger = logging.getLogger("patternhub.projects.transfer")


@dataclass
class LearningTransfer:
    """A proposed transfer plan. Ephemeral, never persisted."""

    from_project: str
    to_project: str
    patterns: list[CodePattern] = field(default_factory=list)
    styles: list[StylePreference] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "from_project": self.from_project,
            "to_project": self.to_project,
            "patterns": [p.to_dict() for p in self.patterns],
            "styles": [s.to_dict() for s in self.styles],
            "recommendations": list(self.recommendations),
        }


class LearningTransferPlanner:
    def __init__(
        self,
        store: PatternStore,
        cache: ProjectKnowledgeCache,
        search: PatternSearchEngine,
        similarity: SimilarityEngine,
        config: TransferConfig | None = None,
    ):
        self._store = store
        self._cache = cache
        self._search = search
        self._similarity = similarity
        self._config = config or TransferConfig()

    # ------------------------------------------------------------------
    # Transfer plans
    # ------------------------------------------------------------------

    def plan_transfer(self, from_project: str, to_project: str) -> LearningTransfer:
        source = self._cache.get_or_refresh(from_project)
        target = self._cache.get_or_refresh(to_project)

        patterns = []
        for pattern_id in source.patterns:
            pattern = self._store.get(pattern_id)
            if pattern is not None and self.is_applicable(pattern, target):
                patterns.append(pattern)

        styles = [s for s in source.style_preferences if self.is_style_transferable(s, target)]

        transfer = LearningTransfer(
            from_project=from_project,
            to_project=to_project,
            patterns=patterns,
            styles=styles,
            recommendations=self._transfer_recommendations(source, target),
        )
        logger.info(
            "Planned transfer %s -> %s: %d pattern(s), %d style(s)",
            from_project,
            to_project,
            len(patterns),
            len(styles),
        )
        return transfer

    def is_applicable(self, pattern: CodePattern, target: ProjectKnowledge) -> bool:
        agnostic = {lang.lower() for lang in self._config.language_agnostic}
        pattern_language = pattern.language.lower()
        target_language = (target.language or target.project_type).lower()
        if pattern_language not in agnostic and pattern_language != target_language:
            return False

        target_deps = set(target.dependencies)
        if any(dep not in target_deps for dep in pattern.metadata.dependencies):
            return False

        if pattern.usage.success_rate < self._config.min_pattern_success_rate:
            for project_id in pattern.usage.projects:
                snapshot = self._cache.get(project_id)
                if snapshot is not None and snapshot.project_type == target.project_type:
                    return False
        return True

    def is_style_transferable(self, style: StylePreference, target: ProjectKnowledge) -> bool:
        if style.confidence <= self._config.min_style_confidence:
            return False
        return not any(
            existing.rule == style.rule and existing.value != style.value
            for existing in target.style_preferences
        )

    @staticmethod
    def _transfer_recommendations(source: ProjectKnowledge, target: ProjectKnowledge) -> list[str]:
        recommendations = []
        name = project_basename(source.project_id)
        if source.metrics.success_rate > target.metrics.success_rate:
            recommendations.append(
                f"Consider adopting practices from {name} which has "
                f"{source.metrics.success_rate * 100:.1f}% success rate"
            )
        solved = [e for e in source.metrics.common_errors if e not in target.metrics.common_errors]
        if solved:
            recommendations.append(f"{name} solved these issues: {', '.join(solved)}")
        return recommendations

    # ------------------------------------------------------------------
    # Project recommendations
    # ------------------------------------------------------------------

    def recommend(self, project_id: str) -> list[str]:
        """Advice for one project: better-performing peers, proven patterns, urgent debt."""
        cfg = self._config
        knowledge = self._cache.get_or_refresh(project_id)
        recommendations: list[str] = []

        similar = self._similarity.find_similar(project_id)
        for match in similar[: cfg.max_similar_recommendations]:
            if (
                match.project.metrics.success_rate
                > knowledge.metrics.success_rate + cfg.recommendation_success_margin
            ):
                recommendations.append(
                    f"Study {project_basename(match.project.project_id)} - "
                    "similar project with better success rate"
                )

        criteria = parse_criteria(
            language=knowledge.language, min_success_rate=cfg.recommended_pattern_success_rate
        )
        suggested = 0
        for match in self._search.search(criteria):
            if suggested >= cfg.max_pattern_recommendations:
                break
            if match.pattern.id in knowledge.patterns:
                continue
            recommendations.append(
                f"Consider using pattern: {match.pattern.name} "
                f"({match.pattern.usage.success_rate * 100:.0f}% success rate)"
            )
            suggested += 1

        for debt in knowledge.technical_debt:
            if debt.severity == "high":
                recommendations.append(f"Address technical debt: {debt.description}")
        return recommendations
