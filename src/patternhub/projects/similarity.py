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
"""Weighted similarity between project knowledge snapshots.

    similarity(A, B) = 0.30 * [A.type == B.type]
                     + 0.30 * |shared patterns| / |A.patterns|
                     + 0.20 * |shared dependencies| / |A.dependencies|
                     + 0.20 * (1 - |A.success_rate - B.success_rate|)

Ratio terms are taken over A's own sets, so the score is asymmetric when
the two projects differ in size. ``similarity(A, A)`` is 1 whenever A has
at least one pattern and one dependency; an empty set contributes 0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from patternhub.config import SimilarityConfig
from patternhub.projects.knowledge import ProjectKnowledge, ProjectKnowledgeCache

logger = logging.getLogger("patternhub.projects.similarity")


@dataclass
class SimilarProject:
    project: ProjectKnowledge
    similarity: float
    shared_patterns: list[str] = field(default_factory=list)
    shared_dependencies: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project.project_id,
            "project_type": self.project.project_type,
            "similarity": round(self.similarity, 4),
            "shared_patterns": list(self.shared_patterns),
            "shared_dependencies": list(self.shared_dependencies),
        }


class SimilarityEngine:
    def __init__(self, cache: ProjectKnowledgeCache, config: SimilarityConfig | None = None):
        self._cache = cache
        self._config = config or SimilarityConfig()

    def similarity(self, a: ProjectKnowledge, b: ProjectKnowledge) -> float:
        cfg = self._config
        score = 0.0
        if a.project_type == b.project_type:
            score += cfg.same_type_weight

        a_patterns = set(a.patterns)
        if a_patterns:
            shared = a_patterns & set(b.patterns)
            score += cfg.shared_patterns_weight * len(shared) / len(a_patterns)

        a_deps = set(a.dependencies)
        if a_deps:
            shared = a_deps & set(b.dependencies)
            score += cfg.shared_dependencies_weight * len(shared) / len(a_deps)

        gap = abs(a.metrics.success_rate - b.metrics.success_rate)
        score += cfg.success_rate_weight * (1.0 - gap)
        return min(1.0, max(0.0, score))

    def find_similar(self, project_id: str) -> list[SimilarProject]:
        """Projects more similar than ``minimum_similarity`` to *project_id*, best first.

        Stale snapshots (the target's and every candidate's) are refreshed
        before comparison.
        """
        target = self._cache.get_or_refresh(project_id)
        results: list[SimilarProject] = []
        for other_id in [s.project_id for s in self._cache.all()]:
            if other_id == project_id:
                continue
            other = self._cache.get_or_refresh(other_id)
            score = self.similarity(target, other)
            if score <= self._config.minimum_similarity:
                continue
            results.append(
                SimilarProject(
                    project=other,
                    similarity=score,
                    shared_patterns=[p for p in target.patterns if p in set(other.patterns)],
                    shared_dependencies=[
                        d for d in target.dependencies if d in set(other.dependencies)
                    ],
                )
            )
        results.sort(key=lambda r: r.similarity, reverse=True)
        logger.debug("Found %d project(s) similar to %s", len(results), project_id)
        return results
