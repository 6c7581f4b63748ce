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
PatternHub -- Pattern Search

Relevance-ranked retrieval over the pattern store. Candidates come from
the inverted index (facet intersection), then each candidate is scored as
a sum of independent weighted terms:

    success_rate            * success_rate_weight   (0.30)
    min(count / 100, 1)     * usage_weight          (0.20)
    text match              name 0.30 | description 0.20 | code 0.10
    used in the last 7 days + recency_weight        (0.10)

When ``search_text`` is given, candidates with no text match are dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from patternhub.config import RelatedConfig, SearchConfig
from patternhub.errors import InvalidCriteriaError
from patternhub.patterns.index import PatternIndex
from patternhub.patterns.models import CATEGORIES, CodePattern
from patternhub.patterns.store import PatternStore

logger = logging.getLogger("patternhub.patterns.search")


class PatternSearchCriteria(BaseModel):
    """Facets and filters for a pattern search. All fields are optional."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    category: str | None = None
    tags: list[str] = Field(default_factory=list)
    language: str | None = None
    search_text: str | None = None
    min_success_rate: float | None = Field(default=None, ge=0.0, le=1.0)

    @field_validator("category")
    @classmethod
    def _known_category(cls, value: str | None) -> str | None:
        if value is not None and value not in CATEGORIES:
            raise ValueError(f"unknown category {value!r}")
        return value

    @field_validator("tags")
    @classmethod
    def _non_blank_tags(cls, value: list[str]) -> list[str]:
        if any(not tag.strip() for tag in value):
            raise ValueError("tags must not be blank")
        return value

    @field_validator("search_text")
    @classmethod
    def _normalise_text(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


def parse_criteria(
    criteria: PatternSearchCriteria | Mapping[str, Any] | None = None, **kwargs: Any
) -> PatternSearchCriteria:
    """Coerce a dict or keyword arguments into validated criteria.

    Raises InvalidCriteriaError for anything pydantic rejects.
    """
    if isinstance(criteria, PatternSearchCriteria) and not kwargs:
        return criteria
    data: dict[str, Any] = {}
    if isinstance(criteria, PatternSearchCriteria):
        data.update(criteria.model_dump())
    elif criteria is not None:
        data.update(criteria)
    data.update(kwargs)
    try:
        return PatternSearchCriteria(**data)
    except ValidationError as exc:
        raise InvalidCriteriaError(f"Invalid search criteria: {exc}") from exc


@dataclass
class PatternMatch:
    """One ranked search hit."""

    pattern: CodePattern
    relevance: float
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": self.pattern.to_dict(),
            "relevance": round(self.relevance, 4),
            "reason": self.reason,
        }


class PatternSearchEngine:
    """Executes search criteria against the index and store."""

    def __init__(
        self,
        store: PatternStore,
        index: PatternIndex,
        *,
        weights: SearchConfig | None = None,
        related: RelatedConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._store = store
        self._index = index
        self._weights = weights or SearchConfig()
        self._related = related or RelatedConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(
        self, criteria: PatternSearchCriteria | Mapping[str, Any] | None = None, **kwargs: Any
    ) -> list[PatternMatch]:
        """Rank patterns for *criteria*, most relevant first."""
        criteria = parse_criteria(criteria, **kwargs)
        candidate_ids = self._index.candidates(criteria)
        now = self._clock()

        matches: list[PatternMatch] = []
        # Iterate in store order so equal scores keep a stable order
        for pattern in self._store.all():
            if pattern.id not in candidate_ids:
                continue
            if (
                criteria.min_success_rate is not None
                and pattern.usage.success_rate < criteria.min_success_rate
            ):
                continue
            scored = self.score(pattern, criteria, now)
            if scored is None:
                continue
            relevance, reason = scored
            matches.append(PatternMatch(pattern=pattern, relevance=relevance, reason=reason))

        matches.sort(key=lambda m: m.relevance, reverse=True)
        logger.debug("Search %s -> %d match(es)", criteria.model_dump(exclude_none=True), len(matches))
        return matches

    def score(
        self, pattern: CodePattern, criteria: PatternSearchCriteria, now: datetime | None = None
    ) -> tuple[float, str] | None:
        """Relevance and reason for one pattern, or None if the text filter excludes it."""
        w = self._weights
        now = now or self._clock()
        reasons: list[str] = []

        relevance = pattern.usage.success_rate * w.success_rate_weight
        relevance += min(pattern.usage.count / w.usage_saturation, 1.0) * w.usage_weight

        if criteria.search_text:
            needle = criteria.search_text.lower()
            if needle in pattern.name.lower():
                relevance += w.name_match_weight
                reasons.append("Name match")
            elif needle in pattern.description.lower():
                relevance += w.description_match_weight
                reasons.append("Description match")
            elif needle in pattern.code.lower():
                relevance += w.code_match_weight
                reasons.append("Code match")
            else:
                return None

        last_used = pattern.usage.last_used
        if last_used is not None and now - last_used <= timedelta(days=w.recency_days):
            relevance += w.recency_weight
            reasons.append("Recently used")

        return relevance, ", ".join(reasons) or "Criteria match"

    # ------------------------------------------------------------------
    # Related patterns
    # ------------------------------------------------------------------

    def get_related(self, pattern_id: str, limit: int | None = None) -> list[CodePattern]:
        """Patterns most related to *pattern_id*. Unknown ids yield an empty list."""
        source = self._store.get(pattern_id)
        if source is None:
            return []
        limit = self._related.default_limit if limit is None else limit
        if limit <= 0:
            return []

        scored: list[tuple[float, CodePattern]] = []
        for other in self._store.all():
            if other.id == source.id:
                continue
            score = self.relatedness(source, other)
            if score > 0:
                scored.append((score, other))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [pattern for _, pattern in scored[:limit]]

    def relatedness(self, source: CodePattern, other: CodePattern) -> float:
        r = self._related
        score = 0.0
        if other.category == source.category:
            score += r.same_category
        score += len(source.tags & other.tags) * r.shared_tag
        if other.language == source.language:
            score += r.same_language
        if other.id in source.metadata.related_patterns:
            score += r.explicit_relation
        score += len(source.usage.projects & other.usage.projects) * r.shared_project
        return score
