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
"""Inverted index over pattern facets.

Three separate maps (tag, category, language) from facet value to the set
of pattern ids carrying it. The index is derived state: it is rebuilt from
the store whenever a pattern is added or imported, or when a facet of an
existing pattern changes, and is never persisted.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from patternhub.patterns.models import CodePattern
    from patternhub.patterns.search import PatternSearchCriteria


class PatternIndex:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._all: frozenset[str] = frozenset()
        self._by_tag: dict[str, frozenset[str]] = {}
        self._by_category: dict[str, frozenset[str]] = {}
        self._by_language: dict[str, frozenset[str]] = {}

    def rebuild(self, patterns: Iterable[CodePattern]) -> None:
        """Recompute every facet map from scratch."""
        all_ids: set[str] = set()
        by_tag: dict[str, set[str]] = {}
        by_category: dict[str, set[str]] = {}
        by_language: dict[str, set[str]] = {}
        for pattern in patterns:
            all_ids.add(pattern.id)
            by_category.setdefault(pattern.category, set()).add(pattern.id)
            by_language.setdefault(pattern.language, set()).add(pattern.id)
            for tag in pattern.tags:
                by_tag.setdefault(tag, set()).add(pattern.id)

        with self._lock:
            self._all = frozenset(all_ids)
            self._by_tag = {k: frozenset(v) for k, v in by_tag.items()}
            self._by_category = {k: frozenset(v) for k, v in by_category.items()}
            self._by_language = {k: frozenset(v) for k, v in by_language.items()}

    def candidates(self, criteria: PatternSearchCriteria) -> set[str]:
        """Ids matching every facet in *criteria* (intersection).

        With no facet set, every indexed id is a candidate. An unknown facet
        value matches nothing, so the result is empty rather than an error.
        """
        with self._lock:
            result = set(self._all)
            if criteria.category is not None:
                result &= self._by_category.get(criteria.category, frozenset())
            for tag in criteria.tags:
                result &= self._by_tag.get(tag, frozenset())
            if criteria.language is not None:
                result &= self._by_language.get(criteria.language, frozenset())
        return result

    def ids_for_tag(self, tag: str) -> set[str]:
        with self._lock:
            return set(self._by_tag.get(tag, ()))

    def ids_for_category(self, category: str) -> set[str]:
        with self._lock:
            return set(self._by_category.get(category, ()))

    def ids_for_language(self, language: str) -> set[str]:
        with self._lock:
            return set(self._by_language.get(language, ()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._all)
