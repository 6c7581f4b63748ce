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
PatternHub -- Pattern Store

Single source of truth for ``CodePattern`` records: an in-memory cache in
front of the ``patterns`` table. Every mutation is persisted before the
cache changes, and each read-modify-write on a given id runs under that
id's lock so concurrent usage updates are never lost.

USAGE:
    store = PatternStore(RecordStore(db_path), index=PatternIndex())
    store.load()
    pattern = store.add(PatternDraft(name="LRU Cache", category="performance", ...))
    store.record_usage(pattern.id, "/work/shop-api", success=True)
"""

from __future__ import annotations

import logging
import re
import threading
from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from patternhub.core.locks import KeyedLock
from patternhub.errors import PatternNotFoundError, PersistenceError
from patternhub.patterns.models import (
    CodePattern,
    PatternDraft,
    PatternExample,
    PatternMetadata,
    PatternPerformance,
    PatternUsage,
    validate_category,
)

if TYPE_CHECKING:
    from patternhub.patterns.index import PatternIndex
    from patternhub.storage import RecordStore

logger = logging.getLogger("patternhub.patterns.store")

TABLE = "patterns"

# Fields a caller may change through update(); id, usage and metadata
# bookkeeping are owned by the store.
UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "category",
        "description",
        "code",
        "language",
        "tags",
        "examples",
        "performance",
        "dependencies",
        "related_patterns",
    }
)

# Changing any of these invalidates the inverted index
INDEXED_FIELDS = frozenset({"category", "tags", "language"})


def slugify(name: str) -> str:
    """Derive a pattern id base from its name: ``"LRU Cache!"`` -> ``"lru-cache"``."""
    slug = re.sub(r"\s+", "-", name.strip().lower())
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    return slug or "pattern"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PatternStore:
    """Durable, cached storage for code patterns."""

    def __init__(
        self,
        storage: RecordStore,
        *,
        index: PatternIndex | None = None,
        alpha: float = 0.1,
        clock: Callable[[], datetime] | None = None,
    ):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        self._storage = storage
        self._index = index
        self._alpha = alpha
        self._clock = clock or _utcnow
        self._patterns: dict[str, CodePattern] = {}
        self._locks = KeyedLock()
        # Serialises id allocation and bulk imports
        self._id_lock = threading.Lock()
        self._reindex_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> int:
        """Populate the cache from storage. A failed read leaves the store empty."""
        try:
            records = self._storage.load_all(TABLE)
        except PersistenceError as exc:
            logger.error("Could not load patterns, starting empty: %s", exc)
            records = []

        loaded: dict[str, CodePattern] = {}
        for record in records:
            try:
                pattern = CodePattern.from_dict(record)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed pattern record %s: %s", record.get("id"), exc)
                continue
            loaded[pattern.id] = pattern

        with self._id_lock:
            self._patterns = loaded
        self._reindex()
        logger.info("Loaded %d patterns", len(loaded))
        return len(loaded)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, draft: PatternDraft) -> CodePattern:
        """Assign an id, initialise usage and metadata, persist and cache."""
        now = self._clock()
        with self._id_lock:
            pattern_id = self._allocate_id(draft.name)
            pattern = CodePattern(
                id=pattern_id,
                name=draft.name,
                category=draft.category,
                description=draft.description,
                code=draft.code,
                language=draft.language,
                tags=set(draft.tags),
                usage=PatternUsage(count=0, last_used=now, projects=set(), success_rate=1.0),
                metadata=PatternMetadata(
                    created=now,
                    updated=now,
                    version=1,
                    dependencies=list(draft.dependencies),
                    related_patterns=list(draft.related_patterns),
                ),
                examples=list(draft.examples),
                performance=draft.performance,
            )
            self._storage.put(TABLE, pattern_id, pattern.to_dict())
            self._patterns[pattern_id] = pattern

        self._reindex()
        logger.info("Registered pattern %s (%s)", pattern_id, pattern.category)
        return pattern.copy()

    def update(self, pattern_id: str, **changes: Any) -> CodePattern:
        """Merge content changes into a pattern and bump its version."""
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        with self._locks.hold(pattern_id):
            current = self._patterns.get(pattern_id)
            if current is None:
                raise PatternNotFoundError(pattern_id)

            updated = current.copy()
            for key, value in changes.items():
                _apply_change(updated, key, value)
            updated.metadata.updated = self._clock()
            updated.metadata.version += 1

            self._storage.put(TABLE, pattern_id, updated.to_dict())
            self._patterns[pattern_id] = updated

        if INDEXED_FIELDS & set(changes):
            self._reindex()
        logger.debug("Updated pattern %s -> v%d", pattern_id, updated.metadata.version)
        return updated.copy()

    def record_usage(self, pattern_id: str, project_id: str, success: bool) -> CodePattern:
        """Count one use of a pattern and fold the outcome into its success rate.

        ``success_rate = alpha * outcome + (1 - alpha) * success_rate``
        """
        with self._locks.hold(pattern_id):
            current = self._patterns.get(pattern_id)
            if current is None:
                raise PatternNotFoundError(pattern_id)

            updated = current.copy()
            usage = updated.usage
            usage.count += 1
            usage.last_used = self._clock()
            usage.projects.add(project_id)
            observation = 1.0 if success else 0.0
            rate = self._alpha * observation + (1.0 - self._alpha) * usage.success_rate
            usage.success_rate = min(1.0, max(0.0, rate))

            self._storage.put(TABLE, pattern_id, updated.to_dict())
            self._patterns[pattern_id] = updated

        logger.debug(
            "Usage recorded for %s: count=%d rate=%.3f", pattern_id, usage.count, usage.success_rate
        )
        return updated.copy()

    def import_patterns(self, patterns: Iterable[CodePattern]) -> int:
        """Insert patterns whose id is not already stored. Existing ids are skipped."""
        with self._id_lock:
            fresh: dict[str, CodePattern] = {}
            for pattern in patterns:
                if pattern.id in self._patterns or pattern.id in fresh:
                    continue
                fresh[pattern.id] = pattern.copy()
            if fresh:
                self._storage.put_many(TABLE, {pid: p.to_dict() for pid, p in fresh.items()})
                self._patterns.update(fresh)

        if fresh:
            self._reindex()
        logger.info("Imported %d new pattern(s)", len(fresh))
        return len(fresh)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, pattern_id: str) -> CodePattern | None:
        pattern = self._patterns.get(pattern_id)
        return pattern.copy() if pattern else None

    def all(self) -> list[CodePattern]:
        return [p.copy() for p in list(self._patterns.values())]

    def ids(self) -> set[str]:
        return set(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def __contains__(self, pattern_id: object) -> bool:
        return pattern_id in self._patterns

    def used_by(self, project_id: str) -> list[CodePattern]:
        """Patterns whose usage records include *project_id*."""
        return [p.copy() for p in list(self._patterns.values()) if project_id in p.usage.projects]

    def categories(self) -> list[str]:
        """Categories that have at least one pattern, sorted."""
        return sorted({p.category for p in list(self._patterns.values())})

    def tags(self) -> list[str]:
        return sorted({t for p in list(self._patterns.values()) for t in p.tags})

    def statistics(self) -> dict[str, Any]:
        """Catalogue overview: totals, breakdowns, most used and highest rated."""
        patterns = list(self._patterns.values())
        most_used = sorted(patterns, key=lambda p: p.usage.count, reverse=True)[:5]
        rated = [p for p in patterns if p.usage.count > 5]
        highest_rated = sorted(rated, key=lambda p: p.usage.success_rate, reverse=True)[:5]
        return {
            "total_patterns": len(patterns),
            "by_category": dict(Counter(p.category for p in patterns)),
            "by_language": dict(Counter(p.language for p in patterns)),
            "most_used": [
                {"id": p.id, "name": p.name, "count": p.usage.count} for p in most_used
            ],
            "highest_rated": [
                {"id": p.id, "name": p.name, "success_rate": round(p.usage.success_rate, 4)}
                for p in highest_rated
            ],
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _allocate_id(self, name: str) -> str:
        base = slugify(name)
        candidate = base
        suffix = 1
        while candidate in self._patterns:
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    def _reindex(self) -> None:
        if self._index is None:
            return
        # Snapshot and rebuild together so an older snapshot never lands last
        with self._reindex_lock:
            self._index.rebuild(list(self._patterns.values()))


def _apply_change(pattern: CodePattern, key: str, value: Any) -> None:
    if key == "category":
        pattern.category = validate_category(value)
    elif key == "tags":
        pattern.tags = set(value)
    elif key == "examples":
        pattern.examples = [
            e if isinstance(e, PatternExample) else PatternExample.from_dict(e) for e in value
        ]
    elif key == "performance":
        if value is None or isinstance(value, PatternPerformance):
            pattern.performance = value
        else:
            pattern.performance = PatternPerformance.from_dict(value)
    elif key in ("dependencies", "related_patterns"):
        setattr(pattern.metadata, key, list(value))
    else:
        setattr(pattern, key, value)
