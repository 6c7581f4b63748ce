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
PatternHub -- Project Knowledge Cache

Builds and caches one ``ProjectKnowledge`` snapshot per project from

  - the project analyzer      (type, confidence, missing structural elements)
  - the session ledger        (sessions correlated to the project)
  - the dependency manifests  (package.json / pyproject.toml / requirements.txt)
  - the pattern store         (patterns whose usage lists the project)
  - the style extractor       (code-style preferences)

Snapshots older than ``stale_after_days`` (7) are recomputed before use.
Collaborator calls run on a worker pool under a bounded timeout; when one
fails or times out the previous snapshot is served instead.

All snapshots, together with the current cross-project insight list, are
persisted as one aggregate document (``documents/knowledge``).
"""

from __future__ import annotations

import copy
import logging
import statistics
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from patternhub.config import KnowledgeConfig
from patternhub.core.events import PROJECT_ANALYZED, EventBus
from patternhub.core.locks import KeyedLock
from patternhub.core.timestamps import parse_timestamp
from patternhub.errors import CollaboratorError, PersistenceError
from patternhub.projects.collaborators import (
    NoStyleExtractor,
    ProjectAnalyzer,
    StyleExtractor,
    StylePreference,
    UnknownProjectAnalyzer,
    read_dependencies,
)
from patternhub.sessions.models import SessionMetric, SessionStatus

if TYPE_CHECKING:
    from patternhub.patterns.store import PatternStore
    from patternhub.sessions.ledger import SessionMetricsLedger
    from patternhub.storage import RecordStore

logger = logging.getLogger("patternhub.projects.knowledge")

DOCUMENTS_TABLE = "documents"
KNOWLEDGE_KEY = "knowledge"


def project_basename(project_id: str) -> str:
    """``"/work/shop-api/"`` -> ``"shop-api"``."""
    return Path(project_id.rstrip("/\\")).name or project_id


@dataclass
class ProjectMetrics:
    session_count: int = 0
    success_rate: float = 0.0
    avg_duration: float = 0.0  # seconds
    common_errors: list[str] = field(default_factory=list)


@dataclass
class TechnicalDebt:
    type: str  # 'structure', 'pattern', 'quality'
    severity: str  # 'low', 'medium', 'high'
    description: str


@dataclass
class ProjectKnowledge:
    project_id: str
    project_type: str
    last_analyzed: datetime
    language: str | None = None
    patterns: list[str] = field(default_factory=list)  # pattern ids
    style_preferences: list[StylePreference] = field(default_factory=list)
    metrics: ProjectMetrics = field(default_factory=ProjectMetrics)
    dependencies: list[str] = field(default_factory=list)
    technical_debt: list[TechnicalDebt] = field(default_factory=list)

    def copy(self) -> ProjectKnowledge:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "project_type": self.project_type,
            "language": self.language,
            "last_analyzed": self.last_analyzed.isoformat(),
            "patterns": list(self.patterns),
            "style_preferences": [s.to_dict() for s in self.style_preferences],
            "metrics": {
                "session_count": self.metrics.session_count,
                "success_rate": self.metrics.success_rate,
                "avg_duration": self.metrics.avg_duration,
                "common_errors": list(self.metrics.common_errors),
            },
            "dependencies": list(self.dependencies),
            "technical_debt": [
                {"type": d.type, "severity": d.severity, "description": d.description}
                for d in self.technical_debt
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectKnowledge:
        metrics = data.get("metrics") or {}
        return cls(
            project_id=data["project_id"],
            project_type=data.get("project_type", "unknown"),
            language=data.get("language"),
            last_analyzed=parse_timestamp(data["last_analyzed"]),
            patterns=list(data.get("patterns", [])),
            style_preferences=[StylePreference.from_dict(s) for s in data.get("style_preferences", [])],
            metrics=ProjectMetrics(
                session_count=int(metrics.get("session_count", 0)),
                success_rate=float(metrics.get("success_rate", 0.0)),
                avg_duration=float(metrics.get("avg_duration", 0.0)),
                common_errors=list(metrics.get("common_errors", [])),
            ),
            dependencies=list(data.get("dependencies", [])),
            technical_debt=[TechnicalDebt(**d) for d in data.get("technical_debt", [])],
        )


class ProjectKnowledgeCache:
    """Per-project knowledge snapshots, refreshed on demand."""

    def __init__(
        self,
        store: PatternStore,
        ledger: SessionMetricsLedger,
        storage: RecordStore,
        *,
        analyzer: ProjectAnalyzer | None = None,
        style_extractor: StyleExtractor | None = None,
        config: KnowledgeConfig | None = None,
        timeout_seconds: float = 30.0,
        max_workers: int = 4,
        clock: Callable[[], datetime] | None = None,
        events: EventBus | None = None,
        dependency_reader: Callable[[str], list[str]] = read_dependencies,
    ):
        self._store = store
        self._ledger = ledger
        self._storage = storage
        self._analyzer = analyzer or UnknownProjectAnalyzer()
        self._style_extractor = style_extractor or NoStyleExtractor()
        self._config = config or KnowledgeConfig()
        self._timeout = timeout_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._events = events
        self._read_dependencies = dependency_reader

        self._snapshots: dict[str, ProjectKnowledge] = {}
        self._insight_records: list[dict[str, Any]] = []
        self._locks = KeyedLock()
        self._document_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="patternhub-collab"
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> int:
        """Read the aggregate knowledge document. A failed read leaves the cache empty."""
        try:
            document = self._storage.get(DOCUMENTS_TABLE, KNOWLEDGE_KEY) or {}
        except PersistenceError as exc:
            logger.error("Could not load knowledge document, starting empty: %s", exc)
            document = {}

        snapshots: dict[str, ProjectKnowledge] = {}
        for record in document.get("snapshots", []):
            try:
                snapshot = ProjectKnowledge.from_dict(record)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed snapshot %s: %s", record.get("project_id"), exc)
                continue
            snapshots[snapshot.project_id] = snapshot

        with self._document_lock:
            self._snapshots = snapshots
            self._insight_records = list(document.get("insights", []))
        logger.info("Loaded %d project snapshot(s)", len(snapshots))
        return len(snapshots)

    def _write_document(
        self, snapshots: dict[str, ProjectKnowledge], insight_records: list[dict[str, Any]]
    ) -> None:
        self._storage.put(
            DOCUMENTS_TABLE,
            KNOWLEDGE_KEY,
            {
                "snapshots": [s.to_dict() for s in snapshots.values()],
                "insights": insight_records,
            },
        )

    @property
    def insight_records(self) -> list[dict[str, Any]]:
        return list(self._insight_records)

    def replace_insights(self, records: list[dict[str, Any]]) -> None:
        """Persist a new cross-project insight list, replacing the previous one."""
        with self._document_lock:
            self._write_document(self._snapshots, records)
            self._insight_records = list(records)

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, project_id: str) -> ProjectKnowledge | None:
        snapshot = self._snapshots.get(project_id)
        return snapshot.copy() if snapshot else None

    def all(self) -> list[ProjectKnowledge]:
        return [s.copy() for s in list(self._snapshots.values())]

    def is_stale(self, snapshot: ProjectKnowledge) -> bool:
        age = self._clock() - snapshot.last_analyzed
        return age > timedelta(days=self._config.stale_after_days)

    def get_or_refresh(self, project_id: str) -> ProjectKnowledge:
        """Cached snapshot, recomputed first when missing or stale."""
        snapshot = self._snapshots.get(project_id)
        if snapshot is not None and not self.is_stale(snapshot):
            return snapshot.copy()
        return self.refresh(project_id)

    def sessions_for(self, project_id: str) -> list[SessionMetric]:
        """Sessions belonging to a project.

        An explicit ``project_id`` on the session wins; sessions without one
        are matched when their id contains the project's base name.
        """
        basename = project_basename(project_id)
        result = []
        for session in self._ledger.all():
            if session.project_id is not None:
                if session.project_id == project_id:
                    result.append(session)
            elif basename and basename in session.session_id:
                result.append(session)
        return result

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, project_id: str) -> ProjectKnowledge:
        """Recompute a snapshot. On collaborator failure, serve the previous one."""
        with self._locks.hold(project_id):
            try:
                snapshot = self._build(project_id)
            except CollaboratorError as exc:
                previous = self._snapshots.get(project_id)
                if previous is None:
                    logger.error("Analysis of %s failed with no snapshot to fall back on: %s", project_id, exc)
                    raise
                logger.warning("Analysis of %s failed, serving previous snapshot: %s", project_id, exc)
                return previous.copy()

            with self._document_lock:
                snapshots = dict(self._snapshots)
                snapshots[project_id] = snapshot
                self._write_document(snapshots, self._insight_records)
                self._snapshots = snapshots

        logger.info(
            "Analyzed %s: type=%s patterns=%d sessions=%d debt=%d",
            project_id,
            snapshot.project_type,
            len(snapshot.patterns),
            snapshot.metrics.session_count,
            len(snapshot.technical_debt),
        )
        if self._events is not None:
            self._events.emit(
                PROJECT_ANALYZED,
                {"project_id": project_id, "project_type": snapshot.project_type},
            )
        return snapshot.copy()

    def _call(self, what: str, fn: Callable[..., Any], *args: Any) -> Any:
        future = self._executor.submit(fn, *args)
        try:
            return future.result(timeout=self._timeout)
        except FuturesTimeoutError as exc:
            # cancel() only stops calls still queued; a running one keeps its
            # worker until it returns
            future.cancel()
            raise CollaboratorError(f"{what} timed out after {self._timeout}s") from exc
        except CollaboratorError:
            raise
        except Exception as exc:
            raise CollaboratorError(f"{what} failed: {exc}") from exc

    def _build(self, project_id: str) -> ProjectKnowledge:
        analysis = self._call("Project analyzer", self._analyzer.analyze, project_id)
        styles = self._call("Style extractor", self._style_extractor.extract, project_id)
        dependencies = self._call("Dependency manifest read", self._read_dependencies, project_id)

        metrics = self._metrics(self.sessions_for(project_id))
        used_patterns = self._store.used_by(project_id)

        return ProjectKnowledge(
            project_id=project_id,
            project_type=analysis.detected_type,
            language=analysis.language,
            last_analyzed=self._clock(),
            patterns=[p.id for p in used_patterns],
            style_preferences=list(styles),
            metrics=metrics,
            dependencies=list(dependencies),
            technical_debt=self._technical_debt(analysis.missing_elements, used_patterns, metrics),
        )

    def _metrics(self, sessions: list[SessionMetric]) -> ProjectMetrics:
        if not sessions:
            return ProjectMetrics()
        completed = [s for s in sessions if s.status is SessionStatus.COMPLETED]
        # Completed and failed sessions are timed; cancelled ones are not
        durations = [s.duration for s in sessions if s.duration is not None]
        error_counts = Counter(e.type for s in sessions for e in s.errors)
        return ProjectMetrics(
            session_count=len(sessions),
            success_rate=len(completed) / len(sessions),
            avg_duration=statistics.mean(durations) if durations else 0.0,
            common_errors=[
                error for error, _ in error_counts.most_common(self._config.common_errors_top_n)
            ],
        )

    def _technical_debt(self, missing_elements, used_patterns, metrics) -> list[TechnicalDebt]:
        cfg = self._config
        debt: list[TechnicalDebt] = []
        if len(missing_elements) > cfg.missing_elements_threshold:
            debt.append(
                TechnicalDebt(
                    type="structure",
                    severity="medium",
                    description=f"Missing {len(missing_elements)} recommended project elements",
                )
            )
        for pattern in used_patterns:
            if pattern.usage.success_rate < cfg.low_pattern_success_rate:
                debt.append(
                    TechnicalDebt(
                        type="pattern",
                        severity="low",
                        description=f'Pattern "{pattern.name}" has low success rate',
                    )
                )
        if len(metrics.common_errors) > cfg.common_errors_threshold:
            debt.append(
                TechnicalDebt(
                    type="quality",
                    severity="high",
                    description=f"Recurring errors: {', '.join(metrics.common_errors[:3])}",
                )
            )
        return debt
