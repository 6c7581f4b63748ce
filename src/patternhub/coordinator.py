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
PatternHub -- Intelligence Coordinator

The public façade of the engine. A coordinator owns one instance of every
component, wired to one data directory and one configuration; there are
no process-wide singletons, so independent coordinators (and tests) never
share state.

USAGE:
    hub = IntelligenceCoordinator(load_config(), analyzer=MyAnalyzer())
    hub.initialize()
    pattern = hub.register_pattern(PatternDraft(name="LRU Cache", category="performance",
                                                 code="...", language="python"))
    hub.record_pattern_usage(pattern.id, "/work/shop-api", success=True)
    matches = hub.search_patterns(search_text="cache")
    hub.dispose()

Every public method raises ``NotInitializedError`` until ``initialize()``
has completed, and again after ``dispose()``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any, Callable

from patternhub.config import IntelligenceConfig
from patternhub.core import events as ev
from patternhub.core.events import EventBus, Listener
from patternhub.core.logging import ActivityLog
from patternhub.errors import NotInitializedError
from patternhub.patterns.extraction import draft_from_code
from patternhub.patterns.index import PatternIndex
from patternhub.patterns.interchange import export_patterns, parse_import
from patternhub.patterns.models import CodePattern, PatternDraft
from patternhub.patterns.search import PatternMatch, PatternSearchCriteria, PatternSearchEngine
from patternhub.patterns.store import PatternStore
from patternhub.projects.collaborators import ProjectAnalyzer, StyleExtractor, read_dependencies
from patternhub.projects.global_analysis import CrossProjectInsight, GlobalPatternAnalyzer
from patternhub.projects.knowledge import ProjectKnowledge, ProjectKnowledgeCache
from patternhub.projects.similarity import SimilarityEngine, SimilarProject
from patternhub.projects.transfer import LearningTransfer, LearningTransferPlanner
from patternhub.sessions.insights import InsightGenerator, InsightReport
from patternhub.sessions.ledger import SessionMetricsLedger
from patternhub.sessions.models import MetricsSummary, SessionMetric
from patternhub.storage import RecordStore

logger = logging.getLogger("patternhub.coordinator")


class IntelligenceCoordinator:
    """Owns the lifecycle and wiring of every PatternHub component."""

    def __init__(
        self,
        config: IntelligenceConfig | None = None,
        *,
        analyzer: ProjectAnalyzer | None = None,
        style_extractor: StyleExtractor | None = None,
        dependency_reader: Callable[[str], list[str]] = read_dependencies,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config or IntelligenceConfig()
        self._analyzer = analyzer
        self._style_extractor = style_extractor
        self._dependency_reader = dependency_reader
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lifecycle_lock = threading.Lock()
        self._initialized = False

        self._events = EventBus()
        self._activity: ActivityLog | None = None
        self._storage: RecordStore | None = None
        self._index: PatternIndex | None = None
        self._store: PatternStore | None = None
        self._search: PatternSearchEngine | None = None
        self._ledger: SessionMetricsLedger | None = None
        self._insights: InsightGenerator | None = None
        self._knowledge: ProjectKnowledgeCache | None = None
        self._similarity: SimilarityEngine | None = None
        self._planner: LearningTransferPlanner | None = None
        self._global: GlobalPatternAnalyzer | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> IntelligenceCoordinator:
        """Open storage, load every durable record and build the index. Idempotent."""
        with self._lifecycle_lock:
            if self._initialized:
                return self
            cfg = self.config

            if cfg.logging.activity_log:
                self._activity = ActivityLog(cfg.log_dir, level=cfg.logging.level)

            self._storage = RecordStore(cfg.database_path)
            self._index = PatternIndex()
            self._store = PatternStore(
                self._storage, index=self._index, alpha=cfg.usage.alpha, clock=self._clock
            )
            self._search = PatternSearchEngine(
                self._store,
                self._index,
                weights=cfg.search,
                related=cfg.related,
                clock=self._clock,
            )
            self._ledger = SessionMetricsLedger(self._storage, clock=self._clock)
            self._insights = InsightGenerator(self._ledger, cfg.insights, clock=self._clock)
            self._knowledge = ProjectKnowledgeCache(
                self._store,
                self._ledger,
                self._storage,
                analyzer=self._analyzer,
                style_extractor=self._style_extractor,
                config=cfg.knowledge,
                timeout_seconds=cfg.collaborator_timeout_seconds,
                max_workers=cfg.collaborator_workers,
                clock=self._clock,
                events=self._events,
                dependency_reader=self._dependency_reader,
            )
            self._similarity = SimilarityEngine(self._knowledge, cfg.similarity)
            self._planner = LearningTransferPlanner(
                self._store, self._knowledge, self._search, self._similarity, cfg.transfer
            )
            self._global = GlobalPatternAnalyzer(self._store, self._knowledge, cfg.global_analysis)

            patterns = self._store.load()
            sessions = self._ledger.load()
            projects = self._knowledge.load()
            self._initialized = True
            if self._activity is not None:
                self._events.subscribe(ev.PROJECT_ANALYZED, self._log_project_analyzed)

        logger.info(
            "PatternHub initialized at %s (%d patterns, %d sessions, %d projects)",
            cfg.data_dir,
            patterns,
            sessions,
            projects,
        )
        if self._activity:
            self._activity.info(
                "System",
                "Coordinator initialized",
                patterns=patterns,
                sessions=sessions,
                projects=projects,
            )
        return self

    def dispose(self) -> None:
        """Release listeners and workers. The coordinator is unusable until re-initialized."""
        with self._lifecycle_lock:
            if not self._initialized:
                return
            self._initialized = False
            self._events.clear()
            if self._knowledge is not None:
                self._knowledge.close()
            if self._activity is not None:
                self._activity.info("System", "Coordinator disposed")
                self._activity.close()
                self._activity = None
        logger.info("PatternHub disposed")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def __enter__(self) -> IntelligenceCoordinator:
        return self.initialize()

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()

    def _log_project_analyzed(self, event: str, payload: dict[str, Any]) -> None:
        if self._activity:
            self._activity.knowledge(
                "analyzed", payload["project_id"], project_type=payload["project_type"]
            )

    def _require(self) -> None:
        if not self._initialized:
            raise NotInitializedError("IntelligenceCoordinator.initialize() has not been called")

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def subscribe(self, event: str, callback: Listener) -> Listener:
        """Register *callback(event, payload)* for one of ``patternhub.core.events.EVENTS``."""
        self._require()
        return self._events.subscribe(event, callback)

    def unsubscribe(self, event: str, callback: Listener) -> bool:
        self._require()
        return self._events.unsubscribe(event, callback)

    # ------------------------------------------------------------------
    # Patterns
    # ------------------------------------------------------------------

    def register_pattern(self, draft: PatternDraft) -> CodePattern:
        self._require()
        pattern = self._store.add(draft)
        self._events.emit(ev.PATTERN_ADDED, {"id": pattern.id, "category": pattern.category})
        if self._activity:
            self._activity.pattern("registered", pattern.id, category=pattern.category)
        return pattern

    def create_pattern_from_code(
        self,
        code: str,
        name: str,
        category: str,
        description: str = "",
        language: str = "generic",
        tags: Iterable[str] = (),
    ) -> CodePattern:
        """Register a pattern extracted from an observed code sample."""
        self._require()
        draft = draft_from_code(code, name, category, description, language, tags)
        return self.register_pattern(draft)

    def update_pattern(self, pattern_id: str, **changes: Any) -> CodePattern:
        self._require()
        pattern = self._store.update(pattern_id, **changes)
        self._events.emit(
            ev.PATTERN_UPDATED, {"id": pattern.id, "version": pattern.metadata.version}
        )
        if self._activity:
            self._activity.pattern("updated", pattern.id, version=pattern.metadata.version)
        return pattern

    def record_pattern_usage(self, pattern_id: str, project_id: str, success: bool) -> CodePattern:
        self._require()
        pattern = self._store.record_usage(pattern_id, project_id, success)
        self._events.emit(
            ev.PATTERN_USED,
            {
                "id": pattern.id,
                "project_id": project_id,
                "success": success,
                "success_rate": pattern.usage.success_rate,
            },
        )
        if self._activity:
            self._activity.pattern(
                "used",
                pattern.id,
                project=project_id,
                success=success,
                success_rate=pattern.usage.success_rate,
            )
        return pattern

    def get_pattern(self, pattern_id: str) -> CodePattern | None:
        self._require()
        return self._store.get(pattern_id)

    def search_patterns(
        self, criteria: PatternSearchCriteria | Mapping[str, Any] | None = None, **kwargs: Any
    ) -> list[PatternMatch]:
        self._require()
        return self._search.search(criteria, **kwargs)

    def get_related_patterns(self, pattern_id: str, limit: int | None = None) -> list[CodePattern]:
        self._require()
        return self._search.get_related(pattern_id, limit)

    def get_pattern_categories(self) -> list[str]:
        self._require()
        return self._store.categories()

    def get_pattern_tags(self) -> list[str]:
        self._require()
        return self._store.tags()

    def get_pattern_statistics(self) -> dict[str, Any]:
        self._require()
        return self._store.statistics()

    def export_patterns(self, category: str | None = None) -> str:
        self._require()
        return export_patterns(self._store.all(), category, exported_at=self._clock())

    def import_patterns(self, text: str) -> int:
        """Import an export document. Ids that already exist are skipped."""
        self._require()
        imported = self._store.import_patterns(parse_import(text))
        self._events.emit(ev.PATTERNS_IMPORTED, {"count": imported})
        if self._activity:
            self._activity.info("Patterns", "Patterns imported", count=imported)
        return imported

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_session(
        self, session_id: str, objectives: list[str], project_id: str | None = None
    ) -> SessionMetric:
        self._require()
        metric = self._ledger.start_session(session_id, objectives, project_id)
        self._events.emit(
            ev.SESSION_STARTED, {"session_id": session_id, "project_id": project_id}
        )
        if self._activity:
            self._activity.session("started", session_id, objectives=len(metric.objectives))
        return metric

    def update_session(self, session_id: str, **changes: Any) -> SessionMetric:
        self._require()
        return self._session_changed(self._ledger.update_session(session_id, **changes))

    def record_session_error(self, session_id: str, error_type: str, message: str) -> SessionMetric:
        self._require()
        return self._session_changed(self._ledger.record_error(session_id, error_type, message))

    def record_quality_gate(
        self, session_id: str, gate: str, passed: bool, count: int = 0
    ) -> SessionMetric:
        self._require()
        return self._session_changed(
            self._ledger.record_quality_gate(session_id, gate, passed, count)
        )

    def record_objective_complete(self, session_id: str, objective: str) -> SessionMetric:
        self._require()
        return self._session_changed(self._ledger.record_objective_complete(session_id, objective))

    def record_performance(self, session_id: str, phase: str, seconds: float) -> SessionMetric:
        self._require()
        return self._session_changed(self._ledger.record_performance(session_id, phase, seconds))

    def record_code_changes(
        self,
        session_id: str,
        files_changed: int = 0,
        lines_added: int = 0,
        lines_removed: int = 0,
        commits: int = 0,
    ) -> SessionMetric:
        self._require()
        return self._session_changed(
            self._ledger.record_code_changes(
                session_id, files_changed, lines_added, lines_removed, commits
            )
        )

    def get_session(self, session_id: str) -> SessionMetric | None:
        self._require()
        return self._ledger.get(session_id)

    def all_sessions(self) -> list[SessionMetric]:
        self._require()
        return self._ledger.all()

    def get_metrics_summary(self, window_days: int = 30) -> MetricsSummary:
        self._require()
        return self._ledger.summary(window_days)

    def _session_changed(self, metric: SessionMetric) -> SessionMetric:
        payload = {"session_id": metric.session_id, "status": metric.status.value}
        self._events.emit(ev.SESSION_UPDATED, payload)
        if metric.is_terminal:
            payload["duration"] = metric.duration
            self._events.emit(ev.SESSION_COMPLETED, payload)
            if self._activity:
                self._activity.session(metric.status.value, metric.session_id, duration=metric.duration)
            if self.config.insights.invalidate_on_session_end:
                self._invalidate_insights(reason="session-ended")
        return metric

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    def generate_insight_report(self) -> InsightReport:
        self._require()
        cached = self._insights.cached_report
        report = self._insights.generate()
        if self._activity and report is not cached:
            self._activity.insight("generated", count=len(report.insights))
        return report

    def invalidate_insights(self) -> bool:
        self._require()
        return self._invalidate_insights(reason="explicit")

    def _invalidate_insights(self, reason: str) -> bool:
        dropped = self._insights.invalidate()
        self._events.emit(ev.INSIGHTS_INVALIDATED, {"reason": reason, "dropped": dropped})
        if self._activity:
            self._activity.insight("invalidated", reason=reason)
        return dropped

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def get_project_knowledge(self, project_id: str) -> ProjectKnowledge:
        """Snapshot for *project_id*, refreshed first when missing or stale."""
        self._require()
        return self._knowledge.get_or_refresh(project_id)

    def refresh_project_knowledge(self, project_id: str) -> ProjectKnowledge:
        self._require()
        return self._knowledge.refresh(project_id)

    def find_similar_projects(self, project_id: str) -> list[SimilarProject]:
        self._require()
        return self._similarity.find_similar(project_id)

    def plan_transfer(self, from_project: str, to_project: str) -> LearningTransfer:
        self._require()
        transfer = self._planner.plan_transfer(from_project, to_project)
        self._events.emit(
            ev.LEARNING_TRANSFERRED,
            {
                "from_project": from_project,
                "to_project": to_project,
                "patterns": len(transfer.patterns),
                "styles": len(transfer.styles),
            },
        )
        if self._activity:
            self._activity.knowledge(
                "transfer planned",
                to_project,
                source=from_project,
                patterns=len(transfer.patterns),
                styles=len(transfer.styles),
            )
        return transfer

    def generate_recommendations(self, project_id: str) -> list[str]:
        self._require()
        return self._planner.recommend(project_id)

    def get_cross_project_insights(self, project_id: str | None = None) -> list[CrossProjectInsight]:
        self._require()
        return self._global.insights(project_id)

    def analyze_global_patterns(self) -> list[CrossProjectInsight]:
        self._require()
        insights = self._global.analyze()
        self._events.emit(ev.GLOBAL_INSIGHTS_UPDATED, {"count": len(insights)})
        if self._activity:
            self._activity.insight("analyzed", count=len(insights), scope="global")
        return insights

    def get_project_summary(self) -> dict[str, Any]:
        self._require()
        return self._global.project_summary()
