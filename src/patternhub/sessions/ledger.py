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
PatternHub -- Session Metrics Ledger

Durable record of per-session outcomes with time-windowed aggregation.
A session is created by ``start_session`` and mutated by the ``record_*``
methods until its status reaches completed, failed or cancelled; after
that the record is frozen and further mutations raise
``SessionStateError``.
"""

from __future__ import annotations

import logging
import statistics
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable

from patternhub.core.locks import KeyedLock
from patternhub.errors import PersistenceError, SessionNotFoundError, SessionStateError
from patternhub.sessions.models import (
    PERFORMANCE_PHASES,
    QUALITY_GATES,
    DailyTrend,
    MetricsSummary,
    QualityGate,
    SessionError,
    SessionMetric,
    SessionStatus,
)

if TYPE_CHECKING:
    from patternhub.storage import RecordStore

logger = logging.getLogger("patternhub.sessions.ledger")

TABLE = "sessions"

UPDATABLE_FIELDS = frozenset(
    {"status", "objectives", "files_changed", "lines_added", "lines_removed", "commits", "project_id"}
)


def _dedupe(items: list[str]) -> list[str]:
    """Drop duplicates, keeping first-seen order."""
    return list(dict.fromkeys(items))


class SessionMetricsLedger:
    """Durable, cached storage for ``SessionMetric`` records."""

    def __init__(self, storage: RecordStore, *, clock: Callable[[], datetime] | None = None):
        self._storage = storage
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sessions: dict[str, SessionMetric] = {}
        self._locks = KeyedLock()

    def load(self) -> int:
        """Populate the cache from storage. A failed read leaves the ledger empty."""
        try:
            records = self._storage.load_all(TABLE)
        except PersistenceError as exc:
            logger.error("Could not load sessions, starting empty: %s", exc)
            records = []

        loaded: dict[str, SessionMetric] = {}
        for record in records:
            try:
                metric = SessionMetric.from_dict(record)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed session record %s: %s", record.get("session_id"), exc)
                continue
            loaded[metric.session_id] = metric
        self._sessions = loaded
        logger.info("Loaded %d sessions", len(loaded))
        return len(loaded)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_session(
        self, session_id: str, objectives: list[str], project_id: str | None = None
    ) -> SessionMetric:
        if not session_id:
            raise ValueError("session_id must not be empty")
        with self._locks.hold(session_id):
            if session_id in self._sessions:
                raise SessionStateError(f"Session already exists: {session_id}")
            metric = SessionMetric(
                session_id=session_id,
                start_time=self._clock(),
                objectives=_dedupe(list(objectives)),
                project_id=project_id,
            )
            self._storage.put(TABLE, session_id, metric.to_dict())
            self._sessions[session_id] = metric
        logger.info("Session %s started (%d objectives)", session_id, len(metric.objectives))
        return metric.copy()

    def update_session(self, session_id: str, **changes: Any) -> SessionMetric:
        """Apply field changes. A status change to a terminal state closes the session."""
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        def apply(metric: SessionMetric) -> None:
            if "objectives" in changes:
                objectives = _dedupe(list(changes["objectives"]))
                dropped = set(metric.completed_objectives) - set(objectives)
                if dropped:
                    raise SessionStateError(
                        f"Cannot remove completed objective(s): {', '.join(sorted(dropped))}"
                    )
                metric.objectives = objectives
            for key in ("files_changed", "lines_added", "lines_removed", "commits"):
                if key in changes:
                    value = int(changes[key])
                    if value < 0:
                        raise ValueError(f"{key} must be >= 0")
                    setattr(metric, key, value)
            if "project_id" in changes:
                metric.project_id = changes["project_id"]
            if "status" in changes:
                self._transition(metric, SessionStatus(changes["status"]))

        return self._mutate(session_id, apply)

    def record_error(self, session_id: str, error_type: str, message: str) -> SessionMetric:
        def apply(metric: SessionMetric) -> None:
            metric.errors.append(
                SessionError(type=error_type, message=message, timestamp=self._clock())
            )

        return self._mutate(session_id, apply)

    def record_quality_gate(
        self, session_id: str, gate: str, passed: bool, count: int = 0
    ) -> SessionMetric:
        if gate not in QUALITY_GATES:
            raise ValueError(f"Unknown quality gate: {gate!r} (expected one of {QUALITY_GATES})")

        def apply(metric: SessionMetric) -> None:
            metric.quality_gates[gate] = QualityGate(passed=bool(passed), count=int(count))

        return self._mutate(session_id, apply)

    def record_objective_complete(self, session_id: str, objective: str) -> SessionMetric:
        def apply(metric: SessionMetric) -> None:
            if objective not in metric.objectives:
                raise SessionStateError(
                    f"Objective {objective!r} is not an objective of session {session_id}"
                )
            if objective not in metric.completed_objectives:
                metric.completed_objectives.append(objective)

        return self._mutate(session_id, apply)

    def record_performance(self, session_id: str, phase: str, seconds: float) -> SessionMetric:
        if phase not in PERFORMANCE_PHASES:
            raise ValueError(f"Unknown phase: {phase!r} (expected one of {PERFORMANCE_PHASES})")
        if seconds < 0:
            raise ValueError("Phase duration must be >= 0")

        def apply(metric: SessionMetric) -> None:
            setattr(metric.performance, f"{phase}_time", float(seconds))

        return self._mutate(session_id, apply)

    def record_code_changes(
        self,
        session_id: str,
        files_changed: int = 0,
        lines_added: int = 0,
        lines_removed: int = 0,
        commits: int = 0,
    ) -> SessionMetric:
        """Add to the session's change counters."""
        if min(files_changed, lines_added, lines_removed, commits) < 0:
            raise ValueError("Change counts must be >= 0")

        def apply(metric: SessionMetric) -> None:
            metric.files_changed += files_changed
            metric.lines_added += lines_added
            metric.lines_removed += lines_removed
            metric.commits += commits

        return self._mutate(session_id, apply)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> SessionMetric | None:
        metric = self._sessions.get(session_id)
        return metric.copy() if metric else None

    def all(self) -> list[SessionMetric]:
        return [m.copy() for m in list(self._sessions.values())]

    def __len__(self) -> int:
        return len(self._sessions)

    def summary(self, window_days: int = 30) -> MetricsSummary:
        """Aggregate sessions that started within the last *window_days* days."""
        if window_days <= 0:
            raise ValueError("window_days must be positive")
        cutoff = self._clock() - timedelta(days=window_days)
        sessions = [m for m in list(self._sessions.values()) if m.start_time >= cutoff]

        summary = MetricsSummary(window_days=window_days, total_sessions=len(sessions))
        if not sessions:
            summary.quality_gate_pass_rates = {gate: 0.0 for gate in QUALITY_GATES}
            return summary

        by_status = Counter(m.status for m in sessions)
        summary.successful_sessions = by_status[SessionStatus.COMPLETED]
        summary.failed_sessions = by_status[SessionStatus.FAILED]
        summary.cancelled_sessions = by_status[SessionStatus.CANCELLED]
        summary.running_sessions = by_status[SessionStatus.RUNNING]

        completed_durations = [
            m.duration
            for m in sessions
            if m.status is SessionStatus.COMPLETED and m.duration is not None
        ]
        if completed_durations:
            summary.average_duration = statistics.mean(completed_durations)

        error_counts = Counter(e.type for m in sessions for e in m.errors)
        summary.common_errors = [
            {"type": error_type, "count": count} for error_type, count in error_counts.most_common(5)
        ]

        total_objectives = sum(len(m.objectives) for m in sessions)
        done_objectives = sum(len(m.completed_objectives) for m in sessions)
        if total_objectives:
            summary.objective_completion_rate = done_objectives / total_objectives

        summary.quality_gate_pass_rates = {
            gate: sum(1 for m in sessions if m.quality_gates[gate].passed) / len(sessions)
            for gate in QUALITY_GATES
        }
        summary.daily_trend = self._daily_trend(sessions)
        return summary

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _mutate(self, session_id: str, apply: Callable[[SessionMetric], None]) -> SessionMetric:
        """Read-modify-write one session under its lock; persist before publishing."""
        with self._locks.hold(session_id):
            current = self._sessions.get(session_id)
            if current is None:
                raise SessionNotFoundError(session_id)
            if current.is_terminal:
                raise SessionStateError(
                    f"Session {session_id} is {current.status.value} and can no longer change"
                )
            updated = current.copy()
            apply(updated)
            self._storage.put(TABLE, session_id, updated.to_dict())
            self._sessions[session_id] = updated
        return updated.copy()

    def _transition(self, metric: SessionMetric, status: SessionStatus) -> None:
        metric.status = status
        if not status.is_terminal:
            return
        metric.end_time = self._clock()
        if status.has_duration:
            metric.duration = max(0.0, (metric.end_time - metric.start_time).total_seconds())
        logger.info("Session %s %s", metric.session_id, status.value)

    @staticmethod
    def _daily_trend(sessions: list[SessionMetric]) -> list[DailyTrend]:
        days: dict[str, list[SessionMetric]] = {}
        for metric in sessions:
            day = metric.start_time.astimezone(timezone.utc).date().isoformat()
            days.setdefault(day, []).append(metric)

        trend = []
        for day in sorted(days):
            group = days[day]
            trend.append(
                DailyTrend(
                    date=day,
                    sessions_completed=sum(1 for m in group if m.status is SessionStatus.COMPLETED),
                    objectives_completed=sum(len(m.completed_objectives) for m in group),
                    average_duration=sum(m.duration or 0.0 for m in group) / len(group),
                )
            )
        return trend
