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
"""Session outcome data model.

One ``SessionMetric`` per development session: objectives, errors, the
four quality gates, code-change counters and phase timings. Durations are
in seconds.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from patternhub.core.timestamps import parse_optional_timestamp, parse_timestamp


class SessionStatus(str, Enum):
    """Session lifecycle states."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.RUNNING

    @property
    def has_duration(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED)


QUALITY_GATES = ("typecheck", "lint", "tests", "build")
PERFORMANCE_PHASES = ("planning", "execution", "validation")


@dataclass
class SessionError:
    type: str
    message: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message, "timestamp": self.timestamp.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionError:
        return cls(
            type=data["type"],
            message=data.get("message", ""),
            timestamp=parse_timestamp(data["timestamp"]),
        )


@dataclass
class QualityGate:
    passed: bool = False
    count: int = 0  # errors / violations / failures reported by the gate


@dataclass
class SessionPerformance:
    planning_time: float | None = None
    execution_time: float | None = None
    validation_time: float | None = None


@dataclass
class SessionMetric:
    session_id: str
    start_time: datetime
    status: SessionStatus = SessionStatus.RUNNING
    objectives: list[str] = field(default_factory=list)
    completed_objectives: list[str] = field(default_factory=list)
    errors: list[SessionError] = field(default_factory=list)
    quality_gates: dict[str, QualityGate] = field(
        default_factory=lambda: {gate: QualityGate() for gate in QUALITY_GATES}
    )
    files_changed: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    commits: int = 0
    performance: SessionPerformance = field(default_factory=SessionPerformance)
    project_id: str | None = None
    end_time: datetime | None = None
    duration: float | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def copy(self) -> SessionMetric:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration,
            "status": self.status.value,
            "objectives": list(self.objectives),
            "completed_objectives": list(self.completed_objectives),
            "errors": [e.to_dict() for e in self.errors],
            "quality_gates": {
                name: {"passed": g.passed, "count": g.count} for name, g in self.quality_gates.items()
            },
            "files_changed": self.files_changed,
            "lines_added": self.lines_added,
            "lines_removed": self.lines_removed,
            "commits": self.commits,
            "performance": {
                "planning_time": self.performance.planning_time,
                "execution_time": self.performance.execution_time,
                "validation_time": self.performance.validation_time,
            },
            "project_id": self.project_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionMetric:
        gates = {gate: QualityGate() for gate in QUALITY_GATES}
        for name, raw in (data.get("quality_gates") or {}).items():
            if name in gates:
                gates[name] = QualityGate(passed=bool(raw.get("passed")), count=int(raw.get("count", 0)))
        end_time = data.get("end_time")
        return cls(
            session_id=data["session_id"],
            start_time=parse_timestamp(data["start_time"]),
            end_time=parse_optional_timestamp(end_time),
            duration=data.get("duration"),
            status=SessionStatus(data.get("status", "running")),
            objectives=list(data.get("objectives", [])),
            completed_objectives=list(data.get("completed_objectives", [])),
            errors=[SessionError.from_dict(e) for e in data.get("errors", [])],
            quality_gates=gates,
            files_changed=int(data.get("files_changed", 0)),
            lines_added=int(data.get("lines_added", 0)),
            lines_removed=int(data.get("lines_removed", 0)),
            commits=int(data.get("commits", 0)),
            performance=SessionPerformance(**(data.get("performance") or {})),
            project_id=data.get("project_id"),
        )


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


@dataclass
class DailyTrend:
    """Productivity for one calendar day (UTC)."""

    date: str  # YYYY-MM-DD
    sessions_completed: int = 0
    objectives_completed: int = 0
    average_duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "sessions_completed": self.sessions_completed,
            "objectives_completed": self.objectives_completed,
            "average_duration": round(self.average_duration, 2),
        }


@dataclass
class MetricsSummary:
    """Windowed aggregate over the session ledger."""

    window_days: int = 30
    total_sessions: int = 0
    successful_sessions: int = 0
    failed_sessions: int = 0
    cancelled_sessions: int = 0
    running_sessions: int = 0
    average_duration: float = 0.0  # seconds, completed sessions only
    common_errors: list[dict[str, Any]] = field(default_factory=list)  # [{type, count}]
    objective_completion_rate: float = 0.0
    quality_gate_pass_rates: dict[str, float] = field(default_factory=dict)
    daily_trend: list[DailyTrend] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        if self.total_sessions == 0:
            return 0.0
        return self.successful_sessions / self.total_sessions

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_days": self.window_days,
            "total_sessions": self.total_sessions,
            "successful_sessions": self.successful_sessions,
            "failed_sessions": self.failed_sessions,
            "cancelled_sessions": self.cancelled_sessions,
            "running_sessions": self.running_sessions,
            "success_rate": round(self.success_rate, 4),
            "average_duration": round(self.average_duration, 2),
            "common_errors": self.common_errors,
            "objective_completion_rate": round(self.objective_completion_rate, 4),
            "quality_gate_pass_rates": {
                k: round(v, 4) for k, v in self.quality_gate_pass_rates.items()
            },
            "daily_trend": [d.to_dict() for d in self.daily_trend],
        }
