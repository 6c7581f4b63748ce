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
Event bus for state-change notifications.

Components publish named events (``pattern-added``, ``session-completed``,
...) with a small dict payload; listeners registered through
``EventBus.subscribe`` are called synchronously on the publishing thread.
A failing listener is logged and never blocks the remaining listeners or
the publisher.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger("patternhub.core.events")

PATTERN_ADDED = "pattern-added"
PATTERN_UPDATED = "pattern-updated"
PATTERN_USED = "pattern-used"
PATTERNS_IMPORTED = "patterns-imported"
SESSION_STARTED = "session-started"
SESSION_UPDATED = "session-updated"
SESSION_COMPLETED = "session-completed"
PROJECT_ANALYZED = "project-analyzed"
LEARNING_TRANSFERRED = "learning-transferred"
GLOBAL_INSIGHTS_UPDATED = "global-insights-updated"
INSIGHTS_INVALIDATED = "insights-invalidated"

EVENTS: frozenset[str] = frozenset(
    {
        PATTERN_ADDED,
        PATTERN_UPDATED,
        PATTERN_USED,
        PATTERNS_IMPORTED,
        SESSION_STARTED,
        SESSION_UPDATED,
        SESSION_COMPLETED,
        PROJECT_ANALYZED,
        LEARNING_TRANSFERRED,
        GLOBAL_INSIGHTS_UPDATED,
        INSIGHTS_INVALIDATED,
    }
)

Listener = Callable[[str, dict[str, Any]], None]


class EventBus:
    """Named-event observer registry.

    Usage::

        bus = EventBus()
        bus.subscribe("pattern-added", lambda event, payload: print(payload["id"]))
        bus.emit("pattern-added", {"id": "lru-cache"})
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, list[Listener]] = {}

    def subscribe(self, event: str, callback: Listener) -> Listener:
        """Register *callback* for *event*. Returns the callback for later unsubscribe."""
        if event not in EVENTS:
            raise ValueError(f"Unknown event: {event}")
        with self._lock:
            self._listeners.setdefault(event, []).append(callback)
        return callback

    def unsubscribe(self, event: str, callback: Listener) -> bool:
        with self._lock:
            listeners = self._listeners.get(event, [])
            if callback in listeners:
                listeners.remove(callback)
                return True
        return False

    def emit(self, event: str, payload: dict[str, Any] | None = None) -> int:
        """Deliver *event* to every listener. Returns how many were called successfully."""
        with self._lock:
            listeners = list(self._listeners.get(event, []))
        delivered = 0
        for callback in listeners:
            try:
                callback(event, dict(payload or {}))
                delivered += 1
            except Exception as exc:
                logger.warning("Listener for %s failed: %s", event, exc)
        return delivered

    def listener_count(self, event: str | None = None) -> int:
        with self._lock:
            if event is not None:
                return len(self._listeners.get(event, []))
            return sum(len(v) for v in self._listeners.values())

    def clear(self) -> None:
        """Drop every registered listener."""
        with self._lock:
            self._listeners.clear()
