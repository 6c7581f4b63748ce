# PatternHub
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Shared fixtures for PatternHub unit tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from patternhub.config import IntelligenceConfig, KnowledgeConfig
from patternhub.coordinator import IntelligenceCoordinator
from patternhub.core.events import EventBus
from patternhub.patterns.index import PatternIndex
from patternhub.patterns.models import PatternDraft
from patternhub.patterns.search import PatternSearchEngine
from patternhub.patterns.store import PatternStore
from patternhub.projects.collaborators import ProjectAnalysis, StylePreference
from patternhub.projects.knowledge import ProjectKnowledgeCache
from patternhub.sessions.ledger import SessionMetricsLedger
from patternhub.storage import RecordStore


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeAnalyzer:
    """Project analyzer returning canned results keyed by project id."""

    def __init__(self, results: dict[str, ProjectAnalysis] | None = None, default_type: str = "web"):
        self.results = results or {}
        self.default_type = default_type
        self.calls: list[str] = []
        self.fail = False

    def analyze(self, project_path: str) -> ProjectAnalysis:
        self.calls.append(project_path)
        if self.fail:
            raise RuntimeError("analyzer crashed")
        return self.results.get(project_path, ProjectAnalysis(detected_type=self.default_type))


class FakeStyleExtractor:
    def __init__(self, styles: dict[str, list[StylePreference]] | None = None):
        self.styles = styles or {}

    def extract(self, project_path: str) -> list[StylePreference]:
        return list(self.styles.get(project_path, []))


class FakeDependencies:
    def __init__(self, deps: dict[str, list[str]] | None = None):
        self.deps = deps or {}

    def __call__(self, project_path: str) -> list[str]:
        return list(self.deps.get(project_path, []))


def _make_draft(name: str = "LRU Cache", **overrides) -> PatternDraft:
    values = {
        "name": name,
        "category": "performance",
        "description": "Bounded least-recently-used cache",
        "code": "from functools import lru_cache",
        "language": "python",
    }
    values.update(overrides)
    return PatternDraft(**values)


@pytest.fixture
def make_draft():
    """Factory for valid pattern drafts; keyword overrides replace the defaults."""
    return _make_draft


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage(tmp_path):
    return RecordStore(tmp_path / "patternhub.db")


@pytest.fixture
def index():
    return PatternIndex()


@pytest.fixture
def store(storage, index, clock):
    return PatternStore(storage, index=index, clock=clock)


@pytest.fixture
def search(store, index, clock):
    return PatternSearchEngine(store, index, clock=clock)


@pytest.fixture
def ledger(storage, clock):
    return SessionMetricsLedger(storage, clock=clock)


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def styles():
    return FakeStyleExtractor()


@pytest.fixture
def dependencies():
    return FakeDependencies()


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def cache(store, ledger, storage, analyzer, styles, dependencies, clock, events):
    knowledge = ProjectKnowledgeCache(
        store,
        ledger,
        storage,
        analyzer=analyzer,
        style_extractor=styles,
        config=KnowledgeConfig(),
        timeout_seconds=2.0,
        clock=clock,
        events=events,
        dependency_reader=dependencies,
    )
    yield knowledge
    knowledge.close()


@pytest.fixture
def config(tmp_path):
    cfg = IntelligenceConfig(data_dir=str(tmp_path / "hub"))
    cfg.collaborator_timeout_seconds = 2.0
    return cfg


@pytest.fixture
def hub(config, analyzer, styles, dependencies, clock):
    coordinator = IntelligenceCoordinator(
        config,
        analyzer=analyzer,
        style_extractor=styles,
        dependency_reader=dependencies,
        clock=clock,
    )
    coordinator.initialize()
    yield coordinator
    coordinator.dispose()
