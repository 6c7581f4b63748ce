# PatternHub
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Tests for ProjectKnowledgeCache, staleness, debt rules and manifest reading."""

import json
import threading

import pytest

from patternhub.core.events import PROJECT_ANALYZED
from patternhub.errors import CollaboratorError
from patternhub.projects.collaborators import ProjectAnalysis, StylePreference, read_dependencies
from patternhub.projects.knowledge import ProjectKnowledgeCache, project_basename
from patternhub.storage import RecordStore


class BlockingAnalyzer:
    """Analyzer that hangs until released, except for projects ending in ``fast``."""

    def __init__(self):
        self.release = threading.Event()

    def analyze(self, project_path):
        if project_path.endswith("fast"):
            return ProjectAnalysis(detected_type="cli")
        self.release.wait(5)
        return ProjectAnalysis(detected_type="web")


class TestBasename:
    @pytest.mark.parametrize(
        ("project_id", "expected"),
        [("/work/shop-api", "shop-api"), ("/work/shop-api/", "shop-api"), ("shop", "shop")],
    )
    def test_basename(self, project_id, expected):
        assert project_basename(project_id) == expected


class TestSnapshot:
    def test_refresh_builds_snapshot(self, cache, analyzer, styles, dependencies, store, make_draft, clock):
        analyzer.results["/work/shop"] = ProjectAnalysis(
            detected_type="api", confidence=0.9, language="python"
        )
        styles.styles["/work/shop"] = [StylePreference(rule="quotes", value="double", confidence=0.9)]
        dependencies.deps["/work/shop"] = ["fastapi", "pydantic"]
        pattern = store.add(make_draft())
        store.record_usage(pattern.id, "/work/shop", success=True)

        snapshot = cache.refresh("/work/shop")
        assert snapshot.project_type == "api"
        assert snapshot.language == "python"
        assert snapshot.patterns == [pattern.id]
        assert snapshot.dependencies == ["fastapi", "pydantic"]
        assert snapshot.style_preferences[0].id == "quotes"
        assert snapshot.last_analyzed == clock.now
        assert cache.get("/work/shop") == snapshot

    def test_refresh_emits_event(self, cache, events):
        received = []
        events.subscribe(PROJECT_ANALYZED, lambda name, payload: received.append(payload))
        cache.refresh("/work/shop")
        assert received == [{"project_id": "/work/shop", "project_type": "web"}]

    def test_returned_snapshots_are_copies(self, cache, dependencies):
        dependencies.deps["/work/shop"] = ["react"]
        cache.refresh("/work/shop").dependencies.append("leftpad")
        cache.get("/work/shop").patterns.append("ghost")
        cache.all()[0].metrics.common_errors.append("Boom")
        cache.get_or_refresh("/work/shop").technical_debt.clear()

        snapshot = cache.get("/work/shop")
        assert snapshot.dependencies == ["react"]
        assert snapshot.patterns == []
        assert snapshot.metrics.common_errors == []

    def test_fresh_snapshot_is_reused(self, cache, analyzer, clock):
        first = cache.get_or_refresh("/work/shop")
        clock.advance(days=7)
        assert cache.get_or_refresh("/work/shop") == first
        assert analyzer.calls == ["/work/shop"]

    def test_stale_after_seven_days(self, cache, analyzer, clock):
        first = cache.get_or_refresh("/work/shop")
        clock.advance(days=8)
        assert cache.is_stale(first)
        second = cache.get_or_refresh("/work/shop")
        assert second.last_analyzed != first.last_analyzed
        assert second.last_analyzed == clock.now
        assert len(analyzer.calls) == 2

    def test_snapshots_persist(self, cache, store, ledger, storage, clock):
        cache.refresh("/work/shop")
        cache.replace_insights([{"type": "pattern", "title": "t"}])

        reloaded = ProjectKnowledgeCache(store, ledger, RecordStore(storage.db_path), clock=clock)
        try:
            assert reloaded.load() == 1
            assert reloaded.get("/work/shop").to_dict() == cache.get("/work/shop").to_dict()
            assert reloaded.insight_records == [{"type": "pattern", "title": "t"}]
        finally:
            reloaded.close()


class TestCollaboratorFailure:
    def test_failure_serves_previous_snapshot(self, cache, analyzer, clock):
        first = cache.refresh("/work/shop")
        analyzer.fail = True
        clock.advance(days=8)
        assert cache.get_or_refresh("/work/shop") == first

    def test_failure_without_snapshot_raises(self, cache, analyzer):
        analyzer.fail = True
        with pytest.raises(CollaboratorError):
            cache.refresh("/work/shop")
        assert cache.get("/work/shop") is None

    def test_timeout(self, store, ledger, storage, clock):
        blocking = BlockingAnalyzer()
        knowledge = ProjectKnowledgeCache(
            store, ledger, storage, analyzer=blocking, timeout_seconds=0.05, clock=clock
        )
        try:
            with pytest.raises(CollaboratorError, match="timed out"):
                knowledge.refresh("/work/slow")
        finally:
            blocking.release.set()
            knowledge.close()

    def test_other_workers_serve_after_timeout(self, store, ledger, storage, clock):
        blocking = BlockingAnalyzer()
        knowledge = ProjectKnowledgeCache(
            store,
            ledger,
            storage,
            analyzer=blocking,
            timeout_seconds=0.05,
            max_workers=2,
            clock=clock,
        )
        try:
            with pytest.raises(CollaboratorError):
                knowledge.refresh("/work/slow")
            assert knowledge.refresh("/work/fast").project_type == "cli"
        finally:
            blocking.release.set()
            knowledge.close()


class TestSessionCorrelation:
    def test_explicit_project_id_wins(self, cache, ledger):
        ledger.start_session("shop-1", [], project_id="/work/other")
        ledger.start_session("shop-2", [])
        ledger.start_session("s-3", [], project_id="/work/shop")
        ids = sorted(s.session_id for s in cache.sessions_for("/work/shop"))
        assert ids == ["s-3", "shop-2"]

    def test_metrics(self, cache, ledger, clock):
        ledger.start_session("shop-1", ["a"])
        ledger.record_error("shop-1", "TypeError", "m")
        clock.advance(minutes=10)
        ledger.update_session("shop-1", status="completed")
        ledger.start_session("shop-2", ["a"])
        ledger.record_error("shop-2", "TypeError", "m")
        ledger.record_error("shop-2", "KeyError", "m")
        clock.advance(minutes=20)
        ledger.update_session("shop-2", status="failed")
        ledger.start_session("shop-3", [])
        ledger.update_session("shop-3", status="cancelled")

        metrics = cache.refresh("/work/shop").metrics
        assert metrics.session_count == 3
        assert metrics.success_rate == pytest.approx(1 / 3)
        # completed 10 min and failed 20 min; the cancelled session has no duration
        assert metrics.avg_duration == pytest.approx(900.0)
        assert metrics.common_errors == ["TypeError", "KeyError"]

    def test_no_sessions(self, cache):
        metrics = cache.refresh("/work/empty").metrics
        assert (metrics.session_count, metrics.success_rate, metrics.avg_duration) == (0, 0.0, 0.0)


class TestTechnicalDebt:
    def test_missing_elements(self, cache, analyzer):
        analyzer.results["/work/a"] = ProjectAnalysis(detected_type="web", missing_elements=list("abcdef"))
        analyzer.results["/work/b"] = ProjectAnalysis(detected_type="web", missing_elements=list("abcde"))
        (debt,) = cache.refresh("/work/a").technical_debt
        assert (debt.type, debt.severity) == ("structure", "medium")
        assert debt.description == "Missing 6 recommended project elements"
        assert cache.refresh("/work/b").technical_debt == []

    def test_low_success_pattern(self, cache, store, make_draft):
        pattern = store.add(make_draft(name="Flaky Retry"))
        for _ in range(4):
            store.record_usage(pattern.id, "/work/a", success=False)
        (debt,) = cache.refresh("/work/a").technical_debt
        assert (debt.type, debt.severity) == ("pattern", "low")
        assert debt.description == 'Pattern "Flaky Retry" has low success rate'

    def test_recurring_errors(self, cache, ledger):
        ledger.start_session("a-1", [])
        for error_type in ("E1", "E2", "E3", "E4"):
            ledger.record_error("a-1", error_type, "m")
        (debt,) = cache.refresh("/work/a").technical_debt
        assert (debt.type, debt.severity) == ("quality", "high")
        assert debt.description == "Recurring errors: E1, E2, E3"


class TestReadDependencies:
    def test_no_manifests(self, tmp_path):
        assert read_dependencies(tmp_path) == []

    def test_all_manifests(self, tmp_path):
        (tmp_path / "package.json").write_text(
            json.dumps({"dependencies": {"react": "^18"}, "devDependencies": {"jest": "^29"}})
        )
        (tmp_path / "pyproject.toml").write_text(
            '[project]\ndependencies = ["pydantic[email]>=2.0", "PyYAML"]\n'
            '[project.optional-dependencies]\ntest = ["pytest>=7"]\n'
            '[tool.poetry.dependencies]\npython = "^3.11"\nhttpx = "*"\n'
        )
        (tmp_path / "requirements.txt").write_text("# pinned\nrequests==2.31  # http\n-r other.txt\npydantic\n")
        assert read_dependencies(tmp_path) == [
            "react",
            "jest",
            "pydantic",
            "pyyaml",
            "pytest",
            "httpx",
            "requests",
        ]

    def test_broken_manifest_is_skipped(self, tmp_path):
        (tmp_path / "package.json").write_text("{not json")
        (tmp_path / "requirements.txt").write_text("click\n")
        assert read_dependencies(str(tmp_path)) == ["click"]
