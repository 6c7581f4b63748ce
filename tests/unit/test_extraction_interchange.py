# PatternHub
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Tests for pattern extraction from code and export/import documents."""

import json
from datetime import datetime, timezone

import pytest

from patternhub.errors import PatternImportError
from patternhub.patterns.extraction import draft_from_code, estimate_complexity, suggest_tags
from patternhub.patterns.interchange import (
    FORMAT_VERSION,
    compute_checksum,
    export_patterns,
    parse_import,
)
from patternhub.patterns.store import PatternStore
from patternhub.storage import RecordStore


class TestSuggestTags:
    def test_async(self):
        assert "async" in suggest_tags("async def fetch():\n    await client.get()")

    def test_error_handling_python_and_js(self):
        assert "error-handling" in suggest_tags("try:\n    x()\nexcept ValueError:\n    pass")
        assert "error-handling" in suggest_tags("try { x() } catch (e) {}")
        assert "error-handling" not in suggest_tags("retry(fn)")

    def test_testing(self):
        assert "testing" in suggest_tags("def test_add():\n    assert add(1, 1) == 2")
        assert "testing" in suggest_tags("describe('math', () => {})")
        assert "testing" not in suggest_tags("parts = line.split(',')")

    def test_react_hooks(self):
        assert "react-hooks" in suggest_tags("const [n, setN] = useState(0)")

    def test_context_manager_and_decorator(self):
        code = "@contextmanager\ndef opened(path):\n    with open(path) as fh:\n        yield fh"
        assert {"context-manager", "decorator"} <= suggest_tags(code)

    def test_plain_code_has_no_tags(self):
        assert suggest_tags("x = 1 + 2") == set()


class TestComplexity:
    @pytest.mark.parametrize(
        "lines, tier", [(1, "simple"), (19, "simple"), (20, "moderate"), (49, "moderate"), (50, "complex")]
    )
    def test_tiers(self, lines, tier):
        assert estimate_complexity("\n".join(["x = 1"] * lines)) == tier


class TestDraftFromCode:
    def test_merges_tags_and_keeps_example(self):
        code = "async def run():\n    await go()"
        draft = draft_from_code(code, "Runner", "workflow", "Runs things", "python", ["infra"])
        assert draft.tags == {"infra", "async"}
        assert draft.examples[0].code == code
        assert draft.examples[0].description == "Original implementation"
        assert draft.performance.complexity == "simple"
        assert draft.category == "workflow"


class TestExport:
    def test_envelope(self, store, make_draft, clock):
        store.add(make_draft("A", category="api"))
        store.add(make_draft("B", category="testing"))
        document = json.loads(export_patterns(store.all(), exported_at=clock.now))
        assert document["format_version"] == FORMAT_VERSION
        assert document["pattern_count"] == 2
        assert document["exported_at"] == clock.now.isoformat()
        assert document["checksum"] == compute_checksum(document["patterns"])
        assert document["checksum"].startswith("sha256:")

    def test_category_filter(self, store, make_draft):
        store.add(make_draft("A", category="api"))
        store.add(make_draft("B", category="testing"))
        document = json.loads(export_patterns(store.all(), category="testing"))
        assert [p["id"] for p in document["patterns"]] == ["b"]
        assert document["category"] == "testing"

    def test_unknown_category_rejected(self, store):
        with pytest.raises(ValueError):
            export_patterns(store.all(), category="astrology")


class TestImport:
    def test_round_trip_is_a_no_op(self, store, make_draft):
        for name in ("A", "B", "C"):
            store.add(make_draft(name))
        assert store.import_patterns(parse_import(export_patterns(store.all()))) == 0
        assert len(store) == 3

    def test_new_ids_are_added_exactly_once(self, store, make_draft, clock, tmp_path):
        source = PatternStore(RecordStore(tmp_path / "other.db"), clock=clock)
        for name in ("X", "Y"):
            source.add(make_draft(name))
        store.add(make_draft("A"))

        text = export_patterns(source.all())
        assert store.import_patterns(parse_import(text)) == 2
        assert len(store) == 3
        assert store.import_patterns(parse_import(text)) == 0

    def test_bare_list_accepted(self, store, make_draft):
        pattern = store.add(make_draft("A"))
        patterns = parse_import(json.dumps([pattern.to_dict()]))
        assert [p.id for p in patterns] == [pattern.id]

    def test_checksum_mismatch(self, store, make_draft):
        store.add(make_draft("A"))
        document = json.loads(export_patterns(store.all()))
        document["patterns"][0]["name"] = "Tampered"
        with pytest.raises(PatternImportError):
            parse_import(json.dumps(document))

    def test_invalid_json(self):
        with pytest.raises(PatternImportError):
            parse_import("{not json")

    def test_wrong_shape(self):
        with pytest.raises(PatternImportError):
            parse_import(json.dumps({"hello": "world"}))

    def test_malformed_record(self):
        with pytest.raises(PatternImportError):
            parse_import(json.dumps([{"id": "x"}]))

    def test_import_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_import("[1]")

    def test_naive_timestamps_are_read_as_utc(
        self, store, search, storage, make_draft, clock, tmp_path
    ):
        source = PatternStore(RecordStore(tmp_path / "other.db"), clock=clock)
        record = source.add(make_draft("Legacy Cache")).to_dict()
        record["usage"]["last_used"] = "2026-02-27T10:00:00"
        record["metadata"]["created"] = "2026-02-01T08:00:00"
        record["metadata"]["updated"] = "2026-02-01T08:00:00"

        assert store.import_patterns(parse_import(json.dumps([record]))) == 1
        imported = store.get(record["id"])
        assert imported.usage.last_used == datetime(2026, 2, 27, 10, 0, tzinfo=timezone.utc)
        assert imported.metadata.created.tzinfo is not None

        (match,) = search.search(search_text="legacy")
        assert match.reason == "Name match, Recently used"

        reloaded = PatternStore(RecordStore(storage.db_path), clock=clock)
        reloaded.load()
        assert reloaded.get(record["id"]).usage.last_used.tzinfo is not None
