# PatternHub
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Tests for the inverted index, relevance ranking and related-pattern scoring."""

import pytest

from patternhub.errors import InvalidCriteriaError
from patternhub.patterns.search import PatternSearchCriteria, parse_criteria


@pytest.fixture
def catalogue(store, make_draft):
    """A small mixed catalogue."""
    return {
        "async_test": store.add(
            make_draft("Async Fixture", category="testing", tags={"async", "pytest"})
        ).id,
        "sync_test": store.add(make_draft("Table Test", category="testing", tags={"pytest"})).id,
        "async_api": store.add(make_draft("Async Client", category="api", tags={"async"})).id,
        "go_api": store.add(make_draft("Handler", category="api", language="go")).id,
    }


class TestCriteria:
    def test_unknown_category(self):
        with pytest.raises(InvalidCriteriaError):
            parse_criteria(category="astrology")

    def test_rate_out_of_bounds(self):
        with pytest.raises(InvalidCriteriaError):
            parse_criteria(min_success_rate=1.5)

    def test_blank_tag(self):
        with pytest.raises(InvalidCriteriaError):
            parse_criteria(tags=["ok", "  "])

    def test_unknown_field(self):
        with pytest.raises(InvalidCriteriaError):
            parse_criteria({"colour": "blue"})

    def test_invalid_criteria_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_criteria(category="nope")

    def test_blank_search_text_means_no_text_filter(self):
        assert parse_criteria(search_text="   ").search_text is None

    def test_dict_and_kwargs_merge(self):
        criteria = parse_criteria({"category": "api"}, language="go")
        assert criteria == PatternSearchCriteria(category="api", language="go")


class TestIndex:
    def test_no_facets_returns_everything(self, index, catalogue):
        assert index.candidates(PatternSearchCriteria()) == set(catalogue.values())

    def test_intersection_narrows(self, index, catalogue):
        both = index.candidates(PatternSearchCriteria(category="testing", tags=["async"]))
        by_category = index.candidates(PatternSearchCriteria(category="testing"))
        by_tag = index.candidates(PatternSearchCriteria(tags=["async"]))
        assert both == {catalogue["async_test"]}
        assert both <= by_category
        assert both <= by_tag

    def test_unknown_facet_value_is_empty(self, index, catalogue):
        assert index.candidates(PatternSearchCriteria(tags=["nope"])) == set()
        assert index.candidates(PatternSearchCriteria(language="cobol")) == set()

    def test_multiple_tags_all_required(self, index, catalogue):
        assert index.candidates(PatternSearchCriteria(tags=["async", "pytest"])) == {
            catalogue["async_test"]
        }


class TestSearch:
    def test_search_intersection_property(self, search, catalogue):
        both = {m.pattern.id for m in search.search(category="testing", tags=["async"])}
        either = {m.pattern.id for m in search.search(category="testing")}
        other = {m.pattern.id for m in search.search(tags=["async"])}
        assert both <= either
        assert both <= other

    def test_scenario_c_name_beats_description(self, search, store, make_draft):
        """A name hit outranks a description hit for the same text."""
        p1 = store.add(make_draft("LRU Cache", description="Bounded memoisation"))
        p2 = store.add(make_draft("Memo Store", description="A cache for expensive calls"))
        store.add(make_draft("Unrelated", description="Nothing here", code="pass"))

        matches = search.search(search_text="cache")
        assert [m.pattern.id for m in matches] == [p1.id, p2.id]
        assert matches[0].reason.startswith("Name match")
        assert matches[1].reason.startswith("Description match")

    def test_code_match_and_exclusion(self, search, store, make_draft):
        hit = store.add(make_draft("Decorator", description="wraps", code="@functools.cache"))
        store.add(make_draft("Plain", description="nothing", code="pass"))
        matches = search.search(search_text="CACHE")
        assert [m.pattern.id for m in matches] == [hit.id]
        assert matches[0].reason.startswith("Code match")

    def test_relevance_formula(self, search, store, make_draft, clock):
        pattern = store.add(make_draft())
        for _ in range(50):
            store.record_usage(pattern.id, "p", success=True)
        match = search.search(search_text="lru")[0]
        # 1.0 * 0.3 + 0.5 * 0.2 + name 0.3 + recent 0.1
        assert match.relevance == pytest.approx(0.8)
        assert match.reason == "Name match, Recently used"

    def test_recency_bonus_expires(self, search, store, make_draft, clock):
        pattern = store.add(make_draft())
        fresh = search.search()[0].relevance
        clock.advance(days=8)
        stale = search.search()[0]
        assert fresh - stale.relevance == pytest.approx(0.1)
        assert stale.reason == "Criteria match"
        assert stale.pattern.id == pattern.id

    def test_min_success_rate_filters(self, search, store, make_draft):
        good = store.add(make_draft("Good"))
        bad = store.add(make_draft("Bad"))
        for _ in range(5):
            store.record_usage(bad.id, "p", success=False)
        ids = [m.pattern.id for m in search.search(min_success_rate=0.9)]
        assert ids == [good.id]

    def test_usage_monotonicity(self, search, store, make_draft):
        pattern = store.add(make_draft())
        criteria = PatternSearchCriteria(search_text="lru")
        current = store.get(pattern.id)
        previous = search.score(current, criteria)[0]
        for _ in range(120):
            # Vary only the count; hold the success rate fixed
            current.usage.count += 1
            score = search.score(current, criteria)[0]
            assert score >= previous
            previous = score

    def test_sorted_descending_and_stable(self, search, store, make_draft):
        ids = [store.add(make_draft(f"Same {i}")).id for i in range(4)]
        matches = search.search()
        assert [m.pattern.id for m in matches] == ids
        relevances = [m.relevance for m in matches]
        assert relevances == sorted(relevances, reverse=True)

    def test_empty_result_is_not_an_error(self, search, catalogue):
        assert search.search(category="security") == []


class TestRelated:
    def test_scoring_and_order(self, search, store, make_draft):
        base = store.add(make_draft("Base", category="api", tags={"http", "json"}))
        twin = store.add(make_draft("Twin", category="api", tags={"http", "json"}))
        cousin = store.add(make_draft("Cousin", category="testing", tags={"http"}, language="go"))
        store.add(make_draft("Stranger", category="security", language="rust"))
        store.update(base.id, related_patterns=[cousin.id])

        related = search.get_related(base.id)
        assert [p.id for p in related] == [twin.id, cousin.id]
        # same category 0.3 + two tags 0.2 + same language 0.2
        assert search.relatedness(store.get(base.id), twin) == pytest.approx(0.7)
        # one tag 0.1 + explicit 0.5
        assert search.relatedness(store.get(base.id), cousin) == pytest.approx(0.6)

    def test_shared_projects_count(self, search, store, make_draft):
        a = store.add(make_draft("A", category="api", language="go"))
        b = store.add(make_draft("B", category="security", language="rust"))
        for project in ("p1", "p2"):
            store.record_usage(a.id, project, success=True)
            store.record_usage(b.id, project, success=True)
        assert search.relatedness(store.get(a.id), store.get(b.id)) == pytest.approx(0.1)

    def test_limit(self, search, store, make_draft):
        base = store.add(make_draft("Base"))
        for i in range(7):
            store.add(make_draft(f"Peer {i}"))
        assert len(search.get_related(base.id)) == 5
        assert len(search.get_related(base.id, limit=2)) == 2

    def test_unknown_id_is_empty(self, search):
        assert search.get_related("ghost") == []

    def test_zero_score_excluded(self, search, store, make_draft):
        base = store.add(make_draft("Base", category="api", language="go"))
        store.add(make_draft("Other", category="security", language="rust"))
        assert search.get_related(base.id) == []
