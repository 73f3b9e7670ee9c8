"""Tests for catalog matching and the import aggregator."""

import pytest

from flipledger.analyzers.catalog_matcher import match_candidates, name_similarity
from flipledger.analyzers.import_aggregator import (
    ImportValidationError,
    build_import_candidates,
    is_preselected,
    overall_confidence,
    select_for_submission,
)
from flipledger.models import CatalogMatch, MatchedCandidate, RecognizedCandidate

CATALOG = {
    "dragon bones": [{"id": 536, "name": "Dragon bones", "price": 3200, "icon": "536.gif"}],
    "yew logs": [{"id": 1515, "name": "Yew logs", "price": 410, "icon": None}],
    "rune plate": [CatalogMatch(id=1127, name="Rune platebody", price=38000)],
}


def fake_search(query):
    return CATALOG.get(query.lower(), [])


def _cand(name, qty=1, conf=0.7):
    return RecognizedCandidate(name=name, quantity=qty, confidence=conf)


class TestNameSimilarity:
    def test_exact_case_insensitive(self):
        assert name_similarity("Rune platebody", "rune platebody") == 1.0

    def test_containment(self):
        assert name_similarity("Dragon bones", "bones") == 0.9
        assert name_similarity("bones", "Dragon bones") == 0.9

    def test_token_overlap(self):
        # common {"rune"}: 2 * 1 / (2 + 2)
        assert name_similarity("Rune platebody", "Rune chainbody") == pytest.approx(0.5)

    def test_disjoint_is_floored(self):
        assert name_similarity("Yew logs", "Abyssal whip") == 0.3

    def test_empty_is_floored(self):
        assert name_similarity("", "Coal") >= 0.3


class TestMatchCandidates:
    def test_scores_combine_similarity_and_extraction(self):
        result = match_candidates([_cand("Dragon bones", conf=0.7)], fake_search)
        assert result[0].match.id == 536
        assert result[0].match_confidence == pytest.approx(0.7)

    def test_partial_name_match(self):
        result = match_candidates([_cand("Rune plate", conf=0.6)], fake_search)
        assert result[0].match.name == "Rune platebody"
        assert result[0].match_confidence == pytest.approx(0.9 * 0.6)

    def test_no_results_is_unmatched(self):
        result = match_candidates([_cand("Mystery item")], fake_search)
        assert result[0].match is None
        assert result[0].match_confidence == 0.0

    def test_failure_isolated_per_candidate(self):
        def flaky(query):
            if query == "Yew logs":
                raise TimeoutError("catalog timed out")
            return fake_search(query)

        result = match_candidates(
            [_cand("Dragon bones"), _cand("Yew logs"), _cand("Dragon bones", qty=3)],
            flaky,
        )
        assert [r.candidate.name for r in result] == ["Dragon bones", "Yew logs", "Dragon bones"]
        assert result[0].match is not None
        assert result[1].match is None
        assert result[1].match_confidence == 0.0
        assert result[2].match is not None

    def test_repeated_names_searched_once(self):
        calls = []

        def counting(query):
            calls.append(query)
            return fake_search(query)

        match_candidates([_cand("Yew logs"), _cand("yew logs")], counting)
        assert len(calls) == 1

    def test_non_conforming_entries_skipped(self):
        result = match_candidates(
            [_cand("Coal")],
            lambda q: [{"name": "no id"}, "junk", {"id": "453", "name": "Coal", "price": "150"}],
        )
        assert result[0].match == CatalogMatch(id=453, name="Coal", price=150, icon=None)

    def test_lazy_search_failure_isolated(self):
        def lazy(query):
            if query == "Bad":
                yield "junk"
                raise TimeoutError("late")
            yield from fake_search(query)

        result = match_candidates([_cand("Bad"), _cand("Dragon bones")], lazy)
        assert result[0].match is None
        assert result[0].match_confidence == 0.0
        assert result[1].match.id == 536

    def test_non_iterable_result_is_unmatched(self):
        result = match_candidates([_cand("Coal")], lambda q: 42)
        assert result[0].match is None
        assert result[0].match_confidence == 0.0


class TestBuildImportCandidates:
    def test_selection_high_extraction_low_match(self):
        matched = MatchedCandidate(_cand("x", conf=0.75), CatalogMatch(1, "X item"), 0.2)
        assert is_preselected(matched)

    def test_selection_both_low(self):
        matched = MatchedCandidate(_cand("x", conf=0.3), CatalogMatch(1, "X item"), 0.3)
        assert not is_preselected(matched)

    def test_selection_high_match(self):
        matched = MatchedCandidate(_cand("x", conf=0.6), CatalogMatch(1, "X item"), 0.55)
        assert is_preselected(matched)

    def test_unmatched_never_selected(self):
        assert not is_preselected(MatchedCandidate(_cand("x", conf=0.99), None, 0.0))

    def test_defaults(self):
        matched = match_candidates([_cand("Dragon bones"), _cand("Unknown thing")], fake_search)
        rows = build_import_candidates(matched)
        assert rows[0].suggested_buy_price == 3200
        assert rows[0].category_id is None
        assert rows[0].selected
        assert rows[1].match is None
        assert rows[1].suggested_buy_price == 0
        assert not rows[1].selected

    def test_missing_catalog_price_defaults_to_zero(self):
        matched = [MatchedCandidate(_cand("Coal", conf=0.7), CatalogMatch(453, "Coal"), 0.7)]
        assert build_import_candidates(matched)[0].suggested_buy_price == 0

    def test_custom_price_source(self):
        matched = match_candidates([_cand("Yew logs")], fake_search)
        rows = build_import_candidates(matched, lambda m: (m.price or 0) - 10)
        assert rows[0].suggested_buy_price == 400

    def test_deduplicates_by_catalog_id(self):
        matched = match_candidates(
            [_cand("Dragon bones", qty=100, conf=0.6), _cand("Yew logs", qty=5),
             _cand("dragon bones", qty=50, conf=0.7)],
            fake_search,
        )
        rows = build_import_candidates(matched)
        assert [r.match.id for r in rows] == [536, 1515]
        assert rows[0].candidate.quantity == 150
        assert rows[0].candidate.confidence == 0.7
        assert rows[0].match_confidence == pytest.approx(0.7)


class TestSelectForSubmission:
    def test_only_selected_and_matched(self):
        matched = match_candidates(
            [_cand("Dragon bones", qty=1200), _cand("Yew logs", qty=500), _cand("Nothing here")],
            fake_search,
        )
        rows = build_import_candidates(matched)
        rows[1].selected = False
        holdings = select_for_submission(rows)
        assert len(holdings) == 1
        assert holdings[0].item_id == 536
        assert holdings[0].quantity == 1200
        assert holdings[0].avg_buy_price == 3200
        assert holdings[0].item_icon == "536.gif"
        assert holdings[0].source == "screenshot"

    def test_nothing_eligible_rejected(self):
        rows = build_import_candidates(match_candidates([_cand("Nothing here")], fake_search))
        with pytest.raises(ImportValidationError):
            select_for_submission(rows)

    def test_empty_rejected(self):
        with pytest.raises(ImportValidationError):
            select_for_submission([])


class TestOverallConfidence:
    def test_mean(self):
        matched = match_candidates([_cand("a b c", conf=0.4), _cand("d e f", conf=0.8)], fake_search)
        assert overall_confidence(matched) == pytest.approx(0.6)

    def test_empty(self):
        assert overall_confidence([]) == 0.0
