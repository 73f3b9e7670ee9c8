"""Tests for recommendation prompts and the Claude-backed recommender."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from flipledger.analyzers.trading_profile import synthesize
from flipledger.models import Trade
from flipledger.narrative.prompts import build_recommendation_prompt, format_hold_time
from flipledger.narrative.recommender import (
    confidence_tier,
    extract_suggestions,
    fallback_recommendations,
    generate_recommendations,
    open_position_names,
    suggest_prices,
)

NOW = datetime(2025, 6, 30, tzinfo=timezone.utc)

CATALOG = {
    "nature rune": {"id": 561, "name": "Nature rune", "price": 250},
    "death rune": {"id": 560, "name": "Death rune", "price": 300},
    "blood rune": {"id": 565, "name": "Blood rune", "price": 400},
    "fire rune": {"id": 554, "name": "Fire rune", "price": 17},
    "super restore (4)": {"id": 3024, "name": "Super restore (4)", "price": 9000},
    "abyssal whip": {"id": 4151, "name": "Abyssal whip", "price": 120_000},
}


def fake_search(query):
    item = CATALOG.get(query.lower())
    return [item] if item else []


def _trades():
    return [
        Trade(item_name="Nature rune", buy_price=240, sell_price=260, quantity=1000,
              bought_at=NOW - timedelta(days=2), sold_at=NOW - timedelta(days=1),
              strategy_tag="Bulk"),
        Trade(item_name="Death rune", buy_price=290, quantity=500,
              bought_at=NOW - timedelta(hours=5)),
    ]


class TestPrompts:
    @pytest.mark.parametrize("ms,expected", [
        (30 * 60_000, "less than 1 hour"),
        (5 * 3_600_000, "5 hours"),
        (72 * 3_600_000, "3 days"),
    ])
    def test_format_hold_time(self, ms, expected):
        assert format_hold_time(ms) == expected

    def test_prompt_mentions_profile(self):
        trades = _trades()
        profile = synthesize(trades, now=NOW)
        prompt = build_recommendation_prompt(profile, open_position_names(trades))
        assert "Risk Profile: moderate" in prompt
        assert "Bulk (1 trades" in prompt
        assert "Currently Open Positions: death rune" in prompt
        assert "Preferred Price Range: 240 - 260" in prompt


class TestPricing:
    def test_no_history_uses_current_price(self):
        assert suggest_prices(1_000, "Bulk") == (1_000, 1_000)

    def test_strategy_spreads(self):
        history = [90, 100, 110]
        assert suggest_prices(100, "Fast Flip", history) == (99, 101)
        assert suggest_prices(100, "Bulk", history) == (98, 102)
        assert suggest_prices(100, "High Margin", history) == (92, 108)
        assert suggest_prices(100, "Slow Flip", history) == (97, 103)

    def test_confidence_tier(self):
        assert confidence_tier(85) == "high"
        assert confidence_tier(65) == "medium"
        assert confidence_tier(40) == "low"


class TestExtractSuggestions:
    def test_shapes(self):
        item = {"itemName": "Nature rune"}
        assert extract_suggestions([item]) == [item]
        assert extract_suggestions({"items": [item]}) == [item]
        assert extract_suggestions({"recommendations": [item]}) == [item]
        assert extract_suggestions({"whatever": [item, "junk"]}) == [item]
        assert extract_suggestions("nope") == []


class TestGenerate:
    def test_no_key_uses_fallback_without_open_positions(self):
        trades = _trades()
        recs = generate_recommendations(synthesize(trades, now=NOW), trades, fake_search)
        names = [r.item_name for r in recs]
        assert "Death rune" not in names
        assert names[0] == "Nature rune"
        assert all(r.confidence == "medium" for r in recs)

    def test_fallback_filters_price_range(self):
        profile = synthesize(_trades(), now=NOW)
        recs = fallback_recommendations(profile, [], fake_search)
        # Fire rune at 17gp is below 10% of the user's 240gp floor
        assert "Fire rune" not in [r.item_name for r in recs]

    @patch("flipledger.narrative.recommender._call_claude")
    def test_ai_suggestions_validated_against_catalog(self, mock_call):
        mock_call.return_value = {"items": [
            {"itemName": "Abyssal whip", "strategy": "High Margin", "matchScore": 88,
             "riskLevel": "HIGH", "matchReasons": ["Fits your range"]},
            {"itemName": "Made up item"},
            {"reasoning": "no name"},
        ]}
        trades = _trades()
        recs = generate_recommendations(
            synthesize(trades, now=NOW), trades, fake_search, api_key="test-key",
        )
        assert len(recs) == 1
        whip = recs[0]
        assert whip.item_id == 4151
        assert whip.confidence == "high"
        assert whip.risk_level == "high"
        # floor(120000 * 0.02) = 2400 tax, no margin without history
        assert whip.potential_profit == -2400

    @patch("flipledger.narrative.recommender._call_claude")
    def test_non_finite_match_score_uses_default(self, mock_call):
        mock_call.return_value = {"items": [
            {"itemName": "Abyssal whip", "matchScore": float("inf")},
            {"itemName": "Super restore (4)", "matchScore": 250},
        ]}
        trades = _trades()
        recs = generate_recommendations(
            synthesize(trades, now=NOW), trades, fake_search, api_key="test-key",
        )
        assert [r.match_score for r in recs] == [70, 100]
        assert recs[0].confidence == "medium"

    def test_lookup_failure_mid_iteration_skips_item(self):
        def lazy(query):
            if query == "Nature rune":
                yield "junk"
                raise TimeoutError("late")
            yield from fake_search(query)

        profile = synthesize(_trades(), now=NOW)
        recs = fallback_recommendations(profile, [], lazy)
        names = [r.item_name for r in recs]
        assert "Nature rune" not in names
        assert "Death rune" in names

    @patch("flipledger.narrative.recommender._call_claude", side_effect=RuntimeError("down"))
    def test_api_failure_falls_back(self, _mock_call):
        trades = _trades()
        recs = generate_recommendations(
            synthesize(trades, now=NOW), trades, fake_search, api_key="test-key",
        )
        assert recs
        assert recs[0].reasoning.startswith("Popular")
