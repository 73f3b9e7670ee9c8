"""Personalized flip recommendations using the Claude API.

Claude proposes item names; every suggestion is then checked against the
live catalog (via the injected ``search_fn``) and priced with the same tax
rules as everything else. When the API is unavailable or nothing it
suggests survives validation, a curated list of high-volume items is used
instead.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Sequence

from ..analyzers.catalog_matcher import SearchFn, find_top_match
from ..config import DEFAULT_RECOMMENDATION_MODEL
from ..models import CatalogMatch, Trade, TradingProfile
from ..tax import compute_tax
from .prompts import SYSTEM_PROMPT, build_recommendation_prompt

logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 5
DEFAULT_MATCH_SCORE = 70

# history_fn(item_id) -> recent prices, newest last
HistoryFn = Callable[[int], Sequence[float]]

# Popular items used when AI suggestions are unavailable: (name, strategy, risk)
FALLBACK_ITEMS: tuple[tuple[str, str, str], ...] = (
    ("Nature rune", "Bulk", "low"),
    ("Death rune", "Bulk", "low"),
    ("Blood rune", "Bulk", "low"),
    ("Fire rune", "Bulk", "low"),
    ("Super restore (4)", "Fast Flip", "low"),
    ("Prayer potion (4)", "Fast Flip", "low"),
    ("Saradomin brew (4)", "Fast Flip", "low"),
    ("Overload (4)", "Fast Flip", "medium"),
    ("Raw rocktail", "Bulk", "low"),
    ("Rocktail", "Bulk", "low"),
    ("Luminite stone spirit", "Bulk", "low"),
    ("Necrite stone spirit", "Bulk", "low"),
    ("Elder rune bar", "Slow Flip", "medium"),
    ("Onyx bolt tips", "High Margin", "medium"),
    ("Ascension shard", "Bulk", "low"),
)

_RISK_LEVELS = {"low", "medium", "high"}


@dataclass
class Recommendation:
    item_name: str
    item_id: int
    current_price: int
    suggested_buy_price: int
    suggested_sell_price: int
    potential_profit: int
    potential_roi: float
    confidence: str  # high | medium | low
    reasoning: str
    match_score: int
    strategy: str
    risk_level: str  # low | medium | high
    estimated_hold_time: str
    item_icon: Optional[str] = None
    match_reasons: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pricing helpers
# ---------------------------------------------------------------------------

def suggest_prices(current_price: int, strategy: str, history: Sequence[float] = ()) -> tuple[int, int]:
    """Suggested (buy, sell) prices around the recent average for ``strategy``."""
    prices = [float(p) for p in history if p is not None]
    if not prices:
        return current_price, current_price

    avg = sum(prices) / len(prices)
    if strategy == "High Margin":
        return round(min(prices) * 1.02), round(max(prices) * 0.98)
    if strategy == "Fast Flip":
        return round(avg * 0.99), round(avg * 1.01)
    if strategy == "Bulk":
        return round(avg * 0.98), round(avg * 1.02)
    return round(avg * 0.97), round(avg * 1.03)


def confidence_tier(match_score: int) -> str:
    if match_score >= 80:
        return "high"
    if match_score < 50:
        return "low"
    return "medium"


def _potential(buy: int, sell: int) -> tuple[int, float]:
    profit = sell - buy - compute_tax(sell, 1)
    roi = profit / buy * 100 if buy > 0 else 0.0
    return profit, roi


def _lookup(name: str, search_fn: SearchFn) -> Optional[CatalogMatch]:
    """Top catalog hit with a usable price, or None."""
    match = find_top_match(name, search_fn)
    if match is None or not match.price or match.price <= 0:
        return None
    return match


def _history(item_id: int, history_fn: Optional[HistoryFn]) -> Sequence[float]:
    if history_fn is None:
        return ()
    try:
        return history_fn(item_id) or ()
    except Exception as e:
        logger.warning("Price history lookup failed for item %d: %s", item_id, e)
        return ()


# ---------------------------------------------------------------------------
# Response normalization
# ---------------------------------------------------------------------------

def extract_suggestions(payload: Any) -> list[dict[str, Any]]:
    """Pull the suggestion list out of whatever shape the model returned."""
    if isinstance(payload, list):
        found = payload
    elif isinstance(payload, dict):
        found = None
        for key in ("items", "recommendations", "suggestions"):
            if isinstance(payload.get(key), list):
                found = payload[key]
                break
        if found is None:
            found = next((v for v in payload.values() if isinstance(v, list)), [])
    else:
        found = []
    return [s for s in found if isinstance(s, dict)]


def _build(
    suggestion: dict[str, Any],
    search_fn: SearchFn,
    history_fn: Optional[HistoryFn],
) -> Optional[Recommendation]:
    name = str(suggestion.get("itemName") or "").strip()
    if not name:
        logger.info("Skipping suggestion without itemName")
        return None

    item = _lookup(name, search_fn)
    if item is None:
        logger.info("Suggested item not found in catalog: %s", name)
        return None

    strategy = str(suggestion.get("strategy") or "Other")
    buy, sell = suggest_prices(item.price, strategy, _history(item.id, history_fn))
    if buy <= 0:
        return None
    profit, roi = _potential(buy, sell)

    score = suggestion.get("matchScore")
    if isinstance(score, (int, float)) and not isinstance(score, bool) and math.isfinite(score):
        match_score = int(min(max(score, 0), 100))
    else:
        match_score = DEFAULT_MATCH_SCORE
    risk = str(suggestion.get("riskLevel") or "medium").lower()
    reasons = suggestion.get("matchReasons")

    return Recommendation(
        item_name=item.name,
        item_id=item.id,
        item_icon=item.icon,
        current_price=item.price,
        suggested_buy_price=buy,
        suggested_sell_price=sell,
        potential_profit=profit,
        potential_roi=roi,
        confidence=confidence_tier(match_score),
        reasoning=str(suggestion.get("reasoning") or "Matches your trading profile"),
        match_score=match_score,
        match_reasons=[str(r) for r in reasons] if isinstance(reasons, list) else [],
        strategy=strategy,
        risk_level=risk if risk in _RISK_LEVELS else "medium",
        estimated_hold_time=str(suggestion.get("estimatedHoldTime") or "1-3 days"),
    )


# ---------------------------------------------------------------------------
# Claude API call
# ---------------------------------------------------------------------------

def _call_claude(api_key: str, model: str, user_prompt: str) -> Any:
    """Make the actual API call to Claude and decode its JSON."""
    import anthropic

    client = anthropic.Anthropic(api_key=api_key)
    message = client.messages.create(
        model=model,
        max_tokens=2000,
        system=SYSTEM_PROMPT,
        messages=[{"role": "user", "content": user_prompt}],
    )

    text = message.content[0].text.strip()

    # Strip markdown code fences if present
    if text.startswith("```"):
        lines = text.split("\n")
        start = 1 if lines[0].startswith("```") else 0
        end = -1 if lines[-1].strip() == "```" else len(lines)
        text = "\n".join(lines[start:end]).strip()

    return json.loads(text)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def open_position_names(trades: Iterable[Trade]) -> list[str]:
    return [
        t.item_name.lower()
        for t in trades
        if t.sell_price is None and t.deleted_at is None
    ]


def fallback_recommendations(
    profile: TradingProfile,
    open_positions: Sequence[str],
    search_fn: SearchFn,
    history_fn: Optional[HistoryFn] = None,
) -> list[Recommendation]:
    """Curated high-volume items, preferred strategies first."""
    available = [item for item in FALLBACK_ITEMS if item[0].lower() not in open_positions]
    preferred = {s.strategy for s in profile.preferred_strategies}
    if preferred:
        available = (
            [item for item in available if item[1] in preferred]
            + [item for item in available if item[1] not in preferred]
        )

    price_range = profile.preferred_price_range
    recommendations: list[Recommendation] = []
    for name, strategy, risk in available[:MAX_RECOMMENDATIONS]:
        item = _lookup(name, search_fn)
        if item is None:
            continue
        if item.price < price_range.min * 0.1 or item.price > price_range.max * 10:
            continue

        buy, sell = suggest_prices(item.price, strategy, _history(item.id, history_fn))
        profit, roi = _potential(buy, sell)
        recommendations.append(Recommendation(
            item_name=item.name,
            item_id=item.id,
            item_icon=item.icon,
            current_price=item.price,
            suggested_buy_price=buy,
            suggested_sell_price=sell,
            potential_profit=profit,
            potential_roi=roi,
            confidence="medium",
            reasoning=f"Popular {strategy.lower()} item with consistent trading volume",
            match_score=65,
            match_reasons=["High volume item", "Reliable price margins"],
            strategy=strategy,
            risk_level=risk,
            estimated_hold_time="1-4 hours" if strategy == "Fast Flip" else "1-2 days",
        ))

    logger.info("Fallback generated %d recommendations", len(recommendations))
    return recommendations


def generate_recommendations(
    profile: TradingProfile,
    trades: Iterable[Trade],
    search_fn: SearchFn,
    *,
    api_key: Optional[str] = None,
    model: str = DEFAULT_RECOMMENDATION_MODEL,
    history_fn: Optional[HistoryFn] = None,
) -> list[Recommendation]:
    """Up to five catalog-validated recommendations for ``profile``."""
    open_positions = open_position_names(trades)

    if not api_key:
        logger.warning("No ANTHROPIC_API_KEY set; using fallback recommendations")
        return fallback_recommendations(profile, open_positions, search_fn, history_fn)

    logger.info(
        "Generating recommendations for profile: %d flips, %.1f%% avg ROI",
        profile.total_flips, profile.avg_roi,
    )
    try:
        payload = _call_claude(api_key, model, build_recommendation_prompt(profile, open_positions))
    except Exception as e:
        logger.warning("Claude recommendation call failed: %s", e)
        return fallback_recommendations(profile, open_positions, search_fn, history_fn)

    recommendations: list[Recommendation] = []
    for suggestion in extract_suggestions(payload)[:MAX_RECOMMENDATIONS]:
        rec = _build(suggestion, search_fn, history_fn)
        if rec is not None:
            recommendations.append(rec)

    if not recommendations:
        logger.info("No AI suggestions validated, using fallback")
        return fallback_recommendations(profile, open_positions, search_fn, history_fn)
    return recommendations
