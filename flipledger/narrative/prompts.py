"""Prompt text for personalized flip recommendations."""

from __future__ import annotations

from typing import Iterable

from ..models import TradingProfile
from ..parsers.quantity import format_gp

SYSTEM_PROMPT = """\
You are an RS3 Grand Exchange trading expert. Only suggest real, tradeable RS3 \
items. Always respond with a JSON object containing an "items" array."""

_RESPONSE_FORMAT = """\
Respond with valid JSON only:
{
  "items": [
    {
      "itemName": "Exact RS3 item name",
      "reasoning": "Brief explanation why this fits the user's style",
      "strategy": "Fast Flip|Slow Flip|Bulk|High Margin|Speculative",
      "riskLevel": "low|medium|high",
      "estimatedHoldTime": "e.g., 1-2 hours, 1-3 days",
      "matchScore": 0-100,
      "matchReasons": ["reason1", "reason2"]
    }
  ]
}"""


def format_hold_time(ms: float) -> str:
    """Human hold time: ``"less than 1 hour"``, ``"5 hours"``, ``"3 days"``."""
    hours = ms / 3_600_000
    if hours < 1:
        return "less than 1 hour"
    if hours < 24:
        return f"{round(hours)} hours"
    return f"{round(hours / 24)} days"


def _join(values: Iterable[str], empty: str) -> str:
    joined = ", ".join(values)
    return joined or empty


def build_recommendation_prompt(profile: TradingProfile, open_positions: Iterable[str]) -> str:
    """User prompt asking for five items that fit ``profile``."""
    price_range = profile.preferred_price_range
    strategies = _join(
        (
            f"{s.strategy} ({s.frequency} trades, {s.avg_roi:.1f}% avg ROI)"
            for s in profile.preferred_strategies
        ),
        "None yet",
    )

    lines = [
        "You are an expert RuneScape 3 Grand Exchange trading advisor. Based on a user's "
        "trading profile, suggest 5 specific items they should consider flipping.",
        "",
        "USER TRADING PROFILE:",
        f"- Risk Profile: {profile.risk_profile}",
        f"- Preferred Price Range: {format_gp(price_range.min)} - {format_gp(price_range.max)}",
        f"- Average ROI: {profile.avg_roi:.1f}%",
        f"- Win Rate: {profile.win_rate:.1f}%",
        f"- Average Hold Time: {format_hold_time(profile.avg_hold_time)}",
        f"- Total Completed Flips: {profile.total_flips}",
        f"- Membership Preference: {profile.membership_preference}",
        f"- Top Performing Items: {_join((i.name for i in profile.top_performing_items), 'None yet')}",
        f"- Frequently Traded: {_join(profile.frequently_traded_items, 'None yet')}",
        f"- Preferred Strategies: {strategies}",
        f"- Currently Open Positions: {_join(open_positions, 'None')}",
        "",
        "REQUIREMENTS:",
        "1. Suggest items that match the user's risk profile and price range",
        "2. Consider their preferred trading strategies",
        "3. Avoid items they already have open positions in",
        "4. Include a mix of familiar categories and new opportunities",
        "5. Each item must be a real RS3 tradeable item",
        "",
        _RESPONSE_FORMAT,
    ]
    return "\n".join(lines)
