"""Behavioral trading profile built from a user's completed flips.

Feeds the recommendation layer: which strategies the user favours and how
well they perform, the price band they trade in, how long they hold, how
much risk they take and how active they have been recently.

Everything is derived from the trades passed in; nothing is cached.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

import numpy as np
import pandas as pd

from ..models import (
    ItemPerformance,
    PriceRange,
    StrategyStats,
    Trade,
    TradingProfile,
    TradingVolume,
)
from ..tax import compute_profit, is_valid_trade

logger = logging.getLogger(__name__)

DEFAULT_STRATEGY = "Other"

DAY_MS = 86_400_000
WEEK_MS = 604_800_000
MONTH_MS = 2_592_000_000

DEFAULT_MAX_PRICE = 10_000_000

TOP_ITEMS_LIMIT = 5
FREQUENT_ITEMS_LIMIT = 10

# Risk classification thresholds
AGGRESSIVE_ROI = 15.0
CONSERVATIVE_ROI = 5.0
SPECULATIVE_MIN_COUNT = 1  # strictly more than
FAST_FLIP_MIN_COUNT = 2  # strictly more than


def _trade_rows(trades: Iterable[Trade]) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for trade in trades:
        if trade.deleted_at is not None or not trade.is_completed:
            continue
        if not is_valid_trade(trade):
            logger.warning(
                "Trade for %r has invalid numbers (buy=%s sell=%s qty=%s); counting as zero profit",
                trade.item_name, trade.buy_price, trade.sell_price, trade.quantity,
            )
        result = compute_profit(trade)
        rows.append({
            "item_name": trade.item_name,
            "strategy": trade.strategy_tag or DEFAULT_STRATEGY,
            "profit": result.profit,
            "roi": result.roi,
            "buy_price": trade.buy_price,
            "sell_price": trade.sell_price,
            "buy_value": result.total_cost,
            "is_members": bool(trade.is_members),
            "bought_at": trade.bought_at,
            "sold_at": trade.sold_at if trade.sold_at is not None else trade.bought_at,
        })
    return rows


def classify_risk(strategy_counts: pd.Series, avg_roi: float) -> str:
    speculative = int(strategy_counts.get("Speculative", 0))
    fast_flips = int(strategy_counts.get("Fast Flip", 0))
    if speculative > SPECULATIVE_MIN_COUNT or avg_roi > AGGRESSIVE_ROI:
        return "aggressive"
    if fast_flips > FAST_FLIP_MIN_COUNT or avg_roi < CONSERVATIVE_ROI:
        return "conservative"
    return "moderate"


def classify_membership(members_count: int, f2p_count: int) -> str:
    if members_count > f2p_count * 2:
        return "members"
    if f2p_count > members_count * 2:
        return "f2p"
    return "both"


def _to_utc(ts: Optional[datetime]) -> pd.Timestamp:
    stamp = pd.Timestamp(ts) if ts is not None else pd.Timestamp.now(tz="UTC")
    if stamp.tzinfo is None:
        return stamp.tz_localize("UTC")
    return stamp.tz_convert("UTC")


def _strategy_stats(df: pd.DataFrame) -> pd.DataFrame:
    grouped = df.groupby("strategy", sort=False).agg(
        frequency=("roi", "size"),
        avg_roi=("roi", "mean"),
        wins=("is_win", "sum"),
    )
    grouped["win_rate"] = grouped["wins"] / grouped["frequency"] * 100
    return grouped.sort_values("frequency", ascending=False, kind="stable")


def _empty_profile() -> TradingProfile:
    return TradingProfile(
        preferred_strategies=[],
        preferred_price_range=PriceRange(min=0, max=DEFAULT_MAX_PRICE),
        avg_hold_time=0.0,
        risk_profile=classify_risk(pd.Series(dtype=int), 0.0),
        membership_preference=classify_membership(0, 0),
        total_flips=0,
        win_rate=0.0,
        avg_roi=0.0,
        total_profit=0,
    )


def synthesize(trades: Iterable[Trade], now: Optional[datetime] = None) -> TradingProfile:
    """Build a TradingProfile from every completed, non-deleted trade.

    Args:
        trades: The user's full trade history; open and deleted trades are ignored.
        now: Reference time for the rolling volume windows. Defaults to the
            current UTC time; naive datetimes are treated as UTC.
    """
    rows = _trade_rows(trades)
    if not rows:
        return _empty_profile()

    df = pd.DataFrame(rows)
    df["is_win"] = df["profit"] > 0
    bought = pd.to_datetime(df["bought_at"], utc=True)
    sold = pd.to_datetime(df["sold_at"], utc=True)
    df["hold_ms"] = (sold - bought).dt.total_seconds() * 1000
    df["elapsed_ms"] = (_to_utc(now) - bought).dt.total_seconds() * 1000

    strategies = _strategy_stats(df)
    preferred = [
        StrategyStats(
            strategy=str(name),
            frequency=int(row.frequency),
            avg_roi=float(row.avg_roi),
            win_rate=float(row.win_rate),
        )
        for name, row in strategies.iterrows()
    ]

    total = len(df)
    avg_roi = float(df["roi"].mean())
    members_count = int(df["is_members"].sum())

    low = int(np.minimum(df["buy_price"], df["sell_price"]).min())
    high = int(np.maximum(df["buy_price"], df["sell_price"]).max())

    items = df.groupby("item_name", sort=False).agg(
        profit=("profit", "sum"),
        roi_percent=("roi", "mean"),
        trades=("profit", "size"),
    )
    top = items.sort_values("profit", ascending=False, kind="stable").head(TOP_ITEMS_LIMIT)
    frequent = items.sort_values("trades", ascending=False, kind="stable").head(FREQUENT_ITEMS_LIMIT)

    elapsed = df["elapsed_ms"]
    volume = TradingVolume(
        daily=int(df.loc[elapsed < DAY_MS, "buy_value"].sum()),
        weekly=int(df.loc[elapsed < WEEK_MS, "buy_value"].sum()),
        monthly=int(df.loc[elapsed < MONTH_MS, "buy_value"].sum()),
    )

    return TradingProfile(
        preferred_strategies=preferred,
        preferred_price_range=PriceRange(min=low, max=high if high > 0 else DEFAULT_MAX_PRICE),
        avg_hold_time=float(df["hold_ms"].mean()),
        risk_profile=classify_risk(strategies["frequency"], avg_roi),
        membership_preference=classify_membership(members_count, total - members_count),
        total_flips=total,
        win_rate=float(df["is_win"].sum() / total * 100),
        avg_roi=avg_roi,
        total_profit=int(df["profit"].sum()),
        top_performing_items=[
            ItemPerformance(name=str(name), profit=int(row.profit), roi_percent=float(row.roi_percent))
            for name, row in top.iterrows()
        ],
        frequently_traded_items=[str(name) for name in frequent.index],
        trading_volume=volume,
    )
