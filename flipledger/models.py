"""Domain records shared by the calculator, the import pipeline and the profile."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional


@dataclass
class Trade:
    """A single logged flip. ``sell_price is None`` means the position is still open."""

    item_name: str
    buy_price: int
    quantity: int
    bought_at: datetime
    sell_price: Optional[int] = None
    sold_at: Optional[datetime] = None
    item_id: Optional[int] = None
    strategy_tag: Optional[str] = None
    is_members: bool = True
    deleted_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.sell_price is not None


@dataclass
class TaxResult:
    """Economics of one sell. ``roi`` is a percentage."""

    gross_revenue: int
    tax: int
    net_revenue: int
    total_cost: int
    profit: int
    roi: float
    tax_per_item: float = 0.0
    profit_per_item: float = 0.0
    is_tax_exempt: bool = False
    exempt_reason: Optional[str] = None


@dataclass
class RecognizedCandidate:
    """One item line pulled out of a screenshot, before catalog matching."""

    name: str
    quantity: int
    confidence: float  # 0.0 to 1.0
    notes: Optional[str] = None


@dataclass
class CatalogMatch:
    """An item as reported by the catalog search collaborator."""

    id: int
    name: str
    price: Optional[int] = None
    icon: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["CatalogMatch"]:
        """Coerce a raw catalog entry into a CatalogMatch, or None if it doesn't conform."""
        if isinstance(payload, CatalogMatch):
            return payload
        if not isinstance(payload, Mapping):
            return None
        try:
            item_id = int(payload["id"])
        except (KeyError, TypeError, ValueError):
            return None
        name = str(payload.get("name") or "").strip()
        if not name:
            return None

        price = payload.get("price")
        try:
            price = int(price) if price is not None else None
        except (TypeError, ValueError):
            price = None

        icon = payload.get("icon")
        return cls(id=item_id, name=name, price=price, icon=str(icon) if icon else None)


@dataclass
class MatchedCandidate:
    candidate: RecognizedCandidate
    match: Optional[CatalogMatch]
    match_confidence: float


@dataclass
class ImportCandidate:
    """A review-ready import row. Only the review UI mutates it after creation."""

    candidate: RecognizedCandidate
    match: Optional[CatalogMatch]
    match_confidence: float
    selected: bool
    suggested_buy_price: int
    category_id: Optional[str] = None


@dataclass
class HoldingRecord:
    """Payload handed to the persistence collaborator for one confirmed import."""

    item_id: int
    item_name: str
    item_icon: Optional[str]
    quantity: int
    avg_buy_price: int
    category_id: Optional[str] = None
    source: str = "screenshot"


# ---------------------------------------------------------------------------
# Trading profile
# ---------------------------------------------------------------------------

@dataclass
class StrategyStats:
    strategy: str
    frequency: int
    avg_roi: float
    win_rate: float  # percent


@dataclass
class ItemPerformance:
    name: str
    profit: int
    roi_percent: float


@dataclass
class PriceRange:
    min: int
    max: int


@dataclass
class TradingVolume:
    daily: int = 0
    weekly: int = 0
    monthly: int = 0


@dataclass
class TradingProfile:
    """Behavioral summary of a user's completed flips. Recomputed on every request."""

    preferred_strategies: list[StrategyStats]
    preferred_price_range: PriceRange
    avg_hold_time: float  # milliseconds
    risk_profile: str  # conservative | moderate | aggressive
    membership_preference: str  # members | f2p | both
    total_flips: int
    win_rate: float
    avg_roi: float
    total_profit: int
    top_performing_items: list[ItemPerformance] = field(default_factory=list)
    frequently_traded_items: list[str] = field(default_factory=list)
    trading_volume: TradingVolume = field(default_factory=TradingVolume)
