"""Grand Exchange tax and flip profit calculator.

Single source of truth for tax, profit and ROI. Every reporting surface
(flip tables, stats, the trading profile, recommendations) goes through
``compute_profit`` so the numbers always agree.

Tax rules:
- 2% of the sell price, computed per item and floored
- Total tax per trade is capped at 5,000,000 gp
- Items selling for 49 gp or less per item are exempt
- Bonds are exempt
"""

from __future__ import annotations

from typing import Optional

from .models import TaxResult, Trade

GE_TAX_RATE_PERCENT = 2
GE_TAX_CAP = 5_000_000
EXEMPT_PRICE_THRESHOLD = 49

# Known Bond item IDs
BOND_ITEM_IDS = frozenset({
    29492,  # Bond
    43998,  # Premier Club bond
})


def is_bond_item(item_id: Optional[int]) -> bool:
    if not item_id:
        return False
    return item_id in BOND_ITEM_IDS


def is_tax_exempt(
    sell_price: int,
    item_id: Optional[int] = None,
    item_name: Optional[str] = None,
) -> tuple[bool, Optional[str]]:
    """Return ``(exempt, reason)`` for a sale at ``sell_price`` per item."""
    if is_bond_item(item_id):
        return True, "Bonds are tax exempt"

    # Name fallback for bonds the id list doesn't know about
    if item_name and "bond" in item_name.lower():
        return True, "Bonds are tax exempt"

    if sell_price <= EXEMPT_PRICE_THRESHOLD:
        return True, f"Items sold for {EXEMPT_PRICE_THRESHOLD} gp or less are tax exempt"

    return False, None


def compute_tax(
    sell_price_per_unit: int,
    quantity: int,
    item_id: Optional[int] = None,
    item_name: Optional[str] = None,
) -> int:
    """Total tax owed on selling ``quantity`` items at ``sell_price_per_unit``.

    Tax is floored per item before multiplying, then the total is capped.
    Degenerate inputs (non-positive quantity) owe nothing.
    """
    if quantity <= 0:
        return 0
    exempt, _ = is_tax_exempt(sell_price_per_unit, item_id, item_name)
    if exempt:
        return 0

    # Integer arithmetic keeps the floor exact for any price
    tax_per_item = int(sell_price_per_unit) * GE_TAX_RATE_PERCENT // 100
    return min(tax_per_item * quantity, GE_TAX_CAP)


def calculate_flip(
    sell_price: int,
    buy_price: int,
    quantity: int = 1,
    item_id: Optional[int] = None,
    item_name: Optional[str] = None,
) -> TaxResult:
    """Full economics of buying at ``buy_price`` and selling at ``sell_price``.

    Never raises: negative prices or a non-positive quantity produce an
    all-zero result, which callers report as a data-quality problem.
    """
    if sell_price < 0 or buy_price < 0 or quantity <= 0:
        return _zero_result()

    exempt, reason = is_tax_exempt(sell_price, item_id, item_name)
    tax = compute_tax(sell_price, quantity, item_id, item_name)

    gross_revenue = sell_price * quantity
    net_revenue = gross_revenue - tax
    total_cost = buy_price * quantity
    profit = net_revenue - total_cost
    roi = (profit / total_cost * 100) if total_cost > 0 else 0.0

    return TaxResult(
        gross_revenue=gross_revenue,
        tax=tax,
        net_revenue=net_revenue,
        total_cost=total_cost,
        profit=profit,
        roi=roi,
        # When the cap kicks in the effective per-item tax is no longer an integer
        tax_per_item=tax / quantity,
        profit_per_item=profit / quantity,
        is_tax_exempt=exempt,
        exempt_reason=reason,
    )


def compute_profit(trade: Trade) -> Optional[TaxResult]:
    """Economics of a completed trade, or None for an open position."""
    if trade.sell_price is None:
        return None
    return calculate_flip(
        trade.sell_price,
        trade.buy_price,
        trade.quantity,
        item_id=trade.item_id,
        item_name=trade.item_name,
    )


def is_valid_trade(trade: Trade) -> bool:
    """False for rows whose numbers would be clamped to a zero result."""
    if trade.buy_price < 0 or trade.quantity <= 0:
        return False
    return trade.sell_price is None or trade.sell_price >= 0


def _zero_result() -> TaxResult:
    return TaxResult(
        gross_revenue=0,
        tax=0,
        net_revenue=0,
        total_cost=0,
        profit=0,
        roi=0.0,
    )
