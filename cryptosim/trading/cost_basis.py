"""Weighted average cost basis for positions.

Buying re-averages the position; selling only reduces its quantity.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

from .models import Position


def accumulate(position: Position, quantity: Decimal, price: Decimal) -> Position:
    """Add a purchase lot to a position.

    Args:
        position: Existing position (quantity may be zero)
        quantity: Amount bought
        price: Purchase price per unit

    Returns:
        New position with summed quantity and re-averaged buy price
    """
    new_quantity = position.quantity + quantity
    if new_quantity == Decimal("0"):
        return replace(position, quantity=new_quantity)

    total_cost = position.quantity * position.average_buy_price + quantity * price
    return replace(
        position,
        quantity=new_quantity,
        average_buy_price=total_cost / new_quantity,
    )


def reduce(position: Position, quantity: Decimal) -> Position:
    """Remove sold quantity from a position, keeping its average buy price.

    Raises:
        ValueError: If more than the held quantity would be removed
    """
    new_quantity = position.quantity - quantity
    if new_quantity < Decimal("0"):
        raise ValueError(
            f"Cannot reduce {position.asset_id} by {quantity}, holding {position.quantity}"
        )
    return replace(position, quantity=new_quantity)
