"""Property-based tests for the cost basis functions."""

from __future__ import annotations

from decimal import Decimal

import pytest
from hypothesis import given, settings, strategies as st

from cryptosim.trading import cost_basis
from cryptosim.trading.models import Position


positive_quantity_strategy = st.decimals(
    min_value=Decimal("0.001"),
    max_value=Decimal("1000"),
    places=8,
    allow_nan=False,
    allow_infinity=False
)

positive_price_strategy = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("100000"),
    places=2,
    allow_nan=False,
    allow_infinity=False
)


def _empty() -> Position:
    return Position(asset_id="bitcoin", symbol="btc", name="Bitcoin")


@given(
    lots=st.lists(
        st.tuples(positive_quantity_strategy, positive_price_strategy),
        min_size=1,
        max_size=10,
    )
)
@settings(max_examples=100)
def test_average_is_quantity_weighted_mean_of_lots(lots):
    position = _empty()
    for quantity, price in lots:
        position = cost_basis.accumulate(position, quantity, price)

    total_quantity = sum((q for q, _ in lots), Decimal("0"))
    total_cost = sum((q * p for q, p in lots), Decimal("0"))

    assert position.quantity == total_quantity
    assert abs(position.average_buy_price - total_cost / total_quantity) <= Decimal("1e-12")


@given(quantity=positive_quantity_strategy, price=positive_price_strategy, stale=positive_price_strategy)
@settings(max_examples=100)
def test_stale_average_is_overwritten_after_full_exit(quantity, price, stale):
    position = Position("bitcoin", "btc", "Bitcoin", Decimal("0"), stale)

    position = cost_basis.accumulate(position, quantity, price)

    assert position.average_buy_price == price


def test_reduce_keeps_average_and_rejects_oversell():
    position = Position("bitcoin", "btc", "Bitcoin", Decimal("2"), Decimal("100"))

    reduced = cost_basis.reduce(position, Decimal("2"))
    assert reduced.quantity == Decimal("0")
    assert reduced.average_buy_price == Decimal("100")
    assert position.quantity == Decimal("2")

    with pytest.raises(ValueError):
        cost_basis.reduce(position, Decimal("2.5"))
