"""Property-based tests for the valuation service.

Tests unrealized profit, totals, ordering and missing prices using Hypothesis.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from hypothesis import given, settings, strategies as st

from cryptosim.storage import InMemoryLedgerStore
from cryptosim.trading.executor import TradeExecutor
from cryptosim.trading.models import Position
from cryptosim.trading.valuation import ValuationService


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

ASSETS = ["bitcoin", "ethereum", "binancecoin", "solana", "cardano"]


@st.composite
def positions_strategy(draw):
    assets = draw(st.lists(st.sampled_from(ASSETS), unique=True, max_size=5))
    return [
        Position(
            asset_id=a,
            symbol=a[:3],
            name=a.title(),
            quantity=draw(positive_quantity_strategy),
            average_buy_price=draw(positive_price_strategy),
        )
        for a in assets
    ]


@given(
    positions=positions_strategy(),
    prices=st.dictionaries(keys=st.sampled_from(ASSETS), values=positive_price_strategy, max_size=5),
)
@settings(max_examples=100)
def test_totals_are_sums_over_priced_positions(positions, prices):
    result = ValuationService().valuate(positions, prices)

    priced = [p for p in positions if p.asset_id in prices]
    assert len(result.items) == len(priced)
    assert sorted(result.missing_prices) == sorted(p.asset_id for p in positions if p.asset_id not in prices)
    assert result.total_value == sum((p.quantity * prices[p.asset_id] for p in priced), Decimal("0"))
    assert result.total_cost_basis == sum((p.cost_basis for p in priced), Decimal("0"))
    assert result.total_pl == result.total_value - result.total_cost_basis

    for item in result.items:
        assert item.unrealized_pl == item.current_value - item.cost_basis
        if item.cost_basis > 0:
            assert item.unrealized_pl_percent == item.unrealized_pl / item.cost_basis * 100

    values = [item.current_value for item in result.items]
    assert values == sorted(values, reverse=True)


def test_ties_keep_input_order():
    positions = [
        Position("ethereum", "eth", "Ethereum", Decimal("2"), Decimal("10")),
        Position("bitcoin", "btc", "Bitcoin", Decimal("1"), Decimal("10")),
        Position("solana", "sol", "Solana", Decimal("4"), Decimal("10")),
    ]
    prices = {"ethereum": Decimal("50"), "bitcoin": Decimal("100"), "solana": Decimal("100")}

    result = ValuationService().valuate(positions, prices)

    assert [i.position.asset_id for i in result.items] == ["solana", "ethereum", "bitcoin"]


def test_zero_quantity_and_unpriced_positions_are_skipped():
    positions = [
        Position("bitcoin", "btc", "Bitcoin", Decimal("0"), Decimal("100")),
        Position("ethereum", "eth", "Ethereum", Decimal("1"), Decimal("100")),
        Position("solana", "sol", "Solana", Decimal("1"), Decimal("10")),
    ]

    result = ValuationService().valuate(positions, {"bitcoin": Decimal("1"), "solana": Decimal("15")})

    assert [i.position.asset_id for i in result.items] == ["solana"]
    assert result.missing_prices == ["ethereum"]
    assert result.total_pl == Decimal("5")
    assert result.total_pl_percent == Decimal("50")


def test_zero_cost_basis_gives_zero_percent():
    positions = [Position("bitcoin", "btc", "Bitcoin", Decimal("1"), Decimal("0"))]

    result = ValuationService().valuate(positions, {"bitcoin": Decimal("10")})

    assert result.items[0].unrealized_pl == Decimal("10")
    assert result.items[0].unrealized_pl_percent == Decimal("0")
    assert result.total_pl_percent == Decimal("0")


def test_empty_portfolio():
    result = ValuationService().valuate([], {})
    assert result.items == []
    assert result.total_value == Decimal("0")
    assert result.total_pl_percent == Decimal("0")


def test_account_valuation_adds_cash_and_does_not_write():
    store = InMemoryLedgerStore()
    executor = TradeExecutor(store)
    executor.execute_buy("bitcoin", "btc", "Bitcoin", Decimal("100"), Decimal("1.0"))
    executor.execute_buy("ethereum", "eth", "Ethereum", Decimal("10"), Decimal("3"))
    balance_before = store.get_balance()
    positions_before = store.list_positions()

    result = ValuationService(store).valuate_account({"bitcoin": Decimal("120"), "ethereum": Decimal("5")})

    assert result.cash == Decimal("9869.87")
    assert result.total_value == Decimal("135")
    assert result.net_worth == Decimal("10004.87")
    assert result.total_pl == Decimal("5")
    assert store.get_balance() == balance_before
    assert store.list_positions() == positions_before


def test_account_valuation_requires_store():
    with pytest.raises(RuntimeError):
        ValuationService().valuate_account({})
