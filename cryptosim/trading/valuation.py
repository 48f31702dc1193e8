"""Mark-to-market valuation of the portfolio."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from .models import Position

if TYPE_CHECKING:
    from cryptosim.storage.ledger import ILedgerStore

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PositionValuation:
    """Unrealized figures for one held asset.

    Attributes:
        position: The valued position
        current_price: Market price used for the valuation
        current_value: quantity * current_price
        cost_basis: quantity * average_buy_price
        unrealized_pl: current_value - cost_basis
        unrealized_pl_percent: unrealized_pl / cost_basis * 100, or 0
    """
    position: Position
    current_price: Decimal
    current_value: Decimal
    cost_basis: Decimal
    unrealized_pl: Decimal
    unrealized_pl_percent: Decimal

    @property
    def is_profitable(self) -> bool:
        return self.unrealized_pl > _ZERO


@dataclass
class ValuationResult:
    """Portfolio totals at current prices.

    Attributes:
        items: Valued positions, largest current value first
        total_value: Sum of current values
        total_cost_basis: Sum of cost bases
        total_pl: Sum of unrealized profit/loss
        total_pl_percent: total_pl / total_cost_basis * 100, or 0
        missing_prices: Asset ids held but skipped for lack of a price
        cash: Cash balance, when valued against the account
        net_worth: cash + total_value, when valued against the account
    """
    items: List[PositionValuation] = field(default_factory=list)
    total_value: Decimal = _ZERO
    total_cost_basis: Decimal = _ZERO
    total_pl: Decimal = _ZERO
    total_pl_percent: Decimal = _ZERO
    missing_prices: List[str] = field(default_factory=list)
    cash: Optional[Decimal] = None
    net_worth: Optional[Decimal] = None


def valuate_position(position: Position, price: Decimal) -> PositionValuation:
    current_value = position.quantity * price
    basis = position.cost_basis
    pl = current_value - basis
    pl_percent = pl / basis * _HUNDRED if basis > _ZERO else _ZERO
    return PositionValuation(
        position=position,
        current_price=price,
        current_value=current_value,
        cost_basis=basis,
        unrealized_pl=pl,
        unrealized_pl_percent=pl_percent,
    )


class IValuationService(ABC):
    """Interface for portfolio valuation."""

    @abstractmethod
    def valuate(
        self, positions: Iterable[Position], prices: Dict[str, Decimal]
    ) -> ValuationResult:
        ...

    @abstractmethod
    def valuate_account(self, prices: Dict[str, Decimal]) -> ValuationResult:
        ...


class ValuationService(IValuationService):
    """Read-only valuation of positions against a price map.

    Never writes to the store and takes no locks, so it can run alongside
    trade execution.
    """

    def __init__(self, store: Optional["ILedgerStore"] = None) -> None:
        self._store = store

    def valuate(
        self, positions: Iterable[Position], prices: Dict[str, Decimal]
    ) -> ValuationResult:
        """Value open positions at the given prices.

        Positions with zero quantity are ignored. Positions without a price
        are skipped and listed in ``missing_prices``.

        Args:
            positions: Positions to value
            prices: Mapping of asset id to current price

        Returns:
            ValuationResult sorted by current value, descending
        """
        items: List[PositionValuation] = []
        missing: List[str] = []
        for position in positions:
            if not position.is_open:
                continue
            price = prices.get(position.asset_id)
            if price is None:
                missing.append(position.asset_id)
                continue
            items.append(valuate_position(position, price))

        if missing:
            logger.warning(f"No price for {', '.join(missing)}; skipped in valuation")

        # sorted() is stable, ties keep input order
        items = sorted(items, key=lambda v: v.current_value, reverse=True)
        total_value = sum((v.current_value for v in items), _ZERO)
        total_basis = sum((v.cost_basis for v in items), _ZERO)
        total_pl = sum((v.unrealized_pl for v in items), _ZERO)
        total_pl_percent = total_pl / total_basis * _HUNDRED if total_basis > _ZERO else _ZERO

        return ValuationResult(
            items=items,
            total_value=total_value,
            total_cost_basis=total_basis,
            total_pl=total_pl,
            total_pl_percent=total_pl_percent,
            missing_prices=missing,
        )

    def valuate_account(self, prices: Dict[str, Decimal]) -> ValuationResult:
        """Value the stored holdings and add cash and net worth.

        Raises:
            RuntimeError: If the service was created without a store
        """
        if self._store is None:
            raise RuntimeError("ValuationService has no ledger store")
        balance = self._store.get_balance()
        result = self.valuate(self._store.list_positions(only_open=True), prices)
        result.cash = balance.balance
        result.net_worth = balance.balance + result.total_value
        return result
