"""Trade execution for paper trading.

This module provides:
- Trade status and rejection reason enums
- TradeResult and TradeQuote dataclasses
- ITradeExecutor interface
- TradeExecutor, which applies buys, sells and resets to a ledger store
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Callable, List, Optional

from cryptosim.errors import StorageFailure

from . import cost_basis
from .models import (
    DEFAULT_FEE_RATE,
    Balance,
    BestTrade,
    Position,
    Transaction,
    TransactionType,
)

if TYPE_CHECKING:
    from cryptosim.storage.ledger import ILedgerStore

logger = logging.getLogger(__name__)

# Positions keep a single averaged cost, so the purchase time of the sold
# quantity is unknown. Best trades record it as one day before the sale.
APPROXIMATE_HOLDING_PERIOD = timedelta(days=1)


class TradeStatus(Enum):
    """Outcome of a ledger operation."""
    EXECUTED = "executed"
    REJECTED = "rejected"
    FAILED = "failed"


class TradeRejectionReason(Enum):
    """Reason a trade was not applied."""
    INVALID_PARAMETERS = "invalid_parameters"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INSUFFICIENT_HOLDINGS = "insufficient_holdings"
    STORAGE_FAILURE = "storage_failure"


@dataclass
class TradeResult:
    """Result of a trade or account operation.

    Attributes:
        status: EXECUTED, REJECTED (validation) or FAILED (storage)
        transaction: The transaction record if a trade was executed
        best_trade: The realized-profit record if a sell made a profit
        rejection_reason: The reason if the operation was not applied
        message: Human-readable message describing the result
    """
    status: TradeStatus
    transaction: Optional[Transaction] = None
    best_trade: Optional[BestTrade] = None
    rejection_reason: Optional[TradeRejectionReason] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == TradeStatus.EXECUTED


@dataclass(frozen=True)
class TradeQuote:
    """Preview of the cash effect of a trade.

    Attributes:
        side: "buy" or "sell"
        total: price * quantity
        fee: total * fee rate
        net: total + fee for a buy, total - fee for a sell
    """
    side: TransactionType
    total: Decimal
    fee: Decimal
    net: Decimal


class ITradeExecutor(ABC):
    """Interface for ledger mutations."""

    @abstractmethod
    def execute_buy(
        self, asset_id: str, symbol: str, name: str, price: Decimal, quantity: Decimal
    ) -> TradeResult:
        ...

    @abstractmethod
    def execute_sell(
        self, asset_id: str, symbol: str, name: str, price: Decimal, quantity: Decimal
    ) -> TradeResult:
        ...

    @abstractmethod
    def reset_account(self) -> TradeResult:
        """Restore the initial balance and zero every position, keeping history."""
        ...

    @abstractmethod
    def reset_all_data(self) -> TradeResult:
        """Delete all history and positions and recreate the default balance."""
        ...


def _positive_amounts(*amounts: Decimal) -> bool:
    # Finiteness first: ordering comparisons on NaN raise InvalidOperation
    return all(a.is_finite() and a > Decimal("0") for a in amounts)


def _rejected(reason: TradeRejectionReason, message: str) -> TradeResult:
    logger.info(f"Trade rejected ({reason.value}): {message}")
    return TradeResult(status=TradeStatus.REJECTED, rejection_reason=reason, message=message)


def _failed(action: str, error: StorageFailure) -> TradeResult:
    logger.error(f"{action} failed, no changes were saved: {error}")
    return TradeResult(
        status=TradeStatus.FAILED,
        rejection_reason=TradeRejectionReason.STORAGE_FAILURE,
        message=f"{action} failed: {error}",
    )


class TradeExecutor(ITradeExecutor):
    """Applies trades to a ledger store.

    All mutations go through one account lock, so concurrent callers queue
    instead of interleaving their read-modify-write cycles. Each trade's
    transaction, balance, position and best trade writes are one atomic
    unit of the store. Prices are supplied by the caller.
    """

    def __init__(
        self,
        store: "ILedgerStore",
        fee_rate: Decimal = DEFAULT_FEE_RATE,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the executor.

        Args:
            store: Ledger store holding balance, positions and history
            fee_rate: Fee as a fraction of traded value (default: 0.1%)
            clock: Source of timestamps for new records
        """
        if fee_rate < Decimal("0"):
            raise ValueError("Fee rate cannot be negative")
        self._store = store
        self._fee_rate = fee_rate
        self._clock = clock
        self._lock = threading.RLock()

    @property
    def fee_rate(self) -> Decimal:
        return self._fee_rate

    # ----- reads -----
    def get_balance(self) -> Balance:
        return self._store.get_balance()

    def get_position(self, asset_id: str) -> Optional[Position]:
        return self._store.get_position(asset_id)

    def get_holdings(self) -> List[Position]:
        """Positions with a quantity above zero."""
        return self._store.list_positions(only_open=True)

    def get_transactions(self) -> List[Transaction]:
        """Transaction history, most recent first."""
        return self._store.list_transactions()

    # ----- quotes -----
    def quote(self, side: TransactionType, price: Decimal, quantity: Decimal) -> TradeQuote:
        """Calculate the cash effect of a trade without executing it.

        Raises:
            ValueError: If price or quantity is not a positive finite number, or side is unknown
        """
        if side not in ("buy", "sell"):
            raise ValueError(f"Unknown trade side: {side}")
        if not _positive_amounts(price, quantity):
            raise ValueError("Price and quantity must be greater than zero")
        total = price * quantity
        fee = total * self._fee_rate
        net = total + fee if side == "buy" else total - fee
        return TradeQuote(side=side, total=total, fee=fee, net=net)

    # ----- trades -----
    def execute_buy(
        self, asset_id: str, symbol: str, name: str, price: Decimal, quantity: Decimal
    ) -> TradeResult:
        """Execute a buy and update balance and position.

        Args:
            asset_id: Price source identifier
            symbol: Ticker symbol
            name: Display name
            price: Execution price per unit
            quantity: Amount to buy

        Returns:
            TradeResult with EXECUTED status and the transaction, or
            REJECTED/FAILED with a reason; nothing is written unless EXECUTED
        """
        if not _positive_amounts(price, quantity):
            return _rejected(
                TradeRejectionReason.INVALID_PARAMETERS,
                "Price and quantity must be greater than zero",
            )

        with self._lock:
            try:
                balance = self._store.get_balance()
                trade_quote = self.quote("buy", price, quantity)
                if balance.balance < trade_quote.net:
                    return _rejected(
                        TradeRejectionReason.INSUFFICIENT_FUNDS,
                        f"Insufficient funds: need {trade_quote.net}, have {balance.balance}",
                    )

                now = self._clock()
                transaction = Transaction(
                    asset_id=asset_id,
                    symbol=symbol,
                    name=name,
                    type="buy",
                    price=price,
                    quantity=quantity,
                    fee=self._fee_rate,
                    timestamp=now,
                )
                with self._store.atomic():
                    self._store.add_transaction(transaction)
                    self._store.save_balance(
                        replace(balance, balance=balance.balance - trade_quote.net, timestamp=now)
                    )
                    position = self._store.get_position(asset_id) or Position(
                        asset_id=asset_id, symbol=symbol, name=name
                    )
                    self._store.upsert_position(cost_basis.accumulate(position, quantity, price))
            except StorageFailure as e:
                return _failed(f"Buy of {quantity} {symbol.upper()}", e)

        logger.info(f"Bought {quantity} {symbol.upper()} at {price} (fee {trade_quote.fee})")
        return TradeResult(
            status=TradeStatus.EXECUTED,
            transaction=transaction,
            message=f"Successfully purchased {quantity} {symbol.upper()}",
        )

    def execute_sell(
        self, asset_id: str, symbol: str, name: str, price: Decimal, quantity: Decimal
    ) -> TradeResult:
        """Execute a sell and update balance and position.

        The position keeps its average buy price. A sell above that price
        also records a best trade.

        Returns:
            TradeResult with EXECUTED status, the transaction and the optional
            best trade, or REJECTED/FAILED with a reason
        """
        if not _positive_amounts(price, quantity):
            return _rejected(
                TradeRejectionReason.INVALID_PARAMETERS,
                "Price and quantity must be greater than zero",
            )

        with self._lock:
            try:
                position = self._store.get_position(asset_id)
                held = position.quantity if position is not None else Decimal("0")
                if position is None or held < quantity:
                    return _rejected(
                        TradeRejectionReason.INSUFFICIENT_HOLDINGS,
                        f"Insufficient holdings: need {quantity}, have {held}",
                    )

                trade_quote = self.quote("sell", price, quantity)
                balance = self._store.get_balance()
                now = self._clock()
                transaction = Transaction(
                    asset_id=asset_id,
                    symbol=symbol,
                    name=name,
                    type="sell",
                    price=price,
                    quantity=quantity,
                    fee=self._fee_rate,
                    timestamp=now,
                )
                best_trade = self._realized_profit(position, price, quantity, now)

                with self._store.atomic():
                    self._store.add_transaction(transaction)
                    self._store.save_balance(
                        replace(balance, balance=balance.balance + trade_quote.net, timestamp=now)
                    )
                    self._store.upsert_position(cost_basis.reduce(position, quantity))
                    if best_trade is not None:
                        self._store.add_best_trade(best_trade)
            except StorageFailure as e:
                return _failed(f"Sell of {quantity} {symbol.upper()}", e)

        logger.info(f"Sold {quantity} {symbol.upper()} at {price} (fee {trade_quote.fee})")
        return TradeResult(
            status=TradeStatus.EXECUTED,
            transaction=transaction,
            best_trade=best_trade,
            message=f"Successfully sold {quantity} {symbol.upper()}",
        )

    def _realized_profit(
        self, position: Position, price: Decimal, quantity: Decimal, now: datetime
    ) -> Optional[BestTrade]:
        buy_price = position.average_buy_price
        profit = (price - buy_price) * quantity
        if profit <= Decimal("0"):
            return None
        return BestTrade(
            asset_id=position.asset_id,
            symbol=position.symbol,
            name=position.name,
            buy_price=buy_price,
            sell_price=price,
            quantity=quantity,
            profit=profit,
            profit_percentage=(price - buy_price) / buy_price * Decimal("100"),
            buy_timestamp=now - APPROXIMATE_HOLDING_PERIOD,
            sell_timestamp=now,
        )

    # ----- account -----
    def reset_account(self) -> TradeResult:
        """Reset cash to the initial balance and zero all positions.

        Average buy prices, transactions and best trades are kept. The reset
        time is appended to ``Balance.resets`` so history replays can zero
        positions at the same point.
        """
        with self._lock:
            try:
                balance = self._store.get_balance()
                now = self._clock()
                with self._store.atomic():
                    self._store.save_balance(
                        replace(
                            balance,
                            balance=balance.initial_balance,
                            timestamp=now,
                            resets=balance.resets + (now,),
                        )
                    )
                    for position in self._store.list_positions():
                        self._store.upsert_position(position.with_quantity(Decimal("0")))
            except StorageFailure as e:
                return _failed("Account reset", e)

        logger.info(f"Account reset to initial balance {balance.initial_balance}")
        return TradeResult(
            status=TradeStatus.EXECUTED,
            message=f"Account has been reset to initial balance of ${balance.initial_balance}",
        )

    def reset_all_data(self) -> TradeResult:
        """Wipe positions and history and recreate the default balance."""
        with self._lock:
            try:
                with self._store.atomic():
                    self._store.delete_all_transactions()
                    self._store.delete_all_positions()
                    self._store.delete_all_best_trades()
                    default = Balance.default()
                    self._store.save_balance(replace(default, timestamp=self._clock()))
            except StorageFailure as e:
                return _failed("Data reset", e)

        logger.info("All ledger data has been reset")
        return TradeResult(status=TradeStatus.EXECUTED, message="All data has been reset")

    def set_initial_balance(self, amount: Decimal) -> TradeResult:
        """Change the amount restored by the next account reset.

        The current cash balance is not touched.
        """
        if not _positive_amounts(amount):
            return _rejected(
                TradeRejectionReason.INVALID_PARAMETERS,
                "Initial balance must be greater than zero",
            )

        with self._lock:
            try:
                balance = self._store.get_balance()
                self._store.save_balance(replace(balance, initial_balance=amount))
            except StorageFailure as e:
                return _failed("Initial balance update", e)

        return TradeResult(status=TradeStatus.EXECUTED, message="Settings saved successfully")
