"""Performance analytics over the transaction history."""

import csv
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List

from . import cost_basis
from .models import Position, Transaction

CSV_COLUMNS = [
    "id", "asset_id", "symbol", "type", "quantity", "price",
    "fee", "total_value", "net_amount", "timestamp",
]


@dataclass
class PerformanceMetrics:
    """Summary of trading activity.

    Attributes:
        total_trades: Number of sells
        profitable_trades: Sells above the average buy price at the time
        win_rate: profitable_trades / total_trades * 100, or 0
        realized_pnl: Realized profit/loss of all sells, fees excluded
        total_volume: Traded value of buys and sells
        total_fees: Fees paid on buys and sells
    """
    total_trades: int
    profitable_trades: int
    win_rate: Decimal
    realized_pnl: Decimal
    total_volume: Decimal
    total_fees: Decimal


class IPerformanceAnalytics(ABC):
    """Interface for performance analytics operations."""

    @abstractmethod
    def calculate_metrics(
        self, transactions: List[Transaction], resets: Iterable[datetime] = ()
    ) -> PerformanceMetrics:
        ...

    @abstractmethod
    def calculate_realized_pnl(
        self, transactions: List[Transaction], resets: Iterable[datetime] = ()
    ) -> Decimal:
        ...

    @abstractmethod
    def export_to_csv(self, transactions: List[Transaction], filepath: str) -> None:
        ...

    @abstractmethod
    def sort_transactions_by_timestamp(
        self, transactions: List[Transaction], descending: bool = True
    ) -> List[Transaction]:
        ...


class PerformanceAnalytics(IPerformanceAnalytics):
    """Replays transactions through the ledger's cost basis rules.

    Buys re-average a per-asset position and sells realize against the
    average at that moment. Account resets zero every position without
    leaving a transaction, so their times (``Balance.resets``) must be
    passed in for the replay to match what the executor recorded.
    """

    def calculate_metrics(
        self, transactions: List[Transaction], resets: Iterable[datetime] = ()
    ) -> PerformanceMetrics:
        """Calculate performance metrics.

        Args:
            transactions: Transactions in any order
            resets: Times of account resets within the history

        Returns:
            PerformanceMetrics for the whole history
        """
        realized = self._realized_per_sell(transactions, resets)
        wins = len([pnl for pnl in realized if pnl > 0])
        win_rate = Decimal(wins) / Decimal(len(realized)) * 100 if realized else Decimal("0")

        volume = Decimal("0")
        fees = Decimal("0")
        for txn in transactions:
            volume += txn.total_value
            fees += txn.fee_amount

        return PerformanceMetrics(
            total_trades=len(realized),
            profitable_trades=wins,
            win_rate=win_rate,
            realized_pnl=sum(realized, Decimal("0")),
            total_volume=volume,
            total_fees=fees,
        )

    def calculate_realized_pnl(
        self, transactions: List[Transaction], resets: Iterable[datetime] = ()
    ) -> Decimal:
        return sum(self._realized_per_sell(transactions, resets), Decimal("0"))

    def _realized_per_sell(
        self, transactions: List[Transaction], resets: Iterable[datetime]
    ) -> List[Decimal]:
        positions: Dict[str, Position] = {}
        realized: List[Decimal] = []
        pending_resets = sorted(resets, reverse=True)

        for txn in self.sort_transactions_by_timestamp(transactions, descending=False):
            # A reset applies to every transaction stamped after it
            while pending_resets and pending_resets[-1] < txn.timestamp:
                pending_resets.pop()
                positions = {k: p.with_quantity(Decimal("0")) for k, p in positions.items()}

            position = positions.get(txn.asset_id) or Position(txn.asset_id, txn.symbol, txn.name)

            if txn.type == "buy":
                positions[txn.asset_id] = cost_basis.accumulate(position, txn.quantity, txn.price)
                continue

            if not position.is_open:
                # History before a full data reset is gone
                realized.append(Decimal("0"))
                continue

            realized.append((txn.price - position.average_buy_price) * txn.quantity)
            positions[txn.asset_id] = cost_basis.reduce(
                position, min(txn.quantity, position.quantity)
            )

        return realized

    def sort_transactions_by_timestamp(
        self, transactions: List[Transaction], descending: bool = True
    ) -> List[Transaction]:
        return sorted(transactions, key=lambda t: t.timestamp, reverse=descending)

    def export_to_csv(self, transactions: List[Transaction], filepath: str) -> None:
        """Write one CSV row per transaction, in the given order.

        Decimals are written as exact strings and timestamps in ISO format.
        """
        with open(filepath, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(CSV_COLUMNS)
            for txn in transactions:
                writer.writerow([
                    txn.id,
                    txn.asset_id,
                    txn.symbol,
                    txn.type,
                    str(txn.quantity),
                    str(txn.price),
                    str(txn.fee),
                    str(txn.total_value),
                    str(txn.net_amount),
                    txn.timestamp.isoformat(),
                ])
