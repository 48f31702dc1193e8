"""Ledger store for balance, positions, transactions and best trades.

The trading services receive an ``ILedgerStore`` instead of reaching for a
global database, so tests can run against ``InMemoryLedgerStore``.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Iterator, List, Optional

from cryptosim.errors import StorageFailure
from cryptosim.storage.storage import IStorageService
from cryptosim.trading.models import Balance, BestTrade, Position, Transaction

logger = logging.getLogger(__name__)

LEDGER_STORAGE_KEY = "ledger"


class ILedgerStore(ABC):
    """Interface for ledger persistence.

    Every method is atomic on its own. Writes wrapped in ``atomic()`` are
    applied all together or not at all.
    """

    @abstractmethod
    def get_balance(self) -> Balance:
        """Get the account balance, creating the default one if missing."""
        ...

    @abstractmethod
    def save_balance(self, balance: Balance) -> None:
        ...

    @abstractmethod
    def get_position(self, asset_id: str) -> Optional[Position]:
        """Get the stored position for an asset, including zero quantity ones."""
        ...

    @abstractmethod
    def list_positions(self, only_open: bool = False) -> List[Position]:
        """List positions in insertion order.

        Args:
            only_open: If True, only positions with quantity > 0
        """
        ...

    @abstractmethod
    def upsert_position(self, position: Position) -> None:
        """Insert or replace the position for ``position.asset_id``."""
        ...

    @abstractmethod
    def delete_all_positions(self) -> None:
        ...

    @abstractmethod
    def list_transactions(self, limit: Optional[int] = None) -> List[Transaction]:
        """List transactions, most recent first."""
        ...

    @abstractmethod
    def add_transaction(self, transaction: Transaction) -> None:
        ...

    @abstractmethod
    def delete_all_transactions(self) -> None:
        ...

    @abstractmethod
    def list_best_trades(self, limit: Optional[int] = None) -> List[BestTrade]:
        """List best trades by profit descending, ties in insertion order."""
        ...

    @abstractmethod
    def add_best_trade(self, trade: BestTrade) -> None:
        ...

    @abstractmethod
    def delete_all_best_trades(self) -> None:
        ...

    @abstractmethod
    def atomic(self):
        """Context manager grouping writes into one all-or-nothing unit."""
        ...


def _apply_limit(items: list, limit: Optional[int]) -> list:
    if limit is None:
        return items
    return items[:max(limit, 0)]


class InMemoryLedgerStore(ILedgerStore):
    """Ledger held in process memory.

    ``atomic()`` snapshots the state on entry and restores it if the block
    raises. The store lock is held for the whole block, so other threads
    only ever read committed state. Subclasses persist the state by
    overriding ``_persist``.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._balance: Optional[Balance] = None
        self._positions: Dict[str, Position] = {}
        self._transactions: List[Transaction] = []
        self._best_trades: List[BestTrade] = []
        self._atomic_depth = 0

    # ----- persistence hooks -----
    def _persist(self) -> None:
        """Write the current state to durable storage. No-op in memory."""

    def _snapshot(self) -> tuple:
        return (
            self._balance,
            dict(self._positions),
            list(self._transactions),
            list(self._best_trades),
        )

    def _restore(self, snapshot: tuple) -> None:
        self._balance, self._positions, self._transactions, self._best_trades = snapshot

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            snapshot = self._snapshot()
            self._atomic_depth += 1
            try:
                yield
                if self._atomic_depth == 1:
                    self._persist()
            except BaseException:
                self._restore(snapshot)
                logger.warning("Ledger unit of work rolled back")
                raise
            finally:
                self._atomic_depth -= 1

    # ----- balance -----
    def get_balance(self) -> Balance:
        with self._lock:
            if self._balance is None:
                with self.atomic():
                    self._balance = Balance.default()
            return replace(self._balance)

    def save_balance(self, balance: Balance) -> None:
        with self.atomic():
            self._balance = replace(balance)

    # ----- positions -----
    def get_position(self, asset_id: str) -> Optional[Position]:
        with self._lock:
            position = self._positions.get(asset_id)
            return replace(position) if position is not None else None

    def list_positions(self, only_open: bool = False) -> List[Position]:
        with self._lock:
            positions = [replace(p) for p in self._positions.values()]
        if only_open:
            positions = [p for p in positions if p.is_open]
        return positions

    def upsert_position(self, position: Position) -> None:
        with self.atomic():
            existing = self._positions.get(position.asset_id)
            if existing is not None:
                position = replace(position, id=existing.id)
            self._positions[position.asset_id] = replace(position)

    def delete_all_positions(self) -> None:
        with self.atomic():
            self._positions = {}

    # ----- transactions -----
    def list_transactions(self, limit: Optional[int] = None) -> List[Transaction]:
        with self._lock:
            newest_first = list(reversed(self._transactions))
        ordered = sorted(newest_first, key=lambda t: t.timestamp, reverse=True)
        return _apply_limit(ordered, limit)

    def add_transaction(self, transaction: Transaction) -> None:
        with self.atomic():
            self._transactions.append(transaction)

    def delete_all_transactions(self) -> None:
        with self.atomic():
            self._transactions = []

    # ----- best trades -----
    def list_best_trades(self, limit: Optional[int] = None) -> List[BestTrade]:
        with self._lock:
            trades = list(self._best_trades)
        ordered = sorted(trades, key=lambda t: t.profit, reverse=True)
        return _apply_limit(ordered, limit)

    def add_best_trade(self, trade: BestTrade) -> None:
        with self.atomic():
            self._best_trades.append(trade)

    def delete_all_best_trades(self) -> None:
        with self.atomic():
            self._best_trades = []


class JsonLedgerStore(InMemoryLedgerStore):
    """Ledger persisted as one JSON document through a storage service.

    The document is rewritten once per write, or once per ``atomic()``
    block, so the four record kinds always land on disk together.
    """

    def __init__(self, storage: IStorageService, key: str = LEDGER_STORAGE_KEY) -> None:
        super().__init__()
        self._storage = storage
        self._key = key
        self._load()

    def _load(self) -> None:
        data = self._storage.load(self._key)
        if data is None:
            if self._storage.exists(self._key):
                # Starting over here would overwrite the history on the next write
                raise StorageFailure(f"Ledger document '{self._key}' exists but cannot be read")
            return
        if not isinstance(data, dict):
            raise StorageFailure(f"Ledger document '{self._key}' is not an object")
        try:
            if data.get("balance") is not None:
                self._balance = Balance.from_dict(data["balance"])
            for item in data.get("positions", []):
                position = Position.from_dict(item)
                self._positions[position.asset_id] = position
            self._transactions = [Transaction.from_dict(t) for t in data.get("transactions", [])]
            self._best_trades = [BestTrade.from_dict(t) for t in data.get("best_trades", [])]
        except (KeyError, TypeError, AttributeError, ValueError, ArithmeticError) as e:
            raise StorageFailure(f"Ledger document '{self._key}' is invalid: {e}") from e
        logger.info(
            f"Ledger restored: {len(self._positions)} positions, "
            f"{len(self._transactions)} transactions, {len(self._best_trades)} best trades"
        )

    def _serialize(self) -> dict:
        return {
            "balance": self._balance.to_dict() if self._balance is not None else None,
            "positions": [p.to_dict() for p in self._positions.values()],
            "transactions": [t.to_dict() for t in self._transactions],
            "best_trades": [t.to_dict() for t in self._best_trades],
        }

    def _persist(self) -> None:
        try:
            self._storage.save(self._key, self._serialize())
        except (TypeError, OSError) as e:
            raise StorageFailure(f"Failed to write ledger: {e}") from e
