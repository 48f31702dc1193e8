"""Leaderboard of realized best trades."""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from .models import BestTrade

if TYPE_CHECKING:
    from cryptosim.storage.ledger import ILedgerStore

DEFAULT_RANKING_LIMIT = 10


class RankingService:
    """Reads best trades ordered by profit."""

    def __init__(self, store: "ILedgerStore") -> None:
        self._store = store

    def best_trades(self, limit: int = DEFAULT_RANKING_LIMIT) -> List[BestTrade]:
        """Get the most profitable closed trades.

        Args:
            limit: Maximum number of trades to return

        Returns:
            Best trades by profit descending; equal profits keep the order
            in which they were recorded
        """
        if limit <= 0:
            return []
        return self._store.list_best_trades(limit)
