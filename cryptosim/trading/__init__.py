# Trading module
"""Ledger accounting: trade execution, cost basis, valuation, ranking and analytics."""

from .models import (
    DEFAULT_FEE_RATE,
    DEFAULT_INITIAL_BALANCE,
    Balance,
    BestTrade,
    Position,
    Transaction,
)
from .executor import (
    TradeStatus,
    TradeRejectionReason,
    TradeResult,
    TradeQuote,
    ITradeExecutor,
    TradeExecutor,
)
from .valuation import (
    PositionValuation,
    ValuationResult,
    IValuationService,
    ValuationService,
)
from .ranking import RankingService
from .analytics import (
    PerformanceMetrics,
    IPerformanceAnalytics,
    PerformanceAnalytics,
)

__all__ = [
    "DEFAULT_FEE_RATE",
    "DEFAULT_INITIAL_BALANCE",
    "Balance",
    "BestTrade",
    "Position",
    "Transaction",
    "TradeStatus",
    "TradeRejectionReason",
    "TradeResult",
    "TradeQuote",
    "ITradeExecutor",
    "TradeExecutor",
    "PositionValuation",
    "ValuationResult",
    "IValuationService",
    "ValuationService",
    "RankingService",
    "PerformanceMetrics",
    "IPerformanceAnalytics",
    "PerformanceAnalytics",
]
