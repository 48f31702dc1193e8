"""Wiring of the ledger services from stored settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from cryptosim.data.providers import CoinGeckoPriceSource, IPriceSource
from cryptosim.refresh import PortfolioRefresher
from cryptosim.settings import AppSettings, default_data_dir, load_settings
from cryptosim.storage import JsonFileStorage, JsonLedgerStore
from cryptosim.trading import (
    PerformanceAnalytics,
    RankingService,
    TradeExecutor,
    ValuationService,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a front end needs to drive the simulated account.

    Attributes:
        settings: Settings the services were built from
        storage: Document storage holding the ledger and settings
        store: Ledger store shared by all services
        executor: Trade executor using the configured fee rate
        valuation: Valuation over the shared store
        ranking: Best trade leaderboard
        analytics: Transaction history analytics
        price_source: Price source with the configured key and timeout
        refresher: Periodic valuation on the configured interval
    """
    settings: AppSettings
    storage: JsonFileStorage
    store: JsonLedgerStore
    executor: TradeExecutor
    valuation: ValuationService
    ranking: RankingService
    analytics: PerformanceAnalytics
    price_source: IPriceSource
    refresher: PortfolioRefresher

    def start(self) -> None:
        """Start periodic refresh when the settings enable it."""
        if self.settings.auto_refresh:
            self.refresher.start()

    def close(self) -> None:
        self.refresher.stop()
        self.price_source.close()


def build_services(
    data_dir: Optional[Path] = None,
    settings: Optional[AppSettings] = None,
    price_source: Optional[IPriceSource] = None,
) -> Services:
    """Build the services on a data directory.

    Args:
        data_dir: Directory for the ledger and settings documents
            (default: ``default_data_dir()``)
        settings: Settings to use instead of the stored ones
        price_source: Price source to use instead of CoinGecko

    Raises:
        StorageFailure: If an existing ledger document cannot be read
    """
    storage = JsonFileStorage(data_dir if data_dir is not None else default_data_dir())
    if settings is None:
        settings = load_settings(storage)
    if price_source is None:
        price_source = CoinGeckoPriceSource(
            api_key=settings.coingecko_api_key, timeout_s=settings.price_timeout_s
        )

    store = JsonLedgerStore(storage)
    logger.info(f"Ledger opened in {storage.base_path}")
    return Services(
        settings=settings,
        storage=storage,
        store=store,
        executor=TradeExecutor(store, fee_rate=settings.fee_rate),
        valuation=ValuationService(store),
        ranking=RankingService(store),
        analytics=PerformanceAnalytics(),
        price_source=price_source,
        refresher=PortfolioRefresher(
            store, price_source, interval_minutes=settings.refresh_interval_minutes
        ),
    )
