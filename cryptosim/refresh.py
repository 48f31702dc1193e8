"""Periodic portfolio refresh.

A ``QTimer`` drives price fetches and valuations on an interval. The
accounting core does not depend on this module.
"""

from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import QObject, QTimer, Signal, Slot

from cryptosim.data.providers import IPriceSource, PriceSourceError
from cryptosim.errors import StorageFailure
from cryptosim.settings import DEFAULT_REFRESH_MINUTES
from cryptosim.storage.ledger import ILedgerStore
from cryptosim.trading.valuation import ValuationResult, ValuationService

logger = logging.getLogger(__name__)


class PortfolioRefresher(QObject):
    refreshed = Signal(object)  # ValuationResult
    error = Signal(str)

    def __init__(
        self,
        store: ILedgerStore,
        price_source: IPriceSource,
        interval_minutes: int = DEFAULT_REFRESH_MINUTES,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._store = store
        self._price_source = price_source
        self._valuation = ValuationService(store)
        self._busy = False
        self._timer = QTimer(self)
        self._timer.timeout.connect(self.refresh_now)
        self.set_interval_minutes(interval_minutes)

    def set_interval_minutes(self, minutes: int) -> None:
        if minutes <= 0:
            minutes = DEFAULT_REFRESH_MINUTES
        self._timer.setInterval(minutes * 60 * 1000)

    def interval_ms(self) -> int:
        return self._timer.interval()

    def start(self) -> None:
        self._timer.start()
        logger.info(f"Portfolio refresh every {self._timer.interval() // 60000} min")

    def stop(self) -> None:
        self._timer.stop()

    def is_active(self) -> bool:
        return self._timer.isActive()

    @Slot()
    def refresh_now(self) -> Optional[ValuationResult]:
        """Fetch prices for held assets, value the account and emit the result."""
        if self._busy:
            return None
        self._busy = True
        try:
            asset_ids = [p.asset_id for p in self._store.list_positions(only_open=True)]
            prices = self._price_source.fetch_prices(asset_ids) if asset_ids else {}
            result = self._valuation.valuate_account(prices)
        except PriceSourceError as e:
            logger.warning(f"Failed to load current prices: {e}")
            self.error.emit(f"Failed to load current prices: {e}")
            return None
        except StorageFailure as e:
            logger.error(f"Failed to read the ledger: {e}")
            self.error.emit(f"Failed to read the ledger: {e}")
            return None
        finally:
            self._busy = False
        self.refreshed.emit(result)
        return result
