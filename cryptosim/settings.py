"""Application settings.

Settings live in the storage service under ``SETTINGS_STORAGE_KEY``; the
CoinGecko API key may also come from the ``COINGECKO_API_KEY`` environment
variable.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

from cryptosim.storage.storage import IStorageService
from cryptosim.trading.models import DEFAULT_FEE_RATE

logger = logging.getLogger(__name__)

SETTINGS_STORAGE_KEY = "app_settings"
API_KEY_ENV_VAR = "COINGECKO_API_KEY"
DEFAULT_REFRESH_MINUTES = 5


def default_data_dir() -> Path:
    return Path.home() / ".cryptosim" / "data"


@dataclass
class AppSettings:
    """Application settings model.

    The initial balance is not a setting; it lives on the ledger's Balance
    and is changed through TradeExecutor.set_initial_balance.
    """
    fee_rate: Decimal = DEFAULT_FEE_RATE
    refresh_interval_minutes: int = DEFAULT_REFRESH_MINUTES
    auto_refresh: bool = True
    price_timeout_s: float = 10.0
    coingecko_api_key: str = ""

    def __post_init__(self):
        if self.refresh_interval_minutes <= 0:
            self.refresh_interval_minutes = DEFAULT_REFRESH_MINUTES

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "fee_rate": str(self.fee_rate),
            "refresh_interval_minutes": self.refresh_interval_minutes,
            "auto_refresh": self.auto_refresh,
            "price_timeout_s": self.price_timeout_s,
            "coingecko_api_key": self.coingecko_api_key,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AppSettings":
        """Create from dictionary, falling back to defaults for bad values."""
        defaults = cls()
        try:
            fee_rate = Decimal(str(data.get("fee_rate", defaults.fee_rate)))
        except InvalidOperation:
            fee_rate = None
        if fee_rate is None or not fee_rate.is_finite() or fee_rate < 0:
            logger.warning("Invalid fee rate in stored settings, using the default")
            fee_rate = defaults.fee_rate
        return cls(
            fee_rate=fee_rate,
            refresh_interval_minutes=int(data.get("refresh_interval_minutes", DEFAULT_REFRESH_MINUTES)),
            auto_refresh=bool(data.get("auto_refresh", True)),
            price_timeout_s=float(data.get("price_timeout_s", defaults.price_timeout_s)),
            coingecko_api_key=data.get("coingecko_api_key", ""),
        )


def load_settings(storage: IStorageService) -> AppSettings:
    """Load settings from storage, or defaults if none are stored."""
    data = storage.load(SETTINGS_STORAGE_KEY)
    settings = AppSettings.from_dict(data) if isinstance(data, dict) else AppSettings()
    if not settings.coingecko_api_key:
        settings.coingecko_api_key = os.environ.get(API_KEY_ENV_VAR, "")
    return settings


def save_settings(storage: IStorageService, settings: AppSettings) -> None:
    storage.save(SETTINGS_STORAGE_KEY, settings.to_dict())
    logger.info("Settings saved")
