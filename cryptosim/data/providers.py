from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

import httpx


logger = logging.getLogger(__name__)

COINGECKO_BASE = "https://api.coingecko.com/api/v3"


class PriceSourceError(Exception):
    """Base class for price source failures."""


class RateLimited(PriceSourceError):
    def __init__(self) -> None:
        super().__init__("Rate limit exceeded. Please try again later.")


class HttpStatusError(PriceSourceError):
    def __init__(self, status: int) -> None:
        super().__init__(f"Price source returned HTTP {status}")
        self.status = status


class MalformedResponse(PriceSourceError):
    pass


class SourceUnreachable(PriceSourceError):
    pass


@dataclass
class MarketCoin:
    id: str
    symbol: str
    name: str
    image: str
    current_price: Decimal
    market_cap: Optional[Decimal] = None
    market_cap_rank: Optional[int] = None
    price_change_percentage_24h: Optional[Decimal] = None
    last_updated: str = ""


class IPriceSource(ABC):
    """Capability returning current prices for asset ids."""

    @abstractmethod
    def fetch_prices(self, asset_ids: Iterable[str]) -> Dict[str, Decimal]:
        """Fetch current USD prices.

        Args:
            asset_ids: Price source identifiers (e.g., "bitcoin")

        Returns:
            Mapping of asset id to price; ids the source does not know are absent

        Raises:
            PriceSourceError: On rate limiting, HTTP errors, bad payloads or
                network failures
        """
        ...

    def close(self) -> None:
        """Release network resources. Nothing to release by default."""


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise MalformedResponse(f"Not a number: {value!r}")


class CoinGeckoPriceSource(IPriceSource):
    def __init__(self, api_key: str = "", timeout_s: float = 10.0) -> None:
        self._api_key = api_key
        self._client = httpx.Client(base_url=COINGECKO_BASE, timeout=timeout_s)
        self._lock = threading.Lock()

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, params: Dict[str, Any]) -> Any:
        params = dict(params)
        if self._api_key:
            params["x_cg_demo_api_key"] = self._api_key
        try:
            with self._lock:
                r = self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise SourceUnreachable(f"Price source timed out: {e}") from e
        except httpx.TransportError as e:
            raise SourceUnreachable(f"Price source unreachable: {e}") from e

        if r.status_code == 429:
            raise RateLimited()
        if not 200 <= r.status_code < 300:
            raise HttpStatusError(r.status_code)
        try:
            return r.json()
        except ValueError as e:
            raise MalformedResponse(f"Invalid JSON from price source: {e}") from e

    def fetch_prices(self, asset_ids: Iterable[str]) -> Dict[str, Decimal]:
        # CoinGecko ids are lowercase; results are keyed by the ids as given
        requested: Dict[str, List[str]] = {}
        for asset_id in asset_ids:
            if asset_id and asset_id.strip():
                requested.setdefault(asset_id.strip().lower(), []).append(asset_id)
        if not requested:
            return {}
        ids = sorted(requested)
        data = self._get("/simple/price", {"ids": ",".join(ids), "vs_currencies": "usd"})
        if not isinstance(data, dict):
            raise MalformedResponse("Expected an object keyed by asset id")

        out: Dict[str, Decimal] = {}
        priced = set()
        for cid, obj in data.items():
            if not isinstance(obj, dict):
                raise MalformedResponse(f"Unexpected entry for {cid}: {obj!r}")
            price = _to_decimal(obj.get("usd"))
            if price is None:
                continue
            priced.add(cid)
            for asset_id in requested.get(cid, []):
                out[asset_id] = price
        unknown = set(ids) - priced
        if unknown:
            logger.warning(f"Price source has no price for: {', '.join(sorted(unknown))}")
        return out

    def fetch_markets(self, per_page: int = 100) -> List[MarketCoin]:
        data = self._get(
            "/coins/markets",
            {
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": int(per_page),
                "page": 1,
                "sparkline": "false",
            },
        )
        if not isinstance(data, list):
            raise MalformedResponse("Expected a list of coins")

        out: List[MarketCoin] = []
        for item in data:
            try:
                rank = item.get("market_cap_rank")
                out.append(
                    MarketCoin(
                        id=item["id"],
                        symbol=item["symbol"],
                        name=item["name"],
                        image=item.get("image") or "",
                        current_price=_to_decimal(item["current_price"]),
                        market_cap=_to_decimal(item.get("market_cap")),
                        market_cap_rank=int(rank) if rank is not None else None,
                        price_change_percentage_24h=_to_decimal(item.get("price_change_percentage_24h")),
                        last_updated=item.get("last_updated") or "",
                    )
                )
            except (KeyError, TypeError, AttributeError) as e:
                raise MalformedResponse(f"Invalid coin entry: {e}") from e
        return out
