"""Tests for the CoinGecko price source against a mocked HTTP transport."""

from __future__ import annotations

from decimal import Decimal

import httpx
import pytest

from cryptosim.data.providers import (
    COINGECKO_BASE,
    CoinGeckoPriceSource,
    HttpStatusError,
    MalformedResponse,
    PriceSourceError,
    RateLimited,
    SourceUnreachable,
)


def _source(monkeypatch, handler, api_key: str = "") -> CoinGeckoPriceSource:
    source = CoinGeckoPriceSource(api_key=api_key)
    client = httpx.Client(base_url=COINGECKO_BASE, transport=httpx.MockTransport(handler))
    monkeypatch.setattr(source, "_client", client)
    return source


def test_fetch_prices_parses_decimals_and_drops_unknown_ids(monkeypatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"bitcoin": {"usd": 65000.12}, "ethereum": {"usd": 3200}})

    source = _source(monkeypatch, handler)
    prices = source.fetch_prices(["ethereum", "bitcoin", "not-a-coin"])

    assert prices == {"bitcoin": Decimal("65000.12"), "ethereum": Decimal("3200")}
    assert seen["path"].endswith("/simple/price")
    assert seen["params"]["ids"] == "bitcoin,ethereum,not-a-coin"
    assert seen["params"]["vs_currencies"] == "usd"
    assert "x_cg_demo_api_key" not in seen["params"]


def test_api_key_is_sent_when_configured(monkeypatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(200, json={})

    _source(monkeypatch, handler, api_key="demo-key").fetch_prices(["bitcoin"])

    assert seen["x_cg_demo_api_key"] == "demo-key"


def test_empty_request_makes_no_call(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert _source(monkeypatch, handler).fetch_prices([]) == {}


def test_rate_limit_maps_to_rate_limited(monkeypatch):
    source = _source(monkeypatch, lambda request: httpx.Response(429))

    with pytest.raises(RateLimited) as exc_info:
        source.fetch_prices(["bitcoin"])
    assert str(exc_info.value) == "Rate limit exceeded. Please try again later."


def test_server_error_maps_to_http_status_error(monkeypatch):
    source = _source(monkeypatch, lambda request: httpx.Response(503))

    with pytest.raises(HttpStatusError) as exc_info:
        source.fetch_prices(["bitcoin"])
    assert exc_info.value.status == 503


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, content=b"<html>oops</html>"),
        httpx.Response(200, json=["bitcoin"]),
        httpx.Response(200, json={"bitcoin": 12}),
        httpx.Response(200, json={"bitcoin": {"usd": "lots"}}),
    ],
)
def test_bad_payloads_map_to_malformed_response(monkeypatch, response):
    source = _source(monkeypatch, lambda request: response)

    with pytest.raises(MalformedResponse):
        source.fetch_prices(["bitcoin"])


@pytest.mark.parametrize("error", [httpx.ConnectError, httpx.ReadTimeout])
def test_transport_errors_map_to_source_unreachable(monkeypatch, error):
    def handler(request: httpx.Request) -> httpx.Response:
        raise error("network down", request=request)

    source = _source(monkeypatch, handler)

    with pytest.raises(SourceUnreachable):
        source.fetch_prices(["bitcoin"])


def test_all_failures_share_base_class():
    for cls in (RateLimited, HttpStatusError, MalformedResponse, SourceUnreachable):
        assert issubclass(cls, PriceSourceError)


def test_fetch_markets_maps_coin_fields(monkeypatch):
    seen = {}
    payload = [
        {
            "id": "bitcoin",
            "symbol": "btc",
            "name": "Bitcoin",
            "image": "https://example.com/btc.png",
            "current_price": 65000.5,
            "market_cap": 1280000000000,
            "market_cap_rank": 1,
            "price_change_percentage_24h": -1.25,
            "last_updated": "2025-04-09T12:00:00.000Z",
        },
        {
            "id": "newcoin",
            "symbol": "new",
            "name": "New Coin",
            "image": None,
            "current_price": 0.5,
            "market_cap": None,
            "market_cap_rank": None,
            "price_change_percentage_24h": None,
            "last_updated": None,
        },
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen.update(request.url.params)
        return httpx.Response(200, json=payload)

    coins = _source(monkeypatch, handler).fetch_markets(per_page=50)

    assert seen["path"].endswith("/coins/markets")
    assert seen["vs_currency"] == "usd"
    assert seen["order"] == "market_cap_desc"
    assert seen["per_page"] == "50"
    assert [c.id for c in coins] == ["bitcoin", "newcoin"]
    assert coins[0].current_price == Decimal("65000.5")
    assert coins[0].market_cap_rank == 1
    assert coins[0].price_change_percentage_24h == Decimal("-1.25")
    assert coins[1].image == ""
    assert coins[1].market_cap is None
    assert coins[1].market_cap_rank is None


def test_fetch_markets_rejects_entries_without_id(monkeypatch):
    source = _source(monkeypatch, lambda request: httpx.Response(200, json=[{"symbol": "btc"}]))

    with pytest.raises(MalformedResponse):
        source.fetch_markets()


def test_prices_are_keyed_by_the_ids_as_given(monkeypatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(200, json={"bitcoin": {"usd": 100}, "ethereum": {"usd": 5}})

    prices = _source(monkeypatch, handler).fetch_prices(["Bitcoin", "bitcoin", " ETHEREUM "])

    assert seen["ids"] == "bitcoin,ethereum"
    assert prices == {
        "Bitcoin": Decimal("100"),
        "bitcoin": Decimal("100"),
        " ETHEREUM ": Decimal("5"),
    }
