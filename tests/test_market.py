import random
from datetime import UTC, datetime

import pytest
import requests

from basednews.services.market import (
    COINGECKO_BASE_URL,
    CoinGeckoClient,
    base_price_for,
    fallback_chart,
)

MARKETS_URL = f"{COINGECKO_BASE_URL}/coins/markets"
NOW = datetime(2025, 3, 1, 15, 30, tzinfo=UTC)


def _market(coin_id: str, rank: int, **overrides) -> dict:
    data = {
        "id": coin_id,
        "name": coin_id.title(),
        "symbol": coin_id[:3],
        "current_price": 65000.5,
        "price_change_24h": -120.25,
        "price_change_percentage_24h": 1.5,
        "market_cap": 1000,
        "total_volume": 250.75,
        "market_cap_rank": rank,
        "image": f"https://img/{coin_id}.png",
    }
    data.update(overrides)
    return data


def test_fetch_top_markets_excludes_stablecoins(fake_session) -> None:
    payload = [_market("bitcoin", 1), _market("tether", 3), _market("usd-coin", 5)]
    payload += [_market(f"coin{i}", 10 + i) for i in range(15)]
    session = fake_session({MARKETS_URL: payload})

    coins = CoinGeckoClient(session).fetch_top_markets()

    assert len(coins) == 10
    assert "tether" not in {coin.id for coin in coins}
    bitcoin = coins[0]
    assert bitcoin.symbol == "BIT"
    assert bitcoin.current_price == "65000.5"
    assert bitcoin.price_change_24h == "-120.25"
    assert bitcoin.market_cap == "1000"
    assert bitcoin.volume_24h == "250.75"
    assert session.calls[0]["params"]["per_page"] == 20

    dumped = bitcoin.model_dump(by_alias=True)
    assert {"currentPrice", "priceChange24h", "priceChangePercentage24h", "volume24h"} <= set(dumped)


def test_fetch_top_markets_rejects_unexpected_payload(fake_session) -> None:
    with pytest.raises(ValueError):
        CoinGeckoClient(fake_session({MARKETS_URL: {"status": {"error_code": 429}}})).fetch_top_markets()


def test_fetch_chart_maps_prices(fake_session) -> None:
    chart_url = f"{COINGECKO_BASE_URL}/coins/bitcoin/market_chart"
    session = fake_session({chart_url: {"prices": [[1740787200000, 84000.1], [1740873600000, 86000.2]]}})

    points = CoinGeckoClient(session).fetch_chart("bitcoin", 7)

    assert [point.time for point in points] == ["2025-03-01T00:00:00.000Z", "2025-03-02T00:00:00.000Z"]
    assert points[1].price == 86000.2
    assert session.calls[0]["params"] == {"vs_currency": "usd", "days": 7, "interval": "daily"}

    CoinGeckoClient(session).fetch_chart("bitcoin", 1)
    assert session.calls[1]["params"]["interval"] == "hourly"


def test_fetch_chart_propagates_http_errors(fake_session, dummy_response) -> None:
    chart_url = f"{COINGECKO_BASE_URL}/coins/bitcoin/market_chart"
    session = fake_session({chart_url: dummy_response({}, status_code=429)})

    with pytest.raises(requests.HTTPError):
        CoinGeckoClient(session).fetch_chart("bitcoin", 7)


def test_fallback_chart_hourly() -> None:
    points = fallback_chart("bitcoin", 1, now=NOW, rng=random.Random(3))

    assert len(points) == 24
    assert points[-1].time == "2025-03-01T15:30:00.000Z"
    assert points[0].time == "2025-02-28T16:30:00.000Z"
    assert 114000 * 0.985 <= points[0].price <= 114000 * 1.015


def test_fallback_chart_daily_points_at_midnight() -> None:
    points = fallback_chart("unknown-coin", 7, now=NOW, rng=random.Random(3))

    assert len(points) == 7
    assert all(point.time.endswith("T00:00:00.000Z") for point in points)
    assert points[-1].time == "2025-03-01T00:00:00.000Z"
    assert base_price_for("unknown-coin") == 50.0
    assert 50 * 0.975 <= points[0].price <= 50 * 1.025
