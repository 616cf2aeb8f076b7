"""CoinGecko market data and the synthetic chart used when it is unavailable."""

from __future__ import annotations

import logging
import random
from datetime import UTC, datetime, timedelta
from typing import List, Optional

import requests
from pydantic import BaseModel, Field

from basednews.models import ChartPoint, Cryptocurrency, utcnow

logger = logging.getLogger(__name__)

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
MARKETS_PER_PAGE = 20
TOP_MARKETS = 10

# Stablecoins and wrapped/staked tokens shadow the coins they track.
EXCLUDED_COINS = frozenset(
    {
        "tether",
        "usd-coin",
        "wrapped-steth",
        "staked-ether",
        "binance-usd",
        "dai",
        "true-usd",
        "wrapped-bitcoin",
        "first-digital-usd",
    }
)

BASE_PRICES = {
    "bitcoin": 114000,
    "ethereum": 3300,
    "binancecoin": 610,
    "solana": 168,
    "cardano": 0.37,
    "avalanche-2": 26,
    "dogecoin": 0.13,
    "polygon-ecosystem-token": 0.43,
    "chainlink": 13.2,
    "tron": 0.16,
    "polkadot": 5.8,
    "uniswap": 8.9,
    "litecoin": 67,
    "near": 4.1,
    "stellar": 0.099,
}
DEFAULT_BASE_PRICE = 50.0

HOURLY_VOLATILITY = 0.03
DAILY_VOLATILITY = 0.05


class CoinGeckoMarket(BaseModel):
    """One row of ``/coins/markets``."""

    id: str
    name: str
    symbol: str
    current_price: Optional[float] = None
    price_change_24h: Optional[float] = None
    price_change_percentage_24h: Optional[float] = None
    market_cap: Optional[float] = None
    total_volume: Optional[float] = None
    market_cap_rank: Optional[int] = None
    image: Optional[str] = None

    def to_cryptocurrency(self) -> Cryptocurrency:
        return Cryptocurrency(
            id=self.id,
            name=self.name,
            symbol=self.symbol.upper(),
            current_price=_decimal_string(self.current_price),
            price_change_24h=_decimal_string(self.price_change_24h),
            price_change_percentage_24h=_decimal_string(self.price_change_percentage_24h),
            market_cap=_decimal_string(self.market_cap),
            volume_24h=_decimal_string(self.total_volume),
            market_cap_rank=self.market_cap_rank,
            image=self.image,
        )


class CoinGeckoChart(BaseModel):
    prices: List[List[float]] = Field(default_factory=list)


def _decimal_string(value: float | None) -> str | None:
    if value is None:
        return None
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _iso(moment: datetime) -> str:
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CoinGeckoClient:
    """Thin wrapper over the public CoinGecko API.

    Methods raise :class:`requests.RequestException` or :class:`ValueError`;
    callers decide on the fallback.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        timeout: float = 30.0,
        base_url: str = COINGECKO_BASE_URL,
    ) -> None:
        self._session = session or requests.Session()
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")

    def fetch_top_markets(self, limit: int = TOP_MARKETS) -> List[Cryptocurrency]:
        response = self._session.get(
            f"{self._base_url}/coins/markets",
            params={
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": MARKETS_PER_PAGE,
                "page": 1,
                "sparkline": "false",
                "price_change_percentage": "24h",
            },
            timeout=self._timeout,
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, list):
            raise ValueError("Unexpected CoinGecko markets payload")

        coins: List[Cryptocurrency] = []
        for raw in payload:
            market = CoinGeckoMarket.model_validate(raw)
            if market.id in EXCLUDED_COINS:
                continue
            coins.append(market.to_cryptocurrency())
            if len(coins) >= limit:
                break
        logger.info("CoinGecko: fetched %d markets", len(coins))
        return coins

    def fetch_chart(self, coin_id: str, days: int) -> List[ChartPoint]:
        response = self._session.get(
            f"{self._base_url}/coins/{coin_id}/market_chart",
            params={
                "vs_currency": "usd",
                "days": days,
                "interval": "hourly" if days == 1 else "daily",
            },
            timeout=self._timeout,
        )
        response.raise_for_status()
        chart = CoinGeckoChart.model_validate(response.json())
        return [
            ChartPoint(
                time=_iso(datetime.fromtimestamp(timestamp / 1000, UTC)),
                price=price,
            )
            for timestamp, price in (pair[:2] for pair in chart.prices)
        ]


def base_price_for(coin_id: str) -> float:
    return float(BASE_PRICES.get(coin_id, DEFAULT_BASE_PRICE))


def fallback_chart(
    coin_id: str,
    days: int,
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> List[ChartPoint]:
    """Random walk around the coin's base price.

    ``days == 1`` yields 24 hourly points; otherwise one point per day at
    midnight UTC, oldest first.
    """

    now = now or utcnow()
    rand = rng.random if rng is not None else random.random
    price = base_price_for(coin_id)
    points: List[ChartPoint] = []

    if days == 1:
        for offset in range(23, -1, -1):
            price *= 1 + (rand() - 0.5) * HOURLY_VOLATILITY
            points.append(ChartPoint(time=_iso(now - timedelta(hours=offset)), price=price))
        return points

    for offset in range(days - 1, -1, -1):
        day = (now - timedelta(days=offset)).replace(hour=0, minute=0, second=0, microsecond=0)
        price *= 1 + (rand() - 0.5) * DAILY_VOLATILITY
        points.append(ChartPoint(time=_iso(day), price=price))
    return points
