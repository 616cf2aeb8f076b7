"""News source adapters that map provider payloads onto :class:`Article` fields.

Every adapter exposes :meth:`NewsSource.fetch`, a generator of candidate
payloads keyed like :class:`basednews.models.Article`. Network failures and
unexpected payloads are logged inside the adapter, which then yields nothing;
the next scheduled run is the only retry.
"""

from __future__ import annotations

import logging
import random
import re
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Iterator, List, Optional

import requests
from pydantic import BaseModel, Field, ValidationError

from basednews.config import AppConfig, ImagePoolsConfig
from basednews.models import utcnow
from basednews.services.heuristics import (
    build_description,
    derive_image_url,
    derive_summary,
    strip_markup,
)

__all__ = [
    "CryptoCompareItem",
    "CryptoCompareSource",
    "CryptoPanicItem",
    "CryptoPanicSource",
    "NewsSource",
    "RedditListingPost",
    "RedditSource",
    "StaticSource",
    "build_on_demand_sources",
    "build_scheduled_sources",
    "build_seed_source",
    "map_cryptocompare_item",
    "map_cryptopanic_item",
    "map_reddit_post",
]

logger = logging.getLogger(__name__)

USER_AGENT = "BasedNews/1.0"

CRYPTOCOMPARE_URL = "https://min-api.cryptocompare.com/data/v2/news/"
CRYPTOCOMPARE_CATEGORIES = "BTC,ETH,Trading,Blockchain"
CRYPTOCOMPARE_EXCLUDED = "Sponsored"
CRYPTOCOMPARE_LOOKBACK = timedelta(hours=1)
CRYPTOCOMPARE_MAX_ITEMS = 10

REDDIT_LISTING_URL = "https://www.reddit.com/r/{subreddit}/hot.json"
REDDIT_LISTING_LIMIT = 10
REDDIT_MAX_ITEMS = 5
REDDIT_SOURCE_NAME = "Reddit Crypto"

CRYPTOPANIC_URL = "https://cryptopanic.com/api/v1/posts/"
CRYPTOPANIC_MAX_ITEMS = 8

# Failures an adapter absorbs: transport errors, JSON/validation errors (both
# ValueError subclasses) and payloads with an unexpected shape.
_ADAPTER_ERRORS = (requests.RequestException, ValueError, KeyError, TypeError, AttributeError)

_CATEGORY_SPLIT_RE = re.compile(r"[|,]")

Clock = Callable[[], datetime]


def _from_epoch(value: float | None, fallback: datetime) -> datetime:
    if not value:
        return fallback
    try:
        return datetime.fromtimestamp(value, UTC)
    except (OverflowError, OSError, ValueError):
        return fallback


# Raw provider payloads ---------------------------------------------------------


class CryptoCompareSourceInfo(BaseModel):
    name: Optional[str] = None


class CryptoCompareItem(BaseModel):
    """One entry of the CryptoCompare ``Data`` array."""

    title: Optional[str] = None
    body: Optional[str] = None
    url: Optional[str] = None
    guid: Optional[str] = None
    published_on: Optional[float] = None
    imageurl: Optional[str] = None
    categories: Optional[str] = None
    source_info: Optional[CryptoCompareSourceInfo] = None


class RedditImageSource(BaseModel):
    url: Optional[str] = None


class RedditPreviewImage(BaseModel):
    source: Optional[RedditImageSource] = None


class RedditPreview(BaseModel):
    images: List[RedditPreviewImage] = Field(default_factory=list)


class RedditListingPost(BaseModel):
    """The ``data`` object of a Reddit listing child."""

    title: Optional[str] = None
    url: Optional[str] = None
    is_self: bool = False
    selftext: Optional[str] = None
    author: Optional[str] = None
    created_utc: Optional[float] = None
    preview: Optional[RedditPreview] = None

    @property
    def is_link_post(self) -> bool:
        return not self.is_self and bool(self.url) and "reddit.com" not in (self.url or "")

    @property
    def preview_image(self) -> str | None:
        if self.preview is None or not self.preview.images:
            return None
        source = self.preview.images[0].source
        if source is None or not source.url:
            return None
        return source.url.replace("&amp;", "&")


class CryptoPanicVotes(BaseModel):
    positive: int = 0
    negative: int = 0


class CryptoPanicItem(BaseModel):
    title: Optional[str] = None
    url: Optional[str] = None
    published_at: Optional[datetime] = None
    votes: Optional[CryptoPanicVotes] = None


# Provider -> canonical mapping --------------------------------------------------


def map_cryptocompare_item(
    item: CryptoCompareItem,
    *,
    now: datetime,
    rng: random.Random | None = None,
    image_pools: ImagePoolsConfig | None = None,
) -> dict[str, Any]:
    """Map a CryptoCompare news item onto article fields."""

    title = strip_markup(item.title)
    body = strip_markup(item.body) or None
    category = None
    if item.categories:
        first = _CATEGORY_SPLIT_RE.split(item.categories)[0].strip()
        category = first or None

    return {
        "title": title,
        "description": build_description(body, title),
        "content": body,
        "url": item.url or item.guid or "",
        "source": (item.source_info.name if item.source_info else None) or "CryptoCompare",
        "author": None,
        "published_at": _from_epoch(item.published_on, now),
        "image_url": item.imageurl or derive_image_url(title, image_pools, rng),
        "sentiment": "neutral",
        "category": category,
        "summary": derive_summary(body or title, title),
    }


def map_reddit_post(
    post: RedditListingPost,
    *,
    now: datetime,
    rng: random.Random | None = None,
    image_pools: ImagePoolsConfig | None = None,
) -> dict[str, Any]:
    """Map a Reddit link post onto article fields."""

    title = strip_markup(post.title)
    selftext = strip_markup(post.selftext) or None

    return {
        "title": title,
        "description": build_description(selftext, title),
        "content": selftext,
        "url": post.url or "",
        "source": REDDIT_SOURCE_NAME,
        "author": post.author,
        "published_at": _from_epoch(post.created_utc, now),
        "image_url": post.preview_image or derive_image_url(title, image_pools, rng),
        "sentiment": "neutral",
        "category": None,
        "summary": derive_summary(selftext or title, title),
    }


def map_cryptopanic_item(
    item: CryptoPanicItem,
    *,
    now: datetime,
    rng: random.Random | None = None,
    image_pools: ImagePoolsConfig | None = None,
) -> dict[str, Any]:
    """Map a CryptoPanic post onto article fields, deriving sentiment from votes."""

    title = strip_markup(item.title)
    votes = item.votes or CryptoPanicVotes()
    if votes.positive > votes.negative:
        sentiment = "bullish"
    elif votes.negative > votes.positive:
        sentiment = "bearish"
    else:
        sentiment = "neutral"

    return {
        "title": title,
        "description": title or "No description available",
        "content": None,
        "url": item.url or "",
        "source": "CryptoPanic",
        "author": None,
        "published_at": item.published_at or now,
        "image_url": derive_image_url(title, image_pools, rng),
        "sentiment": sentiment,
        "category": None,
        "summary": derive_summary(None, title),
    }


# Adapters -----------------------------------------------------------------------


class NewsSource(ABC):
    """Base class for a single news provider."""

    name: str = "news"

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        timeout: float = 30.0,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        image_pools: ImagePoolsConfig | None = None,
    ) -> None:
        self._session = session or requests.Session()
        self._timeout = timeout
        self._clock = clock or utcnow
        self._rng = rng
        self._image_pools = image_pools

    def fetch(self) -> Iterator[dict[str, Any]]:
        """Yield candidate article payloads; yields nothing when the provider fails."""

        try:
            items = self._fetch_items()
        except _ADAPTER_ERRORS as exc:
            logger.error("%s request failed: %s", self.name, exc)
            return

        now = self._clock()
        for raw in items:
            try:
                candidate = self._map(raw, now)
            except ValidationError as exc:
                logger.warning("Skipping malformed %s item: %s", self.name, exc)
                continue
            if candidate is not None:
                yield candidate

    @abstractmethod
    def _fetch_items(self) -> List[Any]:
        """Request the provider and return its raw items."""

    @abstractmethod
    def _map(self, raw: Any, now: datetime) -> dict[str, Any] | None:
        """Validate one raw item and map it; ``None`` drops the item."""


class CryptoCompareSource(NewsSource):
    """Latest news from CryptoCompare for the last hour."""

    name = "CryptoCompare"

    def __init__(self, session: requests.Session | None = None, *, api_key: str = "demo", **kwargs: Any) -> None:
        super().__init__(session, **kwargs)
        self._api_key = api_key

    def _fetch_items(self) -> List[Any]:
        since = self._clock() - CRYPTOCOMPARE_LOOKBACK
        response = self._session.get(
            CRYPTOCOMPARE_URL,
            params={
                "categories": CRYPTOCOMPARE_CATEGORIES,
                "excludeCategories": CRYPTOCOMPARE_EXCLUDED,
                "lTs": int(since.timestamp()),
                "api_key": self._api_key,
            },
            timeout=self._timeout,
        )
        response.raise_for_status()
        data = response.json().get("Data")
        if not isinstance(data, list):
            raise ValueError(f"Unexpected CryptoCompare payload: {response.json().get('Message')}")
        logger.info("CryptoCompare: fetched %d articles", len(data))
        return data[:CRYPTOCOMPARE_MAX_ITEMS]

    def _map(self, raw: Any, now: datetime) -> dict[str, Any]:
        item = CryptoCompareItem.model_validate(raw)
        return map_cryptocompare_item(item, now=now, rng=self._rng, image_pools=self._image_pools)


class RedditSource(NewsSource):
    """Link posts from a subreddit's hot listing."""

    name = "Reddit"

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        subreddit: str = "CryptoCurrency",
        **kwargs: Any,
    ) -> None:
        super().__init__(session, **kwargs)
        self._subreddit = subreddit

    def _fetch_items(self) -> List[Any]:
        response = self._session.get(
            REDDIT_LISTING_URL.format(subreddit=self._subreddit),
            params={"limit": REDDIT_LISTING_LIMIT},
            headers={"User-Agent": USER_AGENT},
            timeout=self._timeout,
        )
        response.raise_for_status()
        children = response.json()["data"]["children"]
        logger.info("Reddit: fetched %d posts", len(children))
        return [child.get("data") or {} for child in children]

    def fetch(self) -> Iterator[dict[str, Any]]:
        for count, candidate in enumerate(super().fetch(), start=1):
            yield candidate
            if count >= REDDIT_MAX_ITEMS:
                return

    def _map(self, raw: Any, now: datetime) -> dict[str, Any] | None:
        post = RedditListingPost.model_validate(raw)
        if not post.is_link_post:
            return None
        return map_reddit_post(post, now=now, rng=self._rng, image_pools=self._image_pools)


class CryptoPanicSource(NewsSource):
    """Hot news from CryptoPanic; requires an API token."""

    name = "CryptoPanic"

    def __init__(self, session: requests.Session | None = None, *, api_key: str, **kwargs: Any) -> None:
        super().__init__(session, **kwargs)
        self._api_key = api_key

    def _fetch_items(self) -> List[Any]:
        response = self._session.get(
            CRYPTOPANIC_URL,
            params={"auth_token": self._api_key, "kind": "news", "filter": "hot", "page": 1},
            timeout=self._timeout,
        )
        response.raise_for_status()
        results = response.json()["results"]
        logger.info("CryptoPanic: fetched %d articles", len(results))
        return results[:CRYPTOPANIC_MAX_ITEMS]

    def _map(self, raw: Any, now: datetime) -> dict[str, Any]:
        item = CryptoPanicItem.model_validate(raw)
        return map_cryptopanic_item(item, now=now, rng=self._rng, image_pools=self._image_pools)


STATIC_ARTICLES: List[dict[str, Any]] = [
    {
        "title": "Bitcoin ETF Approval Sends BTC to New All-Time High",
        "description": (
            "The SEC's approval of spot Bitcoin ETFs has triggered a massive rally, "
            "with BTC breaking through $50,000 resistance..."
        ),
        "url": "https://cointelegraph.com/news/bitcoin-etf-approval",
        "sentiment": "bullish",
        "age": timedelta(hours=2),
    },
    {
        "title": "Ethereum 2.0 Staking Rewards Hit Record High",
        "description": (
            "Ethereum validators are seeing unprecedented returns as network activity "
            "surges following the latest upgrade..."
        ),
        "url": "https://cointelegraph.com/news/ethereum-staking-rewards",
        "sentiment": "bullish",
        "age": timedelta(hours=4),
    },
    {
        "title": "DeFi TVL Surpasses $100 Billion Milestone",
        "description": (
            "Total value locked in decentralized finance protocols reaches historic "
            "heights as institutional adoption accelerates..."
        ),
        "url": "https://cointelegraph.com/news/defi-tvl-milestone",
        "sentiment": "neutral",
        "age": timedelta(hours=6),
    },
]


class StaticSource(NewsSource):
    """Hand-written CoinTelegraph seed articles used when live providers are unavailable."""

    name = "CoinTelegraph"

    def _fetch_items(self) -> List[Any]:
        return list(STATIC_ARTICLES)

    def _map(self, raw: Any, now: datetime) -> dict[str, Any]:
        title = raw["title"]
        return {
            "title": title,
            "description": raw["description"],
            "content": None,
            "url": raw["url"],
            "source": "CoinTelegraph",
            "author": None,
            "published_at": now - raw["age"],
            "image_url": derive_image_url(title, self._image_pools, self._rng),
            "sentiment": raw["sentiment"],
            "category": None,
            "summary": derive_summary(raw["description"], title),
        }


def build_scheduled_sources(
    config: AppConfig, session: requests.Session | None = None
) -> List[NewsSource]:
    """Sources polled by the hourly run, in the order they are invoked."""

    image_pools = config.load_image_pools()
    return [
        CryptoCompareSource(
            session,
            api_key=config.cryptocompare_api_key,
            timeout=config.request_timeout,
            image_pools=image_pools,
        ),
        RedditSource(
            session,
            subreddit=config.news_subreddit,
            timeout=config.request_timeout,
            image_pools=image_pools,
        ),
    ]


def build_on_demand_sources(
    config: AppConfig, session: requests.Session | None = None
) -> List[NewsSource]:
    """Live sources refreshed by ``GET /api/news``; empty unless CryptoPanic is configured."""

    if not config.cryptopanic_api_key:
        return []
    return [
        CryptoPanicSource(
            session,
            api_key=config.cryptopanic_api_key,
            timeout=config.request_timeout,
            image_pools=config.load_image_pools(),
        )
    ]


def build_seed_source(config: AppConfig) -> StaticSource:
    """The CoinTelegraph seed used when no live source produced articles."""

    return StaticSource(image_pools=config.load_image_pools())
