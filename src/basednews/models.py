"""Domain models used across the application."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Sentiment = Literal["bullish", "bearish", "neutral"]


def utcnow() -> datetime:
    return datetime.now(UTC)


class _CamelModel(BaseModel):
    """Models rendered with camelCase keys for the dashboard frontend."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Article(_CamelModel):
    """Canonical news article produced by every source adapter."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True
    )

    title: str = Field(..., min_length=1)
    description: str = ""
    content: Optional[str] = None
    url: str = Field(..., min_length=1)
    source: str
    author: Optional[str] = None
    published_at: datetime = Field(default_factory=utcnow)
    image_url: str = Field(..., min_length=1)
    sentiment: Sentiment = "neutral"
    category: Optional[str] = None
    summary: str = Field(..., min_length=1)

    @field_validator("published_at")
    @classmethod
    def _normalise_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class StoredArticle(Article):
    """An article as returned by the storage layer."""

    id: str
    created_at: Optional[datetime] = None


class RedditPost(_CamelModel):
    """A Reddit discussion post shown in the social panel."""

    id: str
    title: str
    author: str
    subreddit: str
    url: str
    upvotes: int = 0
    comments: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class Cryptocurrency(_CamelModel):
    """Market snapshot for a single coin. Monetary values are decimal strings."""

    id: str
    name: str
    symbol: str
    current_price: Optional[str] = None
    # The alias generator would render "24h" as "24H".
    price_change_24h: Optional[str] = Field(default=None, alias="priceChange24h")
    price_change_percentage_24h: Optional[str] = Field(
        default=None, alias="priceChangePercentage24h"
    )
    market_cap: Optional[str] = None
    volume_24h: Optional[str] = Field(default=None, alias="volume24h")
    market_cap_rank: Optional[int] = None
    image: Optional[str] = None
    last_updated: Optional[datetime] = None


class ChartPoint(BaseModel):
    time: str
    price: float


class ChartResponse(_CamelModel):
    coin_id: str
    days: int
    data: List[ChartPoint] = Field(default_factory=list)


class Tweet(_CamelModel):
    id: str
    text: str
    author: str
    url: str
    likes: int = 0
    retweets: int = 0
    created_at: datetime = Field(default_factory=utcnow)
