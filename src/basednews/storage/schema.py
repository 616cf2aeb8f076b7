"""Relational schema for persisted articles, social posts and market data."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

from basednews.models import utcnow

Base = declarative_base()


class NewsArticleRecord(Base):
    __tablename__ = "news_articles"

    id = Column(String(36), primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text)
    content = Column(Text)
    url = Column(String(2048), nullable=False, unique=True)
    source = Column(String(255), nullable=False, index=True)
    author = Column(String(255))
    published_at = Column(DateTime(timezone=True), index=True)
    image_url = Column(Text)
    sentiment = Column(String(16))  # bullish, bearish, neutral
    category = Column(String(255))
    summary = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class RedditPostRecord(Base):
    __tablename__ = "reddit_posts"

    id = Column(String(64), primary_key=True)
    title = Column(Text, nullable=False)
    author = Column(String(255), nullable=False)
    subreddit = Column(String(255), nullable=False, index=True)
    url = Column(String(2048), nullable=False)
    upvotes = Column(Integer, default=0)
    comments = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True))


class CryptocurrencyRecord(Base):
    __tablename__ = "cryptocurrencies"

    id = Column(String(255), primary_key=True)
    name = Column(Text, nullable=False)
    symbol = Column(String(32), nullable=False)
    current_price = Column(String(64))
    price_change_24h = Column(String(64))
    price_change_percentage_24h = Column(String(64))
    market_cap = Column(String(64))
    volume_24h = Column(String(64))
    market_cap_rank = Column(Integer)
    image = Column(Text)
    last_updated = Column(DateTime(timezone=True), default=utcnow)
