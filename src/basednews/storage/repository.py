"""SQLAlchemy-backed storage used by the ingestion pipeline and the API."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterator, List

from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from basednews.models import Article, Cryptocurrency, RedditPost, StoredArticle, utcnow
from basednews.storage.schema import (
    Base,
    CryptocurrencyRecord,
    NewsArticleRecord,
    RedditPostRecord,
)

__all__ = ["Storage", "StorageError"]

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when the database rejects or fails an operation."""


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo; everything is stored in UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _to_article(record: NewsArticleRecord) -> StoredArticle:
    return StoredArticle(
        id=record.id,
        title=record.title,
        description=record.description or "",
        content=record.content,
        url=record.url,
        source=record.source,
        author=record.author,
        published_at=_as_utc(record.published_at) or _as_utc(record.created_at) or utcnow(),
        image_url=record.image_url,
        sentiment=record.sentiment or "neutral",
        category=record.category,
        summary=record.summary,
        created_at=_as_utc(record.created_at),
    )


def _to_reddit_post(record: RedditPostRecord) -> RedditPost:
    return RedditPost(
        id=record.id,
        title=record.title,
        author=record.author,
        subreddit=record.subreddit,
        url=record.url,
        upvotes=record.upvotes or 0,
        comments=record.comments or 0,
        created_at=_as_utc(record.created_at) or utcnow(),
    )


def _to_cryptocurrency(record: CryptocurrencyRecord) -> Cryptocurrency:
    return Cryptocurrency(
        id=record.id,
        name=record.name,
        symbol=record.symbol,
        current_price=record.current_price,
        price_change_24h=record.price_change_24h,
        price_change_percentage_24h=record.price_change_percentage_24h,
        market_cap=record.market_cap,
        volume_24h=record.volume_24h,
        market_cap_rank=record.market_cap_rank,
        image=record.image,
        last_updated=_as_utc(record.last_updated),
    )


class Storage:
    """Persistence for articles, Reddit posts and market snapshots.

    Articles are keyed by URL with create-or-ignore semantics: storing an article
    whose URL already exists returns the existing row unchanged. Reddit posts and
    cryptocurrencies are replaced by id.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str, *, create_tables: bool = True) -> "Storage":
        """Create a storage instance for ``database_url``."""

        url = make_url(database_url)
        kwargs: dict[str, object] = {}
        if url.get_backend_name() == "sqlite":
            # The scheduler thread and the request threadpool share the engine.
            kwargs["connect_args"] = {"check_same_thread": False}
            if not url.database or url.database == ":memory:":
                kwargs["poolclass"] = StaticPool
            else:
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        storage = cls(create_engine(url, **kwargs))
        if create_tables:
            storage.create_tables()
        return storage

    def create_tables(self) -> None:
        Base.metadata.create_all(self._engine)

    def dispose(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except IntegrityError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(str(exc)) from exc
        finally:
            session.close()

    # Articles -----------------------------------------------------------------

    def get_article_by_url(self, url: str) -> StoredArticle | None:
        with self._session() as session:
            record = session.scalars(
                select(NewsArticleRecord).where(NewsArticleRecord.url == url)
            ).first()
            return _to_article(record) if record is not None else None

    def create_article(self, article: Article) -> StoredArticle:
        """Persist ``article`` unless its URL is already stored."""

        stored, _ = self.save_article(article)
        return stored

    def save_article(self, article: Article) -> tuple[StoredArticle, bool]:
        """Create-or-ignore by URL; the flag is ``True`` when a row was inserted."""

        try:
            with self._session() as session:
                existing = session.scalars(
                    select(NewsArticleRecord).where(NewsArticleRecord.url == article.url)
                ).first()
                if existing is not None:
                    return _to_article(existing), False

                record = NewsArticleRecord(
                    id=str(uuid.uuid4()),
                    created_at=utcnow(),
                    **article.model_dump(),
                )
                session.add(record)
                session.flush()
                return _to_article(record), True
        except IntegrityError as exc:
            # Another writer stored the same URL between our check and insert.
            stored = self.get_article_by_url(article.url)
            if stored is None:
                raise StorageError(str(exc)) from exc
            return stored, False

    def get_articles(
        self,
        limit: int = 20,
        *,
        source: str | None = None,
        category: str | None = None,
        sentiment: str | None = None,
    ) -> List[StoredArticle]:
        """Return stored articles, newest ``published_at`` first."""

        statement = select(NewsArticleRecord)
        if source:
            statement = statement.where(func.lower(NewsArticleRecord.source) == source.lower())
        if category:
            statement = statement.where(
                func.lower(NewsArticleRecord.category) == category.lower()
            )
        if sentiment:
            statement = statement.where(NewsArticleRecord.sentiment == sentiment.lower())
        statement = statement.order_by(
            NewsArticleRecord.published_at.desc(), NewsArticleRecord.created_at.desc()
        ).limit(limit)

        with self._session() as session:
            return [_to_article(record) for record in session.scalars(statement)]

    # Reddit posts ---------------------------------------------------------------

    def upsert_reddit_post(self, post: RedditPost) -> RedditPost:
        with self._session() as session:
            record = session.merge(RedditPostRecord(**post.model_dump()))
            session.flush()
            return _to_reddit_post(record)

    def get_reddit_posts(self, subreddit: str | None = None, limit: int = 10) -> List[RedditPost]:
        statement = select(RedditPostRecord)
        if subreddit:
            statement = statement.where(
                func.lower(RedditPostRecord.subreddit) == subreddit.lower()
            )
        statement = statement.order_by(RedditPostRecord.created_at.desc()).limit(limit)

        with self._session() as session:
            return [_to_reddit_post(record) for record in session.scalars(statement)]

    # Cryptocurrencies -----------------------------------------------------------

    def upsert_cryptocurrency(self, crypto: Cryptocurrency) -> Cryptocurrency:
        payload = crypto.model_dump()
        payload["last_updated"] = utcnow()
        with self._session() as session:
            record = session.merge(CryptocurrencyRecord(**payload))
            session.flush()
            return _to_cryptocurrency(record)

    def get_cryptocurrencies(self) -> List[Cryptocurrency]:
        """Return stored coins ordered by market cap rank (unranked last)."""

        statement = select(CryptocurrencyRecord).order_by(
            CryptocurrencyRecord.market_cap_rank.is_(None),
            CryptocurrencyRecord.market_cap_rank,
        )
        with self._session() as session:
            return [_to_cryptocurrency(record) for record in session.scalars(statement)]
