from datetime import timedelta
from pathlib import Path

from basednews.models import Article, Cryptocurrency, RedditPost, utcnow
from basednews.storage import Storage
from basednews.services.social import fallback_reddit_posts


def _article(url: str, hours_ago: int, **overrides) -> Article:
    data = {
        "title": f"Story {url}",
        "url": url,
        "source": "CryptoCompare",
        "published_at": utcnow() - timedelta(hours=hours_ago),
        "image_url": "https://img/x.png",
        "summary": "A summary.",
    }
    data.update(overrides)
    return Article(**data)


def test_create_article_is_idempotent_by_url(storage: Storage) -> None:
    first = storage.create_article(_article("https://news/a", 1))
    second = storage.create_article(_article("https://news/a", 1, title="Changed title"))

    assert second.id == first.id
    assert second.title == first.title
    assert len(storage.get_articles()) == 1


def test_save_article_reports_insert(storage: Storage) -> None:
    stored, created = storage.save_article(_article("https://news/b", 1))
    again, created_again = storage.save_article(_article("https://news/b", 2))

    assert created is True
    assert created_again is False
    assert again.id == stored.id


def test_get_articles_orders_newest_first_and_limits(storage: Storage) -> None:
    for url, hours_ago in [("https://news/old", 6), ("https://news/new", 1), ("https://news/mid", 3)]:
        storage.create_article(_article(url, hours_ago))

    urls = [article.url for article in storage.get_articles()]
    assert urls == ["https://news/new", "https://news/mid", "https://news/old"]
    assert [a.url for a in storage.get_articles(limit=2)] == urls[:2]


def test_get_articles_filters_case_insensitively(storage: Storage) -> None:
    storage.create_article(_article("https://news/1", 1, source="CoinTelegraph", sentiment="bullish"))
    storage.create_article(_article("https://news/2", 2, category="BTC"))
    storage.create_article(_article("https://news/3", 3))

    assert [a.url for a in storage.get_articles(source="cointelegraph")] == ["https://news/1"]
    assert [a.url for a in storage.get_articles(category="btc")] == ["https://news/2"]
    assert [a.url for a in storage.get_articles(sentiment="BULLISH")] == ["https://news/1"]


def test_stored_timestamps_are_utc(storage: Storage) -> None:
    stored = storage.create_article(_article("https://news/tz", 2))

    loaded = storage.get_article_by_url("https://news/tz")
    assert loaded is not None
    assert loaded.published_at.utcoffset() == timedelta(0)
    assert loaded.published_at == stored.published_at


def test_reddit_posts_are_upserted_and_filtered(storage: Storage) -> None:
    for post in fallback_reddit_posts():
        storage.upsert_reddit_post(post)
    storage.upsert_reddit_post(fallback_reddit_posts()[0])
    storage.upsert_reddit_post(
        RedditPost(id="reddit_x", title="Other", author="me", subreddit="Bitcoin", url="https://r/x")
    )

    posts = storage.get_reddit_posts("cryptocurrency")

    assert [post.id for post in posts] == ["reddit_fallback_1", "reddit_fallback_2"]
    assert len(storage.get_reddit_posts()) == 3


def test_cryptocurrencies_ordered_by_rank(storage: Storage) -> None:
    storage.upsert_cryptocurrency(Cryptocurrency(id="eth", name="Ethereum", symbol="ETH", market_cap_rank=2))
    storage.upsert_cryptocurrency(Cryptocurrency(id="odd", name="Unranked", symbol="ODD"))
    storage.upsert_cryptocurrency(Cryptocurrency(id="btc", name="Bitcoin", symbol="BTC", market_cap_rank=1))
    storage.upsert_cryptocurrency(
        Cryptocurrency(id="btc", name="Bitcoin", symbol="BTC", market_cap_rank=1, current_price="1")
    )

    coins = storage.get_cryptocurrencies()

    assert [coin.id for coin in coins] == ["btc", "eth", "odd"]
    assert coins[0].current_price == "1"
    assert coins[0].last_updated is not None


def test_from_url_creates_database_directory(tmp_path: Path) -> None:
    database = tmp_path / "nested" / "news.db"

    store = Storage.from_url(f"sqlite:///{database}")
    try:
        store.create_article(_article("https://news/file", 1))
    finally:
        store.dispose()

    assert database.exists()
