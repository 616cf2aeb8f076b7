"""Tests for the HTTP surface in :mod:`basednews.api.routes`."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests
from fastapi.testclient import TestClient

from basednews.api.app import create_app
from basednews.config import AppConfig
from basednews.services.market import COINGECKO_BASE_URL
from basednews.services.sources import CRYPTOCOMPARE_URL, CRYPTOPANIC_URL
from basednews.services.summarizer import UNCONFIGURED_SUMMARY, SummaryResult
from basednews.storage import Storage

MARKETS_URL = f"{COINGECKO_BASE_URL}/coins/markets"
CHART_URL = f"{COINGECKO_BASE_URL}/coins/bitcoin/market_chart"
REDDIT_URL = "https://www.reddit.com/r/CryptoCurrency/hot.json"


@pytest.fixture
def make_client(config: AppConfig, storage: Storage, fake_session):
    def _build(routes: dict | None = None, **overrides) -> TestClient:
        app_config = config.model_copy(update=overrides)
        app = create_app(app_config, storage, http_session=fake_session(routes or {}))
        return TestClient(app)

    return _build


def test_news_returns_seed_articles_newest_first(make_client) -> None:
    """With no live provider configured the seed articles are stored and listed."""

    client = make_client()

    response = client.get("/api/news")

    assert response.status_code == 200
    payload = response.json()
    assert [item["title"] for item in payload] == [
        "Bitcoin ETF Approval Sends BTC to New All-Time High",
        "Ethereum 2.0 Staking Rewards Hit Record High",
        "DeFi TVL Surpasses $100 Billion Milestone",
    ]
    first = payload[0]
    assert first["source"] == "CoinTelegraph"
    assert first["imageUrl"].startswith("https://images.unsplash.com/")
    assert {"publishedAt", "createdAt", "summary", "id"} <= set(first)


def test_news_is_idempotent_and_filterable(make_client) -> None:
    client = make_client()
    client.get("/api/news")

    assert len(client.get("/api/news").json()) == 3

    neutral = client.get("/api/news", params={"sentiment": "neutral"}).json()
    assert [item["title"] for item in neutral] == ["DeFi TVL Surpasses $100 Billion Milestone"]
    assert len(client.get("/api/news", params={"limit": 2}).json()) == 2
    assert client.get("/api/news", params={"source": "Reddit Crypto"}).json() == []


def test_news_falls_back_to_seed_when_cryptopanic_fails(make_client) -> None:
    client = make_client({CRYPTOPANIC_URL: requests.ConnectionError("down")}, cryptopanic_api_key="tok")

    response = client.get("/api/news")

    assert response.status_code == 200
    assert [item["source"] for item in response.json()] == ["CoinTelegraph"] * 3


def test_news_from_cryptopanic_skips_seed(make_client) -> None:
    results = [{"title": "Bitcoin soars", "url": "https://p/1", "votes": {"positive": 5, "negative": 1}}]
    client = make_client({CRYPTOPANIC_URL: {"results": results}}, cryptopanic_api_key="tok")

    payload = client.get("/api/news").json()

    assert [item["title"] for item in payload] == ["Bitcoin soars"]
    assert payload[0]["source"] == "CryptoPanic"


def test_news_storage_or_config_failure_returns_message(make_client, tmp_path) -> None:
    client = make_client(image_pools_path=tmp_path / "missing.json")

    response = client.get("/api/news")

    assert response.status_code == 500
    assert response.json() == {"message": "Failed to fetch news data"}


def test_unhandled_error_returns_message(config: AppConfig, storage: Storage, fake_session) -> None:
    app = create_app(config, storage, http_session=fake_session({}))
    client = TestClient(app, raise_server_exceptions=False)

    with patch("basednews.api.routes.collect_tweets", side_effect=RuntimeError("boom")):
        response = client.get("/api/twitter")

    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error"}


def test_invalid_query_and_method_return_message(make_client) -> None:
    client = make_client()

    bad_limit = client.get("/api/news", params={"limit": "many"})
    assert bad_limit.status_code == 400
    assert bad_limit.json()["message"] == "Invalid request parameters"

    not_allowed = client.post("/api/news")
    assert not_allowed.status_code == 405
    assert not_allowed.json() == {"message": "Method Not Allowed"}


def test_cryptocurrencies_refresh_and_cache(make_client, storage: Storage) -> None:
    market = {
        "id": "bitcoin",
        "name": "Bitcoin",
        "symbol": "btc",
        "current_price": 90000,
        "market_cap_rank": 1,
    }
    response = make_client({MARKETS_URL: [market]}).get("/api/cryptocurrencies")

    assert response.status_code == 200
    [coin] = response.json()
    assert coin["symbol"] == "BTC"
    assert coin["currentPrice"] == "90000"

    cached = make_client({MARKETS_URL: requests.ConnectionError("down")}).get("/api/cryptocurrencies")
    assert cached.status_code == 200
    assert [item["id"] for item in cached.json()] == ["bitcoin"]
    assert cached.json()[0]["currentPrice"] == "90000"
    assert [coin.id for coin in storage.get_cryptocurrencies()] == ["bitcoin"]


def test_cryptocurrencies_without_cache_fail(make_client) -> None:
    response = make_client({MARKETS_URL: requests.ConnectionError("down")}).get("/api/cryptocurrencies")

    assert response.status_code == 500
    assert response.json() == {"message": "Failed to fetch cryptocurrency data"}


def test_chart_proxies_coingecko(make_client) -> None:
    client = make_client({CHART_URL: {"prices": [[1740787200000, 84000.0]]}})

    response = client.get("/api/cryptocurrencies/bitcoin/chart")

    assert response.json() == {
        "coinId": "bitcoin",
        "days": 7,
        "data": [{"time": "2025-03-01T00:00:00.000Z", "price": 84000.0}],
    }


def test_chart_falls_back_to_synthetic_data(make_client) -> None:
    client = make_client({CHART_URL: requests.ConnectionError("down")})

    response = client.get("/api/cryptocurrencies/bitcoin/chart", params={"days": "1"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["days"] == 1
    assert len(payload["data"]) == 24

    invalid = client.get("/api/cryptocurrencies/bitcoin/chart", params={"days": "week"})
    assert invalid.status_code == 400
    assert invalid.json() == {"message": "Invalid days parameter"}


def test_status_reports_configured_providers(make_client) -> None:
    payload = make_client(cryptopanic_api_key="key", openai_api_key="sk").get("/api/status").json()

    assert payload["coingecko"] == "connected"
    assert payload["cryptopanic"] == "api_key_configured"
    assert payload["reddit"] == "fallback_data"
    assert payload["twitter"] == "fallback_data"
    assert payload["openai"] == "api_configured"
    assert "lastUpdate" in payload


def test_reddit_and_twitter_fallbacks(make_client) -> None:
    client = make_client()

    posts = client.get("/api/reddit", params={"subreddit": "cryptocurrency"}).json()
    assert [post["id"] for post in posts] == ["reddit_fallback_1", "reddit_fallback_2"]

    tweets = client.get("/api/twitter").json()
    assert [tweet["id"] for tweet in tweets] == ["twitter_fallback_1", "twitter_fallback_2"]


def test_cron_runs_ingestion(make_client) -> None:
    reddit_payload = {
        "data": {
            "children": [
                {
                    "data": {
                        "title": "Bitcoin adoption report",
                        "url": "https://external.example/report",
                        "is_self": False,
                        "author": "hodler",
                        "created_utc": 1740830400,
                    }
                }
            ]
        }
    }
    client = make_client(
        {CRYPTOCOMPARE_URL: requests.ConnectionError("down"), REDDIT_URL: reddit_payload}
    )

    payload = client.get("/api/cron/news").json()

    assert payload["message"] == "News fetch completed"
    assert payload["articlesCount"] == 1
    assert "timestamp" in payload
    assert client.get("/api/cron/news").json()["articlesCount"] == 0


def test_summarize_requires_text(make_client) -> None:
    response = make_client(openai_api_key="sk").post("/api/summarize", json={"url": "https://x"})

    assert response.status_code == 400
    assert response.json() == {"message": "Text is required for summarization"}


def test_summarize_without_api_key(make_client) -> None:
    response = make_client().post("/api/summarize", json={"text": "Bitcoin rose.", "url": "https://x"})

    assert response.status_code == 500
    assert response.json() == {
        "message": "OpenAI API key not configured",
        "summary": UNCONFIGURED_SUMMARY,
        "word_count": 20,
        "url": "https://x",
    }


def test_summarize_uses_openai_and_falls_back(make_client) -> None:
    client = make_client(openai_api_key="sk")
    body = {"text": "Bitcoin rallied above resistance today. Nothing else.", "url": "https://x"}

    with patch(
        "basednews.api.routes.summarize_text",
        return_value=SummaryResult(summary="AI summary", word_count=2),
    ) as mock_summarize:
        response = client.post("/api/summarize", json=body)

    assert response.json() == {"summary": "AI summary", "word_count": 2, "url": "https://x"}
    mock_summarize.assert_called_once_with(body["text"], api_key="sk")

    with patch("basednews.api.routes.summarize_text", side_effect=RuntimeError("quota")):
        fallback = client.post("/api/summarize", json=body)

    assert fallback.status_code == 200
    assert fallback.json()["summary"] == "Bitcoin rallied above resistance today."


def test_lifespan_starts_and_stops_scheduler(config: AppConfig, storage: Storage, fake_session) -> None:
    handle = MagicMock()
    factory = MagicMock(return_value=handle)
    app = create_app(
        config.model_copy(update={"scheduler_enabled": True, "scheduler_startup_delay": 3.0}),
        storage,
        http_session=fake_session({}),
        scheduler_factory=factory,
    )

    with TestClient(app):
        assert app.state.scheduler is handle
        factory.assert_called_once()
        assert factory.call_args.kwargs == {"startup_delay": 3.0}
        assert app.state.scheduler_session is not app.state.http_session

    handle.stop.assert_called_once_with()


def test_scheduled_ingest_uses_its_own_session(
    config: AppConfig, storage: Storage, fake_session
) -> None:
    factory = MagicMock(return_value=MagicMock())
    request_session = fake_session({})
    app = create_app(
        config.model_copy(update={"scheduler_enabled": True}),
        storage,
        http_session=request_session,
        scheduler_factory=factory,
    )

    with TestClient(app):
        ingest = factory.call_args.args[0]
        with patch("basednews.api.app.run_ingestion") as mock_run:
            ingest()

    sources = mock_run.call_args.args[1]
    assert [source.name for source in sources] == ["CryptoCompare", "Reddit"]
    assert all(source._session is app.state.scheduler_session for source in sources)
    assert request_session.calls == []


def test_disabled_scheduler_is_not_started(make_client) -> None:
    client = make_client()
    with client:
        assert client.app.state.scheduler is None
