"""API routes exposing news, social, market and summary endpoints."""

from __future__ import annotations

import logging
from typing import Any, List

import requests
from fastapi import APIRouter, Body, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from basednews.config import AppConfig
from basednews.models import (
    ChartResponse,
    Cryptocurrency,
    RedditPost,
    StoredArticle,
    Tweet,
    utcnow,
)
from basednews.services.ingestion import refresh_news, run_ingestion
from basednews.services.market import CoinGeckoClient, fallback_chart
from basednews.services.social import collect_reddit_posts, collect_tweets
from basednews.services.sources import (
    build_on_demand_sources,
    build_scheduled_sources,
    build_seed_source,
)
from basednews.services.summarizer import (
    UNCONFIGURED_SUMMARY,
    UNCONFIGURED_WORD_COUNT,
    SummaryResult,
    fallback_result,
    summarize_text,
)
from basednews.storage import Storage, StorageError

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 30
REDDIT_PAGE_SIZE = 10


class StatusResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    coingecko: str = "connected"
    cryptopanic: str
    reddit: str
    twitter: str
    openai: str
    last_update: str


class CronResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    articles_count: int
    timestamp: str


class SummarizeRequest(BaseModel):
    text: str | None = None
    url: str | None = None


class SummarizeResponse(BaseModel):
    summary: str
    word_count: int
    url: str | None = None


def _config(request: Request) -> AppConfig:
    return request.app.state.config


def _storage(request: Request) -> Storage:
    return request.app.state.storage


def _http(request: Request) -> requests.Session | None:
    return getattr(request.app.state, "http_session", None)


def _camel(items: List[BaseModel]) -> List[dict[str, Any]]:
    return [item.model_dump(mode="json", by_alias=True) for item in items]


@router.get("/news")
async def list_news(
    request: Request,
    source: str | None = None,
    category: str | None = None,
    sentiment: str | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
) -> List[dict[str, Any]]:
    """Refresh the live sources (or the seed articles) and return stored articles, newest first."""

    config = _config(request)
    storage = _storage(request)
    page_size = max(1, min(limit, MAX_PAGE_SIZE))

    def _refresh_and_list() -> List[StoredArticle]:
        refresh_news(
            storage,
            build_on_demand_sources(config, _http(request)),
            build_seed_source(config),
        )
        return storage.get_articles(
            page_size, source=source, category=category, sentiment=sentiment
        )

    try:
        articles = await run_in_threadpool(_refresh_and_list)
    except (StorageError, ValueError, OSError) as exc:
        logger.exception("Error fetching news")
        raise HTTPException(status_code=500, detail="Failed to fetch news data") from exc

    return _camel(articles)


@router.get("/reddit")
async def list_reddit_posts(request: Request, subreddit: str = "cryptocurrency") -> List[dict[str, Any]]:
    """Store the latest posts (API or fallback) and return those of ``subreddit``."""

    config = _config(request)
    storage = _storage(request)

    def _refresh_and_list() -> List[RedditPost]:
        for post in collect_reddit_posts(config, subreddit, _http(request)):
            storage.upsert_reddit_post(post)
        return storage.get_reddit_posts(subreddit, REDDIT_PAGE_SIZE)

    try:
        posts = await run_in_threadpool(_refresh_and_list)
    except StorageError as exc:
        logger.exception("Error fetching Reddit posts")
        raise HTTPException(status_code=500, detail="Failed to fetch Reddit data") from exc

    return _camel(posts)


@router.get("/twitter")
async def list_tweets(request: Request) -> List[dict[str, Any]]:
    tweets: List[Tweet] = await run_in_threadpool(collect_tweets, _config(request), _http(request))
    return _camel(tweets)


@router.get("/cryptocurrencies")
async def list_cryptocurrencies(request: Request) -> List[dict[str, Any]]:
    """Top coins by market cap, refreshed from CoinGecko when it answers."""

    config = _config(request)
    storage = _storage(request)
    client = CoinGeckoClient(_http(request), timeout=config.request_timeout)

    def _refresh_and_list() -> List[Cryptocurrency]:
        try:
            coins = client.fetch_top_markets()
        except (requests.RequestException, ValueError) as exc:
            logger.error("CoinGecko API error: %s", exc)
        else:
            for coin in coins:
                storage.upsert_cryptocurrency(coin)
        return storage.get_cryptocurrencies()

    try:
        coins = await run_in_threadpool(_refresh_and_list)
    except StorageError as exc:
        logger.exception("Error fetching cryptocurrency data")
        raise HTTPException(status_code=500, detail="Failed to fetch cryptocurrency data") from exc

    if not coins:
        raise HTTPException(status_code=500, detail="Failed to fetch cryptocurrency data")
    return _camel(coins)


@router.get("/cryptocurrencies/{coin_id}/chart")
async def cryptocurrency_chart(request: Request, coin_id: str, days: str = "7") -> dict[str, Any]:
    """Price history for ``coin_id``; synthetic data when CoinGecko is unavailable."""

    try:
        days_count = int(days)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid days parameter") from exc
    if days_count < 1:
        raise HTTPException(status_code=400, detail="Invalid days parameter")

    config = _config(request)
    client = CoinGeckoClient(_http(request), timeout=config.request_timeout)
    try:
        points = await run_in_threadpool(client.fetch_chart, coin_id, days_count)
    except (requests.RequestException, ValueError) as exc:
        logger.warning("CoinGecko API error for %s chart (%s). Using fallback data.", coin_id, exc)
        points = fallback_chart(coin_id, days_count)

    chart = ChartResponse(coin_id=coin_id, days=days_count, data=points)
    return chart.model_dump(mode="json", by_alias=True)


@router.get("/status")
async def api_status(request: Request) -> dict[str, Any]:
    config = _config(request)
    status = StatusResponse(
        cryptopanic="api_key_configured" if config.cryptopanic_api_key else "no_api_key",
        reddit="api_configured" if config.reddit_configured else "fallback_data",
        twitter="api_configured" if config.twitter_bearer_token else "fallback_data",
        openai="api_configured" if config.openai_api_key else "not_configured",
        last_update=utcnow().isoformat(),
    )
    return status.model_dump(by_alias=True)


@router.get("/cron/news")
async def trigger_news_fetch(request: Request) -> dict[str, Any]:
    """Run one ingestion pass on demand."""

    config = _config(request)
    storage = _storage(request)

    try:
        sources = build_scheduled_sources(config, _http(request))
        created = await run_in_threadpool(run_ingestion, storage, sources)
    except Exception as exc:  # noqa: BLE001 - reported to the caller
        logger.exception("Error fetching news")
        raise HTTPException(status_code=500, detail="Error fetching news") from exc

    response = CronResponse(
        message="News fetch completed",
        articles_count=len(created),
        timestamp=utcnow().isoformat(),
    )
    return response.model_dump(by_alias=True)


@router.post("/summarize", response_model=SummarizeResponse)
async def summarize(request: Request, payload: SummarizeRequest | None = Body(default=None)) -> Any:
    """Summarise ``text`` with OpenAI, degrading to an extractive preview."""

    payload = payload or SummarizeRequest()
    if not payload.text:
        raise HTTPException(status_code=400, detail="Text is required for summarization")

    config = _config(request)
    if not config.openai_api_key:
        logger.warning("OpenAI API key not found")
        return JSONResponse(
            status_code=500,
            content={
                "message": "OpenAI API key not configured",
                "summary": UNCONFIGURED_SUMMARY,
                "word_count": UNCONFIGURED_WORD_COUNT,
                "url": payload.url,
            },
        )

    try:
        result: SummaryResult = await run_in_threadpool(
            summarize_text, payload.text, api_key=config.openai_api_key
        )
    except Exception:  # noqa: BLE001 - any OpenAI failure falls back to the preview
        logger.exception("Error generating summary")
        result = fallback_result(payload.text)

    return SummarizeResponse(summary=result.summary, word_count=result.word_count, url=payload.url)
