"""Reddit and Twitter feeds for the social panel, with canned fallbacks."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any, List, Optional

import requests
from pydantic import BaseModel, Field

from basednews.config import AppConfig
from basednews.models import RedditPost, Tweet, utcnow

logger = logging.getLogger(__name__)

SOCIAL_USER_AGENT = "BasedHub/1.0"

REDDIT_TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
REDDIT_OAUTH_LISTING_URL = "https://oauth.reddit.com/r/{subreddit}/hot"
REDDIT_POST_LIMIT = 10

TWITTER_SEARCH_URL = "https://api.twitter.com/2/tweets/search/recent"
TWITTER_QUERY = "cryptocurrency OR bitcoin OR ethereum OR crypto -is:retweet"
TWITTER_MAX_RESULTS = 10

_SOCIAL_ERRORS = (requests.RequestException, ValueError, KeyError, TypeError, AttributeError)


class RedditOAuthPost(BaseModel):
    id: str
    title: str
    author: str = "[deleted]"
    subreddit: str
    permalink: str
    ups: Optional[int] = None
    num_comments: Optional[int] = None
    created_utc: Optional[float] = None

    def to_post(self) -> RedditPost:
        return RedditPost(
            id=f"reddit_{self.id}",
            title=self.title,
            author=self.author,
            subreddit=self.subreddit,
            url=f"https://reddit.com{self.permalink}",
            upvotes=self.ups or 0,
            comments=self.num_comments or 0,
            created_at=(
                datetime.fromtimestamp(self.created_utc, UTC) if self.created_utc else utcnow()
            ),
        )


class PublicMetrics(BaseModel):
    like_count: int = 0
    retweet_count: int = 0


class TwitterSearchTweet(BaseModel):
    id: str
    text: str
    author_id: Optional[str] = None
    created_at: Optional[datetime] = None
    public_metrics: PublicMetrics = Field(default_factory=PublicMetrics)

    def to_tweet(self) -> Tweet:
        return Tweet(
            id=f"twitter_{self.id}",
            text=self.text,
            author=self.author_id or "unknown",
            url=f"https://twitter.com/i/web/status/{self.id}",
            likes=self.public_metrics.like_count,
            retweets=self.public_metrics.retweet_count,
            created_at=self.created_at or utcnow(),
        )


class RedditClient:
    """Application-only OAuth client for subreddit listings."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        session: requests.Session | None = None,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._session = session or requests.Session()
        self._timeout = timeout

    def _access_token(self) -> str:
        response = self._session.post(
            REDDIT_TOKEN_URL,
            data={"grant_type": "client_credentials"},
            auth=(self._client_id, self._client_secret),
            headers={"User-Agent": SOCIAL_USER_AGENT},
            timeout=self._timeout,
        )
        response.raise_for_status()
        return response.json()["access_token"]

    def fetch_hot(self, subreddit: str, limit: int = REDDIT_POST_LIMIT) -> List[RedditPost]:
        token = self._access_token()
        response = self._session.get(
            REDDIT_OAUTH_LISTING_URL.format(subreddit=subreddit),
            params={"limit": limit},
            headers={"Authorization": f"Bearer {token}", "User-Agent": SOCIAL_USER_AGENT},
            timeout=self._timeout,
        )
        response.raise_for_status()
        children = response.json()["data"]["children"]
        return [RedditOAuthPost.model_validate(child["data"]).to_post() for child in children]


class TwitterClient:
    """Recent-search client for the Twitter v2 API."""

    def __init__(
        self,
        bearer_token: str,
        session: requests.Session | None = None,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._bearer_token = bearer_token
        self._session = session or requests.Session()
        self._timeout = timeout

    def search_recent(self) -> List[Tweet]:
        response = self._session.get(
            TWITTER_SEARCH_URL,
            params={
                "query": TWITTER_QUERY,
                "max_results": TWITTER_MAX_RESULTS,
                "tweet.fields": "created_at,author_id,public_metrics",
            },
            headers={
                "Authorization": f"Bearer {self._bearer_token}",
                "User-Agent": SOCIAL_USER_AGENT,
            },
            timeout=self._timeout,
        )
        response.raise_for_status()
        data: List[Any] = response.json().get("data") or []
        return [TwitterSearchTweet.model_validate(item).to_tweet() for item in data]


def fallback_reddit_posts(now: datetime | None = None) -> List[RedditPost]:
    now = now or utcnow()
    return [
        RedditPost(
            id="reddit_fallback_1",
            title="Discussion: Best crypto wallets for beginners",
            author="cryptonewbie",
            subreddit="cryptocurrency",
            url="https://reddit.com/r/cryptocurrency/fallback1",
            upvotes=156,
            comments=43,
            created_at=now - timedelta(hours=3),
        ),
        RedditPost(
            id="reddit_fallback_2",
            title="Market analysis: Bitcoin vs Ethereum long-term outlook",
            author="cryptoanalyst",
            subreddit="CryptoCurrency",
            url="https://reddit.com/r/CryptoCurrency/fallback2",
            upvotes=234,
            comments=67,
            created_at=now - timedelta(hours=5),
        ),
    ]


def fallback_tweets(now: datetime | None = None) -> List[Tweet]:
    now = now or utcnow()
    return [
        Tweet(
            id="twitter_fallback_1",
            text=(
                "Bitcoin just hit a new milestone! The adoption continues to grow worldwide. "
                "#Bitcoin #Crypto"
            ),
            author="crypto_news",
            url="https://twitter.com/crypto_news/fallback1",
            likes=1250,
            retweets=340,
            created_at=now - timedelta(hours=2),
        ),
        Tweet(
            id="twitter_fallback_2",
            text=(
                "Ethereum's latest update shows promising scalability improvements. "
                "The future of DeFi looks bright! #Ethereum #DeFi"
            ),
            author="defi_expert",
            url="https://twitter.com/defi_expert/fallback2",
            likes=890,
            retweets=156,
            created_at=now - timedelta(hours=4),
        ),
    ]


def collect_reddit_posts(
    config: AppConfig, subreddit: str, session: requests.Session | None = None
) -> List[RedditPost]:
    """Posts from the Reddit API when credentials are set, else the fallback posts."""

    posts: List[RedditPost] = []
    if config.reddit_configured:
        client = RedditClient(
            config.reddit_client_id or "",
            config.reddit_client_secret or "",
            session,
            timeout=config.request_timeout,
        )
        try:
            posts = client.fetch_hot(subreddit)
        except _SOCIAL_ERRORS as exc:
            logger.error("Reddit API error: %s", exc)
    else:
        logger.info("Reddit API credentials not found - using fallback data")

    return posts or fallback_reddit_posts()


def collect_tweets(config: AppConfig, session: requests.Session | None = None) -> List[Tweet]:
    """Recent tweets when a bearer token is set, else the fallback tweets."""

    tweets: List[Tweet] = []
    if config.twitter_bearer_token:
        client = TwitterClient(config.twitter_bearer_token, session, timeout=config.request_timeout)
        try:
            tweets = client.search_recent()
        except _SOCIAL_ERRORS as exc:
            logger.error("Twitter API error: %s", exc)

    return tweets or fallback_tweets()
