"""One pass over the news sources, storing every new article."""

from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

from pydantic import ValidationError

from basednews.config import AppConfig
from basednews.models import Article, StoredArticle
from basednews.services.sources import NewsSource, build_scheduled_sources
from basednews.storage import Storage, StorageError

logger = logging.getLogger(__name__)


def store_candidates(
    storage: Storage, source: NewsSource, *, include_existing: bool = False
) -> List[StoredArticle]:
    """Validate and store every candidate yielded by ``source``.

    Only articles created by this call are returned unless ``include_existing``
    is set, in which case articles whose URL was already stored are returned
    too. A storage failure skips that one article.
    """

    stored_articles: List[StoredArticle] = []
    for candidate in source.fetch():
        try:
            article = Article.model_validate(candidate)
        except ValidationError as exc:
            logger.warning(
                "Skipping invalid %s article %r: %s",
                source.name,
                candidate.get("url"),
                exc,
            )
            continue

        try:
            stored, created = storage.save_article(article)
        except StorageError as exc:
            logger.error("Failed to store article %s: %s", article.url, exc)
            continue
        if created or include_existing:
            stored_articles.append(stored)
    return stored_articles


def refresh_news(
    storage: Storage, sources: Sequence[NewsSource], fallback: NewsSource
) -> List[StoredArticle]:
    """Store articles from the live ``sources``, or from ``fallback`` when none produced any."""

    articles: List[StoredArticle] = []
    for source in sources:
        try:
            articles.extend(store_candidates(storage, source, include_existing=True))
        except Exception:  # noqa: BLE001 - one provider must not abort the refresh
            logger.exception("News source %s failed", source.name)

    if not articles:
        logger.info("No live news available - using %s articles", fallback.name)
        articles = store_candidates(storage, fallback, include_existing=True)
    return articles


def run_ingestion(
    storage: Storage,
    sources: Sequence[NewsSource] | None = None,
    *,
    config: AppConfig | None = None,
) -> List[StoredArticle]:
    """Fetch every source in order and return the newly stored articles.

    A failing source never prevents the following ones from running.
    """

    if sources is None:
        sources = build_scheduled_sources(config or AppConfig.from_env())

    created: List[StoredArticle] = []
    contributors: List[str] = []
    for source in sources:
        try:
            stored = store_candidates(storage, source)
        except Exception:  # noqa: BLE001 - one provider must not abort the run
            logger.exception("News source %s failed", source.name)
            continue
        if stored:
            contributors.append(source.name)
            created.extend(stored)

    _log_summary(created, contributors)
    return created


def _log_summary(created: Iterable[StoredArticle], contributors: List[str]) -> None:
    count = len(list(created))
    if count:
        logger.info(
            "Successfully fetched %d new articles from: %s", count, ", ".join(contributors)
        )
    else:
        logger.info("No new articles found this hour")
