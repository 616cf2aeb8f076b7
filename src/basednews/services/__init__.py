"""Service layer: source adapters, ingestion, market data and summaries."""

from __future__ import annotations

from .ingestion import run_ingestion  # noqa: F401
from .scheduler import SchedulerHandle, start_scheduler  # noqa: F401
from .sources import (  # noqa: F401
    CryptoCompareSource,
    CryptoPanicSource,
    NewsSource,
    RedditSource,
    StaticSource,
)

__all__ = [
    "CryptoCompareSource",
    "CryptoPanicSource",
    "NewsSource",
    "RedditSource",
    "SchedulerHandle",
    "StaticSource",
    "run_ingestion",
    "start_scheduler",
]
