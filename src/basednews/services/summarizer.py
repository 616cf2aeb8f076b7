"""Article summaries via OpenAI, with an extractive fallback."""

from __future__ import annotations

import json
import logging
import re

from openai import OpenAI
from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
MAX_TOKENS = 200

SYSTEM_PROMPT = (
    "You are a cryptocurrency expert. Summarize the following text in exactly 50-100 words, "
    "focusing on key insights and market implications. Be concise and informative. "
    'Respond with JSON in this format: { "summary": "your summary here", "word_count": number }'
)

UNCONFIGURED_SUMMARY = (
    "AI summarization is currently unavailable. Please configure the OpenAI API key "
    "to enable this feature."
)
UNCONFIGURED_WORD_COUNT = 20

FALLBACK_KEYWORDS = (
    "bitcoin",
    "ethereum",
    "crypto",
    "blockchain",
    "defi",
    "nft",
    "price",
    "market",
    "trading",
    "investment",
)
FALLBACK_MAX_LENGTH = 300
FALLBACK_NOTICE = "[AI summary temporarily unavailable - showing content preview]"

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")

_client: OpenAI | None = None
_client_key: str | None = None


class SummaryResult(BaseModel):
    summary: str
    word_count: int


def _get_client(api_key: str) -> OpenAI:
    global _client, _client_key
    if _client is None or _client_key != api_key:
        try:
            _client = OpenAI(api_key=api_key)
        except Exception as exc:  # noqa: BLE001 - surface a clearer message
            raise RuntimeError("Failed to initialise the OpenAI client.") from exc
        _client_key = api_key
    return _client


def summarize_text(text: str, *, api_key: str, model: str = DEFAULT_MODEL) -> SummaryResult:
    """Ask OpenAI for a 50-100 word summary of ``text``.

    Any failure (transport, API, malformed JSON) propagates to the caller.
    """

    logger.info("Generating AI summary for text: %s...", text[:100])
    client = _get_client(api_key)
    response = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": text},
        ],
        response_format={"type": "json_object"},
        max_tokens=MAX_TOKENS,
    )

    result = json.loads(response.choices[0].message.content or "{}")
    summary = result.get("summary") or "Summary not available"
    word_count = int(result.get("word_count") or 0)
    return SummaryResult(summary=summary, word_count=word_count)


def fallback_summary(text: str) -> str:
    """Preview built from the first sentences mentioning crypto keywords."""

    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text) if len(s.strip()) > 10]
    relevant = [
        sentence
        for sentence in sentences
        if any(keyword in sentence.lower() for keyword in FALLBACK_KEYWORDS)
    ][:2]

    if relevant:
        summary = ". ".join(relevant).strip() + "."
        if len(summary) > FALLBACK_MAX_LENGTH:
            return summary[: FALLBACK_MAX_LENGTH - 3] + "..."
        return summary

    first = sentences[0].strip() if sentences else text[:100]
    return f"{first}. {FALLBACK_NOTICE}"


def fallback_result(text: str) -> SummaryResult:
    summary = fallback_summary(text)
    return SummaryResult(summary=summary, word_count=len(summary.split(" ")))
