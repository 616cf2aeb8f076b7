"""Text heuristics that fill in summaries and images providers leave out."""

from __future__ import annotations

import html
import random
import re
from typing import Sequence

from bs4 import BeautifulSoup

from basednews.config import DEFAULT_IMAGE_POOLS, ImagePoolsConfig

__all__ = [
    "GENERIC_SUMMARY",
    "build_description",
    "contextual_summary",
    "derive_image_url",
    "derive_summary",
    "strip_markup",
]

MIN_BODY_LENGTH = 10
MIN_SENTENCE_LENGTH = 15
MAX_SENTENCES = 4
TARGET_WORDS = 150
MIN_SUMMARY_WORDS = 30
DESCRIPTION_LENGTH = 200

GENERIC_SUMMARY = (
    "Stay informed with the latest developments in cryptocurrency markets, "
    "blockchain technology, and digital asset regulations."
)
NO_SENTENCE_SUMMARY = "Cryptocurrency market update with latest insights."

# Scanned in order; the first group with a keyword in the title wins.
CONTEXTUAL_SUMMARIES: Sequence[tuple[tuple[str, ...], str]] = (
    (
        ("bitcoin", "btc"),
        "Bitcoin continues to evolve as the world's leading cryptocurrency, with developments "
        "in network upgrades, institutional adoption, and market dynamics. Recent analysis "
        "shows growing confidence among investors and technological improvements that "
        "enhance security and scalability.",
    ),
    (
        ("ethereum", "eth"),
        "Ethereum's ecosystem demonstrates robust growth with smart contract innovations, "
        "decentralized applications, and ongoing network improvements. The platform's "
        "transition to proof-of-stake and layer-2 solutions continues to enhance performance "
        "and reduce environmental impact.",
    ),
    (
        ("defi", "yield", "staking"),
        "Decentralized Finance protocols are reshaping traditional financial services through "
        "innovative lending, borrowing, and yield generation mechanisms. Current developments "
        "focus on security enhancements, user experience improvements, and cross-chain "
        "interoperability solutions.",
    ),
    (
        ("nft", "art", "collection"),
        "The NFT market keeps redefining digital ownership as creators, collectors, and brands "
        "experiment with on-chain art, gaming assets, and membership tokens. Attention is "
        "shifting toward utility, royalties enforcement, and marketplace liquidity as the "
        "sector matures.",
    ),
    (
        ("trading", "market", "price"),
        "Crypto markets remain highly active as traders react to macroeconomic signals, "
        "liquidity shifts, and on-chain flows. Price action across major assets reflects "
        "changing sentiment, with volatility creating both risk and opportunity for "
        "participants.",
    ),
    (
        ("regulation", "sec", "legal"),
        "Regulators around the world are sharpening their approach to digital assets, with new "
        "guidance on exchanges, stablecoins, and token offerings. Legal clarity remains a key "
        "driver of institutional participation and long-term industry growth.",
    ),
)

DEFAULT_CONTEXTUAL_SUMMARY = (
    "The cryptocurrency ecosystem continues advancing through technological innovation, "
    "regulatory clarity, and mainstream adoption. Current developments encompass blockchain "
    "scalability solutions, institutional investment growth, and enhanced security protocols "
    "that strengthen the digital asset infrastructure."
)

_WHITESPACE_RE = re.compile(r"\s+")
_NOISE_RE = re.compile(r"[^\w\s.,!?-]")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


def strip_markup(text: str | None) -> str:
    """Return plain text for provider bodies that may carry HTML or entities."""

    if not text:
        return ""
    if "<" in text and ">" in text:
        soup = BeautifulSoup(text, "lxml")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        text = soup.get_text(" ", strip=True)
    return html.unescape(text).strip()


def build_description(body: str | None, title: str) -> str:
    """Short teaser: the first characters of the body, or the title."""

    if body:
        return body[:DESCRIPTION_LENGTH] + "..."
    return title


def contextual_summary(title: str) -> str:
    """Pick a canned paragraph from keywords found in ``title``."""

    lowered = title.lower()
    for keywords, paragraph in CONTEXTUAL_SUMMARIES:
        if any(keyword in lowered for keyword in keywords):
            return paragraph
    return DEFAULT_CONTEXTUAL_SUMMARY


def _split_sentences(text: str) -> list[str]:
    clean = _WHITESPACE_RE.sub(" ", text)
    clean = _NOISE_RE.sub("", clean).strip()
    fragments = (fragment.strip() for fragment in _SENTENCE_SPLIT_RE.split(clean))
    return [fragment for fragment in fragments if len(fragment) >= MIN_SENTENCE_LENGTH]


def derive_summary(body_text: str | None, title: str | None = None) -> str:
    """Build a short extractive summary of ``body_text``.

    Sentences are taken in order until four are used or the next one would push
    the summary past the word budget; the first sentence is always kept. When the
    body is missing, or the result is too thin and a title is known, a paragraph
    chosen from title keywords is returned instead. Never returns an empty string.
    """

    if not body_text or len(body_text.strip()) < MIN_BODY_LENGTH:
        return contextual_summary(title) if title else GENERIC_SUMMARY

    sentences = _split_sentences(body_text)
    if not sentences:
        return contextual_summary(title) if title else NO_SENTENCE_SUMMARY

    picked: list[str] = []
    word_count = 0
    for index, sentence in enumerate(sentences[:MAX_SENTENCES]):
        sentence_words = len(sentence.split())
        if index > 0 and word_count + sentence_words > TARGET_WORDS:
            break
        picked.append(sentence)
        word_count += sentence_words

    if word_count < MIN_SUMMARY_WORDS and title:
        return contextual_summary(title)

    return " ".join(f"{sentence}." for sentence in picked)


def derive_image_url(
    title: str | None,
    pools: ImagePoolsConfig | None = None,
    rng: random.Random | None = None,
) -> str:
    """Choose an illustrative image for ``title`` from the matching pool."""

    table = pools if pools is not None else DEFAULT_IMAGE_POOLS
    pool = table.pool_for(title)
    chooser = rng.choice if rng is not None else random.choice
    return chooser(pool.urls)
