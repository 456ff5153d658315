"""
Helper functions for text handling across the scene search pipeline.

This module contains utility functions for normalization, tokenization and
deduplication of scene tags and search terms.
"""

from functools import lru_cache
from typing import Iterable, Pattern

import unicodedata
import re


_WORD_SPLIT_RE = re.compile(r"[^\w]+", re.UNICODE)
_EDGE_PUNCTUATION = ".,;:!?\"'()[]{}«»“”‘’-"


def normalize_string(text: str) -> str:
    """
    Normalize a string for enum and title lookups.

    Applies the following transformations in order:
    1. Unicode NFC normalization
    2. Lowercase (Unicode-aware case folding)
    3. Diacritic/accent removal (é → e, ğ → g, etc.)
    4. Punctuation handling:
       - Hyphens (-) → preserved
       - Apostrophes (') → removed (no space)
       - Periods (.) → removed (no space)
       - All other punctuation → space
    5. Collapse multiple spaces to single space
    6. Trim leading/trailing whitespace

    Args:
        text: The input string to normalize.

    Returns:
        The normalized string. Returns empty string if input is empty or
        whitespace-only.

    Examples:
        >>> normalize_string("Spider-Man")
        'spider-man'
        >>> normalize_string("Ocean's Eleven")
        'oceans eleven'
        >>> normalize_string("Amélie")
        'amelie'
        >>> normalize_string("L.A. Confidential")
        'la confidential'
    """
    if not text:
        return ""

    normalized = unicodedata.normalize("NFC", text)
    normalized = normalized.casefold()

    # Decompose characters into base + combining marks (NFD), then remove combining marks
    normalized = unicodedata.normalize("NFD", normalized)
    normalized = "".join(
        char for char in normalized
        if unicodedata.category(char) != "Mn"  # Mn = Mark, Nonspacing (combining diacritics)
    )

    # Dotless ı survives NFD; fold it so Turkish titles compare with their ASCII spelling
    normalized = normalized.replace("ı", "i")

    normalized = re.sub(r"[''ʼ`']", "", normalized)
    normalized = re.sub(r"\.", "", normalized)
    normalized = re.sub(r"[^\w\s\-]", " ", normalized)
    normalized = re.sub(r"\s+", " ", normalized)

    return normalized.strip()


def dedupe_preserve_order(values: Iterable[str]) -> list[str]:
    """Deduplicate strings while preserving first-seen order."""
    return list(dict.fromkeys(values))


def tokenize_search_terms(
    text: str,
    stopwords: frozenset[str] = frozenset(),
    min_length: int = 3,
) -> list[str]:
    """
    Split text into lowercase search terms.

    Splits on any non-word character, drops stopwords and tokens shorter than
    `min_length`, and deduplicates while preserving order.

    Examples:
        >>> tokenize_search_terms("A ship hits an iceberg, and sinks", frozenset({"and"}))
        ['ship', 'hits', 'iceberg', 'sinks']
    """
    if not text:
        return []
    tokens = (token for token in _WORD_SPLIT_RE.split(text.lower()) if token)
    return dedupe_preserve_order(
        token for token in tokens
        if len(token) >= min_length and token not in stopwords
    )


def split_query_words(text: str, min_length: int = 2) -> list[str]:
    """
    Whitespace-split lowercase words with surrounding punctuation stripped.

    Unlike tokenize_search_terms, inner punctuation is kept and duplicates are
    preserved so word fractions reflect the query as written.
    """
    words = (word.strip(_EDGE_PUNCTUATION) for word in (text or "").lower().split())
    return [word for word in words if len(word) >= min_length]


def truncate(text: str, limit: int) -> str:
    """Cut text to at most `limit` characters."""
    return (text or "")[:limit]


@lru_cache(maxsize=None)
def keyword_pattern(keyword: str, whole_word: bool = False) -> Pattern[str]:
    """
    Compile a pattern matching `keyword` only where a word begins, and with
    `whole_word` only where that word also ends.

    Stems still catch inflections ("sink" matches "sinks", "buzdağı" matches
    "buzdağına") but never the inside of another word ("hit" does not match
    "white", "ship" does not match "friendship").
    """
    tail = r"(?!\w)" if whole_word else ""
    return re.compile(r"(?<!\w)" + re.escape(keyword) + tail)


def contains_keyword(text: str, keyword: str, whole_word: bool = False) -> bool:
    """True when `keyword` starts a word of `text` (or is one, with `whole_word`)."""
    return keyword_pattern(keyword, whole_word).search(text or "") is not None
