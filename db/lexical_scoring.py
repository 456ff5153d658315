"""
Deterministic text-overlap scorer used when embeddings are unavailable.

Score composition (0-100):
    +50  title contains the full query
    +30  x fraction of query words matching a title word
    +20  overview contains the full query
    +10  x fraction of query words matching an overview word

A query word "matches" a text word when either contains the other.
"""

from implementation.misc.helpers import split_query_words

FULL_TITLE_MATCH_POINTS = 50
TITLE_WORD_POINTS = 30
FULL_OVERVIEW_MATCH_POINTS = 20
OVERVIEW_WORD_POINTS = 10


def _word_overlap_fraction(query_words: list[str], text_words: list[str]) -> float:
    if not query_words or not text_words:
        return 0.0
    matched = sum(
        1 for q in query_words
        if any(q in w or w in q for w in text_words)
    )
    return matched / len(query_words)


def simple_score(query: str, title: str, overview: str) -> int:
    """
    Lexical relevance of a movie to a query, in [0, 100].

    Pure and deterministic. Empty queries score 0.

    Examples:
        >>> simple_score("titanic", "Titanic", "")
        80
    """
    query_lower = (query or "").strip().lower()
    query_words = split_query_words(query_lower)
    if not query_lower or not query_words:
        return 0

    title_lower = (title or "").lower()
    overview_lower = (overview or "").lower()

    score = 0.0
    if query_lower in title_lower:
        score += FULL_TITLE_MATCH_POINTS
    score += TITLE_WORD_POINTS * _word_overlap_fraction(query_words, split_query_words(title_lower))

    if overview_lower and query_lower in overview_lower:
        score += FULL_OVERVIEW_MATCH_POINTS
    score += OVERVIEW_WORD_POINTS * _word_overlap_fraction(query_words, split_query_words(overview_lower))

    return max(0, min(100, round(score)))
