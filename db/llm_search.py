"""
LLM-only search mode: the instruction model guesses titles directly, and the
catalog is used only to attach ids, posters and backdrops to those guesses.

No candidate retrieval or embedding scoring takes place. Guesses come back
best-first; each is enriched by searching the catalog for "{title} {year}"
and then the bare title, in Turkish and then English locale, stopping at the
first hit that carries artwork.
"""

import asyncio
import contextlib
import logging
from typing import Optional

from db.tmdb import (
    CatalogProvider,
    TMDBClient,
    get_backdrop_url,
    get_poster_url,
    year_from_date,
)
from implementation.classes.enums import SearchLanguage
from implementation.classes.movie import FinalResult
from implementation.classes.schemas import LLMMovieGuess, TMDBMovie
from implementation.llms.generic_methods import JSONGenerator, OpenAIJSONGenerator
from implementation.llms.query_understanding_methods import guess_movies_async

logger = logging.getLogger(__name__)

MAX_GUESSES = 5
ENRICHMENT_LOCALES = ("tr-TR", "en-US")
DEFAULT_DESCRIPTION = "No description available"


def fallback_match_score(rank_index: int) -> int:
    """Score for a guess without match_score: 95, 90, 85, ... floored at 50."""
    return max(50, 95 - 5 * rank_index)


def guess_match_score(guess: LLMMovieGuess, rank_index: int) -> int:
    """
    Model-reported match score on the 0-100 scale.

    match_score is expected in [0, 1]; values above 1 are taken as already
    being percentages.
    """
    if guess.match_score is None:
        return fallback_match_score(rank_index)
    value = guess.match_score * 100 if guess.match_score <= 1 else guess.match_score
    return max(0, min(100, round(value)))


def enrichment_queries(guess: LLMMovieGuess) -> list[tuple[str, str]]:
    """(search text, locale) pairs in the order they are tried."""
    queries: list[tuple[str, str]] = []
    for locale in ENRICHMENT_LOCALES:
        if guess.year:
            queries.append((f"{guess.title} {guess.year}", locale))
        queries.append((guess.title, locale))
    return queries


async def find_catalog_match(guess: LLMMovieGuess, catalog: CatalogProvider) -> Optional[TMDBMovie]:
    """First catalog hit with a poster or backdrop, or None."""
    if guess.title == "Unknown":
        return None
    for text, locale in enrichment_queries(guess):
        try:
            response = await catalog.search_movies(text, page=1, locale=locale)
        except Exception as e:
            logger.warning("Catalog enrichment failed for %r (%s): %s", text, locale, e)
            continue
        first = response.results[0] if response.results else None
        if first is not None and (first.poster_path or first.backdrop_path):
            return first
    return None


def build_guess_result(
    guess: LLMMovieGuess,
    rank_index: int,
    match: Optional[TMDBMovie],
) -> FinalResult:
    if guess.year:
        year = guess.year
    else:
        year = year_from_date(match.release_date if match else "")
    return FinalResult(
        id=match.id if match else rank_index + 1,
        title=guess.title,
        year=year,
        description=guess.description or DEFAULT_DESCRIPTION,
        match_score=guess_match_score(guess, rank_index),
        explanation=guess.reason,
        poster_url=get_poster_url(match.poster_path if match else None),
        backdrop_url=get_backdrop_url(match.backdrop_path if match else None),
        vote_average=match.vote_average if match else None,
    )


async def search_films_with_llm(
    query: str,
    lang: str = "en",
    *,
    llm: Optional[JSONGenerator] = None,
    catalog: Optional[CatalogProvider] = None,
) -> list[FinalResult]:
    """
    Ask the model for its five best guesses and attach catalog artwork.

    Returns [] for blank queries and whenever the model call fails or its
    output does not validate. Guesses resolving to a TMDB id already used by
    a better-ranked guess are dropped.
    """
    if not query or not query.strip():
        return []
    language = SearchLanguage.from_string(lang)

    async with contextlib.AsyncExitStack() as stack:
        if llm is None:
            llm = OpenAIJSONGenerator()
            stack.push_async_callback(llm.aclose)
        if catalog is None:
            catalog = await stack.enter_async_context(TMDBClient())

        try:
            response = await guess_movies_async(query.strip(), language, llm)
        except Exception as e:
            logger.warning("LLM search failed (%s: %s)", type(e).__name__, e)
            return []

        guesses = response.results[:MAX_GUESSES]
        if not guesses:
            return []
        matches = await asyncio.gather(*(find_catalog_match(g, catalog) for g in guesses))

    results: list[FinalResult] = []
    seen_ids: set[int] = set()
    for rank_index, (guess, match) in enumerate(zip(guesses, matches)):
        result = build_guess_result(guess, rank_index, match)
        if result.id in seen_ids:
            logger.debug("Dropping duplicate guess %r (id %d)", guess.title, result.id)
            continue
        seen_ids.add(result.id)
        results.append(result)
    logger.info("LLM search for %r returned %d results", query, len(results))
    return results
