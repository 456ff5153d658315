"""
Turns the final ScoredMovies into externally visible FinalResults.

Presentation metadata (poster, backdrop, vote average) comes from one
catalog details lookup per result. A failed lookup degrades that result to
the candidate's summary data and placeholder images; it never drops it.
"""

import asyncio
import logging
from typing import Optional, Sequence

from db.tmdb import CatalogProvider, get_backdrop_url, get_poster_url, year_from_date
from implementation.classes.movie import FinalResult, ScoredMovie
from implementation.classes.schemas import TMDBMovieDetails

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "No description available"
DEFAULT_EXPLANATION = "Matched based on scene description"


def to_match_score(embedding_score: float) -> int:
    return max(0, min(100, round(embedding_score * 100)))


def build_final_result(scored: ScoredMovie, details: Optional[TMDBMovieDetails] = None) -> FinalResult:
    """Pure assembly of a FinalResult from a scored candidate and optional details."""
    movie = scored.movie
    poster_path = (details.poster_path if details else None) or movie.poster_path
    backdrop_path = (details.backdrop_path if details else None) or movie.backdrop_path
    vote_average = details.vote_average if details is not None else movie.vote_average

    return FinalResult(
        id=movie.id,
        title=movie.title,
        year=year_from_date(movie.release_date or (details.release_date if details else "")),
        description=movie.overview or DEFAULT_DESCRIPTION,
        match_score=to_match_score(scored.embedding_score),
        explanation=scored.explanation or DEFAULT_EXPLANATION,
        poster_url=get_poster_url(poster_path),
        backdrop_url=get_backdrop_url(backdrop_path),
        vote_average=vote_average,
    )


async def format_result(
    scored: ScoredMovie,
    catalog: CatalogProvider,
    locale: Optional[str] = None,
) -> FinalResult:
    details: Optional[TMDBMovieDetails] = None
    try:
        details = await catalog.get_movie_details(scored.id, locale=locale)
    except Exception as e:
        logger.warning("Details lookup failed for movie %d (%s: %s); using summary data", scored.id, type(e).__name__, e)
    return build_final_result(scored, details)


async def format_results(
    scored_list: Sequence[ScoredMovie],
    catalog: CatalogProvider,
    locale: Optional[str] = None,
) -> list[FinalResult]:
    """
    Format concurrently, preserving input order.

    A candidate whose formatting raised is excluded from the output.
    """
    outcomes = await asyncio.gather(
        *(format_result(s, catalog, locale) for s in scored_list),
        return_exceptions=True,
    )
    results: list[FinalResult] = []
    for scored, outcome in zip(scored_list, outcomes):
        if isinstance(outcome, BaseException):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            logger.warning("Dropping movie %d: formatting failed (%s)", scored.id, outcome)
            continue
        results.append(outcome)
    return results
