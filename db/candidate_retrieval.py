"""
candidate_retrieval.py — Catalog candidate retrieval for scene search.

Turns a scene description and its canonical query into at most
MAX_CANDIDATES distinct MovieCandidates pulled from the catalog.

The high-level flow:
  1. Known-title heuristic: distinctive scene terms ("iceberg", "köpekbalığı")
     map to well-known titles, which are searched directly and their top
     KNOWN_TITLE_RESULTS hits admitted.
  2. Canonical term search: the canonical query is tokenized into at most
     MAX_SEARCH_TERMS terms, each searched concurrently. A hit is admitted only
     if it clears the popularity floor and its title + overview + keywords
     contain the term (the precision gate).
  3. Popularity fallback: only when 1 and 2 admitted nothing, page 1 of the
     popular list is scanned for movies mentioning any canonical term.

Merge semantics:
  - A single id-keyed dict collects admissions in a fixed order (known
    titles, then terms in query order, then catalog result order), so the
    output order is deterministic even though the lookups run concurrently.
    First writer wins; ids are never duplicated.
  - Lookups for one term/title that fail are logged and skipped. Only when
    EVERY catalog call made during retrieval failed does the stage raise
    CatalogUnavailableError (a missing TMDB credential counts as that).
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Optional, Sequence, TypeVar

from db.tmdb import CatalogProvider
from implementation.classes.errors import CatalogUnavailableError, ConfigurationError
from implementation.classes.movie import MovieCandidate
from implementation.classes.schemas import SceneDescription, TMDBMovie
from implementation.lookup_tables import (
    KNOWN_TITLE_PATTERNS,
    SEARCH_STOPWORDS,
    KnownTitlePattern,
)
from implementation.misc.helpers import contains_keyword, tokenize_search_terms

logger = logging.getLogger(__name__)

# ===========================================================================
# SECTION 1: CONSTANTS
# ===========================================================================

MAX_CANDIDATES = 30
KNOWN_TITLE_RESULTS = 3
MAX_SEARCH_TERMS = 8
MIN_VOTE_COUNT = 300
CATALOG_CONCURRENCY = 8
# Tokens of this length or shorter are never searched on their own
MIN_SEARCH_TERM_LENGTH = 3

T = TypeVar("T")


# ===========================================================================
# SECTION 2: DATA MODELS
# ===========================================================================

@dataclass(slots=True)
class CatalogCallLedger:
    """
    Counts catalog calls made by one retrieval run.

    Used to tell "some lookups failed" (degrade) apart from "the catalog is
    unreachable" (raise).
    """
    attempted: int = 0
    failed: int = 0
    configuration_error_logged: bool = False

    @property
    def all_failed(self) -> bool:
        return self.attempted > 0 and self.failed == self.attempted


@dataclass(slots=True)
class RetrievalDebug:
    known_titles: list[str] = field(default_factory=list)
    search_terms: list[str] = field(default_factory=list)
    used_popular_fallback: bool = False
    catalog_calls: int = 0
    failed_catalog_calls: int = 0
    latency_ms: float = 0.0


@dataclass(slots=True)
class RetrievalResult:
    candidates: list[MovieCandidate]
    debug: RetrievalDebug


# ===========================================================================
# SECTION 3: PURE HELPERS
# ===========================================================================

def search_terms_for(canonical_query: str, limit: Optional[int] = MAX_SEARCH_TERMS) -> list[str]:
    """
    Standalone catalog search terms from the canonical query.

    Lowercased, split on non-word characters, stopwords and tokens of length
    ≤ 2 removed, deduplicated, capped at `limit` (None for no cap).
    """
    terms = tokenize_search_terms(canonical_query, SEARCH_STOPWORDS, MIN_SEARCH_TERM_LENGTH)
    return terms if limit is None else terms[:limit]


def match_known_titles(
    scene: SceneDescription,
    original_query: str,
    patterns: Sequence[KnownTitlePattern] = KNOWN_TITLE_PATTERNS,
) -> list[str]:
    """Titles whose pattern group fires on the scene tags or the raw query."""
    haystack = " ".join([*scene.all_tags(), original_query or ""]).lower()
    titles: list[str] = []
    for group in patterns:
        hits = sum(1 for pattern in group.patterns if contains_keyword(haystack, pattern))
        if hits >= max(1, group.min_matches) and group.title not in titles:
            titles.append(group.title)
    return titles


def passes_popularity_floor(movie: TMDBMovie, min_vote_count: int = MIN_VOTE_COUNT) -> bool:
    return (movie.vote_count or 0) >= min_vote_count


def has_keyword_intersection(scene: SceneDescription, keywords: Sequence[str]) -> bool:
    """
    True when some movie keyword and some entity/event tag contain one another.

    Movies without keywords, and scenes without entity/event tags, pass.
    """
    if not keywords:
        return True
    scene_terms = [t.lower() for t in [*scene.entities, *scene.events] if t.strip()]
    if not scene_terms:
        return True
    keywords_lower = [k.lower() for k in keywords]
    return any(kw in st or st in kw for kw in keywords_lower for st in scene_terms)


# ===========================================================================
# SECTION 4: RETRIEVER
# ===========================================================================

class CandidateRetriever:
    """
    One retrieval run against a catalog.

    Owns its semaphore, call ledger and keyword memo; create a new instance per
    pipeline invocation.
    """

    def __init__(
        self,
        catalog: CatalogProvider,
        locale: Optional[str] = None,
        *,
        max_candidates: int = MAX_CANDIDATES,
        min_vote_count: int = MIN_VOTE_COUNT,
        concurrency: int = CATALOG_CONCURRENCY,
        require_keyword_intersection: bool = False,
    ):
        self.catalog = catalog
        self.locale = locale
        self.max_candidates = max_candidates
        self.min_vote_count = min_vote_count
        self.require_keyword_intersection = require_keyword_intersection
        self.ledger = CatalogCallLedger()
        self._sem = asyncio.Semaphore(concurrency)
        self._keyword_tasks: dict[int, asyncio.Task[list[str]]] = {}

    async def _call(self, awaitable: Awaitable[T], description: str) -> Optional[T]:
        """Run one catalog call under the semaphore; None (logged) on failure."""
        self.ledger.attempted += 1
        try:
            async with self._sem:
                return await awaitable
        except ConfigurationError as e:
            self.ledger.failed += 1
            if not self.ledger.configuration_error_logged:
                logger.warning("Catalog not configured: %s", e)
                self.ledger.configuration_error_logged = True
            return None
        except Exception as e:
            self.ledger.failed += 1
            logger.warning("Catalog call failed (%s): %s: %s", description, type(e).__name__, e)
            return None

    async def _fetch_keywords(self, movie_id: int) -> list[str]:
        keywords = await self._call(self.catalog.get_movie_keywords(movie_id), f"keywords {movie_id}")
        return keywords or []

    async def keywords_for(self, movie_id: int) -> list[str]:
        """Keywords for a movie, fetched at most once per retrieval run."""
        task = self._keyword_tasks.get(movie_id)
        if task is None:
            task = asyncio.ensure_future(self._fetch_keywords(movie_id))
            self._keyword_tasks[movie_id] = task
        return await task

    async def _known_title_candidates(self, title: str) -> list[MovieCandidate]:
        response = await self._call(
            self.catalog.search_movies(title, page=1, locale=self.locale),
            f"known title {title!r}",
        )
        if response is None:
            return []
        hits = [m for m in response.results[:KNOWN_TITLE_RESULTS] if passes_popularity_floor(m, self.min_vote_count)]
        keyword_lists = await asyncio.gather(*(self.keywords_for(m.id) for m in hits))
        return [MovieCandidate.from_tmdb(m, kws) for m, kws in zip(hits, keyword_lists)]

    async def _gated_candidate(
        self,
        movie: TMDBMovie,
        terms: Sequence[str],
        scene: SceneDescription,
    ) -> Optional[MovieCandidate]:
        """Candidate for `movie` if its text contains any of `terms`, else None."""
        keywords = await self.keywords_for(movie.id)
        candidate = MovieCandidate.from_tmdb(movie, keywords)
        text = candidate.searchable_text()
        if not any(term in text for term in terms):
            return None
        if self.require_keyword_intersection and not has_keyword_intersection(scene, candidate.keywords):
            return None
        return candidate

    async def _term_candidates(self, term: str, scene: SceneDescription) -> list[MovieCandidate]:
        response = await self._call(
            self.catalog.search_movies(term, page=1, locale=self.locale),
            f"term {term!r}",
        )
        if response is None:
            return []
        hits = [m for m in response.results if passes_popularity_floor(m, self.min_vote_count)]
        gated = await asyncio.gather(*(self._gated_candidate(m, [term], scene) for m in hits))
        return [c for c in gated if c is not None]

    async def _popular_candidates(self, terms: Sequence[str], scene: SceneDescription) -> list[MovieCandidate]:
        if not terms:
            return []
        response = await self._call(
            self.catalog.get_popular_movies(page=1, locale=self.locale),
            "popular movies",
        )
        if response is None:
            return []
        hits = [m for m in response.results if passes_popularity_floor(m, self.min_vote_count)]
        gated = await asyncio.gather(*(self._gated_candidate(m, terms, scene) for m in hits))
        return [c for c in gated if c is not None]

    async def retrieve(
        self,
        scene: SceneDescription,
        original_query: str,
        canonical_query: str,
    ) -> RetrievalResult:
        start = time.perf_counter()
        debug = RetrievalDebug()
        debug.known_titles = match_known_titles(scene, original_query)
        debug.search_terms = search_terms_for(canonical_query)

        try:
            known_batches, term_batches = await asyncio.gather(
                asyncio.gather(*(self._known_title_candidates(t) for t in debug.known_titles)),
                asyncio.gather(*(self._term_candidates(t, scene) for t in debug.search_terms)),
            )

            merged: dict[int, MovieCandidate] = {}
            for batch in [*known_batches, *term_batches]:
                for candidate in batch:
                    merged.setdefault(candidate.id, candidate)

            if not merged:
                debug.used_popular_fallback = True
                all_terms = search_terms_for(canonical_query, limit=None)
                for candidate in await self._popular_candidates(all_terms, scene):
                    merged.setdefault(candidate.id, candidate)
        finally:
            for task in self._keyword_tasks.values():
                if not task.done():
                    task.cancel()

        debug.catalog_calls = self.ledger.attempted
        debug.failed_catalog_calls = self.ledger.failed
        debug.latency_ms = round((time.perf_counter() - start) * 1000, 2)

        if self.ledger.all_failed:
            raise CatalogUnavailableError(
                f"All {self.ledger.attempted} catalog calls failed during candidate retrieval"
            )

        candidates = list(merged.values())[: self.max_candidates]
        logger.info(
            "Retrieved %d candidates (known titles=%s, terms=%s, popular fallback=%s) in %.0fms",
            len(candidates), debug.known_titles, debug.search_terms,
            debug.used_popular_fallback, debug.latency_ms,
        )
        return RetrievalResult(candidates=candidates, debug=debug)


async def retrieve_candidates(
    scene: SceneDescription,
    original_query: str,
    canonical_query: str,
    catalog: CatalogProvider,
    locale: Optional[str] = None,
    *,
    require_keyword_intersection: bool = False,
) -> list[MovieCandidate]:
    """
    Retrieve up to MAX_CANDIDATES distinct candidates for a scene.

    Raises:
        CatalogUnavailableError: every catalog call made during retrieval failed.
    """
    retriever = CandidateRetriever(
        catalog,
        locale,
        require_keyword_intersection=require_keyword_intersection,
    )
    result = await retriever.retrieve(scene, original_query, canonical_query)
    return result.candidates
