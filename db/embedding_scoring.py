"""
embedding_scoring.py — Embedding similarity scoring of retrieved candidates.

There is no stored index. Each pipeline run embeds the canonical query once
and, per candidate, its overview, title and first MAX_KEYWORDS_PER_CANDIDATE
keywords, then fuses the field cosine similarities into one score in [0, 1].

Fusion:
    overview            FIELD_WEIGHTS["overview"]  (0.6)
    max(keyword sims)   FIELD_WEIGHTS["keywords"]  (0.3)
    title               FIELD_WEIGHTS["title"]     (0.1)

  - A field that is absent (empty overview, no keywords) or whose embeddings
    all failed drops out and the remaining weights are renormalized to sum to
    1. A title-only candidate scores exactly its title similarity.
  - Negative cosines are clamped to 0 before fusion.
  - Candidates fusing below the similarity floor are dropped.

Fallbacks:
  - Query embedding fails (exception or empty vector): every candidate gets
    simple_score / 100 against the raw user query (the canonical query when
    none is given), zero scores are dropped, no similarity floor.
  - Every field embedding of one candidate fails: that candidate alone is
    scored lexically.
  - Anything else going wrong for one candidate skips that candidate.

Concurrency: candidates fan out through asyncio.gather; embedding requests
are bounded by EMBEDDING_CONCURRENCY and deduplicated by content through a
per-invocation EmbeddingCache (optionally backed by the shared Redis cache).
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from db.lexical_scoring import simple_score
from db.redis import read_cached_embedding, write_cached_embedding
from implementation.classes.enums import ScoringMethod
from implementation.classes.movie import MovieCandidate, ScoredMovie
from implementation.vectorize import EmbeddingProvider, cosine_similarity

logger = logging.getLogger(__name__)

# ===========================================================================
# SECTION 1: CONSTANTS
# ===========================================================================

FIELD_WEIGHTS: dict[str, float] = {
    "overview": 0.6,
    "keywords": 0.3,
    "title": 0.1,
}
MIN_SIMILARITY = 0.20
MAX_KEYWORDS_PER_CANDIDATE = 5
EMBEDDING_CONCURRENCY = 8


def min_similarity() -> float:
    """Similarity floor, overridable through SCENE_MIN_SIMILARITY."""
    raw = os.getenv("SCENE_MIN_SIMILARITY")
    if not raw:
        return MIN_SIMILARITY
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric SCENE_MIN_SIMILARITY=%r", raw)
        return MIN_SIMILARITY


# ===========================================================================
# SECTION 2: EMBEDDING CACHE
# ===========================================================================

class EmbeddingCache:
    """
    Content-keyed embedding memo for one scoring run.

    Identical texts (including concurrent requests for the same text) hit the
    provider once. Failures are memoized too: every awaiter of a failed text
    sees the same exception. When `use_shared_cache` is set, the Redis cache is
    consulted before the provider and filled after it.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        concurrency: int = EMBEDDING_CONCURRENCY,
        use_shared_cache: bool = True,
    ):
        self.embedder = embedder
        self.model = getattr(embedder, "model", None) or type(embedder).__name__
        self.use_shared_cache = use_shared_cache
        self._sem = asyncio.Semaphore(concurrency)
        self._tasks: dict[str, asyncio.Task[list[float]]] = {}
        self.provider_calls = 0

    async def _compute(self, text: str) -> list[float]:
        if self.use_shared_cache:
            cached = await read_cached_embedding(self.model, text)
            if cached:
                return cached
        async with self._sem:
            self.provider_calls += 1
            vector = await self.embedder.embed(text)
        vector = list(vector or [])
        if vector and self.use_shared_cache:
            await write_cached_embedding(self.model, text, vector)
        return vector

    async def embed(self, text: str) -> list[float]:
        task = self._tasks.get(text)
        if task is None:
            task = asyncio.ensure_future(self._compute(text))
            self._tasks[text] = task
        return await task

    def cancel_pending(self) -> None:
        for task in self._tasks.values():
            if not task.done():
                task.cancel()


# ===========================================================================
# SECTION 3: FUSION
# ===========================================================================

@dataclass(slots=True)
class FieldSimilarities:
    """
    Per-field similarities of one candidate.

    None means the field was absent or every embedding for it failed, which
    is different from a measured similarity of 0.0.
    """
    overview: Optional[float] = None
    keywords: Optional[float] = None
    title: Optional[float] = None

    def present(self) -> dict[str, float]:
        return {
            name: value
            for name, value in (("overview", self.overview), ("keywords", self.keywords), ("title", self.title))
            if value is not None
        }


def fuse_field_scores(sims: FieldSimilarities, weights: dict[str, float] = FIELD_WEIGHTS) -> Optional[float]:
    """
    Weighted fusion with renormalization over present fields.

    Returns None when no field is present. Result is in [0, 1].

    Examples:
        >>> fuse_field_scores(FieldSimilarities(title=0.5))
        0.5
    """
    present = sims.present()
    total_weight = sum(weights[name] for name in present)
    if not present or total_weight <= 0:
        return None
    fused = sum(weights[name] * max(0.0, value) for name, value in present.items()) / total_weight
    return max(0.0, min(1.0, fused))


def lexical_scored(query: str, candidate: MovieCandidate) -> ScoredMovie:
    return ScoredMovie(
        movie=candidate,
        embedding_score=simple_score(query, candidate.title, candidate.overview) / 100,
        scoring_method=ScoringMethod.LEXICAL,
    )


def sort_scored(scored: list[ScoredMovie]) -> list[ScoredMovie]:
    """Score descending, ties broken by ascending id."""
    return sorted(scored, key=lambda s: (-s.embedding_score, s.id))


# ===========================================================================
# SECTION 4: SCORING
# ===========================================================================

async def _field_similarity(cache: EmbeddingCache, query_vector: list[float], text: str) -> Optional[float]:
    """Clamped cosine similarity of `text` to the query, None if embedding failed."""
    try:
        vector = await cache.embed(text)
    except Exception as e:
        logger.debug("Embedding failed for %r: %s: %s", text[:60], type(e).__name__, e)
        return None
    if not vector:
        return None
    return max(0.0, cosine_similarity(query_vector, vector))


async def candidate_field_similarities(
    cache: EmbeddingCache,
    query_vector: list[float],
    candidate: MovieCandidate,
) -> FieldSimilarities:
    overview = candidate.overview.strip()
    title = candidate.title.strip()
    keywords = [k for k in candidate.keywords[:MAX_KEYWORDS_PER_CANDIDATE] if k.strip()]

    async def _maybe(text: str) -> Optional[float]:
        return await _field_similarity(cache, query_vector, text) if text else None

    overview_sim, title_sim, *keyword_sims = await asyncio.gather(
        _maybe(overview),
        _maybe(title),
        *(_maybe(k) for k in keywords),
    )
    valid_keyword_sims = [s for s in keyword_sims if s is not None]
    return FieldSimilarities(
        overview=overview_sim,
        keywords=max(valid_keyword_sims) if valid_keyword_sims else None,
        title=title_sim,
    )


async def _score_one(
    cache: EmbeddingCache,
    lexical_query: str,
    query_vector: list[float],
    candidate: MovieCandidate,
) -> Optional[ScoredMovie]:
    try:
        sims = await candidate_field_similarities(cache, query_vector, candidate)
        fused = fuse_field_scores(sims)
        if fused is None:
            logger.debug("No field embeddings for movie %d; scoring lexically", candidate.id)
            return lexical_scored(lexical_query, candidate)
        return ScoredMovie(movie=candidate, embedding_score=fused)
    except Exception as e:
        logger.warning("Failed to score movie %d: %s: %s", candidate.id, type(e).__name__, e)
        return None


def score_lexically(query: str, candidates: Sequence[MovieCandidate]) -> list[ScoredMovie]:
    """Whole-batch lexical fallback; drops candidates scoring 0."""
    scored = [lexical_scored(query, c) for c in candidates]
    return sort_scored([s for s in scored if s.embedding_score > 0])


async def score_candidates(
    canonical_query: str,
    candidates: Sequence[MovieCandidate],
    embedder: EmbeddingProvider,
    *,
    threshold: Optional[float] = None,
    cache: Optional[EmbeddingCache] = None,
    original_query: Optional[str] = None,
) -> list[ScoredMovie]:
    """
    Score candidates against the canonical query.

    Args:
        canonical_query: Output of the canonicalizer.
        candidates: Distinct candidates from retrieval.
        embedder: Embedding provider.
        threshold: Similarity floor; defaults to min_similarity().
        cache: Embedding memo to use; a fresh one is created when omitted.
        original_query: The user's raw query, used for lexical scoring so
            whole-query title and overview matches stay reachable. Defaults
            to the canonical query.

    Returns:
        ScoredMovies sorted by score descending (ties by id). Never raises
        for provider failures.
    """
    if not candidates:
        return []

    start = time.perf_counter()
    floor = min_similarity() if threshold is None else threshold
    cache = cache or EmbeddingCache(embedder)
    lexical_query = (original_query or "").strip() or canonical_query

    query_vector: list[float] = []
    try:
        query_vector = await cache.embed(canonical_query)
        if not query_vector:
            logger.warning("Query embedding is empty; falling back to lexical scoring")
    except Exception as e:
        logger.warning("Query embedding failed (%s: %s); falling back to lexical scoring", type(e).__name__, e)

    if not query_vector:
        return score_lexically(lexical_query, candidates)

    try:
        results = await asyncio.gather(
            *(_score_one(cache, lexical_query, query_vector, c) for c in candidates)
        )
    finally:
        cache.cancel_pending()

    kept = [
        s for s in results
        if s is not None and (
            s.embedding_score > 0 if s.scoring_method is ScoringMethod.LEXICAL else s.embedding_score >= floor
        )
    ]
    logger.info(
        "Scored %d/%d candidates above %.2f with %d embedding calls in %.0fms",
        len(kept), len(candidates), floor, cache.provider_calls,
        (time.perf_counter() - start) * 1000,
    )
    return sort_scored(kept)
