"""
search.py — Scene search orchestrator.

Runs the six stages in order, each consuming only the previous stage's
output:

    analyze → canonicalize → retrieve → score → (re-rank) → format

Every stage degrades instead of failing (see the stage modules). The only
exception that reaches callers is CatalogUnavailableError, raised when the
catalog could not be reached at all during retrieval.

Collaborators left as None are built from the environment and closed when
the search finishes; injected collaborators are left open.
"""

import contextlib
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from db.candidate_retrieval import CandidateRetriever, RetrievalDebug
from db.embedding_scoring import EmbeddingCache, score_candidates
from db.rerank import MAX_RERANK_CANDIDATES, rerank
from db.result_formatter import format_results
from db.tmdb import CatalogProvider, TMDBClient
from implementation.classes.enums import RerankVariant
from implementation.classes.movie import FinalResult, ScoredMovie
from implementation.classes.schemas import SceneDescription
from implementation.llms.generic_methods import JSONGenerator, OpenAIJSONGenerator, openai_api_key
from implementation.query_canonicalizer import canonicalize
from implementation.scene_analysis import SceneAnalyzer, build_scene_analyzer
from implementation.vectorize import EmbeddingProvider, build_embedding_provider

logger = logging.getLogger(__name__)

MAX_RESULTS = 5


@dataclass(slots=True)
class SceneSearchDebug:
    scene: Optional[SceneDescription] = None
    canonical_query: str = ""
    retrieval: Optional[RetrievalDebug] = None
    scored_count: int = 0
    reranked: bool = False
    stage_latency_ms: dict[str, float] = field(default_factory=dict)
    total_latency_ms: float = 0.0


@dataclass(slots=True)
class SceneSearchResult:
    results: list[FinalResult]
    debug: SceneSearchDebug


class _StageTimer:
    def __init__(self, debug: SceneSearchDebug):
        self.debug = debug
        self._last = time.perf_counter()

    def mark(self, stage: str) -> None:
        now = time.perf_counter()
        self.debug.stage_latency_ms[stage] = round((now - self._last) * 1000, 2)
        self._last = now


async def run_scene_search(
    query: str,
    locale: Optional[str] = None,
    *,
    catalog: Optional[CatalogProvider] = None,
    embedder: Optional[EmbeddingProvider] = None,
    llm: Optional[JSONGenerator] = None,
    analyzer: Optional[SceneAnalyzer] = None,
    use_reranker: bool = True,
    rerank_variant: RerankVariant = RerankVariant.ORDER,
    require_keyword_intersection: bool = False,
) -> SceneSearchResult:
    """
    Full pipeline run with per-stage debug information.

    Raises:
        CatalogUnavailableError: every catalog call during retrieval failed.
    """
    start = time.perf_counter()
    debug = SceneSearchDebug()
    if not query or not query.strip():
        return SceneSearchResult(results=[], debug=debug)
    query = query.strip()

    async with contextlib.AsyncExitStack() as stack:
        if catalog is None:
            catalog = await stack.enter_async_context(TMDBClient())
        if embedder is None:
            embedder = build_embedding_provider()
            stack.push_async_callback(embedder.aclose)
        if llm is None and openai_api_key():
            llm = OpenAIJSONGenerator()
            stack.push_async_callback(llm.aclose)
        analyzer = analyzer or build_scene_analyzer(llm)
        timer = _StageTimer(debug)

        # Stage 1-2: understand the query
        scene = await analyzer.analyze(query)
        debug.scene = scene
        debug.canonical_query = canonicalize(scene, query)
        timer.mark("analyze")
        logger.info("Scene for %r: %s → canonical %r", query, scene, debug.canonical_query)

        # Stage 3: candidates (may raise CatalogUnavailableError)
        retriever = CandidateRetriever(
            catalog,
            locale,
            require_keyword_intersection=require_keyword_intersection,
        )
        retrieval = await retriever.retrieve(scene, query, debug.canonical_query)
        debug.retrieval = retrieval.debug
        timer.mark("retrieve")
        if not retrieval.candidates:
            logger.info("No candidates for %r", query)
            debug.total_latency_ms = round((time.perf_counter() - start) * 1000, 2)
            return SceneSearchResult(results=[], debug=debug)

        # Stage 4: similarity
        scored: list[ScoredMovie] = await score_candidates(
            debug.canonical_query,
            retrieval.candidates,
            embedder,
            cache=EmbeddingCache(embedder),
            original_query=query,
        )
        debug.scored_count = len(scored)
        timer.mark("score")

        top: list[ScoredMovie] = scored[:MAX_RERANK_CANDIDATES]

        # Stage 5: optional re-rank
        if use_reranker and llm is not None and top:
            top = await rerank(query, top, llm, variant=rerank_variant)
            debug.reranked = True
            timer.mark("rerank")

        # Stage 6: presentation
        results = await format_results(top[:MAX_RESULTS], catalog, locale)
        timer.mark("format")

    debug.total_latency_ms = round((time.perf_counter() - start) * 1000, 2)
    logger.info("Scene search for %r returned %d results in %.0fms", query, len(results), debug.total_latency_ms)
    return SceneSearchResult(results=results, debug=debug)


async def search_films_by_scene(
    query: str,
    locale: Optional[str] = None,
    *,
    catalog: Optional[CatalogProvider] = None,
    embedder: Optional[EmbeddingProvider] = None,
    llm: Optional[JSONGenerator] = None,
    analyzer: Optional[SceneAnalyzer] = None,
    use_reranker: bool = True,
) -> list[FinalResult]:
    """
    Find movies matching a remembered scene.

    Returns at most five results, best first; an empty list when nothing
    matched or the query is blank.

    Raises:
        CatalogUnavailableError: the catalog could not be reached.
    """
    outcome = await run_scene_search(
        query,
        locale,
        catalog=catalog,
        embedder=embedder,
        llm=llm,
        analyzer=analyzer,
        use_reranker=use_reranker,
    )
    return outcome.results
