from typing import Any, Sequence

from pydantic import ValidationError

from implementation.llms.generic_methods import JSONGenerator
from implementation.prompts.scene_prompts import (
    SCENE_ANALYSIS_SYSTEM_PROMPT,
    build_scene_analysis_user_prompt,
)
from implementation.prompts.rerank_prompts import (
    RERANK_ORDER_SYSTEM_PROMPT,
    RERANK_BEST_MATCH_SYSTEM_PROMPT,
    build_rerank_user_prompt,
)
from implementation.prompts.llm_search_prompts import (
    LLM_SEARCH_SYSTEM_PROMPT,
    build_llm_search_user_prompt,
)
from implementation.classes.enums import SearchLanguage
from implementation.classes.errors import MalformedResponseError
from implementation.classes.movie import ScoredMovie
from implementation.classes.schemas import (
    SceneDescription,
    SceneExtractionResponse,
    RerankBestMatchResponse,
    LLMMovieGuessesResponse,
)


# ===============================
#       Scene Extraction
# ===============================

async def extract_scene_description_async(query: str, llm: JSONGenerator) -> SceneDescription:
    """
        Extract a structured scene description from the query.
        Throws an error if anything fails (provider error or invalid shape).
    """
    data = await llm.complete_json(
        system_prompt=SCENE_ANALYSIS_SYSTEM_PROMPT,
        user_prompt=build_scene_analysis_user_prompt(query),
        temperature=0.1,
    )
    try:
        return SceneExtractionResponse.model_validate(data).to_scene()
    except ValidationError as e:
        raise MalformedResponseError(f"Invalid scene description structure: {e}") from e


# ===============================
#          Re-ranking
# ===============================

async def request_rerank_order_async(
    query: str,
    candidates: Sequence[ScoredMovie],
    llm: JSONGenerator,
) -> dict[str, Any]:
    """
        Ask the model to order the candidates. Returns the raw decoded object;
        index/confidence sanitizing is the re-ranker's job.
    """
    return await llm.complete_json(
        system_prompt=RERANK_ORDER_SYSTEM_PROMPT,
        user_prompt=build_rerank_user_prompt(query, candidates),
        temperature=0.2,
    )


async def request_best_match_async(
    query: str,
    candidates: Sequence[ScoredMovie],
    llm: JSONGenerator,
) -> RerankBestMatchResponse:
    """Ask the model for the single best match among the candidates."""
    data = await llm.complete_json(
        system_prompt=RERANK_BEST_MATCH_SYSTEM_PROMPT,
        user_prompt=build_rerank_user_prompt(query, candidates),
        temperature=0.2,
    )
    try:
        return RerankBestMatchResponse.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(f"Invalid best-match response: {e}") from e


# ===============================
#        LLM-only Search
# ===============================

async def guess_movies_async(
    query: str,
    language: SearchLanguage,
    llm: JSONGenerator,
) -> LLMMovieGuessesResponse:
    """Ask the model for its five best movie guesses for a scene."""
    data = await llm.complete_json(
        system_prompt=LLM_SEARCH_SYSTEM_PROMPT,
        user_prompt=build_llm_search_user_prompt(query, language),
        temperature=0.3,
    )
    try:
        return LLMMovieGuessesResponse.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(f"Invalid movie guesses response: {e}") from e
