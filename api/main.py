import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from db.llm_search import search_films_with_llm
from db.redis import init_redis, close_redis, check_redis
from db.search import search_films_by_scene
from db.tmdb import check_tmdb
from implementation.classes.errors import CatalogUnavailableError
from implementation.classes.movie import FinalResult
from implementation.llms.generic_methods import check_openai
from implementation.vectorize import check_embedding

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan handler for the optional Redis embedding cache.

    Connects on startup when REDIS_HOST is set and closes the pool on shutdown.
    An unreachable Redis is logged and the service runs without the shared
    cache, since every search works without it.
    """
    if os.getenv("REDIS_HOST"):
        try:
            await init_redis()
            logger.info("Redis embedding cache enabled")
        except Exception as e:
            logger.warning("Redis unavailable, continuing without embedding cache: %s", e)
            await close_redis()
    yield
    await close_redis()


app = FastAPI(lifespan=lifespan)


class SceneSearchRequest(BaseModel):
    query: str
    locale: Optional[str] = None
    rerank: bool = True


class LLMSearchRequest(BaseModel):
    query: str
    lang: str = Field(default="en")


@app.get("/health")
async def health_check():
    """
    Health check endpoint that validates connectivity to all external services.

    Returns a dictionary with status for each service:
    - tmdb: 'ok', 'not configured' or error message
    - openai: 'ok', 'not configured' or error message
    - embedding: 'ok', 'not configured' or error message
    - redis: 'ok', 'not configured' or error message (optional cache)
    """
    results = {}
    results["tmdb"] = await check_tmdb()
    results["openai"] = await check_openai()
    results["embedding"] = await check_embedding()
    results["redis"] = await check_redis()
    return results


@app.post("/search", response_model=list[FinalResult])
async def search_endpoint(request: SceneSearchRequest):
    """Scene search pipeline: up to five movies, best first."""
    if not request.query.strip():
        raise HTTPException(status_code=400, detail="query must not be empty")
    try:
        return await search_films_by_scene(
            request.query,
            request.locale,
            use_reranker=request.rerank,
        )
    except CatalogUnavailableError as e:
        logger.error("Catalog unavailable for %r: %s", request.query, e)
        raise HTTPException(status_code=503, detail="Movie catalog is unavailable") from e


@app.post("/search/llm", response_model=list[FinalResult])
async def llm_search_endpoint(request: LLMSearchRequest):
    """LLM-only guessing mode with catalog artwork."""
    if not request.query.strip():
        raise HTTPException(status_code=400, detail="query must not be empty")
    return await search_films_with_llm(request.query, request.lang)
