"""
Optional Redis embedding cache shared across searches.

Uses redis.asyncio with an explicit ConnectionPool. decode_responses is False
because the cache stores packed float32 vectors, not strings. When Redis was
never initialized every cache call is a no-op miss, so the pipeline runs
unchanged without it.
"""

import hashlib
import logging
import os
from typing import Optional

import numpy as np
import redis.asyncio as aioredis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

_redis_pool: ConnectionPool | None = None
_redis_client: aioredis.Redis | None = None

ENV_PREFIX: str = os.getenv("REDIS_ENV", "unknown_env")
EMBEDDING_TTL_SECONDS = 7 * 24 * 60 * 60


def get_redis_client() -> aioredis.Redis:
    """Return the shared async Redis client backed by a connection pool."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() at startup.")
    return _redis_client


def redis_key(*parts: str) -> str:
    """Build an environment-prefixed Redis key from one or more parts."""
    return f"{ENV_PREFIX}:{':'.join(parts)}"


async def init_redis(
    host: Optional[str] = None,
    port: Optional[int] = None,
    max_connections: int = 10,
) -> None:
    """Call once at application startup (e.g. FastAPI lifespan)."""
    global _redis_pool, _redis_client
    _redis_pool = ConnectionPool(
        host=host or os.getenv("REDIS_HOST", "redis"),
        port=port or int(os.getenv("REDIS_PORT", "6379")),
        max_connections=max_connections,
        decode_responses=False,  # Embedding cache uses raw binary, never decode globally
    )
    _redis_client = aioredis.Redis(connection_pool=_redis_pool)
    await _redis_client.ping()  # Fail fast if Redis is unreachable at startup


async def close_redis() -> None:
    """Call at application shutdown."""
    global _redis_pool, _redis_client
    if _redis_client:
        await _redis_client.aclose()
    if _redis_pool:
        await _redis_pool.aclose()
    _redis_client = None
    _redis_pool = None


async def check_redis() -> str:
    """Ping Redis and return 'ok', 'not configured' or an error message string."""
    if _redis_client is None:
        return "not configured"
    try:
        await _redis_client.ping()
        return "ok"
    except Exception as e:
        return str(e)


# ---------------------------------------------------------------------------
# Embedding cache
# ---------------------------------------------------------------------------

def embedding_cache_key(model: str, text: str) -> str:
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return redis_key("embedding", model, digest)


def pack_embedding(vector: list[float]) -> bytes:
    return np.asarray(vector, dtype=np.float32).tobytes()


def unpack_embedding(raw: bytes) -> list[float]:
    return np.frombuffer(raw, dtype=np.float32).astype(np.float64).tolist()


async def read_cached_embedding(model: str, text: str) -> Optional[list[float]]:
    """
    Look up a cached embedding.

    Returns None on a miss, when Redis is not initialized, or when Redis
    errors (logged at WARNING); cache trouble never fails a search.
    """
    if _redis_client is None:
        return None
    try:
        raw: Optional[bytes] = await _redis_client.get(embedding_cache_key(model, text))
    except RedisError as e:
        logger.warning("Redis embedding read failed: %s", e)
        return None
    if not raw or len(raw) % 4:
        return None
    return unpack_embedding(raw)


async def write_cached_embedding(model: str, text: str, vector: list[float]) -> None:
    """Store a non-empty embedding with a 7-day TTL. Errors are logged and ignored."""
    if _redis_client is None or not vector:
        return
    try:
        await _redis_client.set(
            embedding_cache_key(model, text),
            pack_embedding(vector),
            ex=EMBEDDING_TTL_SECONDS,
        )
    except RedisError as e:
        logger.warning("Redis embedding write failed: %s", e)
