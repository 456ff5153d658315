"""
TMDB API client: the read-only movie catalog behind candidate retrieval,
result formatting and the LLM-only search mode.

Uses httpx.AsyncClient with Bearer token authentication (TMDB_ACCESS_TOKEN),
or the v3 api_key query parameter (TMDB_API_KEY) when no token is set.
Requests are bounded by a semaphore to respect TMDB's rate limits, and
transport errors and 429 responses are retried with exponential back-off.
"""

import asyncio
import logging
import os
from datetime import date
from typing import Any, Optional, Protocol

import httpx
from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError

from implementation.classes.errors import (
    ConfigurationError,
    MalformedResponseError,
    ProviderUnavailableError,
)
from implementation.classes.schemas import (
    TMDBKeywordsResponse,
    TMDBMovieDetails,
    TMDBSearchResponse,
)

load_dotenv()

logger = logging.getLogger(__name__)

_TMDB_BASE_URL = "https://api.themoviedb.org/3"
_SEMAPHORE_LIMIT = 10    # max concurrent requests (~40 req/10 s TMDB limit)
_MAX_RETRIES = 3
_RETRY_BACKOFF_BASE = 1.0  # seconds; doubles on each retry
_REQUEST_TIMEOUT = 30.0
_DEFAULT_LANGUAGE = "en-US"

POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"
BACKDROP_BASE_URL = "https://image.tmdb.org/t/p/w1280"
PLACEHOLDER_POSTER = "https://via.placeholder.com/500x750?text=No+Poster"


# ===============================
#        Presentation URLs
# ===============================

def get_poster_url(poster_path: Optional[str]) -> str:
    """Full w500 poster URL, or the placeholder image when there is no path."""
    return f"{POSTER_BASE_URL}{poster_path}" if poster_path else PLACEHOLDER_POSTER


def get_backdrop_url(backdrop_path: Optional[str]) -> Optional[str]:
    return f"{BACKDROP_BASE_URL}{backdrop_path}" if backdrop_path else None


def year_from_date(release_date: Optional[str], default: Optional[int] = None) -> int:
    """
    Year of an ISO 'YYYY-MM-DD' date.

    Empty or unparseable dates fall back to `default`, or the current year
    when no default is given.
    """
    fallback = default if default is not None else date.today().year
    if not release_date:
        return fallback
    head = release_date.strip()[:4]
    if len(head) == 4 and head.isdigit() and int(head) > 0:
        return int(head)
    return fallback


# ===============================
#         Catalog Protocol
# ===============================

class CatalogProvider(Protocol):
    """Read-only movie catalog consumed by the pipeline stages."""

    async def search_movies(
        self, text: str, page: int = 1, locale: Optional[str] = None
    ) -> TMDBSearchResponse: ...

    async def get_movie_details(
        self, movie_id: int, locale: Optional[str] = None
    ) -> TMDBMovieDetails: ...

    async def get_movie_keywords(self, movie_id: int) -> list[str]: ...

    async def get_popular_movies(
        self, page: int = 1, locale: Optional[str] = None
    ) -> TMDBSearchResponse: ...


# ===============================
#           HTTP Client
# ===============================

class TMDBClient:
    """
    Async TMDB client implementing CatalogProvider.

    Credentials are read at construction; a client with no credential raises
    ConfigurationError on its first request. Use as an async context manager
    (or call aclose()) to release the underlying connection pool.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        api_key: Optional[str] = None,
        language: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = _TMDB_BASE_URL,
        concurrency: int = _SEMAPHORE_LIMIT,
    ):
        self.access_token = access_token if access_token is not None else os.getenv("TMDB_ACCESS_TOKEN")
        self.api_key = api_key if api_key is not None else os.getenv("TMDB_API_KEY")
        self.language = language or os.getenv("TMDB_LANGUAGE", _DEFAULT_LANGUAGE)
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._sem = asyncio.Semaphore(concurrency)

    @property
    def is_configured(self) -> bool:
        return bool(self.access_token or self.api_key)

    def _auth(self) -> tuple[dict[str, str], dict[str, str]]:
        """(headers, query params) carrying the configured credential."""
        if self.access_token:
            return {"Authorization": f"Bearer {self.access_token}"}, {}
        if self.api_key:
            return {}, {"api_key": self.api_key}
        raise ConfigurationError("Neither TMDB_ACCESS_TOKEN nor TMDB_API_KEY is set")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(_REQUEST_TIMEOUT))
        return self._client

    async def _get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """
        GET one TMDB endpoint and return the decoded JSON body.

        Retries on transient transport errors and 429 rate-limit responses
        with exponential back-off (Retry-After wins when present).

        Raises:
            ConfigurationError: no credential configured.
            ProviderUnavailableError: retries exhausted or non-retryable HTTP error.
            MalformedResponseError: body is not JSON.
        """
        headers, auth_params = self._auth()
        query = {**(params or {}), **auth_params}
        url = f"{self.base_url}{path}"
        client = self._get_client()

        for attempt in range(1, _MAX_RETRIES + 1):
            async with self._sem:
                try:
                    response = await client.get(url, params=query, headers=headers)
                except httpx.TransportError as exc:
                    if attempt == _MAX_RETRIES:
                        raise ProviderUnavailableError(f"TMDB request to {path} failed: {exc!r}") from exc
                    wait = _RETRY_BACKOFF_BASE * (2 ** (attempt - 1))
                    logger.warning(
                        "TMDB transport error on %s (attempt %d/%d): %s; retrying in %.1fs",
                        path, attempt, _MAX_RETRIES, exc, wait,
                    )
                    await asyncio.sleep(wait)
                    continue

            if response.status_code == 429:
                if attempt == _MAX_RETRIES:
                    raise ProviderUnavailableError(f"TMDB rate limit persisted on {path}")
                retry_after = _retry_after_seconds(response, attempt)
                logger.warning("TMDB rate-limited on %s; sleeping %.1fs", path, retry_after)
                await asyncio.sleep(retry_after)
                continue

            if response.is_error:
                raise ProviderUnavailableError(f"TMDB returned {response.status_code} for {path}")

            try:
                return response.json()
            except ValueError as exc:
                raise MalformedResponseError(f"TMDB returned non-JSON body for {path}") from exc

        raise ProviderUnavailableError(f"Failed to fetch {path} after {_MAX_RETRIES} attempts")  # unreachable

    async def _get_model(self, model: type[BaseModel], path: str, params: Optional[dict[str, Any]] = None):
        data = await self._get_json(path, params)
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise MalformedResponseError(f"Unexpected TMDB payload for {path}: {exc}") from exc

    # -----------------------------
    #       CatalogProvider
    # -----------------------------

    async def search_movies(
        self, text: str, page: int = 1, locale: Optional[str] = None
    ) -> TMDBSearchResponse:
        return await self._get_model(
            TMDBSearchResponse,
            "/search/movie",
            {
                "query": text,
                "page": page,
                "include_adult": "false",
                "language": locale or self.language,
            },
        )

    async def get_movie_details(self, movie_id: int, locale: Optional[str] = None) -> TMDBMovieDetails:
        return await self._get_model(
            TMDBMovieDetails,
            f"/movie/{movie_id}",
            {"language": locale or self.language},
        )

    async def get_movie_keywords(self, movie_id: int) -> list[str]:
        response = await self._get_model(TMDBKeywordsResponse, f"/movie/{movie_id}/keywords")
        return [keyword.name for keyword in response.keywords]

    async def get_popular_movies(self, page: int = 1, locale: Optional[str] = None) -> TMDBSearchResponse:
        return await self._get_model(
            TMDBSearchResponse,
            "/movie/popular",
            {"page": page, "language": locale or self.language},
        )

    # -----------------------------
    #          Lifecycle
    # -----------------------------

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "TMDBClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def _retry_after_seconds(response: httpx.Response, attempt: int) -> float:
    fallback = _RETRY_BACKOFF_BASE * 2 ** attempt
    try:
        return max(0.0, float(response.headers.get("Retry-After", fallback)))
    except ValueError:
        return fallback


async def check_tmdb() -> str:
    """Hit /configuration and return 'ok', 'not configured' or an error message string."""
    async with TMDBClient() as client:
        if not client.is_configured:
            return "not configured"
        try:
            await client._get_json("/configuration")
            return "ok"
        except Exception as e:
            return str(e)
