"""Unit tests for api.main endpoints."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from api.main import app, health_check
from implementation.classes.errors import CatalogUnavailableError
from implementation.classes.movie import FinalResult

TITANIC_RESULT = FinalResult(
    id=597,
    title="Titanic",
    year=1997,
    description="Ship meets iceberg.",
    match_score=88,
    explanation="Matched based on scene description",
    poster_url="https://image.tmdb.org/t/p/w500/titanic.jpg",
    vote_average=7.9,
)


def _patch_checks(mocker, **overrides) -> None:
    for name in ("tmdb", "openai", "embedding", "redis"):
        mocker.patch(f"api.main.check_{name}", new=AsyncMock(return_value=overrides.get(name, "ok")))


# ---------------------------------------------------------------------------
# /health
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health_check_all_services_ok(mocker) -> None:
    """health_check should return 'ok' for every service when all are reachable."""
    _patch_checks(mocker)
    result = await health_check()
    assert result == {"tmdb": "ok", "openai": "ok", "embedding": "ok", "redis": "ok"}


@pytest.mark.asyncio
async def test_health_check_failures_isolated(mocker) -> None:
    """One failing service should not affect the others' status."""
    _patch_checks(mocker, tmdb="TMDB returned 401 for /configuration", redis="not configured")
    result = await health_check()
    assert result["tmdb"] == "TMDB returned 401 for /configuration"
    assert result["redis"] == "not configured"
    assert result["openai"] == "ok"
    assert result["embedding"] == "ok"


@pytest.mark.asyncio
async def test_health_check_unconfigured_environment() -> None:
    """With no credentials every service should report 'not configured'."""
    result = await health_check()
    assert result == {
        "tmdb": "not configured",
        "openai": "not configured",
        "embedding": "not configured",
        "redis": "not configured",
    }


# ---------------------------------------------------------------------------
# /search
# ---------------------------------------------------------------------------

def test_search_returns_camel_case_results(mocker) -> None:
    """POST /search should return FinalResults with camelCase keys."""
    search = mocker.patch("api.main.search_films_by_scene", new=AsyncMock(return_value=[TITANIC_RESULT]))
    with TestClient(app) as client:
        response = client.post("/search", json={"query": "ship hits iceberg", "locale": "tr-TR", "rerank": False})
    assert response.status_code == 200
    body = response.json()
    assert body[0]["id"] == 597
    assert body[0]["matchScore"] == 88
    assert body[0]["posterUrl"].endswith("/titanic.jpg")
    search.assert_awaited_once_with("ship hits iceberg", "tr-TR", use_reranker=False)


def test_search_rejects_blank_query(mocker) -> None:
    """A blank query should be a 400 without running the pipeline."""
    search = mocker.patch("api.main.search_films_by_scene", new=AsyncMock())
    with TestClient(app) as client:
        response = client.post("/search", json={"query": "   "})
    assert response.status_code == 400
    search.assert_not_awaited()


def test_search_catalog_outage_is_503(mocker) -> None:
    """CatalogUnavailableError should map to 503."""
    mocker.patch(
        "api.main.search_films_by_scene",
        new=AsyncMock(side_effect=CatalogUnavailableError("All 9 catalog calls failed")),
    )
    with TestClient(app) as client:
        response = client.post("/search", json={"query": "ship hits iceberg"})
    assert response.status_code == 503


def test_search_requires_query_field() -> None:
    """A body without a query should fail validation."""
    with TestClient(app) as client:
        response = client.post("/search", json={"locale": "en-US"})
    assert response.status_code == 422


# ---------------------------------------------------------------------------
# /search/llm
# ---------------------------------------------------------------------------

def test_llm_search_endpoint(mocker) -> None:
    """POST /search/llm should pass the query and language through."""
    search = mocker.patch("api.main.search_films_with_llm", new=AsyncMock(return_value=[TITANIC_RESULT]))
    with TestClient(app) as client:
        response = client.post("/search/llm", json={"query": "gemi batıyor", "lang": "tr"})
    assert response.status_code == 200
    assert response.json()[0]["title"] == "Titanic"
    search.assert_awaited_once_with("gemi batıyor", "tr")


def test_llm_search_blank_query(mocker) -> None:
    """A blank LLM query should be a 400."""
    mocker.patch("api.main.search_films_with_llm", new=AsyncMock())
    with TestClient(app) as client:
        response = client.post("/search/llm", json={"query": ""})
    assert response.status_code == 400


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

def test_lifespan_skips_redis_when_not_configured(mocker) -> None:
    """Without REDIS_HOST the cache is never initialized."""
    init = mocker.patch("api.main.init_redis", new=AsyncMock())
    close = mocker.patch("api.main.close_redis", new=AsyncMock())
    with TestClient(app):
        pass
    init.assert_not_awaited()
    close.assert_awaited_once()


def test_lifespan_survives_unreachable_redis(mocker, monkeypatch) -> None:
    """A Redis failure at startup should be logged and the app should still serve."""
    monkeypatch.setenv("REDIS_HOST", "localhost")
    init = mocker.patch("api.main.init_redis", new=AsyncMock(side_effect=ConnectionError("refused")))
    close = mocker.patch("api.main.close_redis", new=AsyncMock())
    _patch_checks(mocker)
    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
    init.assert_awaited_once()
    assert close.await_count == 2
