"""Unit tests for db.llm_search (LLM-only search mode)."""

from datetime import date

import pytest

from conftest import POSEIDON, TITANIC, FakeCatalog, FakeLLM
from db.llm_search import (
    enrichment_queries,
    fallback_match_score,
    find_catalog_match,
    guess_match_score,
    search_films_with_llm,
)
from db.tmdb import PLACEHOLDER_POSTER
from implementation.classes.errors import ProviderUnavailableError
from implementation.classes.schemas import LLMMovieGuess

GUESSES = {
    "results": [
        {"title": "Titanic", "year": 1997, "description": "Ship meets iceberg.", "reason": "Iceberg sinking", "match_score": 0.93},
        {"title": "Poseidon", "year": 2006, "reason": "Capsized ship"},
        {"title": "", "reason": "Unsure"},
        {"title": "Titanic", "year": 1997, "match_score": 0.5},
        {"title": "The Abyss", "year": 1989, "match_score": 0.4},
    ]
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(("index", "expected"), [(0, 95), (1, 90), (4, 75), (9, 50), (20, 50)])
def test_fallback_match_score(index: int, expected: int) -> None:
    """Unscored guesses get 95 minus 5 per rank, never below 50."""
    assert fallback_match_score(index) == expected


@pytest.mark.parametrize(("score", "expected"), [(0.93, 93), (1.0, 100), (87, 87), (150, 100), (0.0, 0)])
def test_guess_match_score(score: float, expected: int) -> None:
    """Fractions scale to percentages; larger values are already percentages."""
    assert guess_match_score(LLMMovieGuess(title="x", match_score=score), 0) == expected


def test_enrichment_queries_order() -> None:
    """Title+year then title, Turkish locale before English."""
    assert enrichment_queries(LLMMovieGuess(title="Titanic", year=1997)) == [
        ("Titanic 1997", "tr-TR"),
        ("Titanic", "tr-TR"),
        ("Titanic 1997", "en-US"),
        ("Titanic", "en-US"),
    ]
    assert enrichment_queries(LLMMovieGuess(title="Titanic")) == [("Titanic", "tr-TR"), ("Titanic", "en-US")]


@pytest.mark.asyncio
async def test_find_catalog_match_requires_artwork() -> None:
    """Hits without a poster or backdrop should not count as matches."""
    catalog = FakeCatalog()
    assert await find_catalog_match(LLMMovieGuess(title="Iceberg Diaries"), catalog) is None
    assert len(catalog.search_calls) == 2
    match = await find_catalog_match(LLMMovieGuess(title="Titanic", year=1997), catalog)
    assert match.id == TITANIC.id


@pytest.mark.asyncio
async def test_find_catalog_match_skips_unknown_titles() -> None:
    """A guess without a title should not be searched."""
    catalog = FakeCatalog()
    assert await find_catalog_match(LLMMovieGuess(), catalog) is None
    assert catalog.search_calls == []


# ---------------------------------------------------------------------------
# search_films_with_llm
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_llm_search_enriches_and_dedupes() -> None:
    """Guesses should carry catalog ids and artwork; a repeated id is dropped."""
    results = await search_films_with_llm("ship hits iceberg", llm=FakeLLM(GUESSES), catalog=FakeCatalog())
    assert [r.id for r in results] == [TITANIC.id, POSEIDON.id, 3, 5]

    titanic, poseidon, unknown, abyss = results
    assert titanic.match_score == 93
    assert titanic.explanation == "Iceberg sinking"
    assert titanic.poster_url == "https://image.tmdb.org/t/p/w500/titanic.jpg"
    assert titanic.vote_average == 7.9
    assert poseidon.match_score == 90
    assert poseidon.description == "No description available"
    assert unknown.title == "Unknown"
    assert unknown.poster_url == PLACEHOLDER_POSTER
    assert unknown.year == date.today().year
    assert unknown.match_score == 85
    assert abyss.year == 1989
    assert abyss.backdrop_url is None


@pytest.mark.asyncio
async def test_llm_search_language_reaches_prompt_and_catalog() -> None:
    """Turkish searches should ask for Turkish text and search the Turkish locale first."""
    llm = FakeLLM({"results": [{"title": "Titanic", "year": 1997}]})
    catalog = FakeCatalog()
    results = await search_films_with_llm("gemi batıyor", "tr", llm=llm, catalog=catalog)
    assert results[0].id == TITANIC.id
    assert "Turkish" in llm.calls[0]["user_prompt"]
    assert catalog.search_calls[0] == ("Titanic 1997", "tr-TR")


@pytest.mark.asyncio
async def test_llm_search_catalog_outage_keeps_guesses() -> None:
    """Without the catalog, guesses are still returned with rank ids and placeholders."""
    results = await search_films_with_llm("ship", llm=FakeLLM(GUESSES), catalog=FakeCatalog(fail_all=True))
    assert [r.id for r in results] == [1, 2, 3, 4, 5]
    assert all(r.poster_url == PLACEHOLDER_POSTER for r in results)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [ProviderUnavailableError("timeout"), {"results": "none"}, {"results": []}],
)
async def test_llm_search_failures_return_empty(response) -> None:
    """Model failures or empty guesses should return an empty list."""
    assert await search_films_with_llm("ship", llm=FakeLLM(response), catalog=FakeCatalog()) == []


@pytest.mark.asyncio
async def test_llm_search_blank_query() -> None:
    """Blank queries should not reach the model."""
    llm = FakeLLM(GUESSES)
    assert await search_films_with_llm("   ", llm=llm) == []
    assert llm.calls == []


@pytest.mark.asyncio
async def test_llm_search_without_openai_key_returns_empty() -> None:
    """With no key configured the default model fails and the search returns []."""
    assert await search_films_with_llm("ship hits iceberg", catalog=FakeCatalog()) == []
