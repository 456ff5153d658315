"""Shared pytest fixtures and fake collaborators for unit tests."""

from typing import Any, Callable, Iterable, Optional
from pathlib import Path
import sys

import pytest

# Ensure project root is importable when tests run from repository root.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from implementation.classes.errors import ProviderUnavailableError
from implementation.classes.movie import MovieCandidate, ScoredMovie
from implementation.classes.schemas import TMDBMovie, TMDBMovieDetails, TMDBSearchResponse


# ===============================
#          Test movies
# ===============================

TITANIC = TMDBMovie(
    id=597,
    title="Titanic",
    overview=(
        "A seventeen-year-old aristocrat falls in love with a kind but poor artist "
        "aboard the luxurious, ill-fated R.M.S. Titanic, which sinks after striking an iceberg."
    ),
    release_date="1997-11-18",
    poster_path="/titanic.jpg",
    backdrop_path="/titanic_backdrop.jpg",
    vote_average=7.9,
    vote_count=25000,
)

POSEIDON = TMDBMovie(
    id=503,
    title="Poseidon",
    overview=(
        "A packed cruise ship is capsized by a rogue wave in the open ocean "
        "and survivors fight to reach the surface."
    ),
    release_date="2006-05-10",
    poster_path="/poseidon.jpg",
    vote_average=5.8,
    vote_count=2100,
)

JAWS = TMDBMovie(
    id=578,
    title="Jaws",
    overview="A giant great white shark terrorizes a beach town.",
    release_date="1975-06-18",
    poster_path="/jaws.jpg",
    vote_average=7.7,
    vote_count=10000,
)

OBSCURE_ICEBERG = TMDBMovie(
    id=9999,
    title="Iceberg Diaries",
    overview="An amateur documentary about an iceberg and a ship.",
    release_date="2019-01-01",
    vote_count=12,
)

DEFAULT_KEYWORDS: dict[int, list[str]] = {
    TITANIC.id: ["iceberg", "shipwreck", "love"],
    POSEIDON.id: ["ship", "disaster"],
    JAWS.id: ["shark", "beach"],
}


# ===============================
#       Fake collaborators
# ===============================

class FakeCatalog:
    """
    In-memory CatalogProvider.

    search_movies matches when the search text occurs in a title or overview,
    or when a title occurs in the search text ("Titanic 1997").
    """

    def __init__(
        self,
        movies: Iterable[TMDBMovie] = (TITANIC, POSEIDON, JAWS, OBSCURE_ICEBERG),
        keywords: Optional[dict[int, list[str]]] = None,
        popular: Iterable[TMDBMovie] = (JAWS,),
        fail_all: bool = False,
        failing_searches: Iterable[str] = (),
        failing_details: Iterable[int] = (),
        failing_keywords: Iterable[int] = (),
    ):
        self.movies = list(movies)
        self.keywords = DEFAULT_KEYWORDS if keywords is None else keywords
        self.popular = list(popular)
        self.fail_all = fail_all
        self.failing_searches = {s.lower() for s in failing_searches}
        self.failing_details = set(failing_details)
        self.failing_keywords = set(failing_keywords)
        self.search_calls: list[tuple[str, Optional[str]]] = []
        self.detail_calls: list[int] = []
        self.keyword_calls: list[int] = []
        self.popular_calls = 0

    def _check(self) -> None:
        if self.fail_all:
            raise ProviderUnavailableError("catalog down")

    async def search_movies(self, text: str, page: int = 1, locale: Optional[str] = None) -> TMDBSearchResponse:
        self.search_calls.append((text, locale))
        self._check()
        needle = text.lower()
        if needle in self.failing_searches:
            raise ProviderUnavailableError(f"search failed for {text}")
        results = [
            m for m in self.movies
            if needle in m.title.lower() or needle in m.overview.lower() or m.title.lower() in needle
        ]
        return TMDBSearchResponse(page=page, results=results, total_pages=1, total_results=len(results))

    async def get_movie_details(self, movie_id: int, locale: Optional[str] = None) -> TMDBMovieDetails:
        self.detail_calls.append(movie_id)
        self._check()
        if movie_id in self.failing_details:
            raise ProviderUnavailableError(f"details failed for {movie_id}")
        movie = next(m for m in self.movies if m.id == movie_id)
        return TMDBMovieDetails(**movie.model_dump())

    async def get_movie_keywords(self, movie_id: int) -> list[str]:
        self.keyword_calls.append(movie_id)
        self._check()
        if movie_id in self.failing_keywords:
            raise ProviderUnavailableError(f"keywords failed for {movie_id}")
        return list(self.keywords.get(movie_id, []))

    async def get_popular_movies(self, page: int = 1, locale: Optional[str] = None) -> TMDBSearchResponse:
        self.popular_calls += 1
        self._check()
        return TMDBSearchResponse(page=page, results=self.popular, total_pages=1, total_results=len(self.popular))


# Each concept is one vector dimension; a text scores 1.0 on a dimension when
# it mentions any of the concept's terms.
CONCEPTS: tuple[tuple[str, ...], ...] = (
    ("ship", "iceberg", "sink", "titanic", "ocean", "disaster", "wave"),
    ("love", "romance", "woman"),
    ("shark", "beach"),
    ("clown", "balloon"),
)


class FakeEmbedder:
    """Deterministic concept-presence embedder."""

    model = "fake-concepts"

    def __init__(self, fail: bool = False, failing_texts: Iterable[str] = (), empty: bool = False):
        self.fail = fail
        self.failing_texts = set(failing_texts)
        self.empty = empty
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail or text in self.failing_texts:
            raise ProviderUnavailableError("embedding service down")
        if self.empty:
            return []
        lowered = text.lower()
        return [1.0 if any(term in lowered for term in concept) else 0.0 for concept in CONCEPTS]

    async def aclose(self) -> None:
        return None


class FakeLLM:
    """JSONGenerator returning canned payloads (or raising) in call order."""

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def complete_json(self, system_prompt: str, user_prompt: str, temperature: float = 0.2) -> dict[str, Any]:
        self.calls.append({"system_prompt": system_prompt, "user_prompt": user_prompt, "temperature": temperature})
        if not self.responses:
            raise ProviderUnavailableError("no canned response left")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


# ===============================
#            Fixtures
# ===============================

@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch) -> None:
    """Keep real credentials out of tests so defaults never hit the network."""
    for name in (
        "OPENAI_API_KEY",
        "TMDB_ACCESS_TOKEN",
        "TMDB_API_KEY",
        "EMBEDDING_PROVIDER",
        "EMBEDDING_API_URL",
        "HUGGING_FACE_API_KEY",
        "VITE_HUGGING_FACE_API_KEY",
        "SCENE_MIN_SIMILARITY",
        "REDIS_HOST",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def candidate_factory() -> Callable[..., MovieCandidate]:
    """Return a factory that builds a MovieCandidate with optional overrides."""

    def _factory(**overrides: Any) -> MovieCandidate:
        base_data: dict[str, Any] = {
            "id": 1,
            "title": "Test Movie",
            "overview": "A ship sinks in the ocean.",
            "keywords": ["ship"],
            "vote_count": 1000,
            "release_date": "2001-01-01",
            "poster_path": "/poster.jpg",
            "backdrop_path": None,
            "vote_average": 7.0,
        }
        base_data.update(overrides)
        return MovieCandidate(**base_data)

    return _factory


@pytest.fixture
def scored_factory(candidate_factory) -> Callable[..., ScoredMovie]:
    """Return a factory that builds a ScoredMovie; extra kwargs go to the candidate."""

    def _factory(score: float = 0.5, explanation: Optional[str] = None, **movie_overrides: Any) -> ScoredMovie:
        return ScoredMovie(
            movie=candidate_factory(**movie_overrides),
            embedding_score=score,
            explanation=explanation,
        )

    return _factory
