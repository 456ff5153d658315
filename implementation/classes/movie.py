from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from .enums import ScoringMethod
from .schemas import TMDBMovie


class MovieCandidate(BaseModel):
    """
    A catalog movie under consideration for matching.

    Materialized during candidate retrieval and read-only afterwards. `id` is
    the TMDB id and uniquely identifies the candidate within a pipeline run.
    """
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    overview: str = ""
    keywords: list[str] = Field(default_factory=list)
    vote_count: int = Field(default=0, ge=0)
    release_date: str = ""
    # Presentation fields carried over from the catalog summary
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    vote_average: Optional[float] = None

    @field_validator("keywords", mode="before")
    @classmethod
    def dedupe_keywords(cls, v: list[str] | None) -> list[str]:
        return list(dict.fromkeys(v or []))

    @classmethod
    def from_tmdb(cls, movie: TMDBMovie, keywords: Optional[list[str]] = None) -> "MovieCandidate":
        return cls(
            id=movie.id,
            title=movie.title,
            overview=movie.overview or "",
            keywords=keywords or [],
            vote_count=max(0, movie.vote_count),
            release_date=movie.release_date or "",
            poster_path=movie.poster_path,
            backdrop_path=movie.backdrop_path,
            vote_average=movie.vote_average,
        )

    def searchable_text(self) -> str:
        """Lowercased title + overview + keywords, used by the retrieval precision gate."""
        return " ".join([self.title, self.overview, *self.keywords]).lower()

    @property
    def release_year_label(self) -> str:
        return self.release_date[:4] if self.release_date else "N/A"


class ScoredMovie(BaseModel):
    """
    A candidate with its similarity-derived score in [0, 1].

    The re-ranker replaces scores by building new instances with model_copy.
    """
    movie: MovieCandidate
    embedding_score: float = Field(ge=0.0, le=1.0)
    explanation: Optional[str] = None
    scoring_method: ScoringMethod = ScoringMethod.EMBEDDING

    @property
    def id(self) -> int:
        return self.movie.id

    def with_score(self, score: float, explanation: Optional[str] = None) -> "ScoredMovie":
        return self.model_copy(update={
            "embedding_score": max(0.0, min(1.0, score)),
            "explanation": explanation if explanation is not None else self.explanation,
        })


class FinalResult(BaseModel):
    """
    Externally visible search result.

    Serializes with camelCase aliases (matchScore, posterUrl, ...) to match the
    shape the UI shell consumes.
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    title: str
    year: int
    description: str
    match_score: int = Field(ge=0, le=100)
    explanation: str
    poster_url: str
    backdrop_url: Optional[str] = None
    vote_average: Optional[float] = None
