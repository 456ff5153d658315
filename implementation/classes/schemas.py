"""
Pydantic schemas for data models and LLM response structures.

This module contains Pydantic models used for structured outputs from LLM API calls
and the catalog (TMDB) payloads consumed by the pipeline.
"""

from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from .enums import TimeHint, SceneField


# -----------------------------
#      SCENE DESCRIPTION
# -----------------------------

class SceneDescription(BaseModel):
    """
    Structured tags extracted from a free-text scene.

    Tags are free-form and not guaranteed to be deduplicated; consumers
    deduplicate where it matters.
    """
    model_config = ConfigDict(frozen=True)

    entities: List[str] = Field(default_factory=list)
    events: List[str] = Field(default_factory=list)
    environment: List[str] = Field(default_factory=list)
    themes: List[str] = Field(default_factory=list)
    time_hint: TimeHint = TimeHint.UNSPECIFIED

    @field_validator("time_hint", mode="before")
    @classmethod
    def parse_time_hint(cls, v: Any) -> TimeHint:
        if isinstance(v, TimeHint):
            return v
        return TimeHint.from_string(v if isinstance(v, str) else "")

    def tags(self, field: SceneField) -> List[str]:
        return list(getattr(self, field.value))

    def all_tags(self) -> List[str]:
        """Every tag in canonicalization order (entities, events, environment, themes)."""
        return [tag for field in SceneField for tag in self.tags(field)]

    def is_empty(self) -> bool:
        return not self.all_tags()


class SceneExtractionResponse(BaseModel):
    """
    Shape the extraction model must return.

    entities and events are required; a payload missing either is rejected
    so the analyzer falls back to rule-based extraction.
    """
    entities: List[str]
    events: List[str]
    environment: Optional[List[str]] = None
    themes: Optional[List[str]] = None
    time_hint: Optional[str] = None

    def to_scene(self) -> SceneDescription:
        return SceneDescription(
            entities=self.entities,
            events=self.events,
            environment=self.environment or [],
            themes=self.themes or [],
            time_hint=self.time_hint or TimeHint.UNSPECIFIED,
        )


# -----------------------------
#          RE-RANKING
# -----------------------------

class RerankBestMatchResponse(BaseModel):
    best_match_index: int
    confidence: float
    explanation: str = ""

    @field_validator("explanation", mode="before")
    @classmethod
    def default_explanation(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""


# -----------------------------
#       LLM-ONLY SEARCH
# -----------------------------

class LLMMovieGuess(BaseModel):
    title: str = "Unknown"
    year: Optional[int] = None
    description: str = ""
    main_characters: List[str] = Field(default_factory=list)
    reason: str = "Scene similarity"
    match_score: Optional[float] = None

    @field_validator("title", mode="before")
    @classmethod
    def default_title(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) and v.strip() else "Unknown"

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("reason", mode="before")
    @classmethod
    def default_reason(cls, v: Any) -> str:
        return v if isinstance(v, str) and v.strip() else "Scene similarity"

    @field_validator("year", mode="before")
    @classmethod
    def parse_year(cls, v: Any) -> Optional[int]:
        # Unknown years are omitted rather than guessed
        if isinstance(v, bool):
            return None
        if isinstance(v, (int, float)) and v == v and v not in (float("inf"), float("-inf")):
            return int(v)
        return None

    @field_validator("match_score", mode="before")
    @classmethod
    def parse_match_score(cls, v: Any) -> Optional[float]:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        if v != v or v in (float("inf"), float("-inf")):
            return None
        return float(v)

    @field_validator("main_characters", mode="before")
    @classmethod
    def parse_main_characters(cls, v: Any) -> List[str]:
        if not isinstance(v, list):
            return []
        return [str(name) for name in v if isinstance(name, str)][:5]


class LLMMovieGuessesResponse(BaseModel):
    results: List[LLMMovieGuess] = Field(default_factory=list)


# -----------------------------
#         TMDB PAYLOADS
# -----------------------------

class TMDBMovie(BaseModel):
    """Movie summary as returned by TMDB search and list endpoints."""
    model_config = ConfigDict(extra="ignore")

    id: int
    title: str = ""
    overview: str = ""
    release_date: str = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    vote_average: float = 0.0
    vote_count: int = 0
    genre_ids: List[int] = Field(default_factory=list)

    @field_validator("title", "overview", "release_date", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("vote_average", mode="before")
    @classmethod
    def none_to_zero_float(cls, v: Any) -> float:
        return 0.0 if v is None else v

    @field_validator("vote_count", mode="before")
    @classmethod
    def none_to_zero_int(cls, v: Any) -> int:
        return 0 if v is None else v


class TMDBGenre(BaseModel):
    id: int
    name: str


class TMDBMovieDetails(TMDBMovie):
    genres: List[TMDBGenre] = Field(default_factory=list)
    runtime: Optional[int] = None
    tagline: Optional[str] = None


class TMDBSearchResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    page: int = 1
    results: List[TMDBMovie] = Field(default_factory=list)
    total_pages: int = 0
    total_results: int = 0


class TMDBKeyword(BaseModel):
    id: int
    name: str


class TMDBKeywordsResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    keywords: List[TMDBKeyword] = Field(default_factory=list)
