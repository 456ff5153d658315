"""
Enum classes for scene search data models.

This module contains all Enum classes used for scene, scoring and provider
representation across the project.
"""

from enum import Enum
from implementation.misc.helpers import normalize_string


class TimeHint(Enum):
    """Era in which the remembered scene appears to take place."""
    HISTORICAL = "historical"
    MODERN = "modern"
    FUTURE = "future"
    UNSPECIFIED = "unspecified"

    @classmethod
    def from_string(cls, hint: str) -> "TimeHint":
        """
        Convert a free-form string to a TimeHint.
        Returns UNSPECIFIED if the string doesn't match any known hint.
        """
        normalized_hint = normalize_string(hint or "")
        _map = {member.value: member for member in cls}
        return _map.get(normalized_hint, cls.UNSPECIFIED)

    def __str__(self) -> str:
        return self.value


class SceneField(Enum):
    """Tag lists of a SceneDescription, in canonicalization order."""
    ENTITIES = "entities"
    EVENTS = "events"
    ENVIRONMENT = "environment"
    THEMES = "themes"


class ScoringMethod(Enum):
    """Which scorer produced a ScoredMovie's score."""
    EMBEDDING = "embedding"
    LEXICAL = "lexical"


class RerankVariant(Enum):
    """Response contract requested from the re-ranking model."""
    ORDER = "order"            # {order: [...], confidences: [...]}
    BEST_MATCH = "best_match"  # {best_match_index, confidence, explanation}


class EmbeddingBackend(Enum):
    """Embedding provider implementations selectable via EMBEDDING_PROVIDER."""
    HTTP = "http"
    OPENAI = "openai"

    @classmethod
    def from_string(cls, backend: str) -> "EmbeddingBackend | None":
        """
        Convert a string to an EmbeddingBackend enum value.
        Returns None if the string doesn't match any valid backend.
        """
        normalized_backend = normalize_string(backend or "")
        _map = {member.value: member for member in cls}
        return _map.get(normalized_backend, None)


class SearchLanguage(Enum):
    """UI language of the LLM-only search mode, with its TMDB locale."""
    TURKISH = "tr"
    ENGLISH = "en"

    @classmethod
    def from_string(cls, lang: str) -> "SearchLanguage":
        """Anything that isn't Turkish is treated as English."""
        return cls.TURKISH if normalize_string(lang or "") == "tr" else cls.ENGLISH

    @property
    def tmdb_locale(self) -> str:
        return "tr-TR" if self is SearchLanguage.TURKISH else "en-US"

    @property
    def display_name(self) -> str:
        return "Turkish" if self is SearchLanguage.TURKISH else "English"
