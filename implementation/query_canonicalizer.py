"""
Builds the canonical search string from a scene description.

Scene tags are lowercased, short tags dropped, duplicates removed (first
occurrence wins), and English equivalents of Turkish terms in the raw query
appended. The raw query is always kept at the end so literal proper nouns
survive; when no terms survive, the raw query alone is the canonical query.
"""

from typing import Mapping

from implementation.classes.schemas import SceneDescription
from implementation.lookup_tables import TERM_TRANSLATIONS
from implementation.misc.helpers import contains_keyword, dedupe_preserve_order

MIN_TAG_LENGTH = 3


def canonical_terms(
    scene: SceneDescription,
    original_query: str,
    translations: Mapping[str, str] = TERM_TRANSLATIONS,
) -> list[str]:
    """Deduplicated, lowercased scene tags followed by translated query terms."""
    tags = (tag.strip().lower() for tag in scene.all_tags())
    terms = [tag for tag in tags if len(tag) >= MIN_TAG_LENGTH]

    query_lower = (original_query or "").lower()
    terms.extend(
        english.lower()
        for source, english in translations.items()
        if contains_keyword(query_lower, source)
    )
    return dedupe_preserve_order(terms)


def canonicalize(
    scene: SceneDescription,
    original_query: str,
    translations: Mapping[str, str] = TERM_TRANSLATIONS,
) -> str:
    """
    Merge scene tags and translated terms into one search string.

    Never returns an empty string for a query with non-whitespace content.

    Examples:
        >>> canonicalize(SceneDescription(entities=["Ship", "ship", "ox"]), "gemi batıyor")
        'ship sinking gemi batıyor'
    """
    query = (original_query or "").strip()
    terms = canonical_terms(scene, query, translations)
    if not terms:
        return query
    term_string = " ".join(terms)
    return f"{term_string} {query}" if query else term_string
