"""
rerank.py — Optional LLM re-ranking of the top scored candidates.

Two response contracts (RerankVariant):
  - ORDER (default): {"order": [1-based indices], "confidences": [0..100]}.
    Each ordered candidate's score becomes
        embedding_score * EMBEDDING_BLEND + confidence / 100 * CONFIDENCE_BLEND
    and candidates the model left out are appended unchanged in their
    original relative order. The model's order is the ranking: the list is
    not re-sorted, so a blended score can sit below the one after it.
  - BEST_MATCH: {"best_match_index", "confidence", "explanation"}. The chosen
    candidate moves to the front with score confidence / 100 and the model's
    explanation; the rest keep their order.

The re-ranker is strictly optional: any failure (configuration, timeout,
network, malformed JSON, indices that make no sense) returns the input list
unchanged. It never raises.
"""

import logging
import math
from typing import Any, Optional, Sequence

from implementation.classes.enums import RerankVariant
from implementation.classes.errors import ConfigurationError
from implementation.classes.movie import ScoredMovie
from implementation.llms.generic_methods import JSONGenerator
from implementation.llms.query_understanding_methods import (
    request_best_match_async,
    request_rerank_order_async,
)

logger = logging.getLogger(__name__)

MAX_RERANK_CANDIDATES = 5
EMBEDDING_BLEND = 0.7
CONFIDENCE_BLEND = 0.3
DEFAULT_CONFIDENCE = 50.0


def _as_finite_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def clamp_confidence(value: Any) -> float:
    """Confidence clamped to [0, 100]; non-numeric values become DEFAULT_CONFIDENCE."""
    number = _as_finite_number(value)
    if number is None:
        return DEFAULT_CONFIDENCE
    return max(0.0, min(100.0, number))


def sanitize_order(raw_order: Any, count: int) -> list[int]:
    """
    Keep valid 1-based indices, in model order, converted to 0-based.

    Drops non-integers, indices outside [1, count] and repeats.

    Examples:
        >>> sanitize_order([2, "x", 9, 2, 1], 3)
        [1, 0]
    """
    if not isinstance(raw_order, list):
        return []
    seen: set[int] = set()
    order: list[int] = []
    for item in raw_order:
        number = _as_finite_number(item)
        if number is None or number != int(number):
            continue
        idx = int(number)
        if 1 <= idx <= count and idx not in seen:
            seen.add(idx)
            order.append(idx - 1)
    return order


def apply_order(
    candidates: Sequence[ScoredMovie],
    raw_order: Any,
    raw_confidences: Any,
) -> list[ScoredMovie]:
    """
    Blend an ORDER response into the candidate list.

    Confidences are paired with the raw order entries by position; when the
    confidence list is missing or its length differs from the raw order, every
    confidence defaults to DEFAULT_CONFIDENCE.
    """
    candidates = list(candidates)
    order = sanitize_order(raw_order, len(candidates))
    if not order:
        return candidates

    confidence_by_index: dict[int, float] = {}
    paired = (
        isinstance(raw_confidences, list)
        and isinstance(raw_order, list)
        and len(raw_confidences) == len(raw_order)
    )
    if paired:
        for item, confidence in zip(raw_order, raw_confidences):
            number = _as_finite_number(item)
            if number is None or number != int(number):
                continue
            confidence_by_index.setdefault(int(number) - 1, clamp_confidence(confidence))

    reranked: list[ScoredMovie] = []
    for idx in order:
        confidence = confidence_by_index.get(idx, DEFAULT_CONFIDENCE)
        original = candidates[idx]
        new_score = original.embedding_score * EMBEDDING_BLEND + (confidence / 100) * CONFIDENCE_BLEND
        reranked.append(original.with_score(new_score))

    chosen = set(order)
    reranked.extend(c for i, c in enumerate(candidates) if i not in chosen)
    return reranked


def apply_best_match(
    candidates: Sequence[ScoredMovie],
    best_match_index: int,
    confidence: Any,
    explanation: str,
) -> list[ScoredMovie]:
    """Move the 1-based best match to the front; out-of-range index → unchanged."""
    candidates = list(candidates)
    idx = best_match_index - 1
    if not 0 <= idx < len(candidates):
        return candidates
    best = candidates[idx].with_score(
        clamp_confidence(confidence) / 100,
        explanation=explanation or None,
    )
    return [best, *candidates[:idx], *candidates[idx + 1:]]


async def rerank(
    original_query: str,
    top_k: Sequence[ScoredMovie],
    llm: JSONGenerator,
    variant: RerankVariant = RerankVariant.ORDER,
) -> list[ScoredMovie]:
    """
    Re-rank up to MAX_RERANK_CANDIDATES scored candidates with the instruction model.

    Candidates past the first MAX_RERANK_CANDIDATES are appended untouched.
    Returns the input unchanged (as a new list) on any failure.

    With the ORDER variant the result follows the model's order, not the
    blended scores; callers that show both get a best-first list whose
    scores need not be descending.
    """
    everything = list(top_k)
    candidates, rest = everything[:MAX_RERANK_CANDIDATES], everything[MAX_RERANK_CANDIDATES:]
    if not candidates:
        return []

    try:
        if variant is RerankVariant.BEST_MATCH:
            response = await request_best_match_async(original_query, candidates, llm)
            reranked = apply_best_match(
                candidates,
                response.best_match_index,
                response.confidence,
                response.explanation,
            )
        else:
            data = await request_rerank_order_async(original_query, candidates, llm)
            reranked = apply_order(candidates, data.get("order"), data.get("confidences"))
    except ConfigurationError as e:
        logger.warning("Re-ranker not configured (%s); keeping embedding order", e)
        return everything
    except Exception as e:
        logger.warning("Re-ranking failed (%s: %s); keeping embedding order", type(e).__name__, e)
        return everything

    logger.info("Re-ranked %d candidates: %s", len(reranked), [c.id for c in reranked])
    return reranked + rest
