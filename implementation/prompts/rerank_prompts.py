from typing import Sequence

from implementation.classes.movie import ScoredMovie
from implementation.misc.helpers import truncate

RERANK_OVERVIEW_CHARS = 220


RERANK_ORDER_SYSTEM_PROMPT = """\
You are an expert at guessing movies from vague scene descriptions. \
You must respond with strict JSON only, no explanations.

INPUT:
A remembered scene (in English or Turkish, may contain noise) and a numbered list of candidate movies.

TASK:
Rank the candidates from best match to worst match.

OUTPUT:
Return ONLY valid JSON with this exact shape:
{
  "order": [1, 3, 2],
  "confidences": [95, 80, 60]
}
- order is an array of 1-based indices into the candidates list (no duplicates)
- confidences is the same length, each between 0 and 100 (higher = more confident)
- Do NOT add any extra keys or text.
"""


RERANK_BEST_MATCH_SYSTEM_PROMPT = """\
You are a movie matching expert. Return only valid JSON.

INPUT:
A remembered scene and a numbered list of candidate movies.

TASK:
Choose the single candidate that best matches the remembered scene.

OUTPUT:
{
  "best_match_index": 1,
  "confidence": 85,
  "explanation": "Brief one-sentence explanation"
}
- best_match_index is 1-based (1 = first candidate).
- confidence is between 0 and 100.
"""


def format_candidate_lines(candidates: Sequence[ScoredMovie]) -> str:
    """Numbered candidate list: `1. Title (Year): overview...`."""
    return "\n".join(
        f"{idx}. {c.movie.title} ({c.movie.release_year_label}): "
        f"{truncate(c.movie.overview, RERANK_OVERVIEW_CHARS)}"
        for idx, c in enumerate(candidates, start=1)
    )


def build_rerank_user_prompt(query: str, candidates: Sequence[ScoredMovie]) -> str:
    return (
        f'Remembered scene: "{query}"\n\n'
        f"Candidates:\n{format_candidate_lines(candidates)}"
    )
