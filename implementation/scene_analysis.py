"""
Scene understanding: free-text query → SceneDescription.

Two interchangeable strategies share the SceneAnalyzer contract:
  - RuleBasedSceneAnalyzer: deterministic keyword table lookup. Never fails,
    and doubles as the offline fallback.
  - LLMSceneAnalyzer: one JSON-mode request to an instruction model. Any
    failure (missing key, network, bad JSON, wrong shape) is logged and the
    query is handed to a wrapped RuleBasedSceneAnalyzer instead.

Callers never see an exception from analyze().
"""

from __future__ import annotations

import abc
import logging
from typing import Optional, Sequence

from implementation.classes.enums import SceneField, TimeHint
from implementation.classes.errors import ConfigurationError
from implementation.classes.schemas import SceneDescription
from implementation.llms.generic_methods import JSONGenerator, OpenAIJSONGenerator, openai_api_key
from implementation.llms.query_understanding_methods import extract_scene_description_async
from implementation.lookup_tables import (
    SCENE_KEYWORD_RULES,
    TIME_HINT_RULES,
    SceneKeywordRule,
)
from implementation.misc.helpers import contains_keyword

logger = logging.getLogger(__name__)


class SceneAnalyzer(abc.ABC):
    """Turns a raw query into a SceneDescription. Implementations must not raise."""

    @abc.abstractmethod
    async def analyze(self, query: str) -> SceneDescription:
        raise NotImplementedError


class RuleBasedSceneAnalyzer(SceneAnalyzer):
    """
    Keyword-table extractor.

    Every rule whose keyword starts a word of the lowercased query appends its tag to
    the rule's field, in table order. The same tag may be appended more than
    once when several keywords map to it; consumers deduplicate.
    """

    def __init__(
        self,
        rules: Sequence[SceneKeywordRule] = SCENE_KEYWORD_RULES,
        time_rules: Sequence[tuple[str, TimeHint]] = TIME_HINT_RULES,
    ):
        self.rules = tuple(rules)
        self.time_rules = tuple(time_rules)

    def extract(self, query: str) -> SceneDescription:
        """Synchronous core of analyze(); exposed for callers outside an event loop."""
        text = (query or "").lower()
        fields: dict[SceneField, list[str]] = {field: [] for field in SceneField}
        if text.strip():
            for rule in self.rules:
                if contains_keyword(text, rule.keyword, rule.whole_word):
                    fields[rule.field].append(rule.tag)

        time_hint = next(
            (hint for keyword, hint in self.time_rules if contains_keyword(text, keyword)),
            TimeHint.UNSPECIFIED,
        )
        return SceneDescription(
            entities=fields[SceneField.ENTITIES],
            events=fields[SceneField.EVENTS],
            environment=fields[SceneField.ENVIRONMENT],
            themes=fields[SceneField.THEMES],
            time_hint=time_hint,
        )

    async def analyze(self, query: str) -> SceneDescription:
        return self.extract(query)


class LLMSceneAnalyzer(SceneAnalyzer):
    """Structured extraction through an instruction model with rule-based fallback."""

    def __init__(
        self,
        llm: Optional[JSONGenerator] = None,
        fallback: Optional[RuleBasedSceneAnalyzer] = None,
    ):
        self.llm = llm or OpenAIJSONGenerator()
        self.fallback = fallback or RuleBasedSceneAnalyzer()

    async def analyze(self, query: str) -> SceneDescription:
        if not query or not query.strip():
            return await self.fallback.analyze(query)
        try:
            scene = await extract_scene_description_async(query, self.llm)
        except ConfigurationError as e:
            logger.warning("Scene analysis LLM not configured (%s); using rule-based extraction", e)
            return await self.fallback.analyze(query)
        except Exception as e:
            logger.warning("Scene analysis LLM failed (%s: %s); using rule-based extraction", type(e).__name__, e)
            return await self.fallback.analyze(query)
        logger.debug("LLM scene analysis for %r: %s", query, scene)
        return scene


def build_scene_analyzer(llm: Optional[JSONGenerator] = None) -> SceneAnalyzer:
    """LLM-based analyzer when a model is available, rule-based otherwise."""
    if llm is not None or openai_api_key():
        return LLMSceneAnalyzer(llm=llm)
    logger.info("OPENAI_API_KEY not set; scene analysis will be rule-based")
    return RuleBasedSceneAnalyzer()
