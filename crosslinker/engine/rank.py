"""Scoring and ranking strategies for interlinking suggestions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, TypeVar

from .config import EngineConfig
from .types import InterlinkingSuggestion

S = TypeVar("S", bound=InterlinkingSuggestion)

COMPOSITE = "composite"
LEGACY_RELEVANCE = "legacy_relevance"
BIDIRECTIONAL_RELEVANCE = "bidirectional_relevance"

DEFAULT_WEIGHTS: Dict[str, float] = {
    "relevance": 0.6,
    "semantic_similarity": 0.15,
    "user_intent_alignment": 0.15,
    "seo_impact": 0.10,
}


def composite_score(suggestion: InterlinkingSuggestion, weights: Dict[str, float] | None = None) -> float:
    """Weighted blend of relevance and the three sub-scores, in [0, 1]."""

    weights = weights or DEFAULT_WEIGHTS
    return (
        suggestion.relevance_score / 100.0 * weights.get("relevance", 0.0)
        + suggestion.semantic_similarity * weights.get("semantic_similarity", 0.0)
        + suggestion.user_intent_alignment * weights.get("user_intent_alignment", 0.0)
        + suggestion.seo_impact * weights.get("seo_impact", 0.0)
    )


def relevance_score(suggestion: InterlinkingSuggestion) -> float:
    return suggestion.relevance_score


@dataclass(frozen=True)
class RankingStrategy:
    """A named ordering plus the relevance floor that goes with it."""

    name: str
    min_relevance: float
    score: Callable[[InterlinkingSuggestion], float]

    def rank(self, suggestions: Sequence[S], limit: int, *, unique_targets: bool = False) -> List[S]:
        """Sort descending by score (stable for ties) and keep the top ``limit``.

        With ``unique_targets`` only the best suggestion per target content
        is kept, before the limit applies.
        """

        if limit <= 0:
            return []
        ordered = sorted(suggestions, key=self.score, reverse=True)
        if unique_targets:
            seen: set[tuple[str, int]] = set()
            unique: List[S] = []
            for item in ordered:
                key = (item.content_type, item.content_id)
                if key in seen:
                    continue
                seen.add(key)
                unique.append(item)
            ordered = unique
        return ordered[:limit]


def composite_strategy(config: EngineConfig) -> RankingStrategy:
    weights = {name: config.ranking_weight(name) for name in DEFAULT_WEIGHTS}
    return RankingStrategy(
        name=COMPOSITE,
        min_relevance=config.threshold("primary"),
        score=lambda suggestion: composite_score(suggestion, weights),
    )


def legacy_relevance_strategy(config: EngineConfig) -> RankingStrategy:
    return RankingStrategy(
        name=LEGACY_RELEVANCE,
        min_relevance=config.threshold("legacy"),
        score=relevance_score,
    )


def bidirectional_relevance_strategy(config: EngineConfig) -> RankingStrategy:
    return RankingStrategy(
        name=BIDIRECTIONAL_RELEVANCE,
        min_relevance=config.threshold("bidirectional"),
        score=relevance_score,
    )


_FACTORIES = {
    COMPOSITE: composite_strategy,
    LEGACY_RELEVANCE: legacy_relevance_strategy,
    BIDIRECTIONAL_RELEVANCE: bidirectional_relevance_strategy,
}


def get_strategy(name: str, config: EngineConfig) -> RankingStrategy:
    """Look up a strategy by name; raises ``KeyError`` for unknown names."""

    return _FACTORIES[name](config)
