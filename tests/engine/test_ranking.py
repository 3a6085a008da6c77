"""Ranking strategy tests."""

from __future__ import annotations

import pytest

from crosslinker.engine.rank import (
    BIDIRECTIONAL_RELEVANCE,
    COMPOSITE,
    LEGACY_RELEVANCE,
    composite_score,
    composite_strategy,
    get_strategy,
    legacy_relevance_strategy,
)
from crosslinker.engine.types import InterlinkingSuggestion


def make(content_id: int, relevance: float, semantic: float, intent: float, seo: float) -> InterlinkingSuggestion:
    return InterlinkingSuggestion(
        content_id=content_id,
        content_type="question",
        title=f"Question {content_id}",
        relevance_score=relevance,
        anchor_text="anchor",
        semantic_similarity=semantic,
        user_intent_alignment=intent,
        seo_impact=seo,
    )


def test_composite_weights():
    assert composite_score(make(1, 100, 1, 1, 1)) == pytest.approx(1.0)
    assert composite_score(make(1, 90, 0.9, 0.9, 0.0)) == pytest.approx(0.81)
    assert composite_score(make(2, 95, 0.6, 0.6, 0.2)) == pytest.approx(0.77)


def test_composite_order_beats_raw_relevance(engine_config):
    lower_relevance = make(1, 90, 0.9, 0.9, 0.0)
    higher_relevance = make(2, 95, 0.6, 0.6, 0.2)

    ranked = composite_strategy(engine_config).rank([higher_relevance, lower_relevance], 3)
    assert [item.content_id for item in ranked] == [1, 2]

    legacy = legacy_relevance_strategy(engine_config).rank([lower_relevance, higher_relevance], 3)
    assert [item.content_id for item in legacy] == [2, 1]


def test_rank_respects_limit_and_is_sorted(engine_config):
    strategy = composite_strategy(engine_config)
    items = [make(i, 75 + i * 2, 0.1 * i, 0.5, 0.3) for i in range(1, 9)]

    ranked = strategy.rank(items, 3)

    assert len(ranked) == 3
    scores = [strategy.score(item) for item in ranked]
    assert scores == sorted(scores, reverse=True)
    assert strategy.rank(items, 0) == []


def test_unique_targets_keeps_best_per_target(engine_config):
    strategy = composite_strategy(engine_config)
    best = make(5, 95, 0.9, 0.9, 0.9)
    duplicate = make(5, 80, 0.1, 0.1, 0.1)
    other = make(6, 85, 0.5, 0.5, 0.5)

    ranked = strategy.rank([duplicate, other, best], 3, unique_targets=True)

    assert ranked == [best, other]


def test_named_strategies_keep_their_thresholds(engine_config):
    assert get_strategy(COMPOSITE, engine_config).min_relevance == 75
    assert get_strategy(LEGACY_RELEVANCE, engine_config).min_relevance == 50
    assert get_strategy(BIDIRECTIONAL_RELEVANCE, engine_config).min_relevance == 75

    engine_config.raw["thresholds"]["primary"] = 80
    assert get_strategy(COMPOSITE, engine_config).min_relevance == 80

    with pytest.raises(KeyError):
        get_strategy("random", engine_config)
