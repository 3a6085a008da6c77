"""Cross-corpus linking between forum content and main site pages."""

from __future__ import annotations

import dataclasses
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .filters import is_admissible_bidirectional
from .rank import RankingStrategy
from .types import BidirectionalSuggestion, InterlinkableContent

logger = logging.getLogger(__name__)

ContentKey = Tuple[str, int]

FORUM_POOL = "forum"
MAIN_SITE_POOL = "main_site"


def pool_membership(
    forum: Iterable[InterlinkableContent],
    main_site: Iterable[InterlinkableContent],
) -> Dict[ContentKey, str]:
    """Map ``(type, id)`` to the pool the content came from; first occurrence wins."""

    membership: Dict[ContentKey, str] = {}
    for label, pool in ((FORUM_POOL, forum), (MAIN_SITE_POOL, main_site)):
        for item in pool:
            membership.setdefault((item.type, item.id), label)
    return membership


def index_pools(*pools: Iterable[InterlinkableContent]) -> Dict[ContentKey, InterlinkableContent]:
    """Map ``(type, id)`` to content across every pool; first occurrence wins."""

    index: Dict[ContentKey, InterlinkableContent] = {}
    for pool in pools:
        for item in pool:
            index.setdefault((item.type, item.id), item)
    return index


def dedupe_pairs(suggestions: Sequence[BidirectionalSuggestion]) -> List[BidirectionalSuggestion]:
    """Keep the most relevant suggestion for each (source, target) pair."""

    best: Dict[Tuple[ContentKey, ContentKey], BidirectionalSuggestion] = {}
    for suggestion in suggestions:
        pair = (suggestion.source_key, suggestion.target_key)
        current = best.get(pair)
        if current is None or suggestion.relevance_score > current.relevance_score:
            best[pair] = suggestion
    return list(best.values())


def infer_reciprocity(suggestions: Sequence[BidirectionalSuggestion]) -> List[BidirectionalSuggestion]:
    """Flag a link as mutual when the backend says so or its reverse also survived."""

    pairs = {(item.source_key, item.target_key) for item in suggestions}
    result: List[BidirectionalSuggestion] = []
    for item in suggestions:
        reverse_present = (item.target_key, item.source_key) in pairs
        if reverse_present and not item.bidirectional:
            item = dataclasses.replace(item, bidirectional=True)
        result.append(item)
    return result


def cap_per_source(
    ranked: Sequence[BidirectionalSuggestion],
    max_suggestions_per_item: int,
) -> List[BidirectionalSuggestion]:
    if max_suggestions_per_item <= 0:
        return []
    counts: Dict[ContentKey, int] = {}
    kept: List[BidirectionalSuggestion] = []
    for item in ranked:
        used = counts.get(item.source_key, 0)
        if used >= max_suggestions_per_item:
            continue
        counts[item.source_key] = used + 1
        kept.append(item)
    return kept


def fill_titles(
    suggestions: Sequence[BidirectionalSuggestion],
    index: Dict[ContentKey, InterlinkableContent],
) -> List[BidirectionalSuggestion]:
    """Use stored titles when the backend left them out."""

    filled: List[BidirectionalSuggestion] = []
    for item in suggestions:
        source = index.get(item.source_key)
        target = index.get(item.target_key)
        changes = {}
        if not item.source_title and source is not None:
            changes["source_title"] = source.title
        if not item.target_title and target is not None:
            changes["target_title"] = target.title
            changes["title"] = target.title
        filled.append(dataclasses.replace(item, **changes) if changes else item)
    return filled


def select_bidirectional(
    suggestions: Sequence[BidirectionalSuggestion],
    index: Dict[ContentKey, InterlinkableContent],
    strategy: RankingStrategy,
    max_suggestions_per_item: int,
    *,
    pools: Optional[Dict[ContentKey, str]] = None,
    require_known_target: bool = False,
) -> List[BidirectionalSuggestion]:
    """Validate, mark reciprocity, rank and cap cross-corpus suggestions."""

    valid = [
        item
        for item in suggestions
        if is_admissible_bidirectional(item, index, strategy.min_relevance, pools, require_known_target)
    ]
    if len(valid) < len(suggestions):
        logger.debug("Dropped %d of %d bidirectional suggestions", len(suggestions) - len(valid), len(suggestions))

    valid = infer_reciprocity(dedupe_pairs(valid))
    ranked = strategy.rank(valid, len(valid))
    return fill_titles(cap_per_source(ranked, max_suggestions_per_item), index)
