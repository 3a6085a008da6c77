"""Admissibility checks applied to parsed suggestions."""

from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional, Set, Tuple

from .types import ALLOWED_CONTENT_TYPES, BidirectionalSuggestion, InterlinkableContent, InterlinkingSuggestion

logger = logging.getLogger(__name__)


def anchor_in_source(anchor_text: str, source_content: str) -> bool:
    """True when the anchor occurs verbatim in the untruncated source."""

    return bool(anchor_text) and anchor_text in source_content


def is_admissible(
    suggestion: InterlinkingSuggestion,
    source_content: str,
    threshold: float,
    known_targets: Optional[Set[Tuple[str, int]]] = None,
) -> bool:
    """Return True when a single-corpus suggestion may be shown to readers."""

    if suggestion.content_id <= 0:
        return False
    if not anchor_in_source(suggestion.anchor_text, source_content):
        return False
    if suggestion.relevance_score < threshold:
        return False
    if suggestion.content_type not in ALLOWED_CONTENT_TYPES:
        return False
    if known_targets is not None and (suggestion.content_type, suggestion.content_id) not in known_targets:
        return False
    return True


def filter_suggestions(
    suggestions: Iterable[InterlinkingSuggestion],
    source_content: str,
    threshold: float,
    known_targets: Optional[Set[Tuple[str, int]]] = None,
) -> List[InterlinkingSuggestion]:
    kept: List[InterlinkingSuggestion] = []
    rejected = 0
    for suggestion in suggestions:
        if is_admissible(suggestion, source_content, threshold, known_targets):
            kept.append(suggestion)
        else:
            rejected += 1
    if rejected:
        logger.debug("Dropped %d of %d interlinking suggestions", rejected, rejected + len(kept))
    return kept


def is_admissible_bidirectional(
    suggestion: BidirectionalSuggestion,
    sources: Mapping[Tuple[str, int], InterlinkableContent],
    threshold: float,
    pools: Optional[Mapping[Tuple[str, int], str]] = None,
    require_known_target: bool = False,
) -> bool:
    """Return True when a cross-corpus suggestion passes every check.

    The anchor text must occur in the content of the item the link starts
    from, so suggestions whose source is not in either pool are rejected.
    With ``pools`` a link must cross from one pool to the other; a target
    missing from both pools is only kept when ``require_known_target`` is
    off.
    """

    if suggestion.source_id <= 0 or suggestion.target_id <= 0:
        return False
    if suggestion.source_type not in ALLOWED_CONTENT_TYPES:
        return False
    if suggestion.target_type not in ALLOWED_CONTENT_TYPES:
        return False
    if suggestion.relevance_score < threshold:
        return False
    if suggestion.source_key == suggestion.target_key:
        return False
    source = sources.get(suggestion.source_key)
    if source is None:
        return False
    if require_known_target and suggestion.target_key not in sources:
        return False
    if pools is not None:
        target_pool = pools.get(suggestion.target_key)
        if target_pool is not None and target_pool == pools.get(suggestion.source_key):
            return False
    return anchor_in_source(suggestion.anchor_text, source.content)
