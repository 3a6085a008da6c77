"""Decode raw generation output into suggestion objects.

Different prompts have historically produced three interchangeable
top-level shapes::

    {"suggestions": [...]}
    [...]
    {"interlinkingSuggestions": [...]}

Decoding tries each shape in turn against a schema and falls through to
an explicit ``UNRECOGNIZED`` result, which callers treat as an empty
answer. Individual items are read leniently: either ``contentId`` or
``id``, either ``contentType`` or ``type``, missing or ill-typed numbers
become ``0`` and missing strings become ``""``.
"""

from __future__ import annotations

import enum
import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from .types import BidirectionalSuggestion, InterlinkingSuggestion

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```[A-Za-z]*\s*(.*?)\s*```$", re.DOTALL)


class ResponseShape(enum.Enum):
    SUGGESTIONS = "suggestions"
    BARE_LIST = "bare_list"
    INTERLINKING_SUGGESTIONS = "interlinkingSuggestions"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class DecodedResponse:
    """Result of the shape decode: which variant matched and its raw items."""

    shape: ResponseShape
    items: List[Any] = field(default_factory=list)
    error: str | None = None

    @property
    def recognized(self) -> bool:
        return self.shape is not ResponseShape.UNRECOGNIZED


class _SuggestionsEnvelope(BaseModel):
    suggestions: List[Any]


class _InterlinkingEnvelope(BaseModel):
    interlinking_suggestions: List[Any] = Field(alias="interlinkingSuggestions")


_BARE_LIST = TypeAdapter(List[Any])


def _as_id(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return 0


def _as_score(value: Any, upper: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    try:
        if not math.isfinite(value):
            return 0.0
    except OverflowError:
        # JSON integers beyond float range.
        return 0.0
    return float(min(max(value, 0.0), upper))


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _first(data: Mapping[str, Any], *names: str) -> Any:
    # Falsy values fall through to the next alias, matching older backends
    # that emitted ``"contentId": 0`` next to a usable ``"id"``.
    for name in names:
        value = data.get(name)
        if value:
            return value
    return None


class RawSuggestion(BaseModel):
    """Schema for one single-corpus suggestion item."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    content_id: int = 0
    content_type: str = ""
    title: str = ""
    relevance_score: float = 0.0
    anchor_text: str = ""
    context_relevance: str = ""
    semantic_similarity: float = 0.0
    user_intent_alignment: float = 0.0
    seo_impact: float = 0.0
    preview: str = ""

    @model_validator(mode="before")
    @classmethod
    def _read_backend_fields(cls, data: Any) -> Dict[str, Any]:
        if not isinstance(data, Mapping):
            return {}
        return {
            "content_id": _as_id(_first(data, "contentId", "id", "questionId")),
            "content_type": _as_text(_first(data, "contentType", "type")),
            "title": _as_text(data.get("title")),
            "relevance_score": _as_score(data.get("relevanceScore"), 100.0),
            "anchor_text": _as_text(data.get("anchorText")),
            "context_relevance": _as_text(data.get("contextRelevance")),
            "semantic_similarity": _as_score(data.get("semanticSimilarity"), 1.0),
            "user_intent_alignment": _as_score(data.get("userIntentAlignment"), 1.0),
            "seo_impact": _as_score(data.get("seoImpact"), 1.0),
            "preview": _as_text(data.get("preview")),
        }

    def to_suggestion(self) -> InterlinkingSuggestion:
        return InterlinkingSuggestion(**self.model_dump())


class RawBidirectionalSuggestion(BaseModel):
    """Schema for one cross-corpus suggestion item."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    source_id: int = 0
    source_type: str = ""
    source_title: str = ""
    target_id: int = 0
    target_type: str = ""
    target_title: str = ""
    anchor_text: str = ""
    relevance_score: float = 0.0
    context_relevance: str = ""
    semantic_similarity: float = 0.0
    user_intent_alignment: float = 0.0
    seo_impact: float = 0.0
    preview: str = ""
    bidirectional: bool = False

    @model_validator(mode="before")
    @classmethod
    def _read_backend_fields(cls, data: Any) -> Dict[str, Any]:
        if not isinstance(data, Mapping):
            return {}
        flag = data.get("bidirectional")
        return {
            "source_id": _as_id(data.get("sourceId")),
            "source_type": _as_text(data.get("sourceType")),
            "source_title": _as_text(data.get("sourceTitle")),
            "target_id": _as_id(_first(data, "targetId", "contentId", "id")),
            "target_type": _as_text(_first(data, "targetType", "contentType", "type")),
            "target_title": _as_text(_first(data, "targetTitle", "title")),
            "anchor_text": _as_text(data.get("anchorText")),
            "relevance_score": _as_score(data.get("relevanceScore"), 100.0),
            "context_relevance": _as_text(data.get("contextRelevance")),
            "semantic_similarity": _as_score(data.get("semanticSimilarity"), 1.0),
            "user_intent_alignment": _as_score(data.get("userIntentAlignment"), 1.0),
            "seo_impact": _as_score(data.get("seoImpact"), 1.0),
            "preview": _as_text(data.get("preview")),
            "bidirectional": flag if isinstance(flag, bool) else False,
        }

    def to_suggestion(self) -> BidirectionalSuggestion:
        return BidirectionalSuggestion(
            content_id=self.target_id,
            content_type=self.target_type,
            title=self.target_title,
            relevance_score=self.relevance_score,
            anchor_text=self.anchor_text,
            context_relevance=self.context_relevance,
            semantic_similarity=self.semantic_similarity,
            user_intent_alignment=self.user_intent_alignment,
            seo_impact=self.seo_impact,
            preview=self.preview,
            source_id=self.source_id,
            source_type=self.source_type,
            source_title=self.source_title,
            target_id=self.target_id,
            target_type=self.target_type,
            target_title=self.target_title,
            bidirectional=self.bidirectional,
        )


def _strip_fences(raw: str) -> str:
    text = raw.strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1)
    return text


def _unrecognized(reason: str) -> DecodedResponse:
    logger.warning("Unrecognized generation response: %s", reason)
    return DecodedResponse(ResponseShape.UNRECOGNIZED, error=reason)


def decode_response(raw: str | None) -> DecodedResponse:
    """Classify ``raw`` into one of the known response shapes."""

    if not raw or not raw.strip():
        return _unrecognized("empty response")

    try:
        payload = json.loads(_strip_fences(raw))
    except (TypeError, ValueError) as exc:
        return _unrecognized(f"invalid JSON: {exc}")

    try:
        envelope = _SuggestionsEnvelope.model_validate(payload)
        return DecodedResponse(ResponseShape.SUGGESTIONS, envelope.suggestions)
    except ValidationError:
        pass

    try:
        return DecodedResponse(ResponseShape.BARE_LIST, _BARE_LIST.validate_python(payload))
    except ValidationError:
        pass

    try:
        alternate = _InterlinkingEnvelope.model_validate(payload)
        return DecodedResponse(ResponseShape.INTERLINKING_SUGGESTIONS, alternate.interlinking_suggestions)
    except ValidationError:
        pass

    keys = sorted(payload) if isinstance(payload, dict) else type(payload).__name__
    return _unrecognized(f"unexpected top-level shape: {keys}")


def suggestions_from_items(items: List[Any]) -> List[InterlinkingSuggestion]:
    return [RawSuggestion.model_validate(item).to_suggestion() for item in items]


def bidirectional_from_items(items: List[Any]) -> List[BidirectionalSuggestion]:
    return [RawBidirectionalSuggestion.model_validate(item).to_suggestion() for item in items]


def parse_suggestions(raw: str | None) -> List[InterlinkingSuggestion]:
    """Return single-corpus suggestions from ``raw``; ``[]`` when unrecognized."""

    decoded = decode_response(raw)
    if not decoded.recognized:
        return []
    return suggestions_from_items(decoded.items)


def parse_bidirectional_suggestions(raw: str | None) -> List[BidirectionalSuggestion]:
    """Return cross-corpus suggestions from ``raw``; ``[]`` when unrecognized."""

    decoded = decode_response(raw)
    if not decoded.recognized:
        return []
    return bidirectional_from_items(decoded.items)
