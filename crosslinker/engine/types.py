"""Typed data structures used by the interlinking pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

QUESTION = "question"
ANSWER = "answer"
MAIN_PAGE = "main_page"

ALLOWED_CONTENT_TYPES = frozenset({QUESTION, ANSWER, MAIN_PAGE})


@dataclass(frozen=True)
class InterlinkableContent:
    """Minimal projection of a stored content record that can be linked to."""

    id: int
    type: str
    title: str
    content: str


@dataclass(frozen=True)
class CandidateExcerpt:
    """Prompt-facing view of a candidate, carrying a truncated excerpt."""

    id: int
    type: str
    title: str
    excerpt: str

    def to_prompt_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "title": self.title, "excerpt": self.excerpt}


@dataclass(frozen=True)
class InterlinkingSuggestion:
    """Suggested link from the analyzed source content to a candidate."""

    content_id: int
    content_type: str
    title: str
    relevance_score: float
    anchor_text: str
    context_relevance: str = ""
    semantic_similarity: float = 0.0
    user_intent_alignment: float = 0.0
    seo_impact: float = 0.0
    preview: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contentId": self.content_id,
            "contentType": self.content_type,
            "title": self.title,
            "relevanceScore": self.relevance_score,
            "anchorText": self.anchor_text,
            "contextRelevance": self.context_relevance,
            "semanticSimilarity": self.semantic_similarity,
            "userIntentAlignment": self.user_intent_alignment,
            "seoImpact": self.seo_impact,
            "preview": self.preview,
        }


@dataclass(frozen=True)
class BidirectionalSuggestion(InterlinkingSuggestion):
    """Cross-corpus suggestion; ``content_*`` fields mirror the target."""

    source_id: int = 0
    source_type: str = ""
    source_title: str = ""
    target_id: int = 0
    target_type: str = ""
    target_title: str = ""
    bidirectional: bool = False

    @property
    def source_key(self) -> tuple[str, int]:
        return (self.source_type, self.source_id)

    @property
    def target_key(self) -> tuple[str, int]:
        return (self.target_type, self.target_id)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "sourceId": self.source_id,
                "sourceType": self.source_type,
                "sourceTitle": self.source_title,
                "targetId": self.target_id,
                "targetType": self.target_type,
                "targetTitle": self.target_title,
                "bidirectional": self.bidirectional,
            }
        )
        return data


@dataclass(frozen=True)
class LegacyQuestionSuggestion:
    """Question-only suggestion shape kept for older callers."""

    question_id: int
    title: str
    relevance_score: float
    anchor_text: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionId": self.question_id,
            "title": self.title,
            "relevanceScore": self.relevance_score,
            "anchorText": self.anchor_text,
        }
