"""Reduce stored content records to the shape the engine links between."""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from bs4 import BeautifulSoup  # type: ignore

from .types import ANSWER, CandidateExcerpt, InterlinkableContent

ELLIPSIS = "..."

_WHITESPACE_RE = re.compile(r"\s+")
_MARKUP_HINT_RE = re.compile(r"<[A-Za-z/!][^>]*>")


def _field(record: Any, *names: str, default: Any = None) -> Any:
    """Read the first present field from a mapping or an attribute object."""

    for name in names:
        if isinstance(record, Mapping):
            value = record.get(name)
        else:
            value = getattr(record, name, None)
        if value is not None:
            return value
    return default


def normalize_content(record: Any, content_type: str) -> InterlinkableContent:
    """Project a question, answer or page record into :class:`InterlinkableContent`.

    Records may be plain dicts (as decoded from JSON) or model-like objects.
    Answers usually carry no title of their own, so they are labelled after
    the question they belong to.
    """

    raw_id = _field(record, "id", default=0)
    try:
        content_id = int(raw_id)
    except (TypeError, ValueError):
        content_id = 0

    title = str(_field(record, "title", default="") or "").strip()
    if not title and content_type == ANSWER:
        question_id = _field(record, "questionId", "question_id")
        if question_id is not None:
            title = f"Answer to question {question_id}"

    content = _field(record, "content", "body", "text", default="")
    return InterlinkableContent(
        id=content_id,
        type=content_type,
        title=title,
        content=str(content or ""),
    )


def plain_text(content: str) -> str:
    """Strip markup and collapse whitespace for prompt display."""

    if not content:
        return ""
    if _MARKUP_HINT_RE.search(content):
        content = BeautifulSoup(content, "html.parser").get_text(" ")
    return _WHITESPACE_RE.sub(" ", content).strip()


def make_excerpt(content: str, length: int = 200) -> str:
    """Return the first ``length`` characters of the plain text, marked when cut."""

    text = plain_text(content)
    if len(text) <= length:
        return text
    return text[:length].rstrip() + ELLIPSIS


def to_candidate_excerpt(item: InterlinkableContent, length: int = 200) -> CandidateExcerpt:
    return CandidateExcerpt(
        id=item.id,
        type=item.type,
        title=item.title,
        excerpt=make_excerpt(item.content, length),
    )


def normalize_candidates(
    contents: Iterable[InterlinkableContent],
    *,
    exclude: Optional[Tuple[str, int]] = None,
    excerpt_length: int = 200,
) -> List[CandidateExcerpt]:
    """Build prompt excerpts for candidates, skipping the source item itself."""

    candidates: List[CandidateExcerpt] = []
    seen: set[Tuple[str, int]] = set()
    for item in contents:
        key = (item.type, item.id)
        if exclude is not None and key == exclude:
            continue
        if key in seen:
            continue
        seen.add(key)
        candidates.append(to_candidate_excerpt(item, excerpt_length))
    return candidates
