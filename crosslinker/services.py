"""Service functions wiring the interlinking engine into Django.

These helpers build the engine from project settings, adapt Django's
cache framework to the engine's cache contract and expose the
interlinking operations as plain coroutines so views and other platform
services can call them without knowing how the engine is assembled.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping

from django.conf import settings
from django.core.cache import caches

from .engine.backend import GenerationBackend, OpenAIGenerationBackend
from .engine.cache import CacheService, InMemoryCacheService, derive_cache_key
from .engine.config import load_config
from .engine.index import InterlinkingEngine
from .engine.normalize import normalize_content
from .engine.types import (
    ALLOWED_CONTENT_TYPES,
    BidirectionalSuggestion,
    InterlinkableContent,
    InterlinkingSuggestion,
    LegacyQuestionSuggestion,
)

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = 'crosslinker'

_engine: InterlinkingEngine | None = None


class DjangoCacheService:
    """Engine cache backed by one of the project's configured ``CACHES``.

    Any failure inside the cache framework is logged and reported as a miss
    so an unavailable cache server never breaks suggestion requests.
    """

    def __init__(self, cache_alias: str = 'default', key_prefix: str = CACHE_KEY_PREFIX) -> None:
        self.cache = caches[cache_alias]
        self.key_prefix = key_prefix

    def _key(self, namespace: str, params: Mapping[str, Any]) -> str:
        return f"{self.key_prefix}:{derive_cache_key(namespace, params)}"

    def get(self, namespace: str, params: Mapping[str, Any]) -> Any | None:
        try:
            return self.cache.get(self._key(namespace, params))
        except Exception:
            logger.warning('Django cache lookup failed for namespace %s', namespace, exc_info=True)
            return None

    def set(self, namespace: str, params: Mapping[str, Any], value: Any, ttl: int) -> None:
        try:
            self.cache.set(self._key(namespace, params), value, timeout=int(ttl))
        except Exception:
            logger.warning('Django cache store failed for namespace %s', namespace, exc_info=True)

    def delete(self, namespace: str, params: Mapping[str, Any]) -> None:
        try:
            self.cache.delete(self._key(namespace, params))
        except Exception:
            logger.warning('Django cache delete failed for namespace %s', namespace, exc_info=True)


def build_cache() -> CacheService:
    """Return the cache implementation selected by ``CROSSLINKER_CACHE_BACKEND``."""

    if settings.CROSSLINKER_CACHE_BACKEND == 'django':
        return DjangoCacheService(settings.CROSSLINKER_CACHE_ALIAS)
    max_entries = settings.CROSSLINKER_CACHE_MAX_ENTRIES
    return InMemoryCacheService(max_entries=max_entries if max_entries > 0 else None)


def build_backend() -> GenerationBackend:
    return OpenAIGenerationBackend(
        api_key=settings.OPENAI_API_KEY or None,
        model=settings.CROSSLINKER_MODEL,
        timeout=settings.CROSSLINKER_BACKEND_TIMEOUT,
    )


def get_engine() -> InterlinkingEngine:
    """Return the process-wide engine, building it from settings on first use."""

    global _engine
    if _engine is None:
        _engine = InterlinkingEngine(
            build_backend(),
            cache=build_cache(),
            config=load_config(settings.CROSSLINKER_ENGINE_CONFIG),
        )
    return _engine


def set_engine(engine: InterlinkingEngine | None) -> None:
    """Replace the process-wide engine (``None`` rebuilds it lazily)."""

    global _engine
    _engine = engine


def to_interlinkable(records: Iterable[Any], default_type: str | None = None) -> List[InterlinkableContent]:
    """Normalize raw records, reading each record's ``type`` when present.

    Records with an unknown type and no usable ``default_type`` are skipped.
    """

    items: List[InterlinkableContent] = []
    for record in records:
        record_type = record.get('type') if isinstance(record, Mapping) else getattr(record, 'type', None)
        content_type = record_type if record_type in ALLOWED_CONTENT_TYPES else default_type
        if content_type is None:
            logger.debug('Skipping content record with unknown type %r', record_type)
            continue
        items.append(normalize_content(record, content_type))
    return items


async def generate_interlinking_suggestions(
    source_content: str,
    source_title: str,
    source_type: str,
    target_contents: Iterable[InterlinkableContent],
    limit: int | None = None,
    *,
    source_id: int | None = None,
) -> List[InterlinkingSuggestion]:
    return await get_engine().generate_interlinking_suggestions(
        source_content,
        source_title,
        source_type,
        target_contents,
        limit,
        source_id=source_id,
    )


async def generate_bidirectional_interlinking_suggestions(
    forum_content: Iterable[InterlinkableContent],
    main_site_content: Iterable[InterlinkableContent],
    max_suggestions_per_item: int | None = None,
) -> List[BidirectionalSuggestion]:
    return await get_engine().generate_bidirectional_interlinking_suggestions(
        forum_content,
        main_site_content,
        max_suggestions_per_item,
    )


async def generate_question_interlinking_suggestions(
    content: str,
    existing_questions: Iterable[Any],
    limit: int | None = None,
) -> List[LegacyQuestionSuggestion]:
    return await get_engine().generate_question_interlinking_suggestions(content, existing_questions, limit)
