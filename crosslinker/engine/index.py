"""Coordinator for the interlinking recommendation pipeline."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from . import bidirectional as bidirectional_module
from . import filters as filters_module
from . import normalize as normalize_module
from . import parsing as parsing_module
from . import prompts as prompts_module
from .backend import GenerationBackend, GenerationRequest, run_request
from .cache import CacheService, InMemoryCacheService, SingleFlight, TTL, cached_call, digest_text, ttl_from_name
from .config import EngineConfig, load_config
from .rank import (
    RankingStrategy,
    bidirectional_relevance_strategy,
    composite_strategy,
    get_strategy,
    legacy_relevance_strategy,
)
from .types import (
    QUESTION,
    BidirectionalSuggestion,
    InterlinkableContent,
    InterlinkingSuggestion,
    LegacyQuestionSuggestion,
)

logger = logging.getLogger(__name__)

INTERLINKS_NAMESPACE = "interlinks"
QUESTION_INTERLINKS_NAMESPACE = "question-interlinks"
BIDIRECTIONAL_NAMESPACE = "bidirectional-interlinks"

LEGACY_SOURCE_TITLE = "Question Content"


def _target_fingerprint(items: Sequence[InterlinkableContent]) -> List[Dict[str, Any]]:
    return [
        {"id": item.id, "type": item.type, "title": item.title, "content": digest_text(item.content)}
        for item in items
    ]


class InterlinkingEngine:
    """Produce validated, ranked link suggestions backed by a generation model.

    Every public operation is a coroutine that never raises: backend errors,
    unreadable responses and unexpected failures all end in an empty list.
    Results are memoized in ``cache`` and concurrent identical requests share
    a single backend call.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        *,
        cache: Optional[CacheService] = None,
        config: Optional[EngineConfig] = None,
        single_flight: bool = True,
    ) -> None:
        self.backend = backend
        self.cache: CacheService = cache if cache is not None else InMemoryCacheService()
        self.config = config or load_config(None)
        self.flight = SingleFlight() if single_flight else None

    def ttl_for(self, namespace: str) -> TTL:
        return ttl_from_name(self.config.ttl_tier(namespace))

    def _resolve_strategy(self, strategy: Union[str, RankingStrategy, None]) -> RankingStrategy:
        if strategy is None:
            return composite_strategy(self.config)
        if isinstance(strategy, str):
            return get_strategy(strategy, self.config)
        return strategy

    async def generate_interlinking_suggestions(
        self,
        source_content: str,
        source_title: str,
        source_type: str,
        target_contents: Iterable[InterlinkableContent],
        limit: Optional[int] = None,
        *,
        source_id: Optional[int] = None,
        strategy: Union[str, RankingStrategy, None] = None,
    ) -> List[InterlinkingSuggestion]:
        """Suggest where ``source_content`` should link to the given targets."""

        try:
            ranking = self._resolve_strategy(strategy)
            return await self._single_corpus(
                INTERLINKS_NAMESPACE,
                source_content,
                source_title,
                source_type,
                list(target_contents),
                self._limit(limit),
                ranking,
                source_id=source_id,
                legacy=False,
            )
        except Exception:
            logger.exception("Error generating interlinking suggestions")
            return []

    async def generate_question_interlinking_suggestions(
        self,
        content: str,
        existing_questions: Iterable[Any],
        limit: Optional[int] = None,
    ) -> List[LegacyQuestionSuggestion]:
        """Question-only variant kept for callers of the original API."""

        try:
            targets = [normalize_module.normalize_content(question, QUESTION) for question in existing_questions]
            suggestions = await self._single_corpus(
                QUESTION_INTERLINKS_NAMESPACE,
                content,
                LEGACY_SOURCE_TITLE,
                QUESTION,
                targets,
                self._limit(limit),
                legacy_relevance_strategy(self.config),
                source_id=None,
                legacy=True,
            )
        except Exception:
            logger.exception("Error generating question interlinking suggestions")
            return []
        return [
            LegacyQuestionSuggestion(
                question_id=item.content_id,
                title=item.title,
                relevance_score=item.relevance_score,
                anchor_text=item.anchor_text,
            )
            for item in suggestions
        ]

    async def generate_bidirectional_interlinking_suggestions(
        self,
        forum_content: Iterable[InterlinkableContent],
        main_site_content: Iterable[InterlinkableContent],
        max_suggestions_per_item: Optional[int] = None,
    ) -> List[BidirectionalSuggestion]:
        """Suggest links between the forum and the main site in both directions."""

        try:
            forum = list(forum_content)
            main_site = list(main_site_content)
            per_item = self._limit(max_suggestions_per_item)
            if not forum or not main_site or per_item <= 0:
                return []
            ranking = bidirectional_relevance_strategy(self.config)
            params = {
                "forum": _target_fingerprint(forum),
                "main_site": _target_fingerprint(main_site),
                "max_suggestions_per_item": per_item,
                "require_known_target": bool(self.config.get("require_known_target", False)),
                "strategy": ranking.name,
                "min_relevance": ranking.min_relevance,
            }

            async def compute() -> Tuple[List[BidirectionalSuggestion], bool]:
                return await self._run_bidirectional(forum, main_site, per_item, ranking)

            result = await cached_call(
                self.cache,
                BIDIRECTIONAL_NAMESPACE,
                params,
                self.ttl_for(BIDIRECTIONAL_NAMESPACE),
                compute,
                flight=self.flight,
            )
            return list(result)
        except Exception:
            logger.exception("Error generating bidirectional interlinking suggestions")
            return []

    def _limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return int(self.config.get("default_limit", 3))
        return int(limit)

    async def _single_corpus(
        self,
        namespace: str,
        source_content: str,
        source_title: str,
        source_type: str,
        targets: List[InterlinkableContent],
        limit: int,
        ranking: RankingStrategy,
        *,
        source_id: Optional[int],
        legacy: bool,
    ) -> List[InterlinkingSuggestion]:
        if not source_content or not targets or limit <= 0:
            return []

        params = {
            "source_content": source_content,
            "source_title": source_title,
            "source_type": source_type,
            "source_id": source_id,
            "targets": _target_fingerprint(targets),
            "limit": limit,
            "strategy": ranking.name,
            "min_relevance": ranking.min_relevance,
        }

        async def compute() -> Tuple[List[InterlinkingSuggestion], bool]:
            return await self._run_single_corpus(
                source_content,
                source_title,
                source_type,
                targets,
                limit,
                ranking,
                source_id=source_id,
                legacy=legacy,
            )

        result = await cached_call(
            self.cache,
            namespace,
            params,
            self.ttl_for(namespace),
            compute,
            flight=self.flight,
        )
        return list(result)

    async def _generate(self, request: GenerationRequest, label: str) -> Optional[parsing_module.DecodedResponse]:
        try:
            raw = await run_request(self.backend, request)
        except Exception:
            logger.exception("Generation backend failed while producing %s", label)
            return None
        decoded = parsing_module.decode_response(raw)
        if not decoded.recognized:
            return None
        return decoded

    async def _run_single_corpus(
        self,
        source_content: str,
        source_title: str,
        source_type: str,
        targets: List[InterlinkableContent],
        limit: int,
        ranking: RankingStrategy,
        *,
        source_id: Optional[int],
        legacy: bool,
    ) -> Tuple[List[InterlinkingSuggestion], bool]:
        exclude = (source_type, source_id) if source_id is not None else None
        candidates = normalize_module.normalize_candidates(
            targets,
            exclude=exclude,
            excerpt_length=int(self.config.get("excerpt_length", 200)),
        )
        if not candidates:
            return [], True

        request = prompts_module.build_suggestion_request(
            source_content,
            source_title,
            source_type,
            candidates,
            limit,
            self.config,
            legacy=legacy,
        )
        decoded = await self._generate(request, "interlinking suggestions")
        if decoded is None:
            return [], False

        parsed = parsing_module.suggestions_from_items(decoded.items)
        if legacy:
            # Question-only responses often leave out the content type.
            parsed = [
                item if item.content_type else dataclasses.replace(item, content_type=QUESTION)
                for item in parsed
            ]
        known_targets = None
        if self.config.get("require_known_target", False):
            known_targets = {(candidate.type, candidate.id) for candidate in candidates}
        valid = filters_module.filter_suggestions(parsed, source_content, ranking.min_relevance, known_targets)
        if exclude is not None:
            valid = [item for item in valid if (item.content_type, item.content_id) != exclude]
        ranked = ranking.rank(valid, limit, unique_targets=True)
        logger.info(
            "Interlinking produced %d suggestions from %d parsed (%s shape)",
            len(ranked),
            len(parsed),
            decoded.shape.value,
        )
        return self._fill_from_targets(ranked, targets), True

    async def _run_bidirectional(
        self,
        forum: List[InterlinkableContent],
        main_site: List[InterlinkableContent],
        max_suggestions_per_item: int,
        ranking: RankingStrategy,
    ) -> Tuple[List[BidirectionalSuggestion], bool]:
        excerpt_length = int(self.config.get("excerpt_length", 200))
        request = prompts_module.build_bidirectional_request(
            normalize_module.normalize_candidates(forum, excerpt_length=excerpt_length),
            normalize_module.normalize_candidates(main_site, excerpt_length=excerpt_length),
            max_suggestions_per_item,
            self.config,
        )
        decoded = await self._generate(request, "bidirectional suggestions")
        if decoded is None:
            return [], False

        parsed = parsing_module.bidirectional_from_items(decoded.items)
        index = bidirectional_module.index_pools(forum, main_site)
        selected = bidirectional_module.select_bidirectional(
            parsed,
            index,
            ranking,
            max_suggestions_per_item,
            pools=bidirectional_module.pool_membership(forum, main_site),
            require_known_target=bool(self.config.get("require_known_target", False)),
        )
        logger.info("Bidirectional interlinking produced %d suggestions from %d parsed", len(selected), len(parsed))
        return selected, True

    def _fill_from_targets(
        self,
        suggestions: Sequence[InterlinkingSuggestion],
        targets: Sequence[InterlinkableContent],
    ) -> List[InterlinkingSuggestion]:
        """Fill missing titles and previews from the candidate pool."""

        lookup = {(item.type, item.id): item for item in targets}
        preview_length = int(self.config.get("preview_length", 100))
        filled: List[InterlinkingSuggestion] = []
        for suggestion in suggestions:
            target = lookup.get((suggestion.content_type, suggestion.content_id))
            changes: Dict[str, Any] = {}
            if target is not None:
                if not suggestion.title:
                    changes["title"] = target.title
                if not suggestion.preview:
                    changes["preview"] = normalize_module.make_excerpt(target.content, preview_length)
            filled.append(dataclasses.replace(suggestion, **changes) if changes else suggestion)
        return filled
