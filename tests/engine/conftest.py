"""Shared fixtures for engine tests."""

from __future__ import annotations

import asyncio
import json
from typing import Any, List

import pytest

from crosslinker.engine.backend import GenerationOptions
from crosslinker.engine.cache import InMemoryCacheService
from crosslinker.engine.config import load_config
from crosslinker.engine.index import InterlinkingEngine
from crosslinker.engine.types import InterlinkableContent


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    """Generation backend returning canned responses and recording calls."""

    def __init__(self, *responses: Any, error: Exception | None = None, delay: float = 0.0) -> None:
        self.responses: List[str] = [r if isinstance(r, str) else json.dumps(r) for r in responses]
        self.error = error
        self.delay = delay
        self.calls: List[tuple[str, str, GenerationOptions]] = []

    async def generate(self, system: str, prompt: str, options: GenerationOptions) -> str:
        self.calls.append((system, prompt, options))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if not self.responses:
            return ""
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


@pytest.fixture()
def engine_config():
    """Provide a mutable copy of the default engine configuration."""

    return load_config(None)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def memory_cache(clock):
    return InMemoryCacheService(clock=clock)


def make_engine(backend: FakeBackend, cache=None, config=None) -> InterlinkingEngine:
    return InterlinkingEngine(backend, cache=cache if cache is not None else InMemoryCacheService(), config=config)


def make_content(id: int, type: str, title: str, content: str = "") -> InterlinkableContent:
    return InterlinkableContent(id=id, type=type, title=title, content=content or f"{title} explained in detail.")


def suggestion(
    content_id: int,
    anchor_text: str,
    relevance: float = 88,
    *,
    content_type: str = "main_page",
    title: str = "",
    semantic: float = 0.8,
    intent: float = 0.8,
    seo: float = 0.8,
) -> dict:
    """Backend-style suggestion item."""

    return {
        "contentId": content_id,
        "contentType": content_type,
        "title": title,
        "relevanceScore": relevance,
        "anchorText": anchor_text,
        "contextRelevance": "Related topic",
        "semanticSimilarity": semantic,
        "userIntentAlignment": intent,
        "seoImpact": seo,
        "preview": "",
    }
