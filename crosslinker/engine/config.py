"""Configuration helpers for the interlinking engine."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml


@dataclass(frozen=True)
class EngineConfig:
    """Typed wrapper around the engine configuration dictionary."""

    raw: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)

    def ranking_weight(self, name: str) -> float:
        weights = self.raw.get("weights", {})
        return float(weights.get(name, 0.0))

    def threshold(self, path: str) -> float:
        thresholds = self.raw.get("thresholds", {})
        return float(thresholds.get(path, 0.0))

    def generation_option(self, path: str, key: str, default: Any = None) -> Any:
        generation = self.raw.get("generation", {})
        options = generation.get(path, {})
        if key in options:
            return options[key]
        return generation.get(key, default)

    def ttl_tier(self, namespace: str) -> str:
        tiers = self.raw.get("cache_tiers", {})
        return str(tiers.get(namespace, "MEDIUM"))


DEFAULTS: Dict[str, Any] = {
    "excerpt_length": 200,
    "preview_length": 100,
    "default_limit": 3,
    "require_known_target": False,
    "thresholds": {
        "primary": 75,
        "bidirectional": 75,
        "legacy": 50,
    },
    "weights": {
        "relevance": 0.6,
        "semantic_similarity": 0.15,
        "user_intent_alignment": 0.15,
        "seo_impact": 0.10,
    },
    "generation": {
        "temperature": 0.4,
        "max_tokens": 1500,
        "response_format": "json_object",
        "bidirectional": {
            "temperature": 0.3,
            "max_tokens": 2500,
        },
    },
    # Namespaces used by generation-backed operations and their TTL tier.
    "cache_tiers": {
        "interlinks": "MEDIUM",
        "bidirectional-interlinks": "MEDIUM",
        "question-interlinks": "MEDIUM",
        "generate-content": "SHORT",
        "generate-answer": "LONG",
        "generate-questions": "LONG",
        "analyze-seo": "LONG",
        "keyword-analysis": "VERY_LONG",
        "industry-analysis": "VERY_LONG",
    },
}


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Load configuration from YAML, merging with defaults."""

    data: Dict[str, Any] = copy.deepcopy(DEFAULTS)

    if path is not None and Path(path).exists():
        with Path(path).open("r", encoding="utf-8") as stream:
            user = yaml.safe_load(stream) or {}
        merge_into(data, user)

    return EngineConfig(data)


def merge_into(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Recursively merge override into base dict."""

    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merge_into(base[key], value)
        else:
            base[key] = value
