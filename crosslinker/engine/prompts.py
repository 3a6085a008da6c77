"""Prompt assembly for interlinking generation requests."""

from __future__ import annotations

import json
from typing import Sequence

from .backend import GenerationOptions, GenerationRequest
from .config import EngineConfig
from .types import CandidateExcerpt

INTERLINKING_SYSTEM_PROMPT = """You are an advanced content interlinking strategist specializing in semantic web optimization for a platform that combines a Q&A forum with a main website.

CURRENT ROLE: Analyze content to identify high-value opportunities for internal linking that enhance both user experience and SEO performance.

Evaluate every linking opportunity on:
- Semantic similarity between source and target content
- User intent alignment (would a reader want to follow this link?)
- SEO impact potential (topical relevance, building a clear topical hierarchy)
- Context relevance (does the link make sense at this exact spot?)

GUIDELINES FOR SELECTING LINKS:
1. The anchor text MUST be an exact phrase that already exists in the source content. Copy it character for character.
2. Only suggest links that add genuine value for readers by connecting to related information.
3. Prioritize links that reinforce a logical content hierarchy and topic clusters.
4. Do not force links: skip candidates that are irrelevant or only loosely related.
5. Only suggest links with high relevance (75+ out of 100).
6. Return at most {limit} suggestions.

OUTPUT FORMAT:
Return a JSON object with an array called "suggestions" whose items have exactly these properties:
{{
  "suggestions": [
    {{
      "contentId": number,            // ID of the content to link to
      "contentType": string,          // "question", "answer" or "main_page"
      "title": string,                // Title of the target content
      "relevanceScore": number,       // 0-100 overall relevance
      "anchorText": string,           // EXACT text in the source that becomes the link
      "contextRelevance": string,     // Why this link fits in this context
      "semanticSimilarity": number,   // 0-1 concept similarity
      "userIntentAlignment": number,  // 0-1 alignment with reader needs
      "seoImpact": number,            // 0-1 SEO benefit potential
      "preview": string               // Short preview of the target (max 100 chars)
    }}
  ]
}}"""

LEGACY_SYSTEM_PROMPT = """You are an interlinking analysis tool for a Q&A forum.
Identify existing questions that the given content should link to.

Provide output as a JSON object with a key called "suggestions" containing an array of objects with these exact properties:
{{
  "suggestions": [
    {{
      "contentId": number,      // The ID of the question to link to
      "contentType": string,    // Always "question"
      "title": string,          // The title of the question
      "relevanceScore": number, // A score from 0-100 indicating relevance
      "anchorText": string      // The text in the source content that should become the link
    }}
  ]
}}

Important guidelines:
1. Make sure the "anchorText" is an exact substring that exists in the original content.
2. Only provide suggestions where the anchorText appears exactly in the content.
3. Add links that help readers and improve SEO; avoid forced or irrelevant links.
4. Limit results to the most valuable links (max {limit})."""

BIDIRECTIONAL_SYSTEM_PROMPT = """You are an interlinking strategist connecting a Q&A forum with the main website of the same business.

You receive two pools of content: forum items (questions and answers) and main site pages.
Propose links in BOTH directions: from forum items to main site pages and from main site pages to forum items.
For each proposed link, set "bidirectional" to true when the two items should also link back to each other.

GUIDELINES:
1. The anchor text MUST be an exact phrase that exists in the SOURCE item's content.
2. Only propose links that add reader value and strengthen the topical hierarchy; avoid forced or irrelevant links.
3. Only propose links with high relevance (75+ out of 100).
4. Propose at most {limit} links per source item.

OUTPUT FORMAT:
Return a JSON object with an array called "suggestions" whose items have exactly these properties:
{{
  "suggestions": [
    {{
      "sourceId": number,
      "sourceType": string,         // "question", "answer" or "main_page"
      "sourceTitle": string,
      "targetId": number,
      "targetType": string,         // "question", "answer" or "main_page"
      "targetTitle": string,
      "anchorText": string,         // EXACT text in the source item
      "relevanceScore": number,     // 0-100
      "contextRelevance": string,
      "bidirectional": boolean
    }}
  ]
}}"""


def _options(config: EngineConfig, path: str) -> GenerationOptions:
    return GenerationOptions(
        temperature=float(config.generation_option(path, "temperature", 0.4)),
        max_tokens=int(config.generation_option(path, "max_tokens", 1500)),
        response_format=config.generation_option(path, "response_format", "json_object"),
    )


def _candidate_json(candidates: Sequence[CandidateExcerpt]) -> str:
    return json.dumps([candidate.to_prompt_dict() for candidate in candidates], ensure_ascii=False)


def build_suggestion_request(
    source_content: str,
    source_title: str,
    source_type: str,
    candidates: Sequence[CandidateExcerpt],
    limit: int,
    config: EngineConfig,
    *,
    legacy: bool = False,
) -> GenerationRequest:
    """Assemble the single-corpus prompt: full source plus candidate excerpts."""

    prompt = (
        f"Source Content Title: {source_title}\n"
        f"Source Type: {source_type}\n"
        f"Source Content:\n{source_content}\n\n"
        "Analyze this content and identify opportunities for interlinking with these existing content items:\n"
        f"{_candidate_json(candidates)}\n\n"
        "Recommend only links that add value to readers, improve SEO through a clear topical hierarchy, "
        "and enhance the journey between forum content and main site content. "
        "Do not suggest forced or irrelevant links."
    )
    template = LEGACY_SYSTEM_PROMPT if legacy else INTERLINKING_SYSTEM_PROMPT
    path = "legacy" if legacy else "primary"
    return GenerationRequest(
        system=template.format(limit=limit),
        prompt=prompt,
        options=_options(config, path),
    )


def build_bidirectional_request(
    forum_candidates: Sequence[CandidateExcerpt],
    main_site_candidates: Sequence[CandidateExcerpt],
    max_suggestions_per_item: int,
    config: EngineConfig,
) -> GenerationRequest:
    """Assemble the cross-corpus prompt covering both pools in one pass."""

    prompt = (
        "Forum content:\n"
        f"{_candidate_json(forum_candidates)}\n\n"
        "Main site content:\n"
        f"{_candidate_json(main_site_candidates)}\n\n"
        "Identify links from forum content to main site pages and from main site pages to forum content. "
        "Only recommend links that add value to readers and improve SEO through a clear topical hierarchy; "
        "skip forced or irrelevant links. Mark mutual links with \"bidirectional\": true."
    )
    return GenerationRequest(
        system=BIDIRECTIONAL_SYSTEM_PROMPT.format(limit=max_suggestions_per_item),
        prompt=prompt,
        options=_options(config, "bidirectional"),
    )
