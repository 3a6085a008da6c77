"""Adapter for the text-generation backend.

The engine only needs one capability from the backend: turn a system
instruction and a user prompt into raw text. Anything that can do that
satisfies :class:`GenerationBackend`; production uses the OpenAI chat
completions API through ``AsyncOpenAI``.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Protocol, Tuple

from openai import AsyncOpenAI, OpenAIError

logger = logging.getLogger(__name__)


class GenerationBackendError(Exception):
    """Raised when the generation backend fails or cannot be reached."""


@dataclass(frozen=True)
class GenerationOptions:
    """Sampling options passed along with every generation request."""

    temperature: float = 0.4
    max_tokens: int = 1500
    response_format: str | None = "json_object"


@dataclass(frozen=True)
class GenerationRequest:
    """A fully assembled prompt ready to send to the backend."""

    system: str
    prompt: str
    options: GenerationOptions


class GenerationBackend(Protocol):
    async def generate(self, system: str, prompt: str, options: GenerationOptions) -> str:
        ...


class OpenAIGenerationBackend:
    """Chat-completions backend returning the raw message text.

    ``AsyncOpenAI`` keeps pooled connections bound to the event loop that
    opened them. Django serves async views over WSGI on a fresh loop per
    request, so a lazily built client only lives as long as its loop: a
    call from a different loop gets a new client. An injected ``client``
    is always used as is.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "gpt-4o",
        timeout: float = 60.0,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self.base_url = base_url
        self._api_key = api_key
        self._client = client
        self._bound: Tuple[asyncio.AbstractEventLoop, AsyncOpenAI] | None = None

    def _build_client(self) -> AsyncOpenAI:
        key = self._api_key or os.environ.get("OPENAI_API_KEY", "")
        if not key:
            raise GenerationBackendError(
                "No OpenAI API key found. Set OPENAI_API_KEY or pass api_key=."
            )
        return AsyncOpenAI(api_key=key, base_url=self.base_url, timeout=self.timeout)

    def client_for_running_loop(self) -> AsyncOpenAI:
        if self._client is not None:
            return self._client
        loop = asyncio.get_running_loop()
        bound = self._bound
        if bound is not None and bound[0] is loop:
            return bound[1]
        client = self._build_client()
        # Single assignment so concurrent threads never see a mismatched pair.
        self._bound = (loop, client)
        logger.debug("Built OpenAI client for event loop %#x", id(loop))
        return client

    async def generate(self, system: str, prompt: str, options: GenerationOptions) -> str:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
        }
        if options.response_format:
            kwargs["response_format"] = {"type": options.response_format}

        client = self.client_for_running_loop()
        try:
            response = await client.chat.completions.create(**kwargs)
        except OpenAIError as exc:
            raise GenerationBackendError(f"Generation request failed: {exc}") from exc

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


async def run_request(backend: GenerationBackend, request: GenerationRequest) -> str:
    """Send ``request`` to ``backend`` and return its raw text."""

    logger.debug(
        "Sending generation request (%d prompt chars, temperature=%s)",
        len(request.prompt),
        request.options.temperature,
    )
    return await backend.generate(request.system, request.prompt, request.options)
