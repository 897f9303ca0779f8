"""
Ollama Provider for Zulu Pilot.

Talks to a local Ollama daemon through its OpenAI-compatible
chat completions endpoint.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Any

import httpx

from zulu_pilot.config.schemas import LOCAL_TIMEOUT_MS

from .base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    FileContext,
    HttpModelProvider,
    build_messages,
    iter_sse_data,
    parse_json_chunk,
)

if TYPE_CHECKING:
    from zulu_pilot.config import ProviderConfiguration

logger = logging.getLogger(__name__)


class OllamaProvider(HttpModelProvider):
    """
    Local Ollama provider.

    Endpoints:
    - POST /v1/chat/completions (OpenAI-compatible, SSE when streaming)
    - GET /api/tags (installed models)

    Requirements:
    - Ollama running locally (default http://localhost:11434)
    - The model pulled, e.g. ``ollama pull qwen2.5-coder``
    """

    DEFAULT_BASE_URL = "http://localhost:11434"
    DEFAULT_MODEL = "qwen2.5-coder"

    def __init__(
        self,
        name: str = "ollama",
        *,
        base_url: str | None = None,
        model: str | None = None,
        timeout_ms: int = LOCAL_TIMEOUT_MS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize Ollama provider.

        Args:
            name: Instance name
            base_url: Daemon URL
            model: Model to use
            timeout_ms: Request timeout in milliseconds
            transport: Optional httpx transport (tests)
        """
        super().__init__(
            name,
            model=model,
            base_url=base_url or self.DEFAULT_BASE_URL,
            timeout_ms=timeout_ms,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: ProviderConfiguration) -> "OllamaProvider":
        return cls(
            config.name,
            base_url=config.base_url,
            model=config.model,
            timeout_ms=config.effective_timeout_ms(),
        )

    def _build_payload(
        self, model: str, prompt: str, context: list[FileContext], stream: bool
    ) -> dict[str, Any]:
        return {
            "model": model,
            "messages": build_messages(prompt, context),
            "stream": stream,
            "temperature": DEFAULT_TEMPERATURE,
            "max_tokens": DEFAULT_MAX_TOKENS,
        }

    async def list_models(self) -> list[str]:
        """List models installed on the local daemon."""
        data = await self._get_json("/api/tags")
        models = data.get("models", []) if isinstance(data, dict) else []
        return [m["name"] for m in models if isinstance(m, dict) and m.get("name")]

    async def generate_response(
        self, prompt: str, context: list[FileContext], *, model: str | None = None
    ) -> str:
        model = model or self._model
        data = await self._post_json(
            "/v1/chat/completions",
            self._build_payload(model, prompt, context, stream=False),
            model,
        )

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            logger.warning(f"[{self.name}] Empty completion from model {model}")
            return ""
        return content

    async def stream_response(
        self, prompt: str, context: list[FileContext], *, model: str | None = None
    ) -> AsyncGenerator[str, None]:
        model = model or self._model
        lines = self._stream_lines(
            "/v1/chat/completions",
            self._build_payload(model, prompt, context, stream=True),
            model,
        )
        try:
            async for line in lines:
                data = iter_sse_data(line)
                if data is None:
                    continue
                if data == "[DONE]":
                    return

                chunk = parse_json_chunk(data)
                if chunk is None:
                    continue
                try:
                    content = chunk["choices"][0]["delta"].get("content")
                except (KeyError, IndexError, TypeError, AttributeError):
                    content = None
                if content:
                    yield content
        finally:
            await lines.aclose()
