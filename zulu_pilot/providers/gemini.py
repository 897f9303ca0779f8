"""
Gemini Provider for Zulu Pilot.

Uses the Google Generative Language REST API for text generation.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Any

import httpx

from zulu_pilot.config.schemas import REMOTE_TIMEOUT_MS
from zulu_pilot.errors import ValidationError

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


class GeminiProvider(HttpModelProvider):
    """
    Google Gemini provider.

    Endpoints (relative to the v1beta base URL):
    - POST /models/{model}:generateContent
    - POST /models/{model}:streamGenerateContent?alt=sse
    - GET /models

    Gemini has no system role in ``contents``: the system prompt (with the
    embedded context files) goes to ``systemInstruction``.

    Requirements:
    - GEMINI_API_KEY environment variable, or an api_key in config
    """

    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL = "gemini-pro"
    API_KEY_ENV = "GEMINI_API_KEY"

    def __init__(
        self,
        name: str = "gemini",
        *,
        api_key: str,
        base_url: str | None = None,
        model: str | None = None,
        timeout_ms: int = REMOTE_TIMEOUT_MS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize Gemini provider.

        Args:
            name: Instance name
            api_key: Google AI API key
            base_url: API base URL
            model: Default model (gemini-pro, gemini-1.5-flash, ...)
            timeout_ms: Request timeout in milliseconds
            transport: Optional httpx transport (tests)
        """
        if not api_key:
            raise ValidationError("Gemini API key is required.", "api_key", provider=name)
        super().__init__(
            name,
            model=model,
            base_url=base_url or self.DEFAULT_BASE_URL,
            timeout_ms=timeout_ms,
            transport=transport,
        )
        self._api_key = api_key

    @classmethod
    def from_config(cls, config: ProviderConfiguration) -> "GeminiProvider":
        return cls(
            config.name,
            api_key=config.resolve_api_key(cls.API_KEY_ENV),
            base_url=config.base_url,
            model=config.model,
            timeout_ms=config.effective_timeout_ms(),
        )

    def _get_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self._api_key,
        }

    def _build_payload(self, prompt: str, context: list[FileContext]) -> dict[str, Any]:
        """
        Convert prompt and context to Gemini format.

        - system message becomes systemInstruction
        - user prompt becomes a single user turn
        """
        system, user = build_messages(prompt, context)
        return {
            "systemInstruction": {"parts": [{"text": system["content"]}]},
            "contents": [{"role": "user", "parts": [{"text": user["content"]}]}],
            "generationConfig": {
                "temperature": DEFAULT_TEMPERATURE,
                "maxOutputTokens": DEFAULT_MAX_TOKENS,
            },
        }

    @staticmethod
    def _extract_text(data: Any) -> str:
        """Join the text parts of the first candidate."""
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            return ""
        return "".join(part.get("text", "") for part in parts if isinstance(part, dict))

    async def list_models(self) -> list[str]:
        """List models available to the API key."""
        data = await self._get_json("/models")
        models = data.get("models", []) if isinstance(data, dict) else []
        names = []
        for entry in models:
            name = entry.get("name", "") if isinstance(entry, dict) else ""
            if name:
                names.append(name.removeprefix("models/"))
        return names

    async def generate_response(
        self, prompt: str, context: list[FileContext], *, model: str | None = None
    ) -> str:
        model = model or self._model
        data = await self._post_json(
            f"/models/{model}:generateContent",
            self._build_payload(prompt, context),
            model,
        )

        content = self._extract_text(data)
        if not content:
            logger.warning(f"[{self.name}] Empty completion from model {model}")
            return ""
        return content

    async def stream_response(
        self, prompt: str, context: list[FileContext], *, model: str | None = None
    ) -> AsyncGenerator[str, None]:
        model = model or self._model
        lines = self._stream_lines(
            f"/models/{model}:streamGenerateContent?alt=sse",
            self._build_payload(prompt, context),
            model,
        )
        try:
            async for line in lines:
                data = iter_sse_data(line)
                if not data:
                    continue

                chunk = parse_json_chunk(data)
                if chunk is None:
                    continue
                text = self._extract_text(chunk)
                if text:
                    yield text
        finally:
            await lines.aclose()
