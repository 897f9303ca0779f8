"""
OpenAI Provider for Zulu Pilot.

Uses OpenAI's Chat Completions API through the official async SDK.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Any

from zulu_pilot.config.schemas import REMOTE_TIMEOUT_MS
from zulu_pilot.errors import (
    ProviderConnectionError,
    ValidationError,
    ZuluPilotError,
    classify_error,
    classify_status,
)

from .base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    BaseModelProvider,
    FileContext,
    build_messages,
)

if TYPE_CHECKING:
    from zulu_pilot.config import ProviderConfiguration

logger = logging.getLogger(__name__)

CHAT_MODEL_PREFIXES = ("gpt-", "o1-")


class OpenAIProvider(BaseModelProvider):
    """
    OpenAI-based provider.

    Uses OpenAI's Chat Completions API with:
    - GPT-4 (default)
    - GPT-4o / GPT-4o-mini
    - o1 models

    SDK-level retries are disabled: retry policy belongs to the caller.

    Requirements:
    - openai package
    - OPENAI_API_KEY environment variable, or an api_key in config
    """

    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    DEFAULT_MODEL = "gpt-4"
    API_KEY_ENV = "OPENAI_API_KEY"

    def __init__(
        self,
        name: str = "openai",
        *,
        api_key: str,
        base_url: str | None = None,
        model: str | None = None,
        organization: str | None = None,
        timeout_ms: int = REMOTE_TIMEOUT_MS,
    ):
        """
        Initialize OpenAI provider.

        Args:
            name: Instance name
            api_key: OpenAI API key
            base_url: API base URL (OpenAI-compatible endpoints work too)
            model: Default model to use
            organization: Optional OpenAI organization ID
            timeout_ms: Request timeout in milliseconds
        """
        if not api_key:
            raise ValidationError("OpenAI API key is required.", "api_key", provider=name)
        super().__init__(
            name,
            model=model,
            base_url=base_url or self.DEFAULT_BASE_URL,
            timeout_ms=timeout_ms,
        )
        self._api_key = api_key
        self._organization = organization
        self._client = None  # Lazy initialization

    @classmethod
    def from_config(cls, config: ProviderConfiguration) -> "OpenAIProvider":
        return cls(
            config.name,
            api_key=config.resolve_api_key(cls.API_KEY_ENV),
            base_url=config.base_url,
            model=config.model,
            organization=config.provider_specific.get("organization"),
            timeout_ms=config.effective_timeout_ms(),
        )

    def _get_client(self):
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError:
                raise ImportError(
                    "openai package is required for the OpenAI provider. "
                    "Install with: pip install openai"
                )

            self._client = AsyncOpenAI(
                api_key=self._api_key,
                organization=self._organization,
                base_url=self._base_url,
                timeout=self._timeout_ms / 1000,
                max_retries=0,
            )
        return self._client

    def _map_error(self, error: Exception, model: str | None) -> ZuluPilotError:
        """Convert an SDK exception to the Zulu Pilot taxonomy."""
        import openai

        if isinstance(error, ZuluPilotError):
            return error

        if isinstance(error, openai.APITimeoutError):
            return ProviderConnectionError(
                f"Request to {self.name} at {self._base_url} timed out", self.name, cause=error
            )

        if isinstance(error, openai.APIConnectionError):
            return ProviderConnectionError(
                f"Failed to connect to {self.name} at {self._base_url}: {error}",
                self.name,
                cause=error,
            )

        if isinstance(error, openai.APIStatusError):
            return classify_status(
                error.status_code,
                provider=self.name,
                message=error.message,
                headers=error.response.headers,
                model=model,
                base_url=self._base_url,
                cause=error,
            )

        return classify_error(error, provider=self.name, model=model, base_url=self._base_url)

    def _build_params(
        self, model: str, prompt: str, context: list[FileContext], stream: bool
    ) -> dict[str, Any]:
        return {
            "model": model,
            "messages": build_messages(prompt, context),
            "temperature": DEFAULT_TEMPERATURE,
            "max_tokens": DEFAULT_MAX_TOKENS,
            "stream": stream,
        }

    async def list_models(self) -> list[str]:
        """List chat models available to the API key."""
        try:
            client = self._get_client()
            model_ids = [model.id async for model in client.models.list()]
        except Exception as e:
            raise self._map_error(e, None) from e

        return sorted(m for m in model_ids if m and m.startswith(CHAT_MODEL_PREFIXES))

    async def generate_response(
        self, prompt: str, context: list[FileContext], *, model: str | None = None
    ) -> str:
        """
        Generate a completion using OpenAI.

        Args:
            prompt: User prompt
            context: Context files embedded in the system prompt
            model: Model for this request; defaults to the current model

        Returns:
            The generated text
        """
        model = model or self._model
        try:
            client = self._get_client()
            response = await client.chat.completions.create(
                **self._build_params(model, prompt, context, stream=False)
            )
        except Exception as e:
            raise self._map_error(e, model) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.warning(f"[{self.name}] Empty completion from model {model}")
            return ""
        return content

    async def stream_response(
        self, prompt: str, context: list[FileContext], *, model: str | None = None
    ) -> AsyncGenerator[str, None]:
        model = model or self._model
        try:
            client = self._get_client()
            stream = await client.chat.completions.create(
                **self._build_params(model, prompt, context, stream=True)
            )
        except Exception as e:
            raise self._map_error(e, model) from e

        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except Exception as e:
            raise self._map_error(e, model) from e
        finally:
            await stream.close()

    async def close(self) -> None:
        """Close the SDK client."""
        if self._client is not None:
            await self._client.close()
            self._client = None
