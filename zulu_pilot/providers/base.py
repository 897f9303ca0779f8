"""
Model Provider Protocol for Zulu Pilot.

Defines the interface every backend model provider implements, plus the
optional model-catalog capability.

Required (ModelProvider):
- generate_response(prompt, context, *, model=None) -> complete text
- stream_response(prompt, context, *, model=None) -> async generator of text fragments

The model argument selects the model for that one request and leaves the
instance's current model untouched.

Optional (ModelCatalog):
- list_models(), has_model(name), set_model(name), get_model()

Callers never look up optional methods directly; they ask
``as_model_catalog(provider)`` and get either the capability or None.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from zulu_pilot.errors import classify_error, classify_response

if TYPE_CHECKING:
    from zulu_pilot.config import ProviderConfiguration

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4096

SYSTEM_PROMPT = """You are a coding assistant. When proposing code changes, use this format:

```typescript:filename:path/to/file.ts
// Your code changes here
```

For multiple files, use separate code blocks. Always include the file path after the language identifier."""


@dataclass(frozen=True)
class FileContext:
    """
    A file included in the prompt context.

    Attributes:
        path: File path relative to the project root
        content: File content
        size: Size in bytes, if known
        last_modified: Last modification time, if known
    """

    path: str
    content: str
    size: int | None = None
    last_modified: datetime | None = None


@runtime_checkable
class ModelProvider(Protocol):
    """
    Protocol for model providers.

    Both methods raise the Zulu Pilot error taxonomy on failure
    (ProviderConnectionError, RateLimitError, ValidationError,
    ModelNotFoundError).
    """

    @property
    def name(self) -> str:
        """Instance name, used in logs and error messages."""
        ...

    async def generate_response(
        self, prompt: str, context: list[FileContext], *, model: str | None = None
    ) -> str:
        """Generate the complete response text, with ``model`` overriding the current one."""
        ...

    def stream_response(
        self, prompt: str, context: list[FileContext], *, model: str | None = None
    ) -> AsyncGenerator[str, None]:
        """Yield response fragments in the order the backend emits them."""
        ...


@runtime_checkable
class ModelCatalog(Protocol):
    """Optional capability: model discovery and selection."""

    async def list_models(self) -> list[str]:
        ...

    async def has_model(self, model_name: str) -> bool:
        ...

    def set_model(self, model: str) -> None:
        ...

    def get_model(self) -> str | None:
        ...


def as_model_catalog(provider: Any) -> ModelCatalog | None:
    """Return the provider as a ModelCatalog if it offers that capability."""
    if isinstance(provider, ModelCatalog):
        return provider
    return None


def build_messages(prompt: str, context: list[FileContext]) -> list[dict[str, str]]:
    """
    Build chat messages: a system prompt embedding the context files,
    followed by the user prompt.
    """
    system_prompt = SYSTEM_PROMPT
    if context:
        files = "\n\n".join(f"File: {file.path}\n{file.content}" for file in context)
        system_prompt = f"{system_prompt}\n\nHere is the codebase context:\n\n{files}"

    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": prompt},
    ]


def iter_sse_data(line: str) -> str | None:
    """Return the payload of an SSE ``data:`` line, or None for other lines."""
    if not line.startswith("data:"):
        return None
    return line[5:].strip()


def parse_json_chunk(data: str) -> dict[str, Any] | None:
    """Parse a streamed JSON chunk, ignoring malformed ones."""
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError:
        logger.debug(f"Ignoring malformed stream chunk: {data[:80]!r}")
        return None
    return parsed if isinstance(parsed, dict) else None


class BaseModelProvider(ABC):
    """
    Base class for model provider implementations.

    Holds the instance configuration and the current model. HTTP clients
    are created lazily on first request; construction performs no I/O.
    """

    DEFAULT_MODEL = ""

    def __init__(
        self,
        name: str,
        *,
        model: str | None = None,
        base_url: str = "",
        timeout_ms: int = 30000,
    ):
        self._name = name
        self._model = model or self.DEFAULT_MODEL
        self._base_url = base_url.rstrip("/")
        self._timeout_ms = timeout_ms

    @property
    def name(self) -> str:
        return self._name

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    @classmethod
    @abstractmethod
    def from_config(cls, config: ProviderConfiguration) -> "BaseModelProvider":
        """Build an instance from its configuration (the registry factory)."""
        ...

    @abstractmethod
    async def generate_response(
        self, prompt: str, context: list[FileContext], *, model: str | None = None
    ) -> str:
        ...

    @abstractmethod
    def stream_response(
        self, prompt: str, context: list[FileContext], *, model: str | None = None
    ) -> AsyncGenerator[str, None]:
        ...

    @abstractmethod
    async def list_models(self) -> list[str]:
        """Discover the models available from the backend."""
        ...

    def get_model(self) -> str | None:
        return self._model or None

    def set_model(self, model: str) -> None:
        self._model = model

    async def has_model(self, model_name: str) -> bool:
        """True if ``model_name`` is available; False when listing fails."""
        try:
            models = await self.list_models()
        except Exception as e:
            logger.debug(f"[{self.name}] Model listing failed: {e}")
            return False
        return model_name in models

    async def close(self) -> None:
        """Release network resources. Subclasses holding clients override."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', model='{self._model}')"


class HttpModelProvider(BaseModelProvider):
    """
    Base for providers spoken to directly over HTTP with httpx.

    Subclasses supply headers and request/response shapes; this class owns
    the client lifecycle and the error mapping.
    """

    def __init__(
        self,
        name: str,
        *,
        model: str | None = None,
        base_url: str = "",
        timeout_ms: int = 30000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(name, model=model, base_url=base_url, timeout_ms=timeout_ms)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout_ms / 1000,
                headers=self._get_headers(),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def _post_json(self, path: str, payload: dict[str, Any], model: str | None) -> Any:
        """POST a JSON payload and return the decoded body, mapping failures."""
        client = self._get_client()
        try:
            response = await client.post(path, json=payload)
        except httpx.HTTPError as e:
            raise classify_error(e, provider=self.name, model=model, base_url=self._base_url) from e

        if response.is_error:
            raise classify_response(
                response, provider=self.name, model=model, base_url=self._base_url
            )
        return response.json()

    async def _get_json(self, path: str) -> Any:
        client = self._get_client()
        try:
            response = await client.get(path)
        except httpx.HTTPError as e:
            raise classify_error(e, provider=self.name, base_url=self._base_url) from e

        if response.is_error:
            raise classify_response(response, provider=self.name, base_url=self._base_url)
        return response.json()

    async def _stream_lines(
        self, path: str, payload: dict[str, Any], model: str | None
    ) -> AsyncGenerator[str, None]:
        """
        POST a streaming request and yield raw response lines.

        The response is released when the generator is closed, including
        when the consumer stops early.
        """
        client = self._get_client()
        try:
            async with client.stream("POST", path, json=payload) as response:
                if response.is_error:
                    await response.aread()
                    raise classify_response(
                        response, provider=self.name, model=model, base_url=self._base_url
                    )
                async for line in response.aiter_lines():
                    yield line
        except httpx.HTTPError as e:
            raise classify_error(e, provider=self.name, model=model, base_url=self._base_url) from e
