"""
Model Adapter for Zulu Pilot.

The single integration point the assistant host calls. It resolves a
provider once per request (through the router, or a routing strategy
when one is configured), forwards the prompt and context files, and
translates the result back into host shapes.

Resolve-once semantics: the active provider is captured when a request
is dispatched. A switch_provider() call made while a stream is being
consumed affects the next request only.

Usage:
    adapter = ModelAdapter(registry, router)

    text = await adapter.generate("Explain this", files)

    async with await adapter.stream("Refactor this", files) as stream:
        async for fragment in stream:
            print(fragment, end="")
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterator, Callable, Sequence
from typing import TYPE_CHECKING

from zulu_pilot.errors import ZuluPilotError, classify_error
from zulu_pilot.providers.base import FileContext, as_model_catalog
from zulu_pilot.routing.router import parse_model_id
from zulu_pilot.routing.strategies import AUTO_MODEL, RoutingContext, RoutingDecision

from .schemas import (
    GenerateContentParams,
    GenerateContentResponse,
    to_host_response,
    to_provider_request,
)
from .streaming import CancellationToken, StreamBuffer

if TYPE_CHECKING:
    from zulu_pilot.providers import ModelProvider, ProviderRegistry
    from zulu_pilot.routing import ProviderRouter, RoutingStrategy

logger = logging.getLogger(__name__)

ContextSource = Callable[[], Sequence[FileContext]]


# =============================================================================
# Response Stream
# =============================================================================


class ResponseStream:
    """
    Forward-only, single-consumer stream of response fragments.

    Fragments are yielded in the order the provider emits them (joined
    into larger chunks only when a smoothing window above 1 is used).
    The stream is not restartable.

    The provider transport is released when the stream:
    - completes
    - raises
    - is cancelled through its CancellationToken
    - is closed early with aclose() or by leaving ``async with``

    Cancellation is checked between fragments. Pending buffered text is
    flushed to the consumer on completion, error and cancellation.
    """

    def __init__(
        self,
        fragments: AsyncGenerator[str, None],
        *,
        provider_name: str,
        decision: RoutingDecision,
        cancel_token: CancellationToken | None = None,
        buffer: StreamBuffer | None = None,
    ):
        self._source = fragments
        self._provider_name = provider_name
        self._decision = decision
        self._cancel_token = cancel_token or CancellationToken()
        self._buffer = buffer or StreamBuffer()
        self._cancelled = False
        self._closed = False
        self._output = self._pump()

    @property
    def provider_name(self) -> str:
        """Provider this stream was dispatched to."""
        return self._provider_name

    @property
    def decision(self) -> RoutingDecision:
        return self._decision

    @property
    def cancel_token(self) -> CancellationToken:
        return self._cancel_token

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def closed(self) -> bool:
        return self._closed

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation; honored at the next fragment boundary."""
        self._cancel_token.cancel(reason)

    async def _pump(self) -> AsyncGenerator[str, None]:
        try:
            while True:
                if self._cancel_token.is_cancelled:
                    self._cancelled = True
                    reason = self._cancel_token.reason
                    logger.info(
                        f"Stream from {self._provider_name} cancelled"
                        + (f": {reason}" if reason else "")
                    )
                    break

                try:
                    fragment = await self._source.__anext__()
                except StopAsyncIteration:
                    break
                except Exception as e:
                    error = classify_error(e, provider=self._provider_name)
                    for chunk in self._buffer.flush():
                        yield chunk
                    if error is e:
                        raise error
                    raise error from e

                for chunk in self._buffer.push(fragment):
                    yield chunk

            for chunk in self._buffer.flush():
                yield chunk
        finally:
            self._closed = True
            await self._source.aclose()

    def __aiter__(self) -> AsyncIterator[str]:
        return self

    async def __anext__(self) -> str:
        return await self._output.__anext__()

    async def aclose(self) -> None:
        """Stop consuming and release the provider transport."""
        await self._output.aclose()
        # The pump may never have started; close the provider side directly
        await self._source.aclose()
        self._closed = True

    async def __aenter__(self) -> "ResponseStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def collect(self) -> str:
        """Consume the rest of the stream and return it as one string."""
        return "".join([chunk async for chunk in self])

    def __repr__(self) -> str:
        return (
            f"ResponseStream(provider={self._provider_name!r}, "
            f"cancelled={self._cancelled}, closed={self._closed})"
        )


# =============================================================================
# Model Adapter
# =============================================================================


class ModelAdapter:
    """
    Host-facing adapter over the router and provider registry.

    Args:
        registry: Provider registry
        router: Router holding the active provider
        strategy: Optional routing strategy consulted per request
            (e.g. a CompositeStrategy); without one the active provider
            is used, honoring a "provider:model" directive if given
        context_source: Callable returning the default context files,
            used when a request passes none
        smoothing_window: Fragments held before release (1 = passthrough)
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        router: ProviderRouter,
        strategy: RoutingStrategy | None = None,
        context_source: ContextSource | None = None,
        smoothing_window: int = 1,
    ):
        if smoothing_window < 1:
            raise ValueError(f"smoothing_window must be >= 1, got {smoothing_window}")
        self._registry = registry
        self._router = router
        self._strategy = strategy
        self._context_source = context_source
        self._smoothing_window = smoothing_window
        self._fallback_provider: str | None = None

    # ==================== Wiring ====================

    def get_router(self) -> ProviderRouter:
        return self._router

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def strategy(self) -> RoutingStrategy | None:
        return self._strategy

    def set_context_source(self, context_source: ContextSource | None) -> None:
        self._context_source = context_source

    def get_context_source(self) -> ContextSource | None:
        return self._context_source

    def switch_provider(self, name: str) -> None:
        """Switch the active provider (delegates to the router)."""
        self._router.switch_provider(name)

    @property
    def fallback_provider(self) -> str | None:
        return self._fallback_provider

    def set_fallback_provider(self, name: str | None) -> None:
        """
        Designate (or clear, with None) a fallback provider.

        Only consulted by strategies that look at it, such as
        FallbackStrategy.
        """
        if name is not None:
            self._registry.check_provider(name)
        self._fallback_provider = name

    # ==================== Resolution ====================

    async def _resolve(
        self, prompt: str, requested_model: str | None
    ) -> tuple[ModelProvider, RoutingDecision, str | None]:
        """
        Pick the provider and model for one request. Called exactly once per
        request.

        The model is fixed here and passed to the provider call, so later
        requests against the same cached instance cannot change it.
        """
        current = self._router.get_current_provider()

        if self._strategy is not None:
            context = RoutingContext(
                prompt=prompt,
                current_provider=current,
                requested_model=requested_model,
                fallback_provider=self._fallback_provider,
                available_providers=tuple(self._registry.list_providers()),
            )
            decision = await self._strategy.route(context)
        else:
            name, model = current, None
            if requested_model and requested_model != AUTO_MODEL:
                parsed = parse_model_id(
                    requested_model, current, self._registry.list_providers()
                )
                name, model = parsed.provider, parsed.model or None
            decision = RoutingDecision(provider_name=name, model=model, source="router")

        provider = self._registry.get_provider(decision.provider_name)
        model = None
        catalog = as_model_catalog(provider)
        if catalog is not None:
            model = decision.model or catalog.get_model()
        elif decision.model:
            logger.debug(
                f"Provider {decision.provider_name} does not support model selection, "
                f"ignoring model {decision.model}"
            )

        logger.debug(
            f"Dispatching to {decision.provider_name} "
            f"(source={decision.source}, model={model})"
        )
        return provider, decision, model

    def _collect_context(self, context: Sequence[FileContext] | None) -> list[FileContext]:
        if context is not None:
            return list(context)
        if self._context_source is not None:
            return list(self._context_source())
        return []

    # ==================== Prompt API ====================

    async def generate(
        self,
        prompt: str,
        context: Sequence[FileContext] | None = None,
        *,
        model: str | None = None,
    ) -> str:
        """
        Generate a complete response.

        Args:
            prompt: User prompt
            context: Context files; defaults to the context source
            model: Optional model directive ("provider:model" or "model")

        Returns:
            The response text exactly as the provider returned it

        Raises:
            ZuluPilotError: Resolution, routing or provider failure
        """
        provider, decision, resolved_model = await self._resolve(prompt, model)
        files = self._collect_context(context)

        try:
            return await provider.generate_response(prompt, files, model=resolved_model)
        except ZuluPilotError:
            raise
        except Exception as e:
            raise classify_error(e, provider=decision.provider_name) from e

    async def stream(
        self,
        prompt: str,
        context: Sequence[FileContext] | None = None,
        *,
        model: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ResponseStream:
        """
        Start a streaming response.

        The provider is resolved before this returns, so resolution errors
        raise here and later switches do not affect the stream.
        """
        provider, decision, resolved_model = await self._resolve(prompt, model)
        files = self._collect_context(context)

        return ResponseStream(
            provider.stream_response(prompt, files, model=resolved_model),
            provider_name=decision.provider_name,
            decision=decision,
            cancel_token=cancel_token,
            buffer=StreamBuffer(self._smoothing_window),
        )

    # ==================== Host Content API ====================

    async def generate_content(self, params: GenerateContentParams) -> GenerateContentResponse:
        """Generate from host contents and return a host response."""
        request = to_provider_request(params.contents, self._collect_context(None))
        text = await self.generate(request.prompt, request.context, model=params.model)
        return to_host_response(text)

    async def stream_generate_content(
        self,
        params: GenerateContentParams,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncGenerator[GenerateContentResponse, None]:
        """Stream host responses, each carrying the text accumulated so far."""
        request = to_provider_request(params.contents, self._collect_context(None))
        stream = await self.stream(
            request.prompt, request.context, model=params.model, cancel_token=cancel_token
        )

        accumulated = ""
        async with stream:
            async for chunk in stream:
                accumulated += chunk
                yield to_host_response(accumulated)

    def __repr__(self) -> str:
        return (
            f"ModelAdapter(current={self._router.get_current_provider()!r}, "
            f"strategy={getattr(self._strategy, 'name', None)!r})"
        )
