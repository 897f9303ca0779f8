"""
Routing Strategies for Zulu Pilot.

A strategy looks at a request and either proposes a provider/model
decision or declines by returning None. Terminal strategies never
decline: they return a decision or raise.

Built-in strategies:
- OverrideStrategy: explicit model directive in the request ("auto" declines)
- FallbackStrategy: a fallback provider has been designated
- DefaultStrategy: the router's active provider (terminal)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from zulu_pilot.errors import RoutingError

from .router import parse_model_id

logger = logging.getLogger(__name__)

AUTO_MODEL = "auto"


# =============================================================================
# Request Context and Decision
# =============================================================================


@dataclass(frozen=True)
class RoutingContext:
    """
    What a strategy may look at when routing one request.

    Attributes:
        prompt: The user prompt
        requested_model: Model directive from the host ("provider:model",
            "model", "auto" or None)
        current_provider: Active provider captured at dispatch time
        fallback_provider: Designated fallback provider, if any
        available_providers: Registered provider names
    """

    prompt: str
    current_provider: str | None
    requested_model: str | None = None
    fallback_provider: str | None = None
    available_providers: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RoutingDecision:
    """
    Which provider (and optionally model) handles a request.

    ``source`` is the chain of strategy names that produced the decision,
    e.g. "composite/override". ``latency_ms`` is an integer.
    """

    provider_name: str
    source: str
    model: str | None = None
    latency_ms: int = 0
    reasoning: str = ""

    def to_dict(self) -> dict[str, object]:
        return {
            "provider_name": self.provider_name,
            "model": self.model,
            "source": self.source,
            "latency_ms": self.latency_ms,
            "reasoning": self.reasoning,
        }


# =============================================================================
# Strategy Protocols
# =============================================================================


@runtime_checkable
class RoutingStrategy(Protocol):
    """A strategy that may decline by returning None."""

    name: str

    async def route(self, context: RoutingContext) -> RoutingDecision | None:
        ...


@runtime_checkable
class TerminalStrategy(Protocol):
    """A strategy that always returns a decision or raises."""

    name: str

    async def route(self, context: RoutingContext) -> RoutingDecision:
        ...


# =============================================================================
# Built-in Strategies
# =============================================================================


class OverrideStrategy:
    """Honors an explicit model directive in the request."""

    name = "override"

    async def route(self, context: RoutingContext) -> RoutingDecision | None:
        requested = (context.requested_model or "").strip()
        if not requested or requested == AUTO_MODEL:
            return None

        default = context.current_provider
        if default is None:
            raise RoutingError(self.name, "No active provider to apply the model to")

        parsed = parse_model_id(
            requested, default, context.available_providers or None
        )
        return RoutingDecision(
            provider_name=parsed.provider,
            model=parsed.model or None,
            source=self.name,
            reasoning=f"Routing bypassed by forced model directive. Using: {requested}",
        )


class FallbackStrategy:
    """Routes to the designated fallback provider while one is set."""

    name = "fallback"

    async def route(self, context: RoutingContext) -> RoutingDecision | None:
        if not context.fallback_provider:
            return None
        return RoutingDecision(
            provider_name=context.fallback_provider,
            source=self.name,
            reasoning=f"In fallback mode. Using: {context.fallback_provider}",
        )


class DefaultStrategy:
    """Routes to the active provider. Terminal."""

    name = "default"

    async def route(self, context: RoutingContext) -> RoutingDecision:
        if not context.current_provider:
            raise RoutingError(self.name, "No active provider configured")
        return RoutingDecision(
            provider_name=context.current_provider,
            source=self.name,
            reasoning=f"Routing to active provider: {context.current_provider}",
        )
