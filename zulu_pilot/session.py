"""
Session wiring for Zulu Pilot.

Builds the registry, router and adapter for one conversation session
from a UnifiedConfiguration. Each call produces an independent set of
objects; nothing is stored globally.

Usage:
    config = load_configuration("~/.zulu-pilot/config.yaml")
    session = build_session(config)

    text = await session.adapter.generate("Explain main.py", files)
    session.adapter.switch_provider("cloud")

    await session.aclose()
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .adapter import ContextSource, ModelAdapter
from .config import ProviderType, UnifiedConfiguration, load_configuration
from .providers import GeminiProvider, OllamaProvider, OpenAIProvider, ProviderRegistry
from .providers.registry import ProviderFactory
from .routing import (
    CompositeStrategy,
    DefaultStrategy,
    FallbackStrategy,
    NonTerminal,
    OverrideStrategy,
    ProviderRouter,
    RoutingStrategy,
    Terminal,
)

logger = logging.getLogger(__name__)

DEFAULT_FACTORIES: dict[str, ProviderFactory] = {
    ProviderType.OLLAMA.value: OllamaProvider.from_config,
    ProviderType.OPENAI.value: OpenAIProvider.from_config,
    ProviderType.GEMINI.value: GeminiProvider.from_config,
}


def create_registry(
    config: UnifiedConfiguration,
    factories: Mapping[str, ProviderFactory] | None = None,
) -> ProviderRegistry:
    """
    Create a registry holding every configured provider.

    Args:
        config: Validated configuration
        factories: Extra or replacement factories by provider type,
            applied on top of DEFAULT_FACTORIES

    Returns:
        Registry with the configured default provider designated
    """
    registry = ProviderRegistry()

    for provider_type, factory in {**DEFAULT_FACTORIES, **(factories or {})}.items():
        registry.register_factory(provider_type, factory)

    for name, provider_config in config.providers.items():
        registry.register_provider(name, provider_config)

    registry.set_default_provider(config.default_provider)
    return registry


def default_strategy(name: str = "router") -> CompositeStrategy:
    """Override, then fallback, then the active provider."""
    return CompositeStrategy(
        NonTerminal(OverrideStrategy()),
        NonTerminal(FallbackStrategy()),
        Terminal(DefaultStrategy()),
        name=name,
    )


@dataclass
class Session:
    """Registry, router and adapter for one conversation."""

    config: UnifiedConfiguration
    registry: ProviderRegistry
    router: ProviderRouter
    adapter: ModelAdapter

    async def aclose(self) -> None:
        """Release provider network resources."""
        await self.registry.aclose()

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


def build_session(
    config: UnifiedConfiguration,
    *,
    factories: Mapping[str, ProviderFactory] | None = None,
    strategy: RoutingStrategy | None = None,
    use_default_strategy: bool = True,
    context_source: ContextSource | None = None,
    smoothing_window: int = 1,
) -> Session:
    """
    Wire a session from configuration.

    Args:
        config: Validated configuration
        factories: Extra or replacement provider factories
        strategy: Routing strategy; defaults to default_strategy()
        use_default_strategy: Set False to route by the active provider only
        context_source: Callable returning default context files
        smoothing_window: Stream smoothing window (1 = passthrough)

    Raises:
        ProviderDisabledError: If the default provider is disabled
    """
    registry = create_registry(config, factories)
    router = ProviderRouter(registry)

    if strategy is None and use_default_strategy:
        strategy = default_strategy()

    adapter = ModelAdapter(
        registry,
        router,
        strategy=strategy,
        context_source=context_source,
        smoothing_window=smoothing_window,
    )

    logger.debug(
        f"Built session: providers={registry.list_providers()}, "
        f"current={router.get_current_provider()}"
    )
    return Session(config=config, registry=registry, router=router, adapter=adapter)


def load_session(path: str | Path, **kwargs) -> Session:
    """Load a configuration file and build a session from it."""
    return build_session(load_configuration(path), **kwargs)
