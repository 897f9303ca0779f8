"""
Provider Router for Zulu Pilot.

Holds the "currently active provider" pointer and mediates switches.

The pointer lives in an explicit RouterState object rather than a
process-wide global, so independent sessions in one process each get
their own router and state.
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import dataclass
from typing import TYPE_CHECKING

from zulu_pilot.errors import ProviderNotFoundError, ResolutionError
from zulu_pilot.providers.base import as_model_catalog

if TYPE_CHECKING:
    from zulu_pilot.providers import ModelProvider, ProviderRegistry

logger = logging.getLogger(__name__)


@dataclass
class RouterState:
    """
    Mutable routing state shared by reference.

    ``current_provider_name`` always names a registered and enabled
    provider; it is replaced only through ProviderRouter.switch_provider.
    """

    current_provider_name: str


@dataclass(frozen=True)
class ParsedModelId:
    provider: str
    model: str


def parse_model_id(
    model_id: str,
    default_provider: str,
    known_providers: Collection[str] | None = None,
) -> ParsedModelId:
    """
    Split a model identifier into provider and model.

    Accepted forms:
        "model"            -> (default_provider, "model")
        "provider:model"   -> ("provider", "model")

    Model names may themselves contain colons (``qwen2.5-coder:7b``). When
    ``known_providers`` is given, a prefix that is not one of them is kept
    as part of the model name.
    """
    model_id = model_id.strip()
    provider, sep, model = model_id.partition(":")
    provider = provider.strip()

    if not sep or not provider:
        return ParsedModelId(provider=default_provider, model=model_id)
    if known_providers is not None and provider not in known_providers:
        return ParsedModelId(provider=default_provider, model=model_id)
    return ParsedModelId(provider=provider, model=model.strip())


class ProviderRouter:
    """
    Routes requests to the active provider.

    Usage:
        router = ProviderRouter(registry)
        router.get_current_provider()  # registry default
        router.switch_provider("cloud")
    """

    def __init__(self, registry: ProviderRegistry, state: RouterState | None = None):
        """
        Initialize router.

        Args:
            registry: Registry used to validate and resolve providers
            state: Shared state; when omitted it starts at the registry default

        Raises:
            ProviderNotFoundError: If no state is given and the registry has no default
            ProviderDisabledError: If the initial provider is disabled
        """
        self._registry = registry

        if state is None:
            default = registry.default_provider
            if default is None:
                raise ProviderNotFoundError("<default>")
            state = RouterState(current_provider_name=default)

        registry.check_provider(state.current_provider_name)
        self._state = state

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def state(self) -> RouterState:
        return self._state

    def get_current_provider(self) -> str:
        """Name of the active provider."""
        return self._state.current_provider_name

    def switch_provider(self, name: str) -> None:
        """
        Make ``name`` the active provider.

        Only checks that the provider is registered and enabled; the
        instance is built on its next request. On failure the active
        provider is left unchanged.

        Raises:
            ProviderNotFoundError: If ``name`` is not registered
            ProviderDisabledError: If ``name`` is disabled
        """
        self._registry.check_provider(name)

        previous = self._state.current_provider_name
        self._state.current_provider_name = name
        logger.info(f"Switched provider: {previous} -> {name}")

    def is_available(self, name: str) -> bool:
        """True if switching to ``name`` would succeed."""
        try:
            self._registry.check_provider(name)
        except ResolutionError:
            return False
        return True

    def get_provider(self) -> ModelProvider:
        """Resolve the active provider instance."""
        return self._registry.get_provider(self._state.current_provider_name)

    def parse_model_id(self, model_id: str) -> ParsedModelId:
        """Parse ``model_id`` against the active provider and registered names."""
        return parse_model_id(
            model_id,
            self._state.current_provider_name,
            self._registry.list_providers(),
        )

    def get_provider_for_model(self, model_id: str) -> ModelProvider:
        """
        Resolve the provider named by ``model_id`` and select its model.

        The active provider is used when ``model_id`` has no provider
        prefix. The model is applied only to providers offering the
        ModelCatalog capability.
        """
        parsed = self.parse_model_id(model_id)
        provider = self._registry.get_provider(parsed.provider)

        if parsed.model:
            catalog = as_model_catalog(provider)
            if catalog is not None:
                catalog.set_model(parsed.model)
            else:
                logger.debug(f"Provider {parsed.provider} does not support model selection")

        return provider

    def __repr__(self) -> str:
        return f"ProviderRouter(current={self._state.current_provider_name!r})"
