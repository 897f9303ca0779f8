"""
Provider Registry for Zulu Pilot.

Owns provider configurations and construction factories, and builds
provider instances lazily.

- Factories are registered per provider *type* ("ollama", "openai", ...)
- Configurations are registered per instance *name* ("local", "cloud", ...)
- An instance is built on first access and cached by name
- Re-registering a name drops its cached instance; dropped instances are
  closed by aclose()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from zulu_pilot.errors import (
    ProviderDisabledError,
    ProviderNotFoundError,
    UnknownProviderTypeError,
)

if TYPE_CHECKING:
    from zulu_pilot.config import ProviderConfiguration

    from .base import ModelProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[["ProviderConfiguration"], "ModelProvider"]


@dataclass
class _RegistryEntry:
    config: ProviderConfiguration
    instance: ModelProvider | None = None


class ProviderRegistry:
    """
    Registry for provider configurations and lazily-built instances.

    Usage:
        registry = ProviderRegistry()
        registry.register_factory("ollama", OllamaProvider.from_config)
        registry.register_provider("local", ProviderConfiguration(type="ollama", name="local"))
        registry.set_default_provider("local")

        provider = registry.get_provider("local")  # built on first access
        provider is registry.get_provider("local")  # True, cached

    Registration and lookup share one lock, so concurrent first access
    never builds the same instance twice.
    """

    def __init__(self):
        self._factories: dict[str, ProviderFactory] = {}
        self._entries: dict[str, _RegistryEntry] = {}
        # Instances dropped from the cache, still awaiting close()
        self._evicted: list[tuple[str, ModelProvider]] = []
        self._default_provider: str | None = None
        self._lock = threading.RLock()

    # ==================== Registration ====================

    def register_factory(self, provider_type: str, factory: ProviderFactory) -> None:
        """
        Register the constructor for a provider type.

        Registering the same type again replaces the previous factory.
        Already-built instances are left untouched.
        """
        with self._lock:
            self._factories[provider_type] = factory
        logger.debug(f"Registered provider factory: {provider_type}")

    def has_factory(self, provider_type: str) -> bool:
        with self._lock:
            return provider_type in self._factories

    def register_provider(self, name: str, config: ProviderConfiguration) -> None:
        """
        Register (or replace) the configuration for a provider name.

        Any instance cached for ``name`` is discarded so the new
        configuration takes effect on next access.
        """
        with self._lock:
            previous = self._entries.get(name)
            if previous is not None:
                # Keep registration order for names that are re-registered
                previous.config = config
                self._evict(name, previous)
            else:
                self._entries[name] = _RegistryEntry(config=config)
        logger.debug(
            f"Registered provider: {name} (type={config.type}, enabled={config.enabled})"
        )

    def unregister_provider(self, name: str) -> None:
        """Remove a provider; the default moves to the next registered one."""
        with self._lock:
            entry = self._entries.pop(name, None)
            if entry is None:
                return
            self._evict(name, entry)
            if self._default_provider == name:
                self._default_provider = next(iter(self._entries.keys()), None)
        logger.debug(f"Unregistered provider: {name}")

    # ==================== Lookup ====================

    def get_provider(self, name: str) -> ModelProvider:
        """
        Get the provider instance for ``name``, building it if needed.

        Raises:
            ProviderNotFoundError: If no configuration exists for ``name``
            ProviderDisabledError: If the configuration is disabled
            UnknownProviderTypeError: If no factory exists for its type
        """
        with self._lock:
            entry = self._require_enabled(name)

            if entry.instance is None:
                factory = self._factories.get(entry.config.type)
                if factory is None:
                    raise UnknownProviderTypeError(name, entry.config.type)

                entry.instance = factory(entry.config)
                logger.debug(f"Created provider instance: {name} ({entry.config.type})")

            return entry.instance

    def check_provider(self, name: str) -> None:
        """
        Verify that ``name`` is registered and enabled without building it.

        Raises:
            ProviderNotFoundError: If no configuration exists for ``name``
            ProviderDisabledError: If the configuration is disabled
        """
        with self._lock:
            self._require_enabled(name)

    def _require_enabled(self, name: str) -> _RegistryEntry:
        entry = self._entries.get(name)
        if entry is None:
            raise ProviderNotFoundError(name)
        if not entry.config.enabled:
            raise ProviderDisabledError(name)
        return entry

    def get_configuration(self, name: str) -> ProviderConfiguration:
        """Get the registered configuration for ``name``."""
        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                raise ProviderNotFoundError(name)
            return entry.config

    def has_provider(self, name: str) -> bool:
        with self._lock:
            return name in self._entries

    def list_providers(self) -> list[str]:
        """Provider names in registration order."""
        with self._lock:
            return list(self._entries.keys())

    # ==================== Default Provider ====================

    @property
    def default_provider(self) -> str | None:
        return self._default_provider

    def set_default_provider(self, name: str) -> None:
        """Designate the provider a new router starts with."""
        with self._lock:
            if name not in self._entries:
                raise ProviderNotFoundError(name)
            self._default_provider = name

    # ==================== Cache Management ====================

    def clear_cache(self, name: str | None = None) -> None:
        """Drop cached instances (one name, or all when ``name`` is None)."""
        with self._lock:
            if name is not None:
                entry = self._entries.get(name)
                if entry is not None:
                    self._evict(name, entry)
            else:
                for entry_name, entry in self._entries.items():
                    self._evict(entry_name, entry)

    def clear(self) -> None:
        """Remove every configuration, instance and the default."""
        with self._lock:
            for name, entry in self._entries.items():
                self._evict(name, entry)
            self._entries.clear()
            self._default_provider = None

    def _evict(self, name: str, entry: _RegistryEntry) -> None:
        if entry.instance is not None:
            self._evicted.append((name, entry.instance))
            entry.instance = None

    async def aclose(self) -> None:
        """
        Close every instance that holds network resources.

        Covers the cached instances and those dropped earlier by
        re-registration, unregistration or cache clearing.
        """
        with self._lock:
            for name, entry in self._entries.items():
                self._evict(name, entry)
            instances, self._evicted = self._evicted, []

        for name, instance in instances:
            close = getattr(instance, "close", None)
            if close is not None:
                await close()
                logger.debug(f"Closed provider instance: {name}")

    def __repr__(self) -> str:
        with self._lock:
            names = ", ".join(self._entries.keys())
        return f"ProviderRegistry(providers=[{names}], default={self._default_provider})"
