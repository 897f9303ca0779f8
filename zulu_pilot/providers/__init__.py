"""
Zulu Pilot Providers

Swappable backend model providers.

Provider Types:
- ollama: OllamaProvider (local daemon)
- openai: OpenAIProvider
- gemini: GeminiProvider

Features:
- ProviderRegistry with lazy, cached instance construction
- ModelCatalog capability for model discovery and selection
"""

from .base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    SYSTEM_PROMPT,
    BaseModelProvider,
    FileContext,
    HttpModelProvider,
    ModelCatalog,
    ModelProvider,
    as_model_catalog,
    build_messages,
)
from .gemini import GeminiProvider
from .ollama import OllamaProvider
from .openai import OpenAIProvider
from .registry import ProviderFactory, ProviderRegistry

__all__ = [
    # Contract
    "BaseModelProvider",
    "FileContext",
    "HttpModelProvider",
    "ModelCatalog",
    "ModelProvider",
    "as_model_catalog",
    "build_messages",
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_TEMPERATURE",
    "SYSTEM_PROMPT",
    # Providers
    "GeminiProvider",
    "OllamaProvider",
    "OpenAIProvider",
    # Registry
    "ProviderFactory",
    "ProviderRegistry",
]
