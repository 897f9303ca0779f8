"""
Zulu Pilot - Provider routing and adapter layer for a multi-provider
coding assistant.

Send prompts to interchangeable model providers (local Ollama, OpenAI,
Gemini) and switch between them at runtime.

Core Components:
- ProviderRegistry: provider configurations and lazy, cached instances
- ProviderRouter: the active provider and switches
- CompositeStrategy: chain of routing strategies ending in a terminal one
- ModelAdapter: the single entry point the host calls
- errors: failure taxonomy, classification and backoff

Example:
    from zulu_pilot import build_session, load_configuration

    session = build_session(load_configuration("config.yaml"))
    async with await session.adapter.stream("Explain main.py", files) as stream:
        async for fragment in stream:
            print(fragment, end="")
"""

from .adapter import (
    CancellationToken,
    GenerateContentParams,
    GenerateContentResponse,
    ModelAdapter,
    ResponseStream,
    StreamBuffer,
)
from .config import ProviderConfiguration, UnifiedConfiguration, load_configuration
from .errors import (
    InvalidApiKeyError,
    ModelNotFoundError,
    ProviderConnectionError,
    ProviderDisabledError,
    ProviderError,
    ProviderNotFoundError,
    RateLimitError,
    RoutingConfigurationError,
    RoutingError,
    UnknownProviderTypeError,
    ValidationError,
    ZuluPilotError,
    compute_backoff,
)
from .providers import FileContext, ModelCatalog, ModelProvider, ProviderRegistry
from .retry import RetryPolicy, with_retry
from .routing import (
    CompositeStrategy,
    NonTerminal,
    ProviderRouter,
    RouterState,
    RoutingDecision,
    Terminal,
)
from .session import Session, build_session, create_registry, default_strategy

__version__ = "0.1.0"

__all__ = [
    # Adapter
    "CancellationToken",
    "GenerateContentParams",
    "GenerateContentResponse",
    "ModelAdapter",
    "ResponseStream",
    "StreamBuffer",
    # Config
    "ProviderConfiguration",
    "UnifiedConfiguration",
    "load_configuration",
    # Errors
    "InvalidApiKeyError",
    "ModelNotFoundError",
    "ProviderConnectionError",
    "ProviderDisabledError",
    "ProviderError",
    "ProviderNotFoundError",
    "RateLimitError",
    "RoutingConfigurationError",
    "RoutingError",
    "UnknownProviderTypeError",
    "ValidationError",
    "ZuluPilotError",
    "compute_backoff",
    # Providers
    "FileContext",
    "ModelCatalog",
    "ModelProvider",
    "ProviderRegistry",
    # Retry
    "RetryPolicy",
    "with_retry",
    # Routing
    "CompositeStrategy",
    "NonTerminal",
    "ProviderRouter",
    "RouterState",
    "RoutingDecision",
    "Terminal",
    # Session
    "Session",
    "build_session",
    "create_registry",
    "default_strategy",
]
