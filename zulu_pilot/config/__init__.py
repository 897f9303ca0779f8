"""
Zulu Pilot Configuration

Provider configuration schemas and file loading.
"""

from .loader import load_configuration, parse_configuration
from .schemas import (
    LOCAL_TIMEOUT_MS,
    REMOTE_TIMEOUT_MS,
    ProviderConfiguration,
    ProviderType,
    UnifiedConfiguration,
    get_provider_timeout,
)

__all__ = [
    "LOCAL_TIMEOUT_MS",
    "REMOTE_TIMEOUT_MS",
    "ProviderConfiguration",
    "ProviderType",
    "UnifiedConfiguration",
    "get_provider_timeout",
    "load_configuration",
    "parse_configuration",
]
