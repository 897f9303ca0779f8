"""
Configuration Schemas for Zulu Pilot.

Pydantic models for the provider configuration graph produced by the
on-disk configuration store.

Security:
    API keys use SecretStr to prevent accidental logging of credentials.
    A key may also be an environment reference ("env:OPENAI_API_KEY"),
    resolved with ProviderConfiguration.resolve_api_key().
"""

from __future__ import annotations

import os
from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)

from zulu_pilot.errors import ValidationError

ENV_PREFIX = "env:"

# Network timeouts in milliseconds
LOCAL_TIMEOUT_MS = 5000
REMOTE_TIMEOUT_MS = 30000


class ProviderType(str, Enum):
    """Provider types shipped with Zulu Pilot."""

    OLLAMA = "ollama"
    OPENAI = "openai"
    GEMINI = "gemini"


def get_provider_timeout(is_local: bool = False) -> int:
    """Default timeout (ms) for a local or remote provider."""
    return LOCAL_TIMEOUT_MS if is_local else REMOTE_TIMEOUT_MS


class ProviderConfiguration(BaseModel):
    """
    Configuration for a single named provider instance.

    Many instances may share one type (and therefore one factory):

        {
            "type": "ollama",
            "name": "local",
            "base_url": "http://localhost:11434",
            "model": "qwen2.5-coder"
        }

    Immutable once built; re-register to change it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    type: str = Field(..., min_length=1, description="Provider type tag, selects the factory")
    name: str = Field(..., min_length=1, description="Unique instance name")
    base_url: str | None = Field(None, alias="baseUrl", description="Endpoint override")
    api_key: SecretStr | None = Field(
        None, alias="apiKey", description='API key or "env:VAR_NAME" reference'
    )
    credentials_ref: str | None = Field(
        None, alias="credentialsRef", description="Path or id of external credentials"
    )
    model: str | None = Field(None, description="Default model for this instance")
    timeout_ms: int | None = Field(
        None,
        alias="timeoutMs",
        validation_alias=AliasChoices("timeoutMs", "timeout", "timeout_ms"),
        gt=0,
        description="Request timeout in milliseconds",
    )
    enabled: bool = Field(True, description="Whether the provider may be used")
    provider_specific: dict[str, Any] = Field(
        default_factory=dict,
        alias="providerSpecific",
        description="Extra settings understood by a particular provider type",
    )

    @field_validator("type")
    @classmethod
    def _normalize_type(cls, value: str) -> str:
        return value.strip()

    @property
    def is_local(self) -> bool:
        return self.type == ProviderType.OLLAMA.value

    def effective_timeout_ms(self) -> int:
        """Configured timeout or the local/remote default."""
        return self.timeout_ms or get_provider_timeout(self.is_local)

    def resolve_api_key(self, default_env_var: str | None = None) -> str:
        """
        Resolve the API key to its plain value.

        Order: configured key (following an "env:" reference), then
        ``default_env_var``.

        Raises:
            ValidationError: If no key can be found
        """
        raw = self.api_key.get_secret_value() if self.api_key else ""

        if raw.startswith(ENV_PREFIX):
            env_var = raw[len(ENV_PREFIX) :]
            value = os.environ.get(env_var, "")
            if not value:
                raise ValidationError(
                    f"Environment variable {env_var} is not set.",
                    "api_key",
                    provider=self.name,
                )
            return value

        if raw:
            return raw

        if default_env_var:
            value = os.environ.get(default_env_var, "")
            if value:
                return value
            raise ValidationError(
                f"API key is required for provider '{self.name}'. "
                f"Set {default_env_var} environment variable or provide it in config.",
                "api_key",
                provider=self.name,
            )

        raise ValidationError(
            f"API key is required for provider '{self.name}'.",
            "api_key",
            provider=self.name,
        )


class UnifiedConfiguration(BaseModel):
    """
    Root configuration: an ordered map of providers plus the default.

    Entries without a "name" take their key as name.
    """

    model_config = ConfigDict(populate_by_name=True)

    default_provider: str = Field(..., alias="defaultProvider", min_length=1)
    default_model: str | None = Field(None, alias="defaultModel")
    providers: dict[str, ProviderConfiguration] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fill_provider_names(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        providers = data.get("providers")
        if isinstance(providers, dict):
            filled = {}
            for key, entry in providers.items():
                if isinstance(entry, dict) and "name" not in entry:
                    entry = {**entry, "name": key}
                filled[key] = entry
            data = {**data, "providers": filled}
        return data

    @model_validator(mode="after")
    def _check_consistency(self) -> "UnifiedConfiguration":
        for key, config in self.providers.items():
            if config.name != key:
                raise ValueError(
                    f"Provider entry '{key}' declares a different name '{config.name}'"
                )
        if self.default_provider not in self.providers:
            raise ValueError(
                f"Default provider '{self.default_provider}' is not among the configured providers"
            )
        return self

    def provider_names(self) -> list[str]:
        return list(self.providers.keys())
