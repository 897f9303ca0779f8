"""
Error taxonomy for Zulu Pilot.

Every failure raised by the provider routing and adapter layer is one of
the classes below, so hosts can decide what to show the user and whether
a retry makes sense.

Kinds:
- ProviderConnectionError: endpoint unreachable, timeout, 5xx (retryable)
- RateLimitError: quota/capacity exhausted (retryable, may carry retry_after)
- ValidationError: malformed request detected before or at dispatch
- ModelNotFoundError: provider does not know the requested model
- InvalidApiKeyError: provider rejected the credentials
- ProviderNotFoundError / ProviderDisabledError / UnknownProviderTypeError:
  registry and router resolution failures

Retry policy stays with the caller: this module only classifies errors and
computes delays (see compute_backoff / get_retry_delay).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 30000


# =============================================================================
# Base Classes
# =============================================================================


class ZuluPilotError(Exception):
    """Base exception for all Zulu Pilot errors."""

    code = "ZULU_PILOT_ERROR"

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def get_user_message(self) -> str:
        return self.message


class ProviderError(ZuluPilotError):
    """Error reported by (or while talking to) a model provider."""

    code = "PROVIDER_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        provider: str = "",
        *,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause=cause)
        self.provider = provider

    def __str__(self) -> str:
        if self.provider:
            return f"[{self.provider}] {self.message}"
        return self.message


# =============================================================================
# Provider Failures
# =============================================================================


class ProviderConnectionError(ProviderError):
    """Transport-level failure to reach a provider endpoint."""

    code = "CONNECTION_ERROR"
    retryable = True

    def get_user_message(self) -> str:
        if self.provider == "ollama":
            return (
                "Failed to connect to Ollama. Please ensure:\n"
                "1. Ollama is running locally (http://localhost:11434)\n"
                "2. The model is installed (e.g., ollama pull qwen2.5-coder)\n"
                "3. Your network connection is active\n\n"
                f"Error: {self.message}"
            )
        return (
            f"Failed to connect to {self.provider or 'the provider'}. Please check:\n"
            "1. Your internet connection\n"
            "2. API endpoint is accessible\n"
            "3. Firewall settings\n\n"
            f"Error: {self.message}"
        )


class RateLimitError(ProviderError):
    """Provider reports capacity or quota exhaustion."""

    code = "RATE_LIMIT_ERROR"
    retryable = True

    def __init__(
        self,
        message: str,
        provider: str = "",
        *,
        retry_after: float | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, provider, cause=cause)
        self.retry_after = retry_after  # seconds, as suggested by the server

    def get_user_message(self) -> str:
        if self.retry_after:
            retry_info = f" Retry after {self.retry_after:g} seconds."
        else:
            retry_info = " Please retry in a few moments."
        return f"Rate limit exceeded.{retry_info}\n\nError: {self.message}"


class ValidationError(ProviderError):
    """Malformed request (missing field, bad credentials reference, etc.)."""

    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        *,
        provider: str = "",
        cause: BaseException | None = None,
    ):
        super().__init__(message, provider, cause=cause)
        self.field = field

    def get_user_message(self) -> str:
        field_info = f" (field: {self.field})" if self.field else ""
        return f"Validation failed{field_info}: {self.message}"


class ModelNotFoundError(ProviderError):
    """Provider reports that the requested model does not exist."""

    code = "MODEL_NOT_FOUND"

    def __init__(
        self,
        message: str,
        model: str | None = None,
        provider: str = "",
        *,
        cause: BaseException | None = None,
    ):
        super().__init__(message, provider, cause=cause)
        self.model = model

    def get_user_message(self) -> str:
        model = self.model or "requested model"
        return (
            f"Model '{model}' is not available on {self.provider or 'this provider'}. "
            "List the available models and pick one of them.\n\n"
            f"Error: {self.message}"
        )


class InvalidApiKeyError(ProviderError):
    """Provider rejected the API key."""

    code = "INVALID_API_KEY"

    def get_user_message(self) -> str:
        return (
            f"Authentication with {self.provider or 'the provider'} failed. "
            "Check the API key in your configuration or environment.\n\n"
            f"Error: {self.message}"
        )


# =============================================================================
# Resolution Failures
# =============================================================================


class ResolutionError(ZuluPilotError):
    """A provider name could not be resolved to a usable instance."""

    code = "RESOLUTION_ERROR"

    def __init__(self, message: str, name: str, *, cause: BaseException | None = None):
        super().__init__(message, cause=cause)
        self.name = name


class ProviderNotFoundError(ResolutionError):
    """No configuration is registered under the given name."""

    code = "PROVIDER_NOT_FOUND"

    def __init__(self, name: str, *, cause: BaseException | None = None):
        super().__init__(f'Provider "{name}" not found', name, cause=cause)


class ProviderDisabledError(ResolutionError):
    """The configuration exists but is disabled."""

    code = "PROVIDER_DISABLED"

    def __init__(self, name: str, *, cause: BaseException | None = None):
        super().__init__(f'Provider "{name}" is disabled', name, cause=cause)


class UnknownProviderTypeError(ResolutionError):
    """No factory is registered for the configuration's provider type."""

    code = "UNKNOWN_PROVIDER_TYPE"

    def __init__(self, name: str, provider_type: str, *, cause: BaseException | None = None):
        super().__init__(
            f'No factory registered for provider type "{provider_type}" (provider "{name}")',
            name,
            cause=cause,
        )
        self.provider_type = provider_type


class RoutingError(ZuluPilotError):
    """A routing strategy could not produce a decision."""

    code = "ROUTING_ERROR"

    def __init__(self, strategy: str, message: str, *, cause: BaseException | None = None):
        super().__init__(f"[{strategy}] {message}", cause=cause)
        self.strategy = strategy


class RoutingConfigurationError(ZuluPilotError):
    """A composite strategy was assembled incorrectly."""

    code = "ROUTING_CONFIGURATION_ERROR"


# =============================================================================
# Classification
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """True for transient provider failures (connection loss, rate limiting)."""
    return isinstance(error, ProviderError) and error.retryable


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def _error_message(body: Any) -> str | None:
    """Extract a provider message from an error payload (OpenAI and Gemini shapes)."""
    if isinstance(body, Mapping):
        error = body.get("error")
        if isinstance(error, Mapping):
            message = error.get("message")
            if message:
                return str(message)
        if isinstance(error, str) and error:
            return error
        message = body.get("message")
        if message:
            return str(message)
    return None


def classify_status(
    status: int,
    *,
    provider: str,
    message: str | None = None,
    headers: Mapping[str, str] | None = None,
    model: str | None = None,
    base_url: str | None = None,
    cause: BaseException | None = None,
) -> ProviderError:
    """
    Map an HTTP error status returned by a provider to the taxonomy.

    Args:
        status: HTTP status code
        provider: Provider name for messages
        message: Provider error message, if one was returned
        headers: Response headers (Retry-After is honored on 429)
        model: Model that was requested, used for 404 classification
        base_url: Endpoint, used in connection error messages
        cause: Underlying exception

    Returns:
        The classified error (never raised here)
    """
    detail = message or f"HTTP {status}"

    if status == 401:
        return InvalidApiKeyError(f"Authentication failed: {detail}", provider, cause=cause)

    if status == 403:
        return ValidationError(
            f"Access forbidden: {detail}. Check your API key permissions.",
            "api_key",
            provider=provider,
            cause=cause,
        )

    if status == 404:
        if model:
            return ModelNotFoundError(
                f'Model "{model}" not found: {detail}', model, provider, cause=cause
            )
        return ValidationError(f"Resource not found: {detail}", provider=provider, cause=cause)

    if status == 429:
        retry_after = parse_retry_after((headers or {}).get("retry-after"))
        return RateLimitError(
            message or "Rate limit exceeded", provider, retry_after=retry_after, cause=cause
        )

    if status in (400, 422):
        return ValidationError(detail, provider=provider, cause=cause)

    if 500 <= status < 600:
        return ProviderConnectionError(
            f"Server error from {provider}: {detail}", provider, cause=cause
        )

    location = f" at {base_url}" if base_url else ""
    return ProviderConnectionError(
        f"Unexpected response from {provider}{location}: {detail}", provider, cause=cause
    )


def classify_response(
    response: httpx.Response,
    *,
    provider: str,
    model: str | None = None,
    base_url: str | None = None,
    cause: BaseException | None = None,
) -> ProviderError:
    """Classify a failed httpx response. The body must already be read."""
    try:
        body = response.json()
    except ValueError:
        body = None
    message = _error_message(body) or (response.text[:500] if response.text else None)
    return classify_status(
        response.status_code,
        provider=provider,
        message=message,
        headers=response.headers,
        model=model,
        base_url=base_url,
        cause=cause,
    )


def classify_error(
    error: BaseException,
    *,
    provider: str,
    model: str | None = None,
    base_url: str | None = None,
) -> ZuluPilotError:
    """
    Map an arbitrary exception to the taxonomy, keeping it as the cause.

    Taxonomy errors are returned unchanged.
    """
    if isinstance(error, ZuluPilotError):
        return error

    location = f" at {base_url}" if base_url else ""

    if isinstance(error, httpx.HTTPStatusError):
        return classify_response(
            error.response, provider=provider, model=model, base_url=base_url, cause=error
        )

    if isinstance(error, httpx.TimeoutException):
        return ProviderConnectionError(
            f"Request to {provider}{location} timed out: {error}", provider, cause=error
        )

    if isinstance(error, httpx.TransportError):
        return ProviderConnectionError(
            f"Failed to connect to {provider}{location}: {error}", provider, cause=error
        )

    text = str(error)
    lowered = text.lower()

    if "connection" in lowered or "timeout" in lowered or "network" in lowered:
        return ProviderConnectionError(text, provider, cause=error)

    if "rate limit" in lowered or "429" in lowered:
        return RateLimitError(text, provider, cause=error)

    if "model" in lowered and "not found" in lowered:
        return ModelNotFoundError(text, model, provider, cause=error)

    if "api key" in lowered or "authentication" in lowered or "401" in lowered:
        return InvalidApiKeyError(text, provider, cause=error)

    return ProviderConnectionError(
        f"Unexpected error from {provider}: {text or type(error).__name__}",
        provider,
        cause=error,
    )


# =============================================================================
# Backoff
# =============================================================================


def compute_backoff(
    attempt: int,
    base_delay: int = DEFAULT_BASE_DELAY_MS,
    max_delay: int = DEFAULT_MAX_DELAY_MS,
) -> int:
    """
    Exponential backoff delay in milliseconds.

    delay = min(max_delay, base_delay * 2 ** attempt), attempt is 0-indexed.

    Apply only to ProviderConnectionError and RateLimitError.
    """
    if attempt < 0:
        raise ValueError(f"attempt must be >= 0, got {attempt}")
    # Cap the exponent so large attempts never build huge integers
    if attempt >= 63:
        return max_delay
    return min(max_delay, base_delay * (2**attempt))


def get_retry_delay(
    error: BaseException,
    attempt: int,
    base_delay: int = DEFAULT_BASE_DELAY_MS,
    max_delay: int = DEFAULT_MAX_DELAY_MS,
) -> int | None:
    """
    Delay in milliseconds before retrying after ``error``, or None if the
    error must not be retried.
    """
    if not is_retryable(error):
        return None
    if isinstance(error, RateLimitError) and error.retry_after:
        return min(max_delay, int(round(error.retry_after * 1000)))
    return compute_backoff(attempt, base_delay, max_delay)


__all__ = [
    "DEFAULT_BASE_DELAY_MS",
    "DEFAULT_MAX_DELAY_MS",
    "InvalidApiKeyError",
    "ModelNotFoundError",
    "ProviderConnectionError",
    "ProviderDisabledError",
    "ProviderError",
    "ProviderNotFoundError",
    "RateLimitError",
    "ResolutionError",
    "RoutingConfigurationError",
    "RoutingError",
    "UnknownProviderTypeError",
    "ValidationError",
    "ZuluPilotError",
    "classify_error",
    "classify_response",
    "classify_status",
    "compute_backoff",
    "get_retry_delay",
    "is_retryable",
    "parse_retry_after",
]
