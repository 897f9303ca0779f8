"""
Zulu Pilot Adapter

Host-facing model adapter, host message schemas and streaming helpers.
"""

from .model_adapter import ContextSource, ModelAdapter, ResponseStream
from .schemas import (
    Content,
    FileData,
    GenerateContentParams,
    GenerateContentResponse,
    InlineData,
    Part,
    ProviderRequest,
    to_host_response,
    to_provider_request,
)
from .streaming import DEFAULT_MAX_BUFFER_CHARS, CancellationToken, StreamBuffer

__all__ = [
    # Adapter
    "ContextSource",
    "ModelAdapter",
    "ResponseStream",
    # Schemas
    "Content",
    "FileData",
    "GenerateContentParams",
    "GenerateContentResponse",
    "InlineData",
    "Part",
    "ProviderRequest",
    "to_host_response",
    "to_provider_request",
    # Streaming
    "CancellationToken",
    "DEFAULT_MAX_BUFFER_CHARS",
    "StreamBuffer",
]
