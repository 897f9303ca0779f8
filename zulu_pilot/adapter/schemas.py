"""
Host Message Schemas.

The assistant host speaks in structured contents (role + parts), while
providers take a plain prompt and a list of context files. This module
defines the host shapes and the pure converters between the two.

Usage:
    params = GenerateContentParams.model_validate({
        "model": "openai:gpt-4o",
        "contents": [
            {"role": "user", "parts": [{"text": "Explain this function"}]},
        ],
    })

    request = to_provider_request(params.contents)
    text = await provider.generate_response(request.prompt, request.context)
    response = to_host_response(text)

Field aliases follow the host's camelCase wire names (fileData, fileUri,
mimeType), and the snake_case names are accepted as well.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from zulu_pilot.providers.base import FileContext


class FileData(BaseModel):
    """Reference to a file the host attached to a message."""

    model_config = ConfigDict(populate_by_name=True)

    file_uri: str = Field(..., alias="fileUri")
    mime_type: str | None = Field(default=None, alias="mimeType")


class InlineData(BaseModel):
    """Inline binary payload (base64). Not forwarded to text providers."""

    model_config = ConfigDict(populate_by_name=True)

    mime_type: str = Field(..., alias="mimeType")
    data: str


class Part(BaseModel):
    """One part of a message. Usually exactly one field is set."""

    model_config = ConfigDict(populate_by_name=True)

    text: str | None = None
    file_data: FileData | None = Field(default=None, alias="fileData")
    inline_data: InlineData | None = Field(default=None, alias="inlineData")


class Content(BaseModel):
    """A message in the conversation."""

    role: Literal["user", "model", "system"] = "user"
    parts: list[Part] = Field(default_factory=list)


class GenerateContentParams(BaseModel):
    """
    Host request.

    Attributes:
        model: Model directive ("provider:model", "model", "auto" or None)
        contents: Conversation contents
        config: Host generation settings, passed through untouched
    """

    model_config = ConfigDict(populate_by_name=True)

    model: str | None = None
    contents: list[Content] = Field(default_factory=list)
    config: dict[str, Any] = Field(default_factory=dict)


class GenerateContentResponse(BaseModel):
    """Host response: the model turn(s) produced for a request."""

    content: list[Content] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(
            part.text for item in self.content for part in item.parts if part.text
        )


@dataclass(frozen=True)
class ProviderRequest:
    """Provider-agnostic request: a prompt plus context files."""

    prompt: str
    context: list[FileContext] = field(default_factory=list)


def to_provider_request(
    contents: list[Content], context: list[FileContext] | None = None
) -> ProviderRequest:
    """
    Flatten host contents into a provider prompt.

    Text parts are joined with newlines; file references become
    ``[File: <uri>]`` notes. Inline binary parts are dropped.
    """
    prompt_parts: list[str] = []
    for content in contents:
        for part in content.parts:
            if part.text:
                prompt_parts.append(part.text)
            if part.file_data is not None:
                prompt_parts.append(f"[File: {part.file_data.file_uri}]")

    return ProviderRequest(prompt="\n".join(prompt_parts), context=list(context or []))


def to_host_response(text: str) -> GenerateContentResponse:
    """Wrap provider text as a single model turn."""
    return GenerateContentResponse(
        content=[Content(role="model", parts=[Part(text=text)])],
    )
