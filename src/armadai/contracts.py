from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str


@dataclass(frozen=True)
class CompletionRequest:
    model: str
    system_prompt: str = ""
    messages: tuple[ChatMessage, ...] = ()
    temperature: float = 0.7
    max_tokens: int | None = None

    def last_user_content(self) -> str:
        return self.messages[-1].content if self.messages else ""


@dataclass(frozen=True)
class CompletionResponse:
    content: str
    model: str
    tokens_in: int = 0
    tokens_out: int = 0
    cost: float = 0.0


@dataclass(frozen=True)
class ProviderMetadata:
    name: str
    models: tuple[str, ...] = field(default_factory=tuple)
    supports_streaming: bool = False


class TextChunks(Protocol):
    """Single-pass stream of text fragments; errors surface while iterating."""

    def __aiter__(self) -> AsyncIterator[str]: ...

    async def aclose(self) -> None: ...


@runtime_checkable
class Provider(Protocol):
    """Capability set every execution backend satisfies."""

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Send the request and wait for the full response."""
        ...

    async def stream(self, request: CompletionRequest) -> TextChunks:
        """Start the request and return its incremental text fragments."""
        ...

    def metadata(self) -> ProviderMetadata:
        ...
